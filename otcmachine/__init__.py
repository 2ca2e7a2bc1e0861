"""otcmachine - docker host provisioning on Open Telekom Cloud.

Example:
    from otcmachine import Driver, DriverOptions

    driver = Driver("dev-box", "/var/lib/otc-machine")
    driver.set_config_from_flags(DriverOptions({"otc-cloud": "otc"}))
    driver.create()
    print(driver.get_url())
"""

from otcmachine.driver import Driver
from otcmachine.exceptions import (
    AddressNotSetError,
    ConfigurationError,
    MissingResourceError,
    NotFoundError,
    OtcMachineError,
    ProviderError,
    TeardownError,
    UnexpectedAddressError,
    WaitTimeoutError,
)
from otcmachine.flags import CREATE_FLAGS, DriverOptions, Flag
from otcmachine.logging import LogConfig, setup_logging, teardown_logging
from otcmachine.managed import Managed
from otcmachine.state import DriverState, MachineState
from otcmachine.store import MachineStore

__version__ = "0.1.0"

__all__ = [
    "AddressNotSetError",
    "CREATE_FLAGS",
    "ConfigurationError",
    "Driver",
    "DriverOptions",
    "DriverState",
    "Flag",
    "LogConfig",
    "MachineState",
    "MachineStore",
    "Managed",
    "MissingResourceError",
    "NotFoundError",
    "OtcMachineError",
    "ProviderError",
    "TeardownError",
    "UnexpectedAddressError",
    "WaitTimeoutError",
    "setup_logging",
    "teardown_logging",
]
