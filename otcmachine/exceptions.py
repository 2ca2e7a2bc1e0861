"""Custom exception hierarchy for otcmachine.

All driver exceptions inherit from OtcMachineError, enabling callers
to catch every driver failure with a single except clause.
"""

from __future__ import annotations


class OtcMachineError(Exception):
    """Base exception for all otcmachine errors."""


class ConfigurationError(OtcMachineError):
    """Raised for invalid or conflicting configuration, before any provider call."""


class NotFoundError(OtcMachineError):
    """Raised when a configured name does not resolve to a provider identifier."""

    def __init__(self, kind: str, name: str) -> None:
        self.kind = kind
        self.name = name
        super().__init__(f"{kind} not found by name `{name}`")


class ProviderError(OtcMachineError):
    """Raised when a call to the cloud provider fails."""


class MissingResourceError(ProviderError):
    """Raised when the provider reports that a resource does not exist."""


class WaitTimeoutError(ProviderError):
    """Raised when a resource does not reach the awaited status in time."""


class UnexpectedAddressError(ProviderError):
    """Raised when an instance address payload has an unexpected shape."""

    def __init__(self, payload: object, reason: str) -> None:
        self.payload = payload
        super().__init__(f"Unexpected address shape ({reason}): {payload!r}")


class AddressNotSetError(OtcMachineError):
    """Raised when the machine IP address is requested before it is known."""

    def __init__(self) -> None:
        super().__init__("IP address is not set")


class TeardownError(OtcMachineError):
    """Raised by Remove when one or more teardown steps failed.

    Every failing step is kept, in execution order, as a
    ``(step, cause)`` pair.
    """

    def __init__(self, errors: list[tuple[str, Exception]]) -> None:
        self.errors = errors
        lines = "\n".join(f"\t* {step}: {err}" for step, err in errors)
        noun = "error" if len(errors) == 1 else "errors"
        super().__init__(f"{len(errors)} {noun} occurred during teardown:\n{lines}")

    @property
    def causes(self) -> list[Exception]:
        return [err for _, err in self.errors]
