"""Driver option table and typed option access.

CREATE_FLAGS lists every option ``create`` accepts, with its environment
variable and default. DriverOptions resolves a value in the order
explicit value, environment variable, flag default.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Final

from otcmachine.constants import (
    DEFAULT_AUTH_URL,
    DEFAULT_AZ,
    DEFAULT_BANDWIDTH_SIZE,
    DEFAULT_BANDWIDTH_TYPE,
    DEFAULT_ENDPOINT_TYPE,
    DEFAULT_FLAVOR,
    DEFAULT_FLOATING_IP_TYPE,
    DEFAULT_IMAGE,
    DEFAULT_IP_VERSION,
    DEFAULT_REGION,
    DEFAULT_SSH_PORT,
    DEFAULT_SSH_USER,
    DEFAULT_SUBNET_NAME,
    DEFAULT_VOLUME_SIZE,
    DEFAULT_VOLUME_TYPE,
    DEFAULT_VPC_NAME,
    DEFAULT_WAIT_TIMEOUT,
)
from otcmachine.exceptions import ConfigurationError

type FlagKind = type[str] | type[int] | type[bool]

_TRUE_STRINGS = frozenset({"1", "true", "yes", "on"})
_FALSE_STRINGS = frozenset({"", "0", "false", "no", "off"})


@dataclass(frozen=True, slots=True)
class Flag:
    """One driver option."""

    name: str
    usage: str
    kind: FlagKind = str
    default: Any = ""
    env_var: str = ""


def _str(name: str, env_var: str, usage: str, default: str = "") -> Flag:
    return Flag(name=name, usage=usage, kind=str, default=default, env_var=env_var)


def _int(name: str, env_var: str, usage: str, default: int = 0) -> Flag:
    return Flag(name=name, usage=usage, kind=int, default=default, env_var=env_var)


def _bool(name: str, usage: str) -> Flag:
    return Flag(name=name, usage=usage, kind=bool, default=False)


CREATE_FLAGS: Final[tuple[Flag, ...]] = (
    # Identity
    _str("otc-cloud", "OS_CLOUD", "Name of cloud in `clouds.yaml` file"),
    _str("otc-auth-url", "OS_AUTH_URL", "OpenTelekomCloud authentication URL", DEFAULT_AUTH_URL),
    _str("otc-cacert", "OS_CACERT", "CA certificate bundle to verify against"),
    _str("otc-domain-id", "OS_DOMAIN_ID", "OpenTelekomCloud domain ID"),
    _str("otc-domain-name", "OS_DOMAIN_NAME", "OpenTelekomCloud domain name"),
    _str("otc-username", "OS_USERNAME", "OpenTelekomCloud username"),
    _str("otc-password", "OS_PASSWORD", "OpenTelekomCloud password"),
    _str("otc-project-name", "OS_PROJECT_NAME", "OpenTelekomCloud project name"),
    _str("otc-project-id", "OS_PROJECT_ID", "OpenTelekomCloud project ID"),
    _str("otc-tenant-id", "TENANT_ID", "OpenTelekomCloud project ID. DEPRECATED: use --otc-project-id instead"),
    _str("otc-region", "REGION", "OpenTelekomCloud region name", DEFAULT_REGION),
    _str("otc-access-key-id", "ACCESS_KEY_ID", "OpenTelekomCloud access key ID for AK/SK auth"),
    _str("otc-access-key-key", "ACCESS_KEY_SECRET", "OpenTelekomCloud secret access key for AK/SK auth"),
    _str("otc-token", "OS_TOKEN", "OpenTelekomCloud authorization token"),
    _str("otc-endpoint-type", "OS_INTERFACE", "OpenTelekomCloud interface (endpoint) type", DEFAULT_ENDPOINT_TYPE),
    # Compute
    _str("otc-availability-zone", "OS_AVAILABILITY_ZONE", "OpenTelekomCloud availability zone", DEFAULT_AZ),
    _str(
        "otc-available-zone",
        "AVAILABLE_ZONE",
        "OpenTelekomCloud availability zone. DEPRECATED: use --otc-availability-zone instead",
    ),
    _str("otc-flavor-id", "FLAVOR_ID", "OpenTelekomCloud flavor id to use for the instance"),
    _str("otc-flavor-name", "OS_FLAVOR_NAME", "OpenTelekomCloud flavor name to use for the instance", DEFAULT_FLAVOR),
    _str("otc-image-id", "IMAGE_ID", "OpenTelekomCloud image id to use for the instance"),
    _str("otc-image-name", "OS_IMAGE_NAME", "OpenTelekomCloud image name to use for the instance", DEFAULT_IMAGE),
    _str("otc-server-group", "OS_SERVER_GROUP", "Define server group where server will be created"),
    _str("otc-server-group-id", "OS_SERVER_GROUP_ID", "Define server group where server will be created by ID"),
    _int("otc-root-volume-size", "ROOT_VOLUME_SIZE", "Set volume size of root partition", DEFAULT_VOLUME_SIZE),
    _str(
        "otc-root-volume-type",
        "ROOT_VOLUME_TYPE",
        "Set volume type of root partition (one of SATA, SAS, SSD)",
        DEFAULT_VOLUME_TYPE,
    ),
    _str("otc-tags", "OS_TAGS", "Comma-separated list of instance tags"),
    _str("otc-user-data-file", "OS_USER_DATA_FILE", "File containing an user data script"),
    _str("otc-user-data-raw", "", "Contents of user data file as a string"),
    # Network
    _str("otc-vpc-id", "VPC_ID", "OpenTelekomCloud VPC id the machine will be connected on"),
    _str("otc-vpc-name", "OS_VPC_NAME", "OpenTelekomCloud VPC name the machine will be connected on", DEFAULT_VPC_NAME),
    _str("otc-subnet-id", "SUBNET_ID", "OpenTelekomCloud subnet id the machine will be connected on"),
    _str(
        "otc-subnet-name",
        "OS_SUBNET_NAME",
        "OpenTelekomCloud subnet name the machine will be connected on",
        DEFAULT_SUBNET_NAME,
    ),
    _str("otc-sec-groups", "OS_SECURITY_GROUP", "Existing security groups to use, separated by comma"),
    _bool("otc-skip-default-sg", "Don't create default security group"),
    _bool("otc-k8s-group", "Create security group with k8s ports allowed"),
    # Addressing
    _str("otc-floating-ip", "OS_FLOATING_IP", "OpenTelekomCloud floating IP to use"),
    _str("otc-floating-ip-type", "OS_FLOATING_IP_TYPE", "OpenTelekomCloud bandwidth type", DEFAULT_FLOATING_IP_TYPE),
    _str(
        "otc-elastic-ip-type",
        "ELASTICIP_TYPE",
        "OpenTelekomCloud bandwidth type. DEPRECATED! Use --otc-floating-ip-type instead",
    ),
    _int("otc-bandwidth-size", "BANDWIDTH_SIZE", "OpenTelekomCloud bandwidth size", DEFAULT_BANDWIDTH_SIZE),
    _str("otc-bandwidth-type", "BANDWIDTH_TYPE", "OpenTelekomCloud bandwidth share type", DEFAULT_BANDWIDTH_TYPE),
    _int(
        "otc-elastic-ip",
        "ELASTIC_IP",
        "If set to 0, elastic IP won't be created. DEPRECATED: use --otc-skip-ip instead",
        1,
    ),
    _bool("otc-skip-ip", "If set, elastic IP won't be created"),
    _int(
        "otc-ip-version",
        "OS_IP_VERSION",
        "OpenTelekomCloud version of IP address assigned for the machine",
        DEFAULT_IP_VERSION,
    ),
    # SSH
    _str("otc-keypair-name", "OS_KEYPAIR_NAME", "OpenTelekomCloud keypair to use to SSH to the instance"),
    _str("otc-private-key-file", "OS_PRIVATE_KEY_FILE", "Private key file to use for SSH (absolute path)"),
    _str("otc-ssh-user", "SSH_USER", "Machine SSH username", DEFAULT_SSH_USER),
    _int("otc-ssh-port", "OS_SSH_PORT", "Machine SSH port", DEFAULT_SSH_PORT),
    # Timing
    _int(
        "otc-wait-timeout",
        "OTC_WAIT_TIMEOUT",
        "Seconds to wait for a resource to reach the expected status",
        DEFAULT_WAIT_TIMEOUT,
    ),
)

FLAGS_BY_NAME: Final[MappingProxyType[str, Flag]] = MappingProxyType({f.name: f for f in CREATE_FLAGS})


def parse_bool(raw: object) -> bool:
    if isinstance(raw, bool):
        return raw
    text = str(raw).strip().lower()
    if text in _TRUE_STRINGS:
        return True
    if text in _FALSE_STRINGS:
        return False
    raise ConfigurationError(f"invalid boolean value {raw!r}")


def coerce(flag: Flag, raw: object) -> Any:
    """Convert a raw value (typically a string) to the flag's kind.

    Raises:
        ConfigurationError: If the value cannot be converted.
    """
    if flag.kind is bool:
        return parse_bool(raw)
    if flag.kind is int:
        try:
            return int(raw)  # type: ignore[call-overload]
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"--{flag.name}: invalid integer value {raw!r}") from e
    return "" if raw is None else str(raw)


class DriverOptions:
    """Typed, read-only view over option values keyed by flag name."""

    def __init__(self, values: Mapping[str, Any] | None = None) -> None:
        self._values = {name: coerce(FLAGS_BY_NAME[name], v) for name, v in (values or {}).items() if v is not None}

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str],
        overrides: Mapping[str, Any] | None = None,
    ) -> DriverOptions:
        """Bind environment variables, then apply explicit overrides on top."""
        values: dict[str, Any] = {
            flag.name: environ[flag.env_var]
            for flag in CREATE_FLAGS
            if flag.env_var and flag.env_var in environ
        }
        values.update({k: v for k, v in (overrides or {}).items() if v is not None})
        return cls(values)

    def _get(self, name: str) -> Any:
        flag = FLAGS_BY_NAME[name]
        return self._values.get(name, flag.default)

    def string(self, name: str) -> str:
        return str(self._get(name))

    def int(self, name: str) -> int:
        return int(self._get(name))

    def bool(self, name: str) -> bool:
        return parse_bool(self._get(name))

    def __contains__(self, name: object) -> bool:
        return name in self._values

    def __repr__(self) -> str:
        return f"DriverOptions({sorted(self._values)})"
