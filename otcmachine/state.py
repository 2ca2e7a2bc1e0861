"""Driver state and machine status mapping.

DriverState is the single mutable record every provisioning step reads
and updates. Only the fields that survive between host invocations are
serialized; everything marked ``exclude=True`` is rebuilt from options
and provider lookups on each call.
"""

from __future__ import annotations

from enum import StrEnum
from types import MappingProxyType
from typing import Final

from pydantic import BaseModel, Field

from otcmachine.client import DiskOpts, ElasticIPOpts
from otcmachine.constants import (
    DEFAULT_IP_VERSION,
    DEFAULT_SSH_PORT,
    DEFAULT_SSH_USER,
    DEFAULT_WAIT_TIMEOUT,
    InstanceStatus,
)
from otcmachine.managed import Managed

# =============================================================================
# Machine State
# =============================================================================


class MachineState(StrEnum):
    """Closed set of machine states exposed to the host."""

    RUNNING = "Running"
    PAUSED = "Paused"
    STOPPED = "Stopped"
    STARTING = "Starting"
    ERROR = "Error"
    UNKNOWN = "Unknown"


STATUS_TABLE: Final[MappingProxyType[str, MachineState]] = MappingProxyType({
    InstanceStatus.RUNNING: MachineState.RUNNING,
    InstanceStatus.PAUSED: MachineState.PAUSED,
    InstanceStatus.STOPPED: MachineState.STOPPED,
    InstanceStatus.BUILDING: MachineState.STARTING,
    InstanceStatus.BUILD: MachineState.STARTING,
    InstanceStatus.ERROR: MachineState.ERROR,
})


def map_status(status: str) -> MachineState:
    """Map a provider status string; unrecognized strings map to UNKNOWN."""
    return STATUS_TABLE.get(status, MachineState.UNKNOWN)


# =============================================================================
# Driver State
# =============================================================================


def _absent() -> Managed[str]:
    return Managed[str].absent()


class DriverState(BaseModel):
    """Identity, resource and build parameters of one machine."""

    # Host bookkeeping
    machine_name: str = ""
    store_path: str = ""
    ssh_user: str = DEFAULT_SSH_USER
    ssh_port: int = DEFAULT_SSH_PORT
    ssh_key_path: str = ""
    ip_address: str = ""

    # Identity / auth
    cloud: str = ""
    auth_url: str = ""
    ca_cert: str = ""
    domain_id: str = ""
    domain_name: str = ""
    username: str = ""
    password: str = ""
    project_name: str = ""
    project_id: str = ""
    region: str = ""
    access_key: str = ""
    secret_key: str = ""
    token: str = ""
    endpoint_type: str = ""

    # Resources tracked across invocations
    instance_id: str = ""
    key_pair: Managed[str] = Field(default_factory=_absent)
    private_key_file: str = ""
    network: Managed[str] = Field(default_factory=_absent)
    subnet: Managed[str] = Field(default_factory=_absent)
    default_security_group_id: Managed[str] = Field(default_factory=_absent)
    k8s_security_group_id: Managed[str] = Field(default_factory=_absent)
    floating_ip: Managed[str] = Field(default_factory=_absent)

    # Rebuilt from options on every invocation
    availability_zone: str = Field(default="", exclude=True)
    flavor_name: str = Field(default="", exclude=True)
    flavor_id: str = Field(default="", exclude=True)
    image_name: str = Field(default="", exclude=True)
    network_name: str = Field(default="", exclude=True)
    subnet_name: str = Field(default="", exclude=True)
    security_groups: list[str] = Field(default_factory=list, exclude=True)
    security_group_ids: list[str] = Field(default_factory=list, exclude=True)
    server_group: str = Field(default="", exclude=True)
    server_group_id: str = Field(default="", exclude=True)
    default_security_group: str = Field(default="", exclude=True)
    k8s_security_group: str = Field(default="", exclude=True)
    root_volume: DiskOpts = Field(default_factory=DiskOpts, exclude=True)
    user_data_file: str = Field(default="", exclude=True)
    user_data: bytes = Field(default=b"", exclude=True)
    tags: list[str] = Field(default_factory=list, exclude=True)
    ip_version: int = Field(default=DEFAULT_IP_VERSION, exclude=True)
    skip_floating_ip: bool = Field(default=False, exclude=True)
    floating_ip_opts: ElasticIPOpts = Field(default_factory=ElasticIPOpts, exclude=True)
    wait_timeout: int = Field(default=DEFAULT_WAIT_TIMEOUT, exclude=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)

    @classmethod
    def from_json(cls, data: str | bytes) -> DriverState:
        return cls.model_validate_json(data)
