"""Provider client protocol.

Every provisioning component talks to the cloud through this interface
only. An authenticated Client is created once per driver and passed to
each component; see otcmachine.providers.openstack for the openstacksdk
implementation and tests/conftest.py for the in-memory one.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from otcmachine.constants import (
    DEFAULT_BANDWIDTH_NAME,
    DEFAULT_BANDWIDTH_SIZE,
    DEFAULT_BANDWIDTH_TYPE,
    DEFAULT_FLOATING_IP_TYPE,
    DEFAULT_VOLUME_SIZE,
    DEFAULT_VOLUME_TYPE,
    PortRange,
)

# =============================================================================
# Request Types
# =============================================================================


@dataclass(frozen=True, slots=True)
class AuthOptions:
    """Credentials and endpoint selection for authentication."""

    cloud: str = ""
    auth_url: str = ""
    ca_cert: str = ""
    region: str = ""
    endpoint_type: str = ""
    domain_id: str = ""
    domain_name: str = ""
    username: str = ""
    password: str = ""
    project_name: str = ""
    project_id: str = ""
    access_key: str = ""
    secret_key: str = ""
    token: str = ""


@dataclass(frozen=True, slots=True)
class DiskOpts:
    """Root volume specification."""

    source_id: str = ""
    size: int = DEFAULT_VOLUME_SIZE
    volume_type: str = DEFAULT_VOLUME_TYPE


@dataclass(frozen=True, slots=True)
class ElasticIPOpts:
    """Elastic IP allocation and bandwidth options."""

    ip_type: str = DEFAULT_FLOATING_IP_TYPE
    bandwidth_name: str = DEFAULT_BANDWIDTH_NAME
    bandwidth_size: int = DEFAULT_BANDWIDTH_SIZE
    bandwidth_type: str = DEFAULT_BANDWIDTH_TYPE


@dataclass(frozen=True, slots=True)
class ServerOpts:
    """Everything needed to create one compute instance.

    The instance gets one port on ``network_id``; Neutron picks its address
    from the network's subnet.
    """

    name: str
    flavor_id: str
    network_id: str
    key_pair_name: str
    disk: DiskOpts
    security_groups: tuple[str, ...] = ()
    availability_zone: str = ""
    server_group_id: str = ""
    user_data: bytes = b""


# =============================================================================
# Response Types
# =============================================================================


@dataclass(frozen=True, slots=True)
class Resource:
    """Created provider object."""

    id: str
    name: str = ""


@dataclass(frozen=True, slots=True)
class KeyPair:
    name: str
    public_key: str


@dataclass(frozen=True, slots=True)
class FloatingIP:
    id: str
    address: str


@dataclass(frozen=True, slots=True)
class InstanceInfo:
    """Provider view of an instance.

    ``addresses`` is passed through as reported (pool name to a list of
    address entries) and decoded by otcmachine.address.
    """

    id: str
    status: str
    addresses: Mapping[str, Any] = field(default_factory=dict)


# =============================================================================
# Client Protocol
# =============================================================================


class Client(Protocol):
    """Capability set consumed from the cloud provider.

    ``find_*`` methods return an empty string (or list) when nothing
    matches. ``wait_for_*`` methods block until the status is observed,
    raise WaitTimeoutError when it is not, and raise MissingResourceError
    when the resource disappears.
    """

    def authenticate(self) -> None: ...

    # Lookups
    def find_network(self, name: str) -> str: ...
    def find_subnet(self, network_id: str, name: str) -> str: ...
    def find_flavor(self, name: str) -> str: ...
    def find_image(self, name: str) -> str: ...
    def find_security_groups(self, names: Sequence[str]) -> list[str]: ...
    def find_server_group(self, name: str) -> str: ...

    # Network
    def create_network(self, name: str) -> Resource: ...
    def wait_for_network_status(self, network_id: str, status: str) -> None: ...
    def delete_network(self, network_id: str) -> None: ...
    def create_subnet(self, network_id: str, name: str) -> Resource: ...
    def wait_for_subnet_status(self, subnet_id: str, status: str) -> None: ...
    def delete_subnet(self, network_id: str, subnet_id: str) -> None: ...

    # Security groups
    def create_security_group(self, name: str, *ports: PortRange) -> Resource: ...
    def delete_security_group(self, group_id: str) -> None: ...
    def wait_for_security_group_deleted(self, group_id: str) -> None: ...

    # Key pairs
    def create_key_pair(self, name: str, public_key: str) -> KeyPair: ...
    def get_public_key(self, name: str) -> bytes: ...
    def delete_key_pair(self, name: str) -> None: ...

    # Instances
    def create_instance(self, opts: ServerOpts) -> Resource: ...
    def add_tags(self, instance_id: str, tags: Sequence[str]) -> None: ...
    def wait_for_instance_status(self, instance_id: str, status: str) -> None: ...
    def get_instance_status(self, instance_id: str) -> InstanceInfo: ...
    def start_instance(self, instance_id: str) -> None: ...
    def stop_instance(self, instance_id: str) -> None: ...
    def delete_instance(self, instance_id: str) -> None: ...

    # Floating IPs
    def create_floating_ip(self, opts: ElasticIPOpts) -> FloatingIP: ...
    def wait_for_floating_ip_active(self, floating_ip_id: str) -> None: ...
    def bind_floating_ip(self, address: str, instance_id: str) -> None: ...
    def delete_floating_ip(self, address: str) -> None: ...
