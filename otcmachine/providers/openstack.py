"""OpenStack SDK implementation of the provider client.

Open Telekom Cloud exposes the OpenStack compute, network and image APIs,
so the driver reaches it through openstacksdk. Elastic IPs carry a
bandwidth that plain Neutron cannot express; they go through the VPC v1
API on the same authenticated session. SDK exceptions are translated to
otcmachine exceptions at this boundary.
"""

from __future__ import annotations

import base64
import functools
from collections.abc import Callable, Sequence
from functools import cached_property
from typing import TYPE_CHECKING, Any, ParamSpec, TypeVar

import openstack
from loguru import logger
from openstack import exceptions as os_exc

from otcmachine.client import (
    AuthOptions,
    ElasticIPOpts,
    FloatingIP,
    InstanceInfo,
    KeyPair,
    Resource,
    ServerOpts,
)
from otcmachine.constants import (
    DEFAULT_ENDPOINT_TYPE,
    DEFAULT_SUBNET_CIDR,
    DEFAULT_SUBNET_GATEWAY,
    DEFAULT_WAIT_TIMEOUT,
    FLOATING_IP_ACTIVE,
    SUBNET_ACTIVE,
    VPC_SERVICE_TYPE,
    WAIT_INTERVAL,
    InstanceStatus,
    PortRange,
)
from otcmachine.exceptions import ConfigurationError, MissingResourceError, ProviderError
from otcmachine.wait import wait_for_status, wait_until_gone

if TYPE_CHECKING:
    from openstack.connection import Connection

P = ParamSpec("P")
T = TypeVar("T")

# Unbound floating IPs report DOWN; both states mean the address is allocated
_ALLOCATED_IP_STATUSES = frozenset({"ACTIVE", "DOWN"})
_FAILED_IP_STATUSES = frozenset({"ERROR", "BIND_ERROR"})


def _provider_call(func: Callable[P, T]) -> Callable[P, T]:
    """Translate openstacksdk exceptions into otcmachine exceptions."""

    @functools.wraps(func)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
        try:
            return func(*args, **kwargs)
        except os_exc.NotFoundException as e:
            raise MissingResourceError(str(e)) from e
        except os_exc.SDKException as e:
            raise ProviderError(f"{func.__name__}: {e}") from e

    return wrapper


def connection_kwargs(auth: AuthOptions) -> dict[str, Any]:
    """Build openstack.connect() arguments from driver credentials.

    Raises:
        ConfigurationError: If no authentication method is present.
    """
    kwargs: dict[str, Any] = {}
    if auth.cloud:
        kwargs["cloud"] = auth.cloud
    if auth.region:
        kwargs["region_name"] = auth.region
    if auth.endpoint_type:
        kwargs["interface"] = auth.endpoint_type
    if auth.ca_cert:
        kwargs["cacert"] = auth.ca_cert

    credentials: dict[str, str] = {}
    if auth.auth_url:
        credentials["auth_url"] = auth.auth_url
    if auth.project_id:
        credentials["project_id"] = auth.project_id
    if auth.project_name:
        credentials["project_name"] = auth.project_name

    if auth.token:
        kwargs["auth_type"] = "v3token"
        credentials["token"] = auth.token
    elif auth.username and auth.password:
        kwargs["auth_type"] = "password"
        credentials["username"] = auth.username
        credentials["password"] = auth.password
        if auth.domain_id:
            credentials["user_domain_id"] = auth.domain_id
        if auth.domain_name:
            credentials["user_domain_name"] = auth.domain_name
    elif auth.access_key and auth.secret_key:
        kwargs["auth_type"] = "aksk"
        credentials["ak"] = auth.access_key
        credentials["sk"] = auth.secret_key
    elif not auth.cloud:
        raise ConfigurationError("at least one authorization method must be provided")

    if auth.domain_id:
        credentials["project_domain_id"] = auth.domain_id
    elif auth.domain_name:
        credentials["project_domain_name"] = auth.domain_name

    if credentials:
        kwargs["auth"] = credentials
    return kwargs


class OpenStackClient:
    """Provider client backed by an openstacksdk Connection.

    The connection is created lazily on first use and reused for the
    lifetime of this object.
    """

    def __init__(
        self,
        auth: AuthOptions,
        *,
        wait_timeout: float = DEFAULT_WAIT_TIMEOUT,
        wait_interval: float = WAIT_INTERVAL,
    ) -> None:
        self.auth = auth
        self.wait_timeout = wait_timeout
        self.wait_interval = wait_interval

    @cached_property
    def conn(self) -> Connection:
        """Connection with lazy initialization."""
        logger.debug(f"Connecting to OpenStack (cloud={self.auth.cloud or '-'}, region={self.auth.region or '-'})")
        return openstack.connect(**connection_kwargs(self.auth))

    def _wait(self, poll_fn: Callable[[], str], expected: str, description: str, **kwargs: Any) -> None:
        wait_for_status(
            poll_fn,
            expected,
            timeout=self.wait_timeout,
            interval=self.wait_interval,
            description=description,
            **kwargs,
        )

    @_provider_call
    def authenticate(self) -> None:
        self.conn.authorize()
        logger.debug("Authenticated")

    # =========================================================================
    # Lookups
    # =========================================================================

    @_provider_call
    def find_network(self, name: str) -> str:
        network = self.conn.network.find_network(name)
        return network.id if network else ""

    @_provider_call
    def find_subnet(self, network_id: str, name: str) -> str:
        query = {"network_id": network_id} if network_id else {}
        subnet = self.conn.network.find_subnet(name, **query)
        return subnet.id if subnet else ""

    @_provider_call
    def find_flavor(self, name: str) -> str:
        flavor = self.conn.compute.find_flavor(name)
        return flavor.id if flavor else ""

    @_provider_call
    def find_image(self, name: str) -> str:
        image = self.conn.image.find_image(name)
        return image.id if image else ""

    @_provider_call
    def find_security_groups(self, names: Sequence[str]) -> list[str]:
        ids: list[str] = []
        for name in names:
            group = self.conn.network.find_security_group(name)
            if group is None:
                logger.warning(f"Security group {name!r} not found, skipping")
                continue
            ids.append(group.id)
        return ids

    @_provider_call
    def find_server_group(self, name: str) -> str:
        group = self.conn.compute.find_server_group(name)
        return group.id if group else ""

    # =========================================================================
    # Network
    # =========================================================================

    @_provider_call
    def create_network(self, name: str) -> Resource:
        network = self.conn.network.create_network(name=name)
        return Resource(id=network.id, name=network.name)

    @_provider_call
    def wait_for_network_status(self, network_id: str, status: str) -> None:
        self._wait(
            lambda: self.conn.network.get_network(network_id).status,
            status,
            f"network {network_id}",
        )

    @_provider_call
    def delete_network(self, network_id: str) -> None:
        self.conn.network.delete_network(network_id, ignore_missing=False)

    @_provider_call
    def create_subnet(self, network_id: str, name: str) -> Resource:
        subnet = self.conn.network.create_subnet(
            network_id=network_id,
            name=name,
            ip_version=4,
            cidr=DEFAULT_SUBNET_CIDR,
            gateway_ip=DEFAULT_SUBNET_GATEWAY,
        )
        return Resource(id=subnet.id, name=subnet.name)

    @_provider_call
    def wait_for_subnet_status(self, subnet_id: str, status: str) -> None:
        # Neutron subnets carry no status; an existing subnet is usable
        def _poll() -> str:
            self.conn.network.get_subnet(subnet_id)
            return SUBNET_ACTIVE

        self._wait(_poll, status, f"subnet {subnet_id}")

    @_provider_call
    def delete_subnet(self, network_id: str, subnet_id: str) -> None:
        self.conn.network.delete_subnet(subnet_id, ignore_missing=False)

    # =========================================================================
    # Security Groups
    # =========================================================================

    @_provider_call
    def create_security_group(self, name: str, *ports: PortRange) -> Resource:
        group = self.conn.network.create_security_group(
            name=name,
            description="Managed by otc-machine",
        )
        for port in ports:
            self.conn.network.create_security_group_rule(
                security_group_id=group.id,
                direction="ingress",
                ethertype="IPv4",
                protocol="tcp",
                port_range_min=port.start,
                port_range_max=port.end,
                remote_ip_prefix="0.0.0.0/0",
            )
        return Resource(id=group.id, name=group.name)

    @_provider_call
    def delete_security_group(self, group_id: str) -> None:
        self.conn.network.delete_security_group(group_id, ignore_missing=False)

    @_provider_call
    def wait_for_security_group_deleted(self, group_id: str) -> None:
        wait_until_gone(
            lambda: self.conn.network.get_security_group(group_id),
            timeout=self.wait_timeout,
            interval=self.wait_interval,
            description=f"security group {group_id}",
            gone=os_exc.NotFoundException,
        )

    # =========================================================================
    # Key Pairs
    # =========================================================================

    @_provider_call
    def create_key_pair(self, name: str, public_key: str) -> KeyPair:
        keypair = self.conn.compute.create_keypair(name=name, public_key=public_key)
        return KeyPair(name=keypair.name, public_key=keypair.public_key)

    @_provider_call
    def get_public_key(self, name: str) -> bytes:
        return self.conn.compute.get_keypair(name).public_key.encode()

    @_provider_call
    def delete_key_pair(self, name: str) -> None:
        self.conn.compute.delete_keypair(name, ignore_missing=False)

    # =========================================================================
    # Instances
    # =========================================================================

    @_provider_call
    def create_instance(self, opts: ServerOpts) -> Resource:
        attrs: dict[str, Any] = {
            "name": opts.name,
            "flavor_id": opts.flavor_id,
            "networks": [{"uuid": opts.network_id}],
            "key_name": opts.key_pair_name,
            "block_device_mapping": [
                {
                    "boot_index": 0,
                    "uuid": opts.disk.source_id,
                    "source_type": "image",
                    "destination_type": "volume",
                    "volume_size": opts.disk.size,
                    "volume_type": opts.disk.volume_type,
                    "delete_on_termination": True,
                }
            ],
        }
        if opts.security_groups:
            attrs["security_groups"] = [{"name": sg} for sg in opts.security_groups]
        if opts.availability_zone:
            attrs["availability_zone"] = opts.availability_zone
        if opts.server_group_id:
            attrs["scheduler_hints"] = {"group": opts.server_group_id}
        if opts.user_data:
            attrs["user_data"] = base64.b64encode(opts.user_data).decode()

        server = self.conn.compute.create_server(**attrs)
        return Resource(id=server.id, name=server.name)

    @_provider_call
    def add_tags(self, instance_id: str, tags: Sequence[str]) -> None:
        server = self.conn.compute.get_server(instance_id)
        server.set_tags(self.conn.compute, list(tags))

    @_provider_call
    def wait_for_instance_status(self, instance_id: str, status: str) -> None:
        # An empty status waits for deletion, which an instance in ERROR still completes
        if status in ("", InstanceStatus.ERROR):
            failed: frozenset[str] = frozenset()
        else:
            failed = frozenset({InstanceStatus.ERROR.value})
        self._wait(
            lambda: self.conn.compute.get_server(instance_id).status,
            status,
            f"instance {instance_id}",
            failed=failed,
        )

    @_provider_call
    def get_instance_status(self, instance_id: str) -> InstanceInfo:
        server = self.conn.compute.get_server(instance_id)
        return InstanceInfo(
            id=server.id,
            status=server.status,
            addresses=server.addresses or {},
        )

    @_provider_call
    def start_instance(self, instance_id: str) -> None:
        self.conn.compute.start_server(instance_id)

    @_provider_call
    def stop_instance(self, instance_id: str) -> None:
        self.conn.compute.stop_server(instance_id)

    @_provider_call
    def delete_instance(self, instance_id: str) -> None:
        self.conn.compute.delete_server(instance_id, ignore_missing=False)

    # =========================================================================
    # Floating IPs
    # =========================================================================

    def _vpc_request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        """Call the VPC v1 API, which owns elastic IPs and their bandwidth."""
        endpoint_filter = {
            "service_type": VPC_SERVICE_TYPE,
            "interface": self.auth.endpoint_type or DEFAULT_ENDPOINT_TYPE,
        }
        if self.auth.region:
            endpoint_filter["region_name"] = self.auth.region
        response = self.conn.session.request(
            path,
            method,
            endpoint_filter=endpoint_filter,
            raise_exc=False,
            **kwargs,
        )
        os_exc.raise_from_response(response)
        return response.json() if response.content else {}

    def _find_public_ip(self, address: str) -> dict[str, Any]:
        public_ips = self._vpc_request("GET", "/publicips").get("publicips", [])
        found = next((ip for ip in public_ips if ip.get("public_ip_address") == address), None)
        if found is None:
            raise MissingResourceError(f"floating IP {address} not found")
        return found

    @_provider_call
    def create_floating_ip(self, opts: ElasticIPOpts) -> FloatingIP:
        body = {
            "publicip": {"type": opts.ip_type},
            "bandwidth": {
                "name": opts.bandwidth_name,
                "size": opts.bandwidth_size,
                "share_type": opts.bandwidth_type,
            },
        }
        ip = self._vpc_request("POST", "/publicips", json=body)["publicip"]
        return FloatingIP(id=ip["id"], address=ip["public_ip_address"])

    @_provider_call
    def wait_for_floating_ip_active(self, floating_ip_id: str) -> None:
        def _poll() -> str:
            status = self._vpc_request("GET", f"/publicips/{floating_ip_id}")["publicip"]["status"]
            return FLOATING_IP_ACTIVE if status in _ALLOCATED_IP_STATUSES else status

        self._wait(_poll, FLOATING_IP_ACTIVE, f"floating IP {floating_ip_id}", failed=_FAILED_IP_STATUSES)

    @_provider_call
    def bind_floating_ip(self, address: str, instance_id: str) -> None:
        ip = self._find_public_ip(address)
        port = next(iter(self.conn.network.ports(device_id=instance_id)), None)
        if port is None:
            raise ProviderError(f"instance {instance_id} has no network port")
        if ip.get("port_id") == port.id:
            logger.debug(f"Floating IP {address} already bound to {instance_id}")
            return
        self._vpc_request("PUT", f"/publicips/{ip['id']}", json={"publicip": {"port_id": port.id}})

    @_provider_call
    def delete_floating_ip(self, address: str) -> None:
        ip = self._find_public_ip(address)
        self._vpc_request("DELETE", f"/publicips/{ip['id']}")
