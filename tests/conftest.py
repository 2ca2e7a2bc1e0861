from __future__ import annotations

import itertools
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pytest

from otcmachine.client import (
    ElasticIPOpts,
    FloatingIP,
    InstanceInfo,
    KeyPair,
    Resource,
    ServerOpts,
)
from otcmachine.constants import InstanceStatus, PortRange
from otcmachine.driver import Driver
from otcmachine.exceptions import MissingResourceError, ProviderError, WaitTimeoutError
from otcmachine.flags import DriverOptions
from otcmachine.state import DriverState

WRITE_PREFIXES = ("create_", "delete_", "bind_", "add_tags", "start_", "stop_")

DEFAULT_ADDRESSES = {"subnet-docker-machine": [{"addr": "192.168.0.10", "version": 4}]}


@dataclass
class FakeInstance:
    opts: ServerOpts
    status: str = InstanceStatus.RUNNING
    tags: list[str] = field(default_factory=list)


class FakeClient:
    """In-memory provider client.

    Records every call in ``calls``. ``fail`` maps a method name to an
    exception raised the next times that method is called. Deleted
    resources disappear immediately, so deletion waits end with
    MissingResourceError the way the real provider answers.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.fail: dict[str, Exception] = {}
        self.authenticated = 0
        self._ids = itertools.count(1)

        # Name lookups
        self.network_names: dict[str, str] = {}
        self.subnet_names: dict[tuple[str, str], str] = {}
        self.flavors: dict[str, str] = {"s2.large.4": "flavor-s2"}
        self.images: dict[str, str] = {"Standard_Ubuntu_18.04_latest": "image-ubuntu"}
        self.group_names: dict[str, str] = {}
        self.server_groups: dict[str, str] = {}

        # Live resources
        self.networks: dict[str, str] = {}
        self.subnets: dict[str, str] = {}
        self.security_groups: dict[str, tuple[str, tuple[PortRange, ...]]] = {}
        self.key_pairs: dict[str, str] = {}
        self.instances: dict[str, FakeInstance] = {}
        self.floating_ips: dict[str, str | None] = {}
        self.addresses: dict[str, Any] = dict(DEFAULT_ADDRESSES)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _call(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))
        if name in self.fail:
            raise self.fail[name]

    def _new_id(self, kind: str) -> str:
        return f"{kind}-{next(self._ids)}"

    def called(self, name: str) -> list[tuple[Any, ...]]:
        return [args for n, args in self.calls if n == name]

    @property
    def writes(self) -> list[str]:
        return [n for n, _ in self.calls if n.startswith(WRITE_PREFIXES)]

    def existing(self, name: str, *, kind: str = "network") -> str:
        """Register a pre-existing resource findable by name."""
        resource_id = self._new_id(f"existing-{kind}")
        if kind == "network":
            self.network_names[name] = resource_id
            self.networks[resource_id] = name
        elif kind == "security_group":
            self.group_names[name] = resource_id
            self.security_groups[resource_id] = (name, ())
        return resource_id

    @property
    def live(self) -> dict[str, int]:
        return {
            "networks": len(self.networks),
            "subnets": len(self.subnets),
            "security_groups": len(self.security_groups),
            "key_pairs": len(self.key_pairs),
            "instances": len(self.instances),
            "floating_ips": len(self.floating_ips),
        }

    # =========================================================================
    # Client protocol
    # =========================================================================

    def authenticate(self) -> None:
        self._call("authenticate")
        self.authenticated += 1

    def find_network(self, name: str) -> str:
        self._call("find_network", name)
        return self.network_names.get(name, "")

    def find_subnet(self, network_id: str, name: str) -> str:
        self._call("find_subnet", network_id, name)
        return self.subnet_names.get((network_id, name), "")

    def find_flavor(self, name: str) -> str:
        self._call("find_flavor", name)
        return self.flavors.get(name, "")

    def find_image(self, name: str) -> str:
        self._call("find_image", name)
        return self.images.get(name, "")

    def find_security_groups(self, names: Sequence[str]) -> list[str]:
        self._call("find_security_groups", tuple(names))
        return [self.group_names[n] for n in names if n in self.group_names]

    def find_server_group(self, name: str) -> str:
        self._call("find_server_group", name)
        return self.server_groups.get(name, "")

    def create_network(self, name: str) -> Resource:
        self._call("create_network", name)
        network_id = self._new_id("network")
        self.networks[network_id] = name
        return Resource(id=network_id, name=name)

    def wait_for_network_status(self, network_id: str, status: str) -> None:
        self._call("wait_for_network_status", network_id, status)
        if network_id not in self.networks:
            raise MissingResourceError(f"network {network_id}")
        if status == "":
            raise WaitTimeoutError(f"network {network_id} still present")

    def delete_network(self, network_id: str) -> None:
        self._call("delete_network", network_id)
        if self.networks.pop(network_id, None) is None:
            raise MissingResourceError(f"network {network_id}")

    def create_subnet(self, network_id: str, name: str) -> Resource:
        self._call("create_subnet", network_id, name)
        if network_id not in self.networks:
            raise ProviderError(f"network {network_id!r} does not exist")
        subnet_id = self._new_id("subnet")
        self.subnets[subnet_id] = network_id
        return Resource(id=subnet_id, name=name)

    def wait_for_subnet_status(self, subnet_id: str, status: str) -> None:
        self._call("wait_for_subnet_status", subnet_id, status)
        if subnet_id not in self.subnets:
            raise MissingResourceError(f"subnet {subnet_id}")
        if status == "":
            raise WaitTimeoutError(f"subnet {subnet_id} still present")

    def delete_subnet(self, network_id: str, subnet_id: str) -> None:
        self._call("delete_subnet", network_id, subnet_id)
        if self.subnets.pop(subnet_id, None) is None:
            raise MissingResourceError(f"subnet {subnet_id}")

    def create_security_group(self, name: str, *ports: PortRange) -> Resource:
        self._call("create_security_group", name, *ports)
        group_id = self._new_id("sg")
        self.security_groups[group_id] = (name, ports)
        return Resource(id=group_id, name=name)

    def delete_security_group(self, group_id: str) -> None:
        self._call("delete_security_group", group_id)
        if self.security_groups.pop(group_id, None) is None:
            raise MissingResourceError(f"security group {group_id}")

    def wait_for_security_group_deleted(self, group_id: str) -> None:
        self._call("wait_for_security_group_deleted", group_id)
        if group_id in self.security_groups:
            raise WaitTimeoutError(f"security group {group_id} still present")

    def create_key_pair(self, name: str, public_key: str) -> KeyPair:
        self._call("create_key_pair", name, public_key)
        self.key_pairs[name] = public_key
        return KeyPair(name=name, public_key=public_key)

    def get_public_key(self, name: str) -> bytes:
        self._call("get_public_key", name)
        if name not in self.key_pairs:
            raise MissingResourceError(f"key pair {name}")
        return self.key_pairs[name].encode()

    def delete_key_pair(self, name: str) -> None:
        self._call("delete_key_pair", name)
        if self.key_pairs.pop(name, None) is None:
            raise MissingResourceError(f"key pair {name}")

    def create_instance(self, opts: ServerOpts) -> Resource:
        self._call("create_instance", opts)
        instance_id = self._new_id("instance")
        self.instances[instance_id] = FakeInstance(opts=opts)
        return Resource(id=instance_id, name=opts.name)

    def add_tags(self, instance_id: str, tags: Sequence[str]) -> None:
        self._call("add_tags", instance_id, tuple(tags))
        self.instances[instance_id].tags.extend(tags)

    def wait_for_instance_status(self, instance_id: str, status: str) -> None:
        self._call("wait_for_instance_status", instance_id, status)
        instance = self.instances.get(instance_id)
        if instance is None:
            raise MissingResourceError(f"instance {instance_id}")
        if instance.status != status:
            raise WaitTimeoutError(f"instance {instance_id} is {instance.status}, expected {status!r}")

    def get_instance_status(self, instance_id: str) -> InstanceInfo:
        self._call("get_instance_status", instance_id)
        instance = self.instances.get(instance_id)
        if instance is None:
            raise MissingResourceError(f"instance {instance_id}")
        return InstanceInfo(id=instance_id, status=instance.status, addresses=self.addresses)

    def start_instance(self, instance_id: str) -> None:
        self._call("start_instance", instance_id)
        self.instances[instance_id].status = InstanceStatus.RUNNING

    def stop_instance(self, instance_id: str) -> None:
        self._call("stop_instance", instance_id)
        self.instances[instance_id].status = InstanceStatus.STOPPED

    def delete_instance(self, instance_id: str) -> None:
        self._call("delete_instance", instance_id)
        if self.instances.pop(instance_id, None) is None:
            raise MissingResourceError(f"instance {instance_id}")

    def create_floating_ip(self, opts: ElasticIPOpts) -> FloatingIP:
        self._call("create_floating_ip", opts)
        n = next(self._ids)
        address = f"203.0.113.{n}"
        self.floating_ips[address] = None
        return FloatingIP(id=f"fip-{n}", address=address)

    def wait_for_floating_ip_active(self, floating_ip_id: str) -> None:
        self._call("wait_for_floating_ip_active", floating_ip_id)

    def bind_floating_ip(self, address: str, instance_id: str) -> None:
        self._call("bind_floating_ip", address, instance_id)
        if address not in self.floating_ips:
            raise MissingResourceError(f"floating IP {address}")
        self.floating_ips[address] = instance_id

    def delete_floating_ip(self, address: str) -> None:
        self._call("delete_floating_ip", address)
        if address not in self.floating_ips:
            raise MissingResourceError(f"floating IP {address}")
        del self.floating_ips[address]


# =============================================================================
# Fixtures
# =============================================================================

CREDENTIALS = {"otc-username": "alice", "otc-password": "s3cret"}


@pytest.fixture
def fake_client() -> FakeClient:
    return FakeClient()


@pytest.fixture
def make_driver(tmp_path: Path, fake_client: FakeClient):
    """Build a configured Driver backed by ``fake_client``."""

    def _make(options: dict[str, Any] | None = None, name: str = "test-machine") -> Driver:
        driver = Driver(name, tmp_path, client_factory=lambda _state: fake_client)
        driver.set_config_from_flags(DriverOptions({**CREDENTIALS, **(options or {})}))
        return driver

    return _make


@pytest.fixture
def state(make_driver) -> DriverState:
    """Configured state with default options, nothing provisioned."""
    return make_driver().state
