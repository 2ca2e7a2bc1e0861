"""Network and subnet provisioning."""

from __future__ import annotations

from loguru import logger

from otcmachine.client import Client
from otcmachine.constants import NETWORK_ACTIVE, SUBNET_ACTIVE
from otcmachine.managed import Managed
from otcmachine.state import DriverState


def ensure_network(client: Client, state: DriverState) -> None:
    """Create the network unless an identifier is already recorded.

    The new network is marked driver-managed before the status wait, so a
    failed wait still leaves it recorded for teardown.
    """
    if state.network.present:
        return
    network = client.create_network(state.network_name)
    logger.info(f"Created network {state.network_name!r} ({network.id})")
    state.network = Managed[str].owned(network.id)
    client.wait_for_network_status(network.id, NETWORK_ACTIVE)


def ensure_subnet(client: Client, state: DriverState) -> None:
    """Create the subnet inside the recorded network unless one is already set."""
    if state.subnet.present:
        return
    subnet = client.create_subnet(state.network.value, state.subnet_name)
    logger.info(f"Created subnet {state.subnet_name!r} ({subnet.id})")
    state.subnet = Managed[str].owned(subnet.id)
    client.wait_for_subnet_status(subnet.id, SUBNET_ACTIVE)
