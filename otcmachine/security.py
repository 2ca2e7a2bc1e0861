"""Security group provisioning.

Two optional groups are created by the driver: the default group opening
the SSH and docker ports, and the k8s group opening the fixed
control-plane/worker port table.
"""

from __future__ import annotations

from loguru import logger

from otcmachine.client import Client
from otcmachine.constants import DOCKER_PORT, K8S_PORTS, PortRange
from otcmachine.managed import Managed
from otcmachine.state import DriverState


def default_group_ports(ssh_port: int) -> tuple[PortRange, ...]:
    return (PortRange(ssh_port), PortRange(DOCKER_PORT))


def ensure_default_group(client: Client, state: DriverState) -> None:
    """Create the default group when it is enabled and not created yet."""
    if state.default_security_group_id.present or not state.default_security_group:
        return
    group = client.create_security_group(
        state.default_security_group,
        *default_group_ports(state.ssh_port),
    )
    logger.info(f"Created security group {state.default_security_group!r} ({group.id})")
    state.default_security_group_id = Managed[str].owned(group.id)


def ensure_k8s_group(client: Client, state: DriverState) -> None:
    """Create the k8s port group when requested and not created yet."""
    if state.k8s_security_group_id.present or not state.k8s_security_group:
        return
    group = client.create_security_group(state.k8s_security_group, *K8S_PORTS)
    logger.info(f"Created security group {state.k8s_security_group!r} ({group.id})")
    state.k8s_security_group_id = Managed[str].owned(group.id)


def instance_security_groups(state: DriverState) -> tuple[str, ...]:
    """Explicit groups first, then the default group, then the k8s group."""
    groups = list(state.security_group_ids)
    for managed in (state.default_security_group_id, state.k8s_security_group_id):
        if managed.present:
            groups.append(managed.value)
    return tuple(groups)
