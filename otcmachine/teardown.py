"""Reverse-order teardown of driver-managed resources.

Every step runs even when an earlier one failed; failures are collected
and raised together as a TeardownError once the sequence is done.
"""

from __future__ import annotations

import contextlib
from collections.abc import Callable

from loguru import logger

from otcmachine.client import Client
from otcmachine.exceptions import MissingResourceError, TeardownError
from otcmachine.managed import Managed
from otcmachine.state import DriverState

type TeardownStep = tuple[str, Callable[[], None]]


def _wait_deleted(wait_fn: Callable[[], None]) -> None:
    # A resource that vanished while waiting is deleted
    with contextlib.suppress(MissingResourceError):
        wait_fn()


def delete_instance(client: Client, state: DriverState) -> None:
    if not state.instance_id:
        return
    logger.debug(f"Deleting instance {state.instance_id}")
    client.delete_instance(state.instance_id)
    _wait_deleted(lambda: client.wait_for_instance_status(state.instance_id, ""))
    logger.info(f"Deleted instance {state.instance_id}")


def delete_key_pair(client: Client, state: DriverState) -> None:
    if not state.key_pair.deletable:
        return
    client.delete_key_pair(state.key_pair.value)
    logger.info(f"Deleted key pair {state.key_pair.value!r}")


def delete_floating_ip(client: Client, state: DriverState) -> None:
    if not state.floating_ip.deletable:
        return
    client.delete_floating_ip(state.floating_ip.value)
    logger.info(f"Released floating IP {state.floating_ip.value}")


def delete_subnet(client: Client, state: DriverState) -> None:
    if not state.subnet.deletable:
        return
    client.delete_subnet(state.network.value, state.subnet.value)
    _wait_deleted(lambda: client.wait_for_subnet_status(state.subnet.value, ""))
    logger.info(f"Deleted subnet {state.subnet.value}")


def delete_security_group(client: Client, group: Managed[str]) -> None:
    if not group.deletable:
        return
    client.delete_security_group(group.value)
    _wait_deleted(lambda: client.wait_for_security_group_deleted(group.value))
    logger.info(f"Deleted security group {group.value}")


def delete_network(client: Client, state: DriverState) -> None:
    if not state.network.deletable:
        return
    client.delete_network(state.network.value)
    _wait_deleted(lambda: client.wait_for_network_status(state.network.value, ""))
    logger.info(f"Deleted network {state.network.value}")


def teardown_steps(client: Client, state: DriverState) -> list[TeardownStep]:
    """Deletion steps in reverse dependency order."""
    return [
        ("instance", lambda: delete_instance(client, state)),
        ("key pair", lambda: delete_key_pair(client, state)),
        ("floating IP", lambda: delete_floating_ip(client, state)),
        ("subnet", lambda: delete_subnet(client, state)),
        ("default security group", lambda: delete_security_group(client, state.default_security_group_id)),
        ("k8s security group", lambda: delete_security_group(client, state.k8s_security_group_id)),
        ("network", lambda: delete_network(client, state)),
    ]


def run_teardown(client: Client, state: DriverState) -> None:
    """Run every teardown step, then raise if any of them failed.

    Raises:
        TeardownError: Carrying one ``(step, cause)`` pair per failed step.
    """
    errors: list[tuple[str, Exception]] = []
    for step, fn in teardown_steps(client, state):
        try:
            fn()
        except Exception as e:
            logger.warning(f"Teardown step {step!r} failed: {e}")
            errors.append((step, e))

    if errors:
        raise TeardownError(errors)
