"""Compute instance provisioning."""

from __future__ import annotations

from pathlib import Path

from loguru import logger

from otcmachine.client import Client, ServerOpts
from otcmachine.constants import InstanceStatus
from otcmachine.exceptions import ConfigurationError
from otcmachine.security import instance_security_groups
from otcmachine.state import DriverState


def check_user_data(state: DriverState) -> None:
    """Reject a user data file combined with raw user data."""
    if state.user_data and state.user_data_file:
        raise ConfigurationError("both `--otc-user-data-file` and `--otc-user-data-raw` are defined")


def load_user_data(state: DriverState) -> None:
    """Read the user data file unless raw user data is already set."""
    check_user_data(state)
    if not state.user_data_file or state.user_data:
        return
    state.user_data = Path(state.user_data_file).read_bytes()


def build_server_opts(state: DriverState) -> ServerOpts:
    return ServerOpts(
        name=state.machine_name,
        flavor_id=state.flavor_id,
        network_id=state.network.value,
        key_pair_name=state.key_pair.value,
        disk=state.root_volume,
        security_groups=instance_security_groups(state),
        availability_zone=state.availability_zone,
        server_group_id=state.server_group_id,
        user_data=state.user_data,
    )


def ensure_instance(client: Client, state: DriverState) -> None:
    """Create the instance and wait until it runs.

    No-op when an instance identifier is already recorded. The identifier
    is stored right after creation, so a failed tag or status wait leaves
    it available to a retry or to teardown.
    """
    if state.instance_id:
        return
    load_user_data(state)
    opts = build_server_opts(state)

    logger.debug(f"Creating instance {opts.name!r} (flavor={opts.flavor_id}, groups={list(opts.security_groups)})")
    instance = client.create_instance(opts)
    state.instance_id = instance.id
    logger.info(f"Created instance {opts.name!r} ({instance.id})")

    if state.tags:
        client.add_tags(state.instance_id, state.tags)

    client.wait_for_instance_status(state.instance_id, InstanceStatus.RUNNING)
