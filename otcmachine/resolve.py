"""Resolve configured names into provider identifiers.

Explicit identifiers always win; a name is looked up only when the
matching identifier is empty. Resolution issues read calls only and can
be re-run safely.
"""

from __future__ import annotations

import dataclasses

from loguru import logger

from otcmachine.client import Client
from otcmachine.exceptions import NotFoundError
from otcmachine.managed import Managed
from otcmachine.state import DriverState


def resolve_ids(client: Client, state: DriverState) -> None:
    """Fill network, subnet, flavor, image, security group and server group IDs.

    Raises:
        NotFoundError: If the flavor or image name matches nothing.
    """
    if not state.network.present and state.network_name:
        network_id = client.find_network(state.network_name)
        logger.debug(f"Resolved network {state.network_name!r} -> {network_id or '<none>'}")
        state.network = Managed[str].external(network_id)

    if not state.subnet.present and state.subnet_name:
        subnet_id = client.find_subnet(state.network.value, state.subnet_name)
        logger.debug(f"Resolved subnet {state.subnet_name!r} -> {subnet_id or '<none>'}")
        state.subnet = Managed[str].external(subnet_id)

    if not state.flavor_id and state.flavor_name:
        flavor_id = client.find_flavor(state.flavor_name)
        if not flavor_id:
            raise NotFoundError("flavor", state.flavor_name)
        state.flavor_id = flavor_id

    if not state.root_volume.source_id and state.image_name:
        image_id = client.find_image(state.image_name)
        if not image_id:
            raise NotFoundError("image", state.image_name)
        state.root_volume = dataclasses.replace(state.root_volume, source_id=image_id)

    if state.security_groups and not state.security_group_ids:
        state.security_group_ids = client.find_security_groups(state.security_groups)

    if not state.server_group_id and state.server_group:
        state.server_group_id = client.find_server_group(state.server_group)
