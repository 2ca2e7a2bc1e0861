"""Machine address provisioning.

The floating IP strategy allocates (or reuses) a public address and binds
it to the instance. The local IP strategy reads back the private address
the provider assigned and never owns it.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from loguru import logger

from otcmachine.client import Client
from otcmachine.exceptions import UnexpectedAddressError
from otcmachine.managed import Managed
from otcmachine.state import DriverState


def first_address(addresses: Mapping[str, Any]) -> str:
    """Return the first address of the first pool, or ``""`` when there are no pools.

    Raises:
        UnexpectedAddressError: If the pool or entry is not shaped as
            ``{pool: [{"addr": str, ...}, ...]}``.
    """
    if not isinstance(addresses, Mapping):
        raise UnexpectedAddressError(addresses, "addresses is not a mapping")
    if not addresses:
        return ""

    pool = next(iter(addresses.values()))
    if isinstance(pool, (str, bytes)) or not isinstance(pool, Sequence):
        raise UnexpectedAddressError(pool, "address pool is not a list")
    if not pool:
        raise UnexpectedAddressError(pool, "address pool is empty")

    entry = pool[0]
    if not isinstance(entry, Mapping):
        raise UnexpectedAddressError(entry, "address entry is not a mapping")
    addr = entry.get("addr")
    if not isinstance(addr, str) or not addr:
        raise UnexpectedAddressError(entry, "address entry has no `addr` string")
    return addr


def ensure_floating_ip(client: Client, state: DriverState) -> None:
    """Allocate a floating IP when none is set, then bind it to the instance."""
    if not state.floating_ip.present:
        opts = state.floating_ip_opts
        logger.debug(
            f"Allocating floating IP (type={opts.ip_type}, "
            f"bandwidth={opts.bandwidth_size} {opts.bandwidth_type})"
        )
        fip = client.create_floating_ip(opts)
        state.floating_ip = Managed[str].owned(fip.address)
        client.wait_for_floating_ip_active(fip.id)
        logger.info(f"Allocated floating IP {fip.address}")

    client.bind_floating_ip(state.floating_ip.value, state.instance_id)
    logger.debug(f"Floating IP {state.floating_ip.value} bound to {state.instance_id}")


def use_local_ip(client: Client, state: DriverState) -> None:
    """Record the instance's private address as an unmanaged value."""
    info = client.get_instance_status(state.instance_id)
    address = first_address(info.addresses)
    if not address:
        logger.warning(f"Instance {state.instance_id} reports no addresses")
        return
    state.floating_ip = Managed[str].external(address)
    logger.debug(f"Using local address {address}")


def ensure_address(client: Client, state: DriverState) -> None:
    if state.skip_floating_ip:
        use_local_ip(client, state)
    else:
        ensure_floating_ip(client, state)
