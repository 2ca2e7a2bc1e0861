"""SSH key pair acquisition.

Either imports a key pair that already exists on the provider (the
caller supplies its name and the matching private key file) or generates
a fresh key locally and registers its public half.
"""

from __future__ import annotations

import os
import secrets
from pathlib import Path

import paramiko
from loguru import logger

from otcmachine.client import Client
from otcmachine.managed import Managed
from otcmachine.state import DriverState

KEY_BITS = 2048


def generate_ssh_key(path: Path) -> str:
    """Write a new RSA key pair to ``path`` and ``path.pub``.

    Returns:
        Public key in OpenSSH format.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    key = paramiko.RSAKey.generate(KEY_BITS)
    key.write_private_key_file(str(path))
    os.chmod(path, 0o600)
    public_key = f"{key.get_name()} {key.get_base64()}"
    pub_path = path.with_name(path.name + ".pub")
    pub_path.write_text(public_key + "\n")
    os.chmod(pub_path, 0o600)
    return public_key


def generate_key_pair_name(machine_name: str) -> str:
    """Machine name plus random suffix; the provider rejects dots in key names."""
    return f"{machine_name}-{secrets.token_hex(8)}".replace(".", "_")


def _write_private(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    os.chmod(path, 0o600)


def load_ssh_key(client: Client, state: DriverState, key_path: Path) -> None:
    """Copy an existing key pair into the machine directory."""
    logger.debug(f"Loading key pair {state.key_pair.value!r} and private key {state.private_key_file}")
    private_key = Path(state.private_key_file).read_bytes()
    public_key = client.get_public_key(state.key_pair.value)
    _write_private(key_path, private_key)
    _write_private(key_path.with_name(key_path.name + ".pub"), public_key)


def create_ssh_key(client: Client, state: DriverState, key_path: Path) -> None:
    """Generate a key locally and register it with the provider."""
    name = generate_key_pair_name(state.machine_name)
    logger.debug(f"Creating key pair {name!r}")
    public_key = generate_ssh_key(key_path)
    client.create_key_pair(name, public_key)
    state.private_key_file = str(key_path)
    state.key_pair = Managed[str].owned(name)
    logger.info(f"Registered key pair {name!r}")


def acquire_key_pair(client: Client, state: DriverState, key_path: Path) -> None:
    """Import the configured key pair, or generate one when none is configured.

    A key pair generated by an earlier run is left as is.
    """
    if state.key_pair.deletable:
        return
    if state.key_pair.present:
        load_ssh_key(client, state, key_path)
    else:
        create_ssh_key(client, state, key_path)
