"""On-disk machine storage.

Layout::

    <root>/machines/<name>/config.json
    <root>/machines/<name>/id_rsa
    <root>/machines/<name>/id_rsa.pub
"""

from __future__ import annotations

import os
import shutil
from pathlib import Path

from loguru import logger

from otcmachine.exceptions import NotFoundError
from otcmachine.state import DriverState

CONFIG_FILE = "config.json"

DEFAULT_STORAGE_PATH = Path.home() / ".otc-machine"


class MachineStore:
    def __init__(self, root: str | Path = DEFAULT_STORAGE_PATH) -> None:
        self.root = Path(root)

    @property
    def machines_dir(self) -> Path:
        return self.root / "machines"

    def machine_dir(self, name: str) -> Path:
        return self.machines_dir / name

    def exists(self, name: str) -> bool:
        return (self.machine_dir(name) / CONFIG_FILE).is_file()

    def save(self, state: DriverState) -> Path:
        """Write the persistent part of the state; credentials included, so mode 0600."""
        directory = self.machine_dir(state.machine_name)
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / CONFIG_FILE
        path.write_text(state.to_json())
        os.chmod(path, 0o600)
        logger.debug(f"Saved machine {state.machine_name!r} to {path}")
        return path

    def load(self, name: str) -> DriverState:
        """Read a saved machine.

        Raises:
            NotFoundError: If no machine with this name is stored.
        """
        if not self.exists(name):
            raise NotFoundError("machine", name)
        return DriverState.from_json((self.machine_dir(name) / CONFIG_FILE).read_bytes())

    def remove(self, name: str) -> None:
        shutil.rmtree(self.machine_dir(name), ignore_errors=True)
        logger.debug(f"Removed machine directory for {name!r}")

    def list(self) -> list[str]:
        if not self.machines_dir.is_dir():
            return []
        return sorted(p.name for p in self.machines_dir.iterdir() if (p / CONFIG_FILE).is_file())
