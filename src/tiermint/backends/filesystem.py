"""FileStateBackend: StateBackend implementation on a local directory.

Layout under ``root``::

    <contract_address>.json                      current state
    snapshots/<contract_address>-<stamp>.json    point-in-time copies

Writes go to a temporary sibling file first and are moved into place, so a
crash mid-write never leaves a truncated state file behind. Disk I/O runs
in a worker thread so the event loop is never blocked on it.
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
from pathlib import Path

from tiermint.units import normalize_address

logger = logging.getLogger(__name__)

_STAMP_UNSAFE = re.compile(r"[^0-9A-Za-z_.-]")


class FileStateBackend:
    """Persist contract state as JSON files.

    Implements the tiermint ``StateBackend`` protocol:

    - ``store_state(contract_address, state_json) -> str``
    - ``fetch_state(contract_address) -> str | None``
    - ``snapshot_state(contract_address, state_json, timestamp) -> str | None``
    """

    def __init__(self, root: str | os.PathLike[str]) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def _state_path(self, contract_address: str) -> Path:
        return self._root / f"{normalize_address(contract_address)}.json"

    @staticmethod
    def _write(path: Path, content: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + ".tmp")
        tmp.write_text(content, encoding="utf-8")
        os.replace(tmp, path)

    @staticmethod
    def _read(path: Path) -> str | None:
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    async def store_state(self, contract_address: str, state_json: str) -> str:
        path = self._state_path(contract_address)
        await asyncio.to_thread(self._write, path, state_json)
        return str(path)

    async def fetch_state(self, contract_address: str) -> str | None:
        return await asyncio.to_thread(self._read, self._state_path(contract_address))

    async def snapshot_state(
        self, contract_address: str, state_json: str, timestamp: str
    ) -> str | None:
        stamp = _STAMP_UNSAFE.sub("-", timestamp)
        path = (
            self._root / "snapshots"
            / f"{normalize_address(contract_address)}-{stamp}.json"
        )
        if path.exists():
            logger.warning("Snapshot %s already exists; not overwriting.", path)
            return None
        await asyncio.to_thread(self._write, path, state_json)
        return str(path)
