"""ContractHost: owns one TierMintContract and its durable state.

The contract is loaded from the state backend on first use. Async callers
enter ``session()``, which holds a single asyncio lock, so "mutate then
flush" runs as one unit per call. Flushes retry with a fixed delay and
report failure instead of raising.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from tiermint.contract import TierMintContract

if TYPE_CHECKING:
    from tiermint.state_backend import StateBackend

logger = logging.getLogger(__name__)


class ContractHost:
    """Lazy-loading, write-through holder for a contract.

    - ``session()`` yields the loaded contract under the host lock.
    - Mutations should be followed by ``mark_dirty()`` and ``flush()``.
    - ``snapshot()`` writes a timestamped copy without touching dirty state.
    """

    def __init__(
        self,
        contract: TierMintContract,
        backend: StateBackend,
        flush_retries: int = 1,
        flush_retry_delay: float = 2.0,
    ) -> None:
        self._contract = contract
        self._backend = backend
        self._flush_retries = flush_retries
        self._flush_retry_delay = flush_retry_delay
        self._lock = asyncio.Lock()
        self._loaded = False
        self._dirty = False
        self._last_flush_at: str | None = None
        self._total_flushes: int = 0
        self._failed_flushes: int = 0

    @property
    def contract(self) -> TierMintContract:
        return self._contract

    @property
    def dirty(self) -> bool:
        return self._dirty

    async def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        try:
            state_json = await self._backend.fetch_state(self._contract.address)
        except Exception:
            logger.warning(
                "Failed to load state for %s; starting fresh.", self._contract.address,
            )
            state_json = None
        if state_json is not None:
            self._contract.load_state(state_json)
        self._loaded = True

    @asynccontextmanager
    async def session(self) -> AsyncIterator[TierMintContract]:
        """Yield the loaded contract while holding the host lock."""
        async with self._lock:
            await self._ensure_loaded()
            yield self._contract

    def mark_dirty(self) -> None:
        """Mark the contract state as needing a flush."""
        self._dirty = True

    async def flush(self) -> bool:
        """Write the contract state to the backend with retry.

        Returns True on success (or when nothing is dirty), False on failure
        (logged, not raised).
        """
        if not self._dirty:
            return True

        max_attempts = 1 + self._flush_retries
        for attempt in range(max_attempts):
            try:
                await self._backend.store_state(
                    self._contract.address, self._contract.to_json()
                )
                self._dirty = False
                self._last_flush_at = datetime.now(timezone.utc).isoformat()
                self._total_flushes += 1
                return True
            except Exception:
                if attempt < max_attempts - 1:
                    logger.warning(
                        "Flush attempt %d/%d failed for %s, retrying in %.1fs...",
                        attempt + 1, max_attempts, self._contract.address,
                        self._flush_retry_delay,
                    )
                    await asyncio.sleep(self._flush_retry_delay)
                else:
                    logger.warning(
                        "Failed to flush state for %s after %d attempt(s).",
                        self._contract.address, max_attempts,
                    )
        self._failed_flushes += 1
        return False

    async def snapshot(self, timestamp: str | None = None) -> bool:
        """Snapshot the current state. Returns True if a snapshot was written."""
        stamp = timestamp or datetime.now(timezone.utc).isoformat()
        async with self._lock:
            await self._ensure_loaded()
            try:
                result = await self._backend.snapshot_state(
                    self._contract.address, self._contract.to_json(), stamp
                )
            except Exception:
                logger.warning("Failed to snapshot state for %s.", self._contract.address)
                return False
        return result is not None

    async def stop(self) -> None:
        """Flush any remaining dirty state (used during shutdown)."""
        async with self._lock:
            await self.flush()

    def health(self) -> dict[str, object]:
        """Return host health metrics for monitoring."""
        return {
            "contract_address": self._contract.address,
            "loaded": self._loaded,
            "dirty": self._dirty,
            "last_flush_at": self._last_flush_at,
            "total_flushes": self._total_flushes,
            "failed_flushes": self._failed_flushes,
            "flush_retries": self._flush_retries,
            "flush_retry_delay": self._flush_retry_delay,
        }
