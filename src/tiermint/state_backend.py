"""Where a hosted contract's serialized state lives between processes.

``ContractHost`` talks only to this Protocol; ``tiermint.backends`` holds
the implementations.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class StateBackend(Protocol):
    """Stores the ``TierMintContract.to_json`` document for one contract address."""

    async def store_state(self, contract_address: str, state_json: str) -> str:
        """Replace the current state document; returns where it was written."""
        ...

    async def fetch_state(self, contract_address: str) -> str | None:
        """Current state document, or None if the contract was never stored."""
        ...

    async def snapshot_state(
        self, contract_address: str, state_json: str, timestamp: str
    ) -> str | None:
        """Keep a point-in-time copy; None if one already exists for ``timestamp``."""
        ...
