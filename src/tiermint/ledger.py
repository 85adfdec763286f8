"""Per-address, per-tier token balances.

Pure data model with no I/O, no locking. ``TierMintContract`` owns the lock
and is the only writer. All amounts are integer token units.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

from tiermint.constants import EVENT_LOG_LIMIT, UINT256_MAX, Tier
from tiermint.errors import InsufficientBalance, LedgerInvariantError
from tiermint.units import normalize_address

logger = logging.getLogger(__name__)

_SCHEMA_VERSION = 1


def require_amount(qty: Any, name: str = "qty") -> int:
    """Validate an unsigned integer argument. Booleans are rejected."""
    if isinstance(qty, bool) or not isinstance(qty, int):
        raise ValueError(f"{name} must be an integer, got {type(qty).__name__}")
    if qty < 0:
        raise ValueError(f"{name} must be non-negative, got {qty}")
    if qty > UINT256_MAX:
        raise ValueError(f"{name} exceeds uint256 range")
    return qty


def resume_sequence(raw: Any, events: Sequence[Any]) -> int:
    """Next event sequence number: the stored value, else one past the last event."""
    floor = events[-1].sequence + 1 if events else 0
    if isinstance(raw, bool) or not isinstance(raw, int) or raw < floor:
        return floor
    return raw


# ---------------------------------------------------------------------------
# BalanceEvent
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BalanceEvent:
    """One balance change: a mint (credit) or a burn (debit)."""

    sequence: int
    kind: str  # mint | burn
    address: str
    tier: Tier
    amount: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "sequence": self.sequence,
            "kind": self.kind,
            "address": self.address,
            "tier": self.tier.name,
            "amount": self.amount,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BalanceEvent:
        return cls(
            sequence=int(data.get("sequence", 0)),
            kind=str(data.get("kind", "mint")),
            address=str(data.get("address", "")),
            tier=Tier[str(data.get("tier", "F"))],
            amount=int(data.get("amount", 0)),
        )


# ---------------------------------------------------------------------------
# AssetLedger
# ---------------------------------------------------------------------------


@dataclass
class AssetLedger:
    """Balance storage with atomic credit/debit primitives.

    Balances are created lazily on first credit and never deleted; a fully
    burned balance stays at zero. ``minted``/``burned`` track lifetime totals
    per tier so conservation can be checked at any time. Only the newest
    ``event_limit`` events survive ``trim_events`` and serialization;
    ``next_sequence`` keeps counting across the trimmed history.
    """

    balances: dict[str, dict[Tier, int]] = field(default_factory=dict)
    minted: dict[Tier, int] = field(default_factory=dict)
    burned: dict[Tier, int] = field(default_factory=dict)
    events: list[BalanceEvent] = field(default_factory=list)
    next_sequence: int = 0
    event_limit: int = field(default=EVENT_LOG_LIMIT, compare=False, repr=False)

    # -- reads ----------------------------------------------------------------

    def balance_of(self, address: str, tier: Tier) -> int:
        """Current balance of ``address`` for ``tier`` (zero if never credited)."""
        return self.balances.get(normalize_address(address), {}).get(Tier(tier), 0)

    def total_minted(self, tier: Tier) -> int:
        return self.minted.get(Tier(tier), 0)

    def total_burned(self, tier: Tier) -> int:
        return self.burned.get(Tier(tier), 0)

    def total_supply(self, tier: Tier) -> int:
        """Units of ``tier`` currently in circulation."""
        return self.total_minted(tier) - self.total_burned(tier)

    def holders(self, tier: Tier) -> list[str]:
        """Addresses holding a positive balance of ``tier``."""
        tier = Tier(tier)
        return sorted(a for a, bals in self.balances.items() if bals.get(tier, 0) > 0)

    def is_conserved(self) -> bool:
        """True if minted minus burned equals the sum of balances for every tier."""
        for tier in Tier:
            held = sum(bals.get(tier, 0) for bals in self.balances.values())
            if held != self.total_supply(tier):
                return False
        return True

    def events_for(self, address: str) -> Sequence[BalanceEvent]:
        address = normalize_address(address)
        return [e for e in self.events if e.address == address]

    # -- mutations ------------------------------------------------------------

    def credit(self, address: str, tier: Tier, qty: int) -> None:
        """Add ``qty`` units of ``tier`` to ``address``.

        Overflow past uint256 is an invariant violation, not a rejection.
        """
        address = normalize_address(address)
        tier = Tier(tier)
        require_amount(qty)
        if qty == 0:
            return

        current = self.balance_of(address, tier)
        minted = self.total_minted(tier)
        if current + qty > UINT256_MAX or minted + qty > UINT256_MAX:
            raise LedgerInvariantError(
                f"credit of {qty} {tier.name} to {address} overflows uint256"
            )

        self.balances.setdefault(address, {})[tier] = current + qty
        self.minted[tier] = minted + qty
        self._record("mint", address, tier, qty)

    def debit(self, address: str, tier: Tier, qty: int) -> None:
        """Burn ``qty`` units of ``tier`` from ``address``.

        Raises InsufficientBalance if the balance is below ``qty``.
        """
        address = normalize_address(address)
        tier = Tier(tier)
        require_amount(qty)
        current = self.balance_of(address, tier)
        if current < qty:
            raise InsufficientBalance()
        if qty == 0:
            return

        self.balances.setdefault(address, {})[tier] = current - qty
        self.burned[tier] = self.total_burned(tier) + qty
        self._record("burn", address, tier, qty)

    def _record(self, kind: str, address: str, tier: Tier, qty: int) -> None:
        self.events.append(BalanceEvent(
            sequence=self.next_sequence,
            kind=kind,
            address=address,
            tier=tier,
            amount=qty,
        ))
        self.next_sequence += 1

    def trim_events(self) -> None:
        """Drop all but the newest ``event_limit`` events.

        Must not run inside ``atomic()``, whose rollback indexes into the log.
        """
        if len(self.events) > self.event_limit:
            del self.events[: len(self.events) - self.event_limit]

    @contextmanager
    def atomic(self) -> Iterator[AssetLedger]:
        """Run a block of mutations as one unit.

        If the block raises, every balance, total and event written inside
        it is discarded and the exception propagates.
        """
        balances = {a: dict(bals) for a, bals in self.balances.items()}
        minted = dict(self.minted)
        burned = dict(self.burned)
        event_count = len(self.events)
        sequence = self.next_sequence
        try:
            yield self
        except BaseException:
            self.balances = balances
            self.minted = minted
            self.burned = burned
            del self.events[event_count:]
            self.next_sequence = sequence
            raise

    # -- serialization --------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "v": _SCHEMA_VERSION,
            "balances": {
                addr: {tier.name: amount for tier, amount in sorted(bals.items())}
                for addr, bals in self.balances.items()
            },
            "minted": {tier.name: n for tier, n in sorted(self.minted.items())},
            "burned": {tier.name: n for tier, n in sorted(self.burned.items())},
            "events": [e.to_dict() for e in self.events[-self.event_limit:]],
            "next_sequence": self.next_sequence,
        }

    @classmethod
    def from_dict(cls, obj: Any) -> AssetLedger:
        """Rebuild a ledger from ``to_dict`` output.

        Entries with unknown tiers or non-integer amounts are dropped. A
        missing or malformed ``next_sequence`` resumes after the last event.
        """
        if not isinstance(obj, dict):
            logger.warning("Ledger state is not a dict; returning fresh ledger.")
            return cls()

        def _tier_map(raw: Any) -> dict[Tier, int]:
            result: dict[Tier, int] = {}
            if not isinstance(raw, dict):
                return result
            for name, amount in raw.items():
                if name not in Tier.__members__ or not isinstance(amount, int):
                    continue
                if amount >= 0:
                    result[Tier[name]] = amount
            return result

        balances: dict[str, dict[Tier, int]] = {}
        raw_balances = obj.get("balances", {})
        if isinstance(raw_balances, dict):
            for addr, bals in raw_balances.items():
                try:
                    balances[normalize_address(addr)] = _tier_map(bals)
                except ValueError:
                    logger.warning("Dropping balances for malformed address %r.", addr)

        events: list[BalanceEvent] = []
        raw_events = obj.get("events", [])
        for raw in raw_events if isinstance(raw_events, list) else []:
            if isinstance(raw, dict):
                try:
                    events.append(BalanceEvent.from_dict(raw))
                except (KeyError, ValueError, TypeError):
                    logger.warning("Dropping malformed ledger event %r.", raw)

        ledger = cls(
            balances=balances,
            minted=_tier_map(obj.get("minted")),
            burned=_tier_map(obj.get("burned")),
            events=events,
            next_sequence=resume_sequence(obj.get("next_sequence"), events),
        )
        if not ledger.is_conserved():
            logger.warning("Loaded ledger state fails the conservation check.")
        return ledger

    def to_json(self) -> str:
        """Serialize to a pretty-printed JSON string with schema version."""
        return json.dumps(self.to_dict(), indent=2)

    @classmethod
    def from_json(cls, data: str) -> AssetLedger:
        """Deserialize from JSON. Returns a fresh ledger on corrupt data."""
        try:
            obj = json.loads(data)
        except (json.JSONDecodeError, TypeError):
            logger.warning("Ledger data is corrupt; returning fresh ledger.")
            return cls()
        return cls.from_dict(obj)
