"""Operator approvals: which operators may debit an owner's balances."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from tiermint.constants import EVENT_LOG_LIMIT
from tiermint.errors import ApprovalForSelf
from tiermint.ledger import resume_sequence
from tiermint.units import normalize_address

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ApprovalEvent:
    """An owner set or cleared approval for an operator."""

    sequence: int
    owner: str
    operator: str
    approved: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "sequence": self.sequence,
            "owner": self.owner,
            "operator": self.operator,
            "approved": self.approved,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ApprovalEvent:
        return cls(
            sequence=int(data.get("sequence", 0)),
            owner=str(data.get("owner", "")),
            operator=str(data.get("operator", "")),
            approved=bool(data.get("approved", False)),
        )


@dataclass
class ApprovalRegistry:
    """Per-owner operator flags, default False.

    Only ever written through ``TierMintContract.set_approval_for_all``,
    which passes the message sender as ``owner``. The event log is capped
    like the balance ledger's.
    """

    flags: dict[str, dict[str, bool]] = field(default_factory=dict)
    events: list[ApprovalEvent] = field(default_factory=list)
    next_sequence: int = 0
    event_limit: int = field(default=EVENT_LOG_LIMIT, compare=False, repr=False)

    def set_approval(self, owner: str, operator: str, value: bool) -> None:
        owner = normalize_address(owner)
        operator = normalize_address(operator)
        if owner == operator:
            raise ApprovalForSelf()

        self.flags.setdefault(owner, {})[operator] = bool(value)
        self.events.append(ApprovalEvent(
            sequence=self.next_sequence,
            owner=owner,
            operator=operator,
            approved=bool(value),
        ))
        self.next_sequence += 1

    def is_approved(self, owner: str, operator: str) -> bool:
        return self.flags.get(normalize_address(owner), {}).get(
            normalize_address(operator), False
        )

    def operators_of(self, owner: str) -> list[str]:
        """Operators currently approved by ``owner``."""
        granted = self.flags.get(normalize_address(owner), {})
        return sorted(op for op, ok in granted.items() if ok)

    def trim_events(self) -> None:
        if len(self.events) > self.event_limit:
            del self.events[: len(self.events) - self.event_limit]

    # -- serialization --------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "flags": {owner: dict(ops) for owner, ops in self.flags.items()},
            "events": [e.to_dict() for e in self.events[-self.event_limit:]],
            "next_sequence": self.next_sequence,
        }

    @classmethod
    def from_dict(cls, obj: Any) -> ApprovalRegistry:
        """Rebuild a registry from ``to_dict`` output.

        Addresses are normalized so hand-edited checksum-cased keys still
        match lookups. Malformed addresses and events are dropped.
        """
        if not isinstance(obj, dict):
            logger.warning("Approval state is not a dict; returning empty registry.")
            return cls()

        flags: dict[str, dict[str, bool]] = {}
        raw_flags = obj.get("flags", {})
        if isinstance(raw_flags, dict):
            for owner, ops in raw_flags.items():
                if not isinstance(ops, dict):
                    continue
                try:
                    granted = flags.setdefault(normalize_address(owner), {})
                    for op, ok in ops.items():
                        granted[normalize_address(op)] = bool(ok)
                except ValueError:
                    logger.warning("Dropping approvals with malformed address for %r.", owner)

        events: list[ApprovalEvent] = []
        raw_events = obj.get("events", [])
        for raw in raw_events if isinstance(raw_events, list) else []:
            if isinstance(raw, dict):
                try:
                    events.append(ApprovalEvent.from_dict(raw))
                except (ValueError, TypeError):
                    logger.warning("Dropping malformed approval event %r.", raw)

        return cls(
            flags=flags,
            events=events,
            next_sequence=resume_sequence(obj.get("next_sequence"), events),
        )
