"""Caller-origin guard: mint calls must come from an externally owned account.

The guard never probes anything itself. The calling boundary (an RPC code
probe, a signed origin certificate, or the host application) decides
whether the caller is a contract and passes that fact in as ``has_code``.

Known gap: a contract that calls in from its constructor has no deployed
code yet, so a boundary relying on code presence reports ``has_code=False``
and the call is accepted. This matches the on-chain check and is left as is.
"""

from __future__ import annotations

from dataclasses import dataclass

from tiermint.errors import ContractCallerRejected
from tiermint.units import normalize_address


@dataclass(frozen=True)
class CallerContext:
    """Who is calling, and whether the calling address carries code."""

    address: str
    has_code: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "address", normalize_address(self.address))

    @classmethod
    def external(cls, address: str) -> CallerContext:
        return cls(address=address, has_code=False)

    @classmethod
    def contract(cls, address: str) -> CallerContext:
        return cls(address=address, has_code=True)


def assert_is_originating_caller(caller: CallerContext) -> None:
    """Raise ContractCallerRejected if ``caller`` is a contract."""
    if caller.has_code:
        raise ContractCallerRejected()
