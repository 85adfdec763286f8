"""Ether <-> wei conversion and address normalization."""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation

from tiermint.constants import WEI_PER_ETHER

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


def parse_ether(amount: str | int | Decimal) -> int:
    """Convert a decimal ether amount (``"0.01"``) to integer wei.

    Raises ValueError on negative values, unparseable input, or amounts
    finer than one wei.
    """
    try:
        value = Decimal(str(amount).strip())
    except InvalidOperation as e:
        raise ValueError(f"invalid ether amount: {amount!r}") from e
    if not value.is_finite():
        raise ValueError(f"invalid ether amount: {amount!r}")
    if value < 0:
        raise ValueError(f"ether amount must be non-negative, got {amount}")
    wei = value * WEI_PER_ETHER
    if wei != wei.to_integral_value():
        raise ValueError(f"ether amount {amount} is not a whole number of wei")
    return int(wei)


def format_ether(wei: int) -> str:
    """Render integer wei as an 18-decimal-place ether string."""
    if wei < 0:
        raise ValueError(f"wei must be non-negative, got {wei}")
    whole, frac = divmod(wei, WEI_PER_ETHER)
    return f"{whole}.{frac:018d}"


def normalize_address(address: str) -> str:
    """Return the lower-cased form of a ``0x``-prefixed 20-byte hex address.

    Checksum-cased and lower-cased spellings map to the same ledger key.
    """
    if not isinstance(address, str) or not _ADDRESS_RE.match(address.strip()):
        raise ValueError(f"invalid address: {address!r}")
    return address.strip().lower()
