"""Exception hierarchy for rejected mint calls.

Every ``MintError`` carries the verbatim revert reason in ``reason``.
A rejected call never leaves a partial state change behind.
"""

from __future__ import annotations


class MintError(Exception):
    """Base exception for rejected ledger calls."""

    reason = "Mint rejected"

    def __init__(self, reason: str | None = None) -> None:
        if reason is not None:
            self.reason = reason
        super().__init__(self.reason)


class InsufficientPayment(MintError):
    """Attached payment is below the Token F price for the quantity."""

    reason = "Not enough ether sent"


class ContractCallerRejected(MintError):
    """The caller is a contract, not an originating external account."""

    reason = "Caller cannot be contract"


class OperatorNotApproved(MintError):
    """The caller has not approved the ledger as operator."""

    reason = "Not approved for transfer"


class InsufficientTierFBalance(MintError):
    """Not enough Token F to burn for the requested quantity."""

    reason = "Not enough Token F sent"


class InsufficientTierNBalance(MintError):
    """Not enough Token N to burn for the requested quantity."""

    reason = "Not enough Token N sent"


class InsufficientBalance(MintError):
    """Ledger-level guard: a debit exceeds the addressed balance."""

    reason = "ERC1155: burn amount exceeds balance"


class ApprovalForSelf(MintError):
    """An owner tried to set approval for their own address."""

    reason = "ERC1155: setting approval status for self"


class LedgerInvariantError(Exception):
    """Fatal ledger corruption (e.g. overflow). Never a rejected-call outcome."""
