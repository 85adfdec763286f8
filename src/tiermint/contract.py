"""TierMintContract: the three tiered mint entry points and the public call surface.

Token F is bought with wei. Token N is minted by burning Token F. Token T
is minted by burning Token F and Token N. Burn-funded mints require the
caller to have approved the contract's own address as operator first.

Every public method holds one lock per contract, so calls run strictly one
after another, and every mint runs inside ``AssetLedger.atomic()`` so a
rejected call leaves no trace.
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Sequence
from typing import Any

from tiermint.approvals import ApprovalRegistry
from tiermint.config import TierMintConfig
from tiermint.constants import (
    DEFAULT_CONTRACT_ADDRESS,
    MINT_TOKEN_F_COST,
    MINT_TOKEN_N_COST,
    MINT_TOKEN_T_COST,
    MINT_TOKEN_T_COST_IN_N,
    Tier,
)
from tiermint.errors import (
    InsufficientPayment,
    InsufficientTierFBalance,
    InsufficientTierNBalance,
    OperatorNotApproved,
)
from tiermint.guard import CallerContext, assert_is_originating_caller
from tiermint.ledger import AssetLedger, require_amount
from tiermint.units import normalize_address

logger = logging.getLogger(__name__)

_STATE_VERSION = 1


class TierMintContract:
    """Tiered mint/burn ledger bound to one contract address.

    Cost constants are fixed at construction. ``collected_wei`` is the total
    native currency retained from Token F purchases; overpayment is kept,
    never refunded.
    """

    def __init__(
        self,
        address: str = DEFAULT_CONTRACT_ADDRESS,
        *,
        mint_token_f_cost: int = MINT_TOKEN_F_COST,
        mint_token_n_cost: int = MINT_TOKEN_N_COST,
        mint_token_t_cost: int = MINT_TOKEN_T_COST,
        mint_token_t_cost_in_n: int = MINT_TOKEN_T_COST_IN_N,
    ) -> None:
        self._address = normalize_address(address)
        self._f_cost = require_amount(mint_token_f_cost, "mint_token_f_cost")
        self._n_cost = require_amount(mint_token_n_cost, "mint_token_n_cost")
        self._t_cost = require_amount(mint_token_t_cost, "mint_token_t_cost")
        self._t_cost_in_n = require_amount(mint_token_t_cost_in_n, "mint_token_t_cost_in_n")
        self._lock = threading.Lock()
        self._ledger = AssetLedger()
        self._approvals = ApprovalRegistry()
        self._collected_wei = 0

    @classmethod
    def from_config(cls, config: TierMintConfig) -> TierMintContract:
        return cls(
            config.contract_address,
            mint_token_f_cost=config.mint_token_f_cost_wei,
            mint_token_n_cost=config.mint_token_n_cost,
            mint_token_t_cost=config.mint_token_t_cost,
            mint_token_t_cost_in_n=config.mint_token_t_cost_in_n,
        )

    # -- read-only accessors --------------------------------------------------

    @property
    def address(self) -> str:
        return self._address

    @property
    def MINT_TOKEN_F_COST(self) -> int:  # noqa: N802
        """Wei per Token F."""
        return self._f_cost

    @property
    def MINT_TOKEN_N_COST(self) -> int:  # noqa: N802
        """Token F burned per Token N."""
        return self._n_cost

    @property
    def MINT_TOKEN_T_COST(self) -> int:  # noqa: N802
        """Token F burned per Token T."""
        return self._t_cost

    @property
    def MINT_TOKEN_T_COST_IN_N(self) -> int:  # noqa: N802
        """Token N burned per Token T."""
        return self._t_cost_in_n

    @property
    def collected_wei(self) -> int:
        with self._lock:
            return self._collected_wei

    @property
    def ledger(self) -> AssetLedger:
        return self._ledger

    @property
    def approvals(self) -> ApprovalRegistry:
        return self._approvals

    def balance_of(self, address: str, tier: Tier) -> int:
        with self._lock:
            return self._ledger.balance_of(address, tier)

    def balance_of_batch(
        self, addresses: Sequence[str], tiers: Sequence[Tier],
    ) -> list[int]:
        if len(addresses) != len(tiers):
            raise ValueError("addresses and tiers length mismatch")
        with self._lock:
            return [self._ledger.balance_of(a, t) for a, t in zip(addresses, tiers)]

    def balances(self, address: str) -> dict[Tier, int]:
        """All three tier balances for ``address``."""
        with self._lock:
            return {tier: self._ledger.balance_of(address, tier) for tier in Tier}

    def is_approved_for_all(self, owner: str, operator: str) -> bool:
        with self._lock:
            return self._approvals.is_approved(owner, operator)

    # -- approvals ------------------------------------------------------------

    def set_approval_for_all(self, sender: str, operator: str, approved: bool) -> None:
        """Let ``sender`` grant or revoke ``operator`` over their own balances."""
        with self._lock:
            self._approvals.set_approval(sender, operator, approved)
        logger.info(
            "%s %s operator %s.",
            normalize_address(sender), "approved" if approved else "revoked",
            normalize_address(operator),
        )

    # -- mint entry points ----------------------------------------------------

    def mint_token_f(self, caller: CallerContext, qty: int, value: int) -> None:
        """Buy ``qty`` Token F for ``value`` wei. Excess payment is retained."""
        require_amount(qty)
        require_amount(value, "value")
        with self._lock:
            assert_is_originating_caller(caller)
            if value < qty * self._f_cost:
                raise InsufficientPayment()
            with self._ledger.atomic() as ledger:
                ledger.credit(caller.address, Tier.F, qty)
            self._collected_wei += value
        logger.info("Minted %d Token F for %s (paid %d wei).", qty, caller.address, value)

    def mint_token_n(self, caller: CallerContext, qty: int) -> None:
        """Burn ``qty * MINT_TOKEN_N_COST`` Token F to mint ``qty`` Token N."""
        require_amount(qty)
        with self._lock:
            assert_is_originating_caller(caller)
            self._require_operator_approval(caller)
            f_burn = qty * self._n_cost
            if self._ledger.balance_of(caller.address, Tier.F) < f_burn:
                raise InsufficientTierFBalance()
            with self._ledger.atomic() as ledger:
                ledger.debit(caller.address, Tier.F, f_burn)
                ledger.credit(caller.address, Tier.N, qty)
        logger.info(
            "Minted %d Token N for %s (burned %d Token F).", qty, caller.address, f_burn,
        )

    def mint_token_t(self, caller: CallerContext, qty: int) -> None:
        """Burn Token F and Token N to mint ``qty`` Token T.

        Token F sufficiency is checked before Token N, so a caller short on
        both always sees ``InsufficientTierFBalance``.
        """
        require_amount(qty)
        with self._lock:
            assert_is_originating_caller(caller)
            self._require_operator_approval(caller)
            f_burn = qty * self._t_cost
            n_burn = qty * self._t_cost_in_n
            if self._ledger.balance_of(caller.address, Tier.F) < f_burn:
                raise InsufficientTierFBalance()
            if self._ledger.balance_of(caller.address, Tier.N) < n_burn:
                raise InsufficientTierNBalance()
            with self._ledger.atomic() as ledger:
                ledger.debit(caller.address, Tier.F, f_burn)
                ledger.debit(caller.address, Tier.N, n_burn)
                ledger.credit(caller.address, Tier.T, qty)
        logger.info(
            "Minted %d Token T for %s (burned %d Token F, %d Token N).",
            qty, caller.address, f_burn, n_burn,
        )

    def _require_operator_approval(self, caller: CallerContext) -> None:
        # The contract debits on the caller's behalf, so it must be an approved operator.
        if not self._approvals.is_approved(caller.address, self._address):
            raise OperatorNotApproved()

    # -- serialization --------------------------------------------------------

    def to_json(self) -> str:
        with self._lock:
            self._ledger.trim_events()
            self._approvals.trim_events()
            return json.dumps({
                "v": _STATE_VERSION,
                "address": self._address,
                "costs": {
                    "mint_token_f_cost": self._f_cost,
                    "mint_token_n_cost": self._n_cost,
                    "mint_token_t_cost": self._t_cost,
                    "mint_token_t_cost_in_n": self._t_cost_in_n,
                },
                "collected_wei": self._collected_wei,
                "ledger": self._ledger.to_dict(),
                "approvals": self._approvals.to_dict(),
            }, indent=2)

    @classmethod
    def from_json(cls, data: str) -> TierMintContract:
        """Build a contract from ``to_json`` output, address and costs included.

        Raises ValueError if the data is corrupt.
        """
        try:
            obj: Any = json.loads(data)
            costs = obj["costs"]
            contract = cls(
                obj["address"],
                mint_token_f_cost=costs["mint_token_f_cost"],
                mint_token_n_cost=costs["mint_token_n_cost"],
                mint_token_t_cost=costs["mint_token_t_cost"],
                mint_token_t_cost_in_n=costs["mint_token_t_cost_in_n"],
            )
        except (json.JSONDecodeError, KeyError, TypeError) as exc:
            raise ValueError(f"corrupt contract state: {exc}") from exc
        if not contract.load_state(data):
            raise ValueError("corrupt contract state")
        return contract

    def load_state(self, data: str) -> bool:
        """Replace balances, approvals and retained wei from ``to_json`` output.

        Returns False (state untouched) on corrupt data. Raises ValueError if
        the state belongs to a different contract address or cost schedule.
        """
        try:
            obj: Any = json.loads(data)
        except (json.JSONDecodeError, TypeError):
            logger.warning("Contract state is corrupt; keeping fresh state.")
            return False
        if not isinstance(obj, dict):
            logger.warning("Contract state is not a dict; keeping fresh state.")
            return False

        try:
            stored_address = obj.get("address")
            stored = normalize_address(stored_address) if stored_address else None
            costs = obj.get("costs") or {}
            if not isinstance(costs, dict):
                raise TypeError(f"costs must be a dict, got {type(costs).__name__}")
            collected_wei = require_amount(obj.get("collected_wei", 0), "collected_wei")
            ledger = AssetLedger.from_dict(obj.get("ledger", {}))
            approvals = ApprovalRegistry.from_dict(obj.get("approvals", {}))
        except (ValueError, TypeError, AttributeError) as exc:
            logger.warning("Contract state is corrupt (%s); keeping current state.", exc)
            return False

        if stored is not None and stored != self._address:
            raise ValueError(
                f"state belongs to {stored_address}, not {self._address}"
            )
        expected = {
            "mint_token_f_cost": self._f_cost,
            "mint_token_n_cost": self._n_cost,
            "mint_token_t_cost": self._t_cost,
            "mint_token_t_cost_in_n": self._t_cost_in_n,
        }
        for key, value in costs.items():
            if key in expected and value != expected[key]:
                raise ValueError(
                    f"stored {key}={value} differs from configured {expected[key]}"
                )

        with self._lock:
            self._ledger = ledger
            self._approvals = approvals
            self._collected_wei = collected_wei
        return True
