"""Tests for AssetLedger balances, atomic blocks and serialization."""

import json

import pytest

from tiermint.constants import UINT256_MAX, Tier
from tiermint.errors import InsufficientBalance, LedgerInvariantError
from tiermint.ledger import AssetLedger, BalanceEvent, require_amount

ALICE = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"
BOB = "0x3c44cdddb6a900fa2b585dd299e03d12fa4293bc"


# ---------------------------------------------------------------------------
# require_amount
# ---------------------------------------------------------------------------


class TestRequireAmount:
    def test_accepts_zero_and_positive(self) -> None:
        assert require_amount(0) == 0
        assert require_amount(42) == 42

    def test_rejects_negative(self) -> None:
        with pytest.raises(ValueError, match="non-negative"):
            require_amount(-1)

    def test_rejects_bool(self) -> None:
        with pytest.raises(ValueError, match="integer"):
            require_amount(True)

    def test_rejects_float(self) -> None:
        with pytest.raises(ValueError, match="integer"):
            require_amount(1.5)

    def test_rejects_above_uint256(self) -> None:
        with pytest.raises(ValueError, match="uint256"):
            require_amount(UINT256_MAX + 1)


# ---------------------------------------------------------------------------
# credit / debit
# ---------------------------------------------------------------------------


class TestCreditDebit:
    def test_unknown_balance_is_zero(self) -> None:
        ledger = AssetLedger()
        assert ledger.balance_of(ALICE, Tier.F) == 0

    def test_credit(self) -> None:
        ledger = AssetLedger()
        ledger.credit(ALICE, Tier.F, 100)
        assert ledger.balance_of(ALICE, Tier.F) == 100
        assert ledger.total_minted(Tier.F) == 100
        assert ledger.total_supply(Tier.F) == 100

    def test_address_case_insensitive(self) -> None:
        ledger = AssetLedger()
        ledger.credit(ALICE, Tier.F, 5)
        assert ledger.balance_of(ALICE.lower(), Tier.F) == 5
        assert ledger.balance_of(ALICE.upper().replace("0X", "0x"), Tier.F) == 5

    def test_tiers_are_independent(self) -> None:
        ledger = AssetLedger()
        ledger.credit(ALICE, Tier.F, 10)
        ledger.credit(ALICE, Tier.T, 1)
        assert ledger.balance_of(ALICE, Tier.N) == 0
        assert ledger.balance_of(ALICE, Tier.T) == 1

    def test_debit(self) -> None:
        ledger = AssetLedger()
        ledger.credit(ALICE, Tier.F, 100)
        ledger.debit(ALICE, Tier.F, 30)
        assert ledger.balance_of(ALICE, Tier.F) == 70
        assert ledger.total_burned(Tier.F) == 30
        assert ledger.total_supply(Tier.F) == 70

    def test_debit_exact_balance_leaves_zero(self) -> None:
        ledger = AssetLedger()
        ledger.credit(ALICE, Tier.N, 3)
        ledger.debit(ALICE, Tier.N, 3)
        assert ledger.balance_of(ALICE, Tier.N) == 0
        assert ALICE.lower() in ledger.balances

    def test_debit_insufficient(self) -> None:
        ledger = AssetLedger()
        ledger.credit(ALICE, Tier.F, 10)
        with pytest.raises(InsufficientBalance) as exc_info:
            ledger.debit(ALICE, Tier.F, 11)
        assert exc_info.value.reason == "ERC1155: burn amount exceeds balance"
        assert ledger.balance_of(ALICE, Tier.F) == 10

    def test_debit_from_unknown_address(self) -> None:
        ledger = AssetLedger()
        with pytest.raises(InsufficientBalance):
            ledger.debit(BOB, Tier.T, 1)

    def test_zero_amounts_record_nothing(self) -> None:
        ledger = AssetLedger()
        ledger.credit(ALICE, Tier.F, 0)
        ledger.debit(ALICE, Tier.F, 0)
        assert ledger.events == []

    def test_overflow_is_invariant_error(self) -> None:
        ledger = AssetLedger()
        ledger.credit(ALICE, Tier.F, UINT256_MAX)
        with pytest.raises(LedgerInvariantError):
            ledger.credit(BOB, Tier.F, 1)

    def test_malformed_address(self) -> None:
        ledger = AssetLedger()
        with pytest.raises(ValueError, match="invalid address"):
            ledger.credit("alice", Tier.F, 1)


class TestEventsAndConservation:
    def test_events_recorded_in_order(self) -> None:
        ledger = AssetLedger()
        ledger.credit(ALICE, Tier.F, 10)
        ledger.debit(ALICE, Tier.F, 3)
        assert [(e.sequence, e.kind, e.tier, e.amount) for e in ledger.events] == [
            (0, "mint", Tier.F, 10),
            (1, "burn", Tier.F, 3),
        ]

    def test_events_for_address(self) -> None:
        ledger = AssetLedger()
        ledger.credit(ALICE, Tier.F, 10)
        ledger.credit(BOB, Tier.F, 5)
        assert [e.amount for e in ledger.events_for(BOB)] == [5]

    def test_holders(self) -> None:
        ledger = AssetLedger()
        ledger.credit(ALICE, Tier.F, 10)
        ledger.credit(BOB, Tier.F, 5)
        ledger.debit(BOB, Tier.F, 5)
        assert ledger.holders(Tier.F) == [ALICE.lower()]

    def test_conservation_after_mixed_operations(self) -> None:
        ledger = AssetLedger()
        ledger.credit(ALICE, Tier.F, 100)
        ledger.credit(BOB, Tier.F, 40)
        ledger.debit(ALICE, Tier.F, 9)
        ledger.credit(ALICE, Tier.N, 3)
        ledger.debit(ALICE, Tier.N, 3)
        assert ledger.is_conserved()
        assert ledger.total_supply(Tier.F) == 131

    def test_tampered_state_not_conserved(self) -> None:
        ledger = AssetLedger()
        ledger.credit(ALICE, Tier.F, 10)
        ledger.balances[ALICE.lower()][Tier.F] = 11
        assert not ledger.is_conserved()


# ---------------------------------------------------------------------------
# atomic
# ---------------------------------------------------------------------------


class TestAtomic:
    def test_commits_on_success(self) -> None:
        ledger = AssetLedger()
        with ledger.atomic():
            ledger.credit(ALICE, Tier.F, 10)
            ledger.debit(ALICE, Tier.F, 4)
        assert ledger.balance_of(ALICE, Tier.F) == 6
        assert len(ledger.events) == 2

    def test_rolls_back_partial_burn(self) -> None:
        ledger = AssetLedger()
        ledger.credit(ALICE, Tier.F, 30)
        with pytest.raises(InsufficientBalance):
            with ledger.atomic():
                ledger.debit(ALICE, Tier.F, 30)
                ledger.debit(ALICE, Tier.N, 1)
        assert ledger.balance_of(ALICE, Tier.F) == 30
        assert ledger.total_burned(Tier.F) == 0
        assert len(ledger.events) == 1
        assert ledger.next_sequence == 1
        assert ledger.is_conserved()

    def test_rolls_back_on_arbitrary_exception(self) -> None:
        ledger = AssetLedger()
        with pytest.raises(RuntimeError):
            with ledger.atomic():
                ledger.credit(ALICE, Tier.T, 1)
                raise RuntimeError("boom")
        assert ledger.balance_of(ALICE, Tier.T) == 0
        assert ledger.balances == {}


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


class TestLedgerSerialization:
    def test_roundtrip(self) -> None:
        ledger = AssetLedger()
        ledger.credit(ALICE, Tier.F, 100)
        ledger.debit(ALICE, Tier.F, 9)
        ledger.credit(ALICE, Tier.N, 3)
        restored = AssetLedger.from_json(ledger.to_json())
        assert restored.balance_of(ALICE, Tier.F) == 91
        assert restored.balance_of(ALICE, Tier.N) == 3
        assert restored.total_burned(Tier.F) == 9
        assert restored.events == ledger.events
        assert restored.next_sequence == 3

    def test_tiers_serialized_by_name(self) -> None:
        ledger = AssetLedger()
        ledger.credit(ALICE, Tier.T, 2)
        obj = json.loads(ledger.to_json())
        assert obj["v"] == 1
        assert obj["balances"][ALICE.lower()] == {"T": 2}
        assert obj["events"][0]["tier"] == "T"

    def test_from_json_corrupt_data(self) -> None:
        restored = AssetLedger.from_json("not json at all")
        assert restored.balances == {}

    def test_from_json_none(self) -> None:
        restored = AssetLedger.from_json(None)  # type: ignore[arg-type]
        assert restored.balances == {}

    def test_from_json_non_dict(self) -> None:
        restored = AssetLedger.from_json('"just a string"')
        assert restored.balances == {}

    def test_from_dict_drops_bad_entries(self) -> None:
        restored = AssetLedger.from_dict({
            "balances": {
                ALICE: {"F": 5, "X": 9, "N": "lots", "T": -1},
                "not-an-address": {"F": 1},
            },
            "minted": {"F": 5},
        })
        assert restored.balances == {ALICE.lower(): {Tier.F: 5}}
        assert restored.is_conserved()

    def test_balance_event_from_dict(self) -> None:
        event = BalanceEvent.from_dict({
            "sequence": 4, "kind": "burn", "address": BOB, "tier": "N", "amount": 2,
        })
        assert event.tier is Tier.N
        assert event.kind == "burn"

    def test_from_dict_malformed_next_sequence_resumes_after_events(self) -> None:
        ledger = AssetLedger()
        ledger.credit(ALICE, Tier.F, 4)
        ledger.debit(ALICE, Tier.F, 1)
        obj = ledger.to_dict()
        obj["next_sequence"] = "x"
        restored = AssetLedger.from_dict(obj)
        assert restored.next_sequence == 2
        assert restored.balance_of(ALICE, Tier.F) == 3

    def test_from_dict_events_not_a_list(self) -> None:
        restored = AssetLedger.from_dict({"events": 7, "next_sequence": 3})
        assert restored.events == []
        assert restored.next_sequence == 3


class TestEventLogLimit:
    def test_to_dict_keeps_newest_events(self) -> None:
        ledger = AssetLedger(event_limit=2)
        for amount in (1, 2, 3):
            ledger.credit(ALICE, Tier.F, amount)
        obj = ledger.to_dict()
        assert [e["amount"] for e in obj["events"]] == [2, 3]
        assert obj["next_sequence"] == 3

    def test_trim_events(self) -> None:
        ledger = AssetLedger(event_limit=2)
        for _ in range(4):
            ledger.credit(ALICE, Tier.F, 1)
        ledger.trim_events()
        assert [e.sequence for e in ledger.events] == [2, 3]
        assert ledger.balance_of(ALICE, Tier.F) == 4
        assert ledger.is_conserved()

    def test_rollback_after_trim(self) -> None:
        ledger = AssetLedger(event_limit=1)
        ledger.credit(ALICE, Tier.F, 1)
        ledger.credit(ALICE, Tier.F, 1)
        ledger.trim_events()
        with pytest.raises(InsufficientBalance):
            with ledger.atomic():
                ledger.credit(ALICE, Tier.N, 1)
                ledger.debit(ALICE, Tier.F, 5)
        assert [e.sequence for e in ledger.events] == [1]
        assert ledger.next_sequence == 2
