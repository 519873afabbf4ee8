"""
Tests for funds.py - Atomic fund transfers

Tests:
- Move validation
- execute(): APPLIED / ALREADY_APPLIED / REJECTED
- All-or-nothing batches and net-effect validation
- Frozen and unregistered wallets
- transfer_or_raise error mapping
- Conservation and clone independence
"""

import pytest

from rental_ledger import (
    FundsLedger, Move, TransferResult, TransferFailed,
    compute_intent_id, transfer_or_raise,
)


@pytest.fixture
def ledger():
    funds = FundsLedger("test")
    for wallet in ("alice", "bob", "carol"):
        funds.register_wallet(wallet)
    funds.mint("alice", 1000)
    return funds


class TestMove:

    def test_valid_move(self):
        move = Move(100, "alice", "bob", "pay")
        assert move.amount == 100
        assert "alice→bob" in repr(move)

    @pytest.mark.parametrize("amount", [0, -5])
    def test_rejects_non_positive_amount(self, amount):
        with pytest.raises(ValueError, match="positive"):
            Move(amount, "alice", "bob", "pay")

    def test_rejects_float_and_bool_amounts(self):
        with pytest.raises(ValueError, match="must be int"):
            Move(1.5, "alice", "bob", "pay")
        with pytest.raises(ValueError, match="must be int"):
            Move(True, "alice", "bob", "pay")

    def test_rejects_self_transfer(self):
        with pytest.raises(ValueError, match="different"):
            Move(1, "alice", "alice", "pay")

    def test_rejects_empty_fields(self):
        with pytest.raises(ValueError, match="source"):
            Move(1, "", "bob", "pay")
        with pytest.raises(ValueError, match="reference"):
            Move(1, "alice", "bob", " ")


class TestExecute:

    def test_applied(self, ledger):
        result = ledger.execute([Move(100, "alice", "bob", "pay")], "pay", block_height=7)
        assert result == TransferResult.APPLIED
        assert ledger.get_balance("alice") == 900
        assert ledger.get_balance("bob") == 100
        assert ledger.transfer_log[-1].block_height == 7
        assert ledger.transfer_log[-1].sequence_number == 0

    def test_empty_batch_is_noop(self, ledger):
        assert ledger.execute([], "nothing") == TransferResult.APPLIED
        assert ledger.transfer_log == []

    def test_duplicate_batch_already_applied(self, ledger):
        moves = [Move(100, "alice", "bob", "pay")]
        assert ledger.execute(moves, "pay") == TransferResult.APPLIED
        assert ledger.execute(moves, "pay") == TransferResult.ALREADY_APPLIED
        assert ledger.get_balance("bob") == 100
        assert len(ledger.transfer_log) == 1

    def test_insufficient_funds_rejected(self, ledger):
        result = ledger.execute([Move(5000, "alice", "bob", "pay")], "pay")
        assert result == TransferResult.REJECTED
        assert "insufficient funds" in ledger.last_rejection()
        assert ledger.get_balance("alice") == 1000

    def test_rejected_batch_is_retryable(self, ledger):
        moves = [Move(1500, "alice", "bob", "pay")]
        assert ledger.execute(moves, "pay") == TransferResult.REJECTED
        ledger.mint("alice", 500)
        assert ledger.execute(moves, "pay") == TransferResult.APPLIED

    def test_failing_second_move_rolls_back_first(self, ledger):
        result = ledger.execute([
            Move(100, "alice", "bob", "first"),
            Move(50, "carol", "bob", "second"),
        ], "batch")
        assert result == TransferResult.REJECTED
        assert ledger.get_balance("alice") == 1000
        assert ledger.get_balance("bob") == 0

    def test_chained_moves_judged_on_net_effect(self, ledger):
        result = ledger.execute([
            Move(300, "alice", "bob", "a"),
            Move(300, "bob", "carol", "b"),
        ], "chain")
        assert result == TransferResult.APPLIED
        assert ledger.get_balance("carol") == 300
        assert ledger.get_balance("bob") == 0

    def test_unregistered_wallet_rejected(self, ledger):
        assert ledger.execute([Move(1, "alice", "mallory", "x")], "x") == TransferResult.REJECTED
        assert "not registered" in ledger.last_rejection()

    def test_frozen_sender_rejected(self, ledger):
        ledger.freeze("alice")
        assert ledger.execute([Move(1, "alice", "bob", "x")], "x") == TransferResult.REJECTED
        assert "frozen" in ledger.last_rejection()
        ledger.unfreeze("alice")
        assert ledger.execute([Move(1, "alice", "bob", "x")], "x") == TransferResult.APPLIED


class TestIntentId:

    def test_order_independent(self):
        a = Move(1, "alice", "bob", "a")
        b = Move(2, "bob", "carol", "b")
        assert compute_intent_id([a, b], "ref") == compute_intent_id([b, a], "ref")

    def test_reference_sensitive(self):
        move = Move(1, "alice", "bob", "a")
        assert compute_intent_id([move], "ref-1") != compute_intent_id([move], "ref-2")


class TestTransferOrRaise:

    def test_applied_returns_none(self, ledger):
        assert transfer_or_raise(ledger, [Move(10, "alice", "bob", "x")], "x") is None

    def test_rejected_raises(self, ledger):
        with pytest.raises(TransferFailed, match="insufficient funds"):
            transfer_or_raise(ledger, [Move(10_000, "alice", "bob", "x")], "x")

    def test_duplicate_raises(self, ledger):
        transfer_or_raise(ledger, [Move(10, "alice", "bob", "x")], "x")
        with pytest.raises(TransferFailed, match="already applied"):
            transfer_or_raise(ledger, [Move(10, "alice", "bob", "x")], "x")


class TestLedgerState:

    def test_register_wallet_idempotent(self, ledger):
        ledger.register_wallet("alice")
        assert ledger.get_balance("alice") == 1000

    def test_mint_validation(self, ledger):
        with pytest.raises(ValueError, match="positive int"):
            ledger.mint("alice", 0)
        with pytest.raises(ValueError, match="not registered"):
            ledger.mint("nobody", 10)

    def test_conservation(self, ledger):
        ledger.execute([Move(400, "alice", "bob", "a")], "a")
        ledger.execute([Move(100, "bob", "carol", "b")], "b")
        assert ledger.total_supply() == 1000
        assert ledger.verify_conservation()

    def test_clone_is_independent(self, ledger):
        cloned = ledger.clone()
        cloned.execute([Move(100, "alice", "bob", "a")], "a")
        assert ledger.get_balance("alice") == 1000
        assert cloned.get_balance("alice") == 900
        assert ledger.transfer_log == []
