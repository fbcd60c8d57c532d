"""Tests for savings, loans and interest."""

import pytest

from empire_sim.bank import (
    apply_bank_interest, apply_loan_interest, emergency_loan_limit, get_bank_info,
    is_loan_emergency, max_loan, max_savings, process_bank_transaction,
)
from empire_sim.enums import BankOperation


def _balances(empire):
    return empire.resources.gold, empire.bank, empire.loan


# ─────────────────────────────────────────────────────
# Limits
# ─────────────────────────────────────────────────────

class TestLimits:
    def test_limits_scale_with_networth(self, empire):
        assert max_loan(empire) == empire.networth * 50
        assert max_savings(empire) == empire.networth * 100
        assert emergency_loan_limit(empire) == max_loan(empire) * 2

    def test_emergency_only_above_double_limit(self, empire):
        empire.loan = emergency_loan_limit(empire)
        assert not is_loan_emergency(empire)
        empire.loan += 1
        assert is_loan_emergency(empire)


# ─────────────────────────────────────────────────────
# Transactions
# ─────────────────────────────────────────────────────

class TestTransactions:
    def test_deposit_and_withdraw(self, empire):
        result = process_bank_transaction(empire, "deposit", 20_000)
        assert result.success
        assert empire.resources.gold == 30_000
        assert empire.bank == 20_000
        result = process_bank_transaction(empire, BankOperation.WITHDRAW, 5_000)
        assert result.success
        assert result.new_bank_balance == 15_000
        assert result.new_gold_balance == 35_000

    def test_loan_and_repay(self, empire):
        assert process_bank_transaction(empire, "take_loan", 10_000).success
        assert empire.loan == 10_000
        assert empire.resources.gold == 60_000
        assert process_bank_transaction(empire, "pay_loan", 4_000).success
        assert empire.loan == 6_000

    def test_loan_above_limit_rejected(self, empire):
        before = _balances(empire)
        result = process_bank_transaction(empire, "take_loan", max_loan(empire) + 1)
        assert not result.success
        assert "max loan" in result.error
        assert _balances(empire) == before

    @pytest.mark.parametrize("operation,amount,error", [
        ("deposit", 60_000, "Insufficient gold"),
        ("withdraw", 1, "Insufficient savings"),
        ("pay_loan", 1, "Amount exceeds loan balance"),
        ("deposit", 0, "Amount must be at least 1"),
        ("deposit", 2.5, "Amount must be a whole number"),
        ("deposit", True, "Amount must be a whole number"),
        ("mortgage", 100, "Invalid operation"),
    ])
    def test_failures_leave_balances(self, empire, operation, amount, error):
        before = _balances(empire)
        result = process_bank_transaction(empire, operation, amount)
        assert not result.success
        assert result.error == error
        assert _balances(empire) == before

    def test_bank_info(self, empire):
        info = get_bank_info(empire)
        assert info["savings"] == 0


# ─────────────────────────────────────────────────────
# Interest
# ─────────────────────────────────────────────────────

class TestInterest:
    def test_savings_interest_per_round(self, empire):
        empire.bank = 100_000
        assert apply_bank_interest(empire, 1) == 4_000
        assert empire.bank == 104_000

    def test_savings_interest_split_over_turns(self, empire):
        empire.bank = 100_000
        assert apply_bank_interest(empire, 50) == 80

    def test_loan_interest(self, empire):
        empire.loan = 100_000
        assert apply_loan_interest(empire, 1) == 7_500
        assert empire.loan == 107_500

    def test_no_balance_no_interest(self, empire):
        assert apply_bank_interest(empire, 1) == 0
        assert apply_loan_interest(empire, 1) == 0

    def test_zero_interest_advisor(self, empire):
        empire.advisors.append("debt_eraser")
        empire.loan = 1_000_000
        assert apply_loan_interest(empire, 1) == 100
