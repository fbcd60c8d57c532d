"""Bank — savings and loans with networth-scaled ceilings and per-turn interest."""

from __future__ import annotations

import math

from .bonuses import EffectKind, effect_total, has_effect
from .constants import (
    LOAN_EMERGENCY_MULT, LOAN_RATE, MAX_LOAN_NETWORTH_MULT, MAX_SAVINGS_NETWORTH_MULT,
    SAVINGS_RATE,
)
from .empire import Empire, refresh_networth
from .enums import BankOperation
from .results import BankResult


def max_loan(empire: Empire) -> int:
    return math.floor(empire.networth * MAX_LOAN_NETWORTH_MULT)


def max_savings(empire: Empire) -> int:
    return math.floor(empire.networth * MAX_SAVINGS_NETWORTH_MULT)


def emergency_loan_limit(empire: Empire) -> int:
    return max_loan(empire) * LOAN_EMERGENCY_MULT


def is_loan_emergency(empire: Empire) -> bool:
    return empire.loan > emergency_loan_limit(empire)


def savings_rate(empire: Empire) -> float:
    """Per-round savings rate including bonuses."""
    rate = SAVINGS_RATE * 2 if has_effect(empire, EffectKind.DOUBLE_BANK_INTEREST) else SAVINGS_RATE
    return rate + effect_total(empire, EffectKind.BANK_INTEREST)


def loan_rate(empire: Empire) -> float:
    """Per-round loan rate; a zero-interest bonus replaces the base rate."""
    zero = effect_total(empire, EffectKind.ZERO_INTEREST)
    return zero if zero > 0 else LOAN_RATE


def apply_bank_interest(empire: Empire, periods: int) -> int:
    """Credit savings interest at the per-round rate divided by ``periods``."""
    if empire.bank <= 0:
        return 0
    interest = math.floor(empire.bank * savings_rate(empire) / periods)
    empire.bank += interest
    return interest


def apply_loan_interest(empire: Empire, periods: int) -> int:
    if empire.loan <= 0:
        return 0
    interest = math.floor(empire.loan * loan_rate(empire) / periods)
    empire.loan += interest
    return interest


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------

def _result(empire: Empire, operation: BankOperation, amount: int, error: str | None = None) -> BankResult:
    return BankResult(
        success=error is None,
        operation=operation.value,
        amount=amount,
        new_bank_balance=empire.bank,
        new_loan_balance=empire.loan,
        new_gold_balance=empire.resources.gold,
        error=error,
    )


def process_bank_transaction(empire: Empire, operation: BankOperation | str, amount) -> BankResult:
    """Deposit, withdraw, borrow or repay. Balances are untouched on failure."""
    try:
        operation = BankOperation(operation)
    except ValueError:
        return BankResult(False, str(operation), 0, empire.bank, empire.loan,
                          empire.resources.gold, error="Invalid operation")

    if isinstance(amount, bool) or not isinstance(amount, (int, float)) or amount != int(amount):
        return _result(empire, operation, 0, "Amount must be a whole number")
    amount = int(amount)
    if amount < 1:
        return _result(empire, operation, amount, "Amount must be at least 1")

    gold = empire.resources.gold
    if operation is BankOperation.DEPOSIT:
        if amount > gold:
            return _result(empire, operation, amount, "Insufficient gold")
        available = max_savings(empire) - empire.bank
        if amount > available:
            return _result(empire, operation, amount,
                           f"Cannot deposit more than {available:,} gold (max savings: {max_savings(empire):,})")
        empire.resources.gold -= amount
        empire.bank += amount
    elif operation is BankOperation.WITHDRAW:
        if amount > empire.bank:
            return _result(empire, operation, amount, "Insufficient savings")
        empire.bank -= amount
        empire.resources.gold += amount
    elif operation is BankOperation.TAKE_LOAN:
        available = max_loan(empire) - empire.loan
        if amount > available:
            return _result(empire, operation, amount,
                           f"Cannot borrow more than {available:,} gold (max loan: {max_loan(empire):,})")
        empire.loan += amount
        empire.resources.gold += amount
    elif operation is BankOperation.PAY_LOAN:
        if amount > gold:
            return _result(empire, operation, amount, "Insufficient gold")
        if amount > empire.loan:
            return _result(empire, operation, amount, "Amount exceeds loan balance")
        empire.resources.gold -= amount
        empire.loan -= amount

    refresh_networth(empire)
    return _result(empire, operation, amount)


def get_bank_info(empire: Empire) -> dict:
    loan_cap = max_loan(empire)
    savings_cap = max_savings(empire)
    return {
        "savings": empire.bank,
        "loan": empire.loan,
        "gold": empire.resources.gold,
        "max_loan": loan_cap,
        "available_loan": max(0, loan_cap - empire.loan),
        "max_savings": savings_cap,
        "available_savings": max(0, savings_cap - empire.bank),
        "savings_rate": savings_rate(empire),
        "loan_rate": loan_rate(empire),
    }
