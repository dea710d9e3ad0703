"""Derived budget status.

Nothing here touches the database: every value is computed from the budget
row as loaded, and none of it is ever stored.
"""

import math
import uuid
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, List

from sqlmodel import SQLModel

from ..models.budget import Budget


_HUNDRED = Decimal("100")
_CENTS = Decimal("0.01")


class BudgetStatus(SQLModel):
    percentage_spent: Decimal
    remaining: Decimal
    is_exceeded: bool
    is_alert_triggered: bool


class BudgetAlert(SQLModel):
    budget_id: uuid.UUID
    category: str
    amount: Decimal
    spent: Decimal
    percentage_spent: Decimal
    is_exceeded: bool
    message: str


def _as_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def percentage_spent(spent, amount) -> Decimal:
    """Unrounded ``spent / amount * 100``.

    A zero cap reads as 0% while nothing is spent and 100% afterwards.
    """
    spent = _as_decimal(spent)
    amount = _as_decimal(amount)
    if amount == 0:
        return Decimal("0") if spent <= 0 else _HUNDRED
    return spent / amount * _HUNDRED


def budget_status(budget: Budget) -> BudgetStatus:
    spent = _as_decimal(budget.spent)
    amount = _as_decimal(budget.amount)
    pct = percentage_spent(spent, amount)
    return BudgetStatus(
        percentage_spent=pct.quantize(_CENTS, rounding=ROUND_HALF_UP),
        remaining=amount - spent,
        is_exceeded=spent > amount,
        is_alert_triggered=pct >= budget.alert_threshold,
    )


def alert_message(category: str, status: BudgetStatus, raw_percentage: Decimal) -> str:
    if status.is_exceeded:
        return f"Budget exceeded for {category}"
    return f"Budget alert: {math.floor(raw_percentage)}% spent on {category}"


def budget_alerts(budgets: Iterable[Budget]) -> List[BudgetAlert]:
    """Budgets that are over their cap or past their alert threshold, in input order."""
    alerts = []
    for budget in budgets:
        status = budget_status(budget)
        if not (status.is_exceeded or status.is_alert_triggered):
            continue
        raw = percentage_spent(budget.spent, budget.amount)
        alerts.append(
            BudgetAlert(
                budget_id=budget.id,
                category=budget.category,
                amount=_as_decimal(budget.amount),
                spent=_as_decimal(budget.spent),
                percentage_spent=status.percentage_spent,
                is_exceeded=status.is_exceeded,
                message=alert_message(budget.category, status, raw),
            )
        )
    return alerts
