"""Balance and spend ledgers.

Both ledgers change persisted totals with a single ``UPDATE ... SET x = x + :delta``
statement per effect. The new value is read back with RETURNING, never
computed in Python and written back, so concurrent effects on one account or
budget cannot overwrite each other.
"""

import logging
import uuid
import warnings
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import and_, func, or_, update
from sqlmodel import Session, select

from ..core.errors import (
    ConsistencyWarning,
    Unauthorized,
    account_not_found,
    budget_not_found,
)
from ..models.account import Account
from ..models.budget import Budget
from ..models.categories import TransactionType
from ..models.transaction import Transaction


logger = logging.getLogger(__name__)

_ZERO = Decimal("0")


def signed_amount(tx_type, amount) -> Decimal:
    """Income raises a balance, an expense lowers it."""
    amount = Decimal(str(amount))
    if TransactionType(tx_type) is TransactionType.INCOME:
        return amount
    return -amount


# ─────────────────────────────
#   BALANCE LEDGER
# ─────────────────────────────

def _shift_balance(session: Session, account_id: uuid.UUID, owner_id: uuid.UUID, delta: Decimal) -> Decimal:
    stmt = (
        update(Account)
        .where(
            Account.id == account_id,
            Account.user_id == owner_id,
            Account.is_active == True,  # noqa: E712
        )
        .values(
            balance=func.round(Account.balance + delta, 2),
            updated_at=datetime.utcnow(),
        )
        .returning(Account.balance)
        .execution_options(synchronize_session=False)
    )
    new_balance = session.execute(stmt).scalar_one_or_none()
    if new_balance is None:
        raise _explain_account_miss(session, account_id, owner_id)
    return Decimal(str(new_balance))


def _explain_account_miss(session: Session, account_id: uuid.UUID, owner_id: uuid.UUID):
    row = session.exec(
        select(Account.user_id, Account.is_active).where(Account.id == account_id)
    ).first()
    if row is None or not row.is_active:
        return account_not_found()
    if row.user_id != owner_id:
        return Unauthorized()
    return account_not_found()


def apply_effect(session: Session, account_id: uuid.UUID, owner_id: uuid.UUID, tx_type, amount) -> Decimal:
    return _shift_balance(session, account_id, owner_id, signed_amount(tx_type, amount))


def reverse_effect(session: Session, account_id: uuid.UUID, owner_id: uuid.UUID, tx_type, amount) -> Decimal:
    return _shift_balance(session, account_id, owner_id, -signed_amount(tx_type, amount))


# ─────────────────────────────
#   SPEND LEDGER
# ─────────────────────────────

def _spend_update(budget_id: uuid.UUID):
    return update(Budget).where(Budget.id == budget_id).execution_options(synchronize_session=False)


def apply_spend(session: Session, budget_id: uuid.UUID, amount) -> Decimal:
    amount = Decimal(str(amount))
    stmt = (
        _spend_update(budget_id)
        .values(spent=func.round(Budget.spent + amount, 2), updated_at=datetime.utcnow())
        .returning(Budget.spent)
    )
    new_spent = session.execute(stmt).scalar_one_or_none()
    if new_spent is None:
        raise budget_not_found()
    return Decimal(str(new_spent))


def reverse_spend(session: Session, budget_id: uuid.UUID, amount) -> Decimal:
    """Take ``amount`` back out of a budget's spent total, clamping at zero.

    A clamp means an effect was reversed that had never been applied; it is
    logged and reported as ConsistencyWarning, the caller carries on.
    """
    amount = Decimal(str(amount))
    while True:
        stmt = (
            _spend_update(budget_id)
            .where(Budget.spent >= amount)
            .values(spent=func.round(Budget.spent - amount, 2), updated_at=datetime.utcnow())
            .returning(Budget.spent)
        )
        new_spent = session.execute(stmt).scalar_one_or_none()
        if new_spent is not None:
            return Decimal(str(new_spent))

        stmt = (
            _spend_update(budget_id)
            .where(Budget.spent < amount)
            .values(spent=_ZERO, updated_at=datetime.utcnow())
            .returning(Budget.id)
        )
        if session.execute(stmt).scalar_one_or_none() is not None:
            message = f"Reversing {amount} would drive spent of budget {budget_id} below zero; clamped to 0"
            logger.warning(message)
            warnings.warn(message, ConsistencyWarning, stacklevel=2)
            return _ZERO

        if session.get(Budget, budget_id) is None:
            raise budget_not_found()
        # spent moved between the two statements; try again


def recompute_spent(session: Session, budget: Budget) -> Decimal:
    """Rebuild ``budget.spent`` from the owner's live expenses it tracks.

    An expense counts when it falls in the budget's window and no newer
    active budget of the same category covers its date, which is the
    choice ``match_budget`` makes. The caller commits.
    """
    newer_claims = (
        select(Budget.id)
        .where(
            Budget.user_id == budget.user_id,
            Budget.category == budget.category,
            Budget.is_active == True,  # noqa: E712
            Budget.id != budget.id,
            or_(
                Budget.created_at > budget.created_at,
                and_(Budget.created_at == budget.created_at, Budget.id > budget.id),
            ),
            Budget.start_date <= Transaction.date,
            Budget.end_date >= Transaction.date,
        )
        .exists()
    )
    total: Optional[Decimal] = session.exec(
        select(func.coalesce(func.sum(Transaction.amount), 0)).where(
            Transaction.user_id == budget.user_id,
            Transaction.type == TransactionType.EXPENSE,
            Transaction.category == budget.category,
            Transaction.date >= budget.start_date,
            Transaction.date <= budget.end_date,
            ~newer_claims,
        )
    ).one()
    budget.spent = Decimal(str(total or 0)).quantize(Decimal("0.01"))
    return budget.spent


def recompute_category_spent(session: Session, owner_id: uuid.UUID, category: str) -> List[Budget]:
    """Rebuild spent for every budget of one owner and category.

    Creating, deleting or re-scoping a budget moves expenses between it and
    the budgets it overlaps, so all of them are rebuilt together.
    """
    session.flush()
    budgets = session.exec(
        select(Budget)
        .where(Budget.user_id == owner_id, Budget.category == category)
        .execution_options(populate_existing=True)
    ).all()
    for budget in budgets:
        before = budget.spent
        recompute_spent(session, budget)
        if before != budget.spent:
            logger.info("Budget %s spent rebuilt: %s -> %s", budget.id, before, budget.spent)
        session.add(budget)
    return list(budgets)
