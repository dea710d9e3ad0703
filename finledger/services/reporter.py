import uuid
from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func
from sqlmodel import Session, SQLModel, select

from ..models.account import Account
from ..models.categories import TransactionType
from ..models.transaction import Transaction


class CategoryTotal(SQLModel):
    category: str
    total: Decimal
    count: int


class TransactionSummary(SQLModel):
    total_income: Decimal
    total_expenses: Decimal
    balance: Decimal
    income_by_category: List[CategoryTotal]
    expenses_by_category: List[CategoryTotal]


class TotalBalance(SQLModel):
    total_balance: Decimal
    account_count: int


def _money(value) -> Decimal:
    return Decimal(str(value or 0)).quantize(Decimal("0.01"))


def transaction_summary(
    session: Session,
    owner_id: uuid.UUID,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> TransactionSummary:
    """Income/expense totals for an owner, optionally limited to a date range.

    One grouped query over the matching transactions; rows come back
    ordered by total descending, so each per-category list keeps that order.
    """
    total = func.sum(Transaction.amount).label("total")
    stmt = (
        select(
            Transaction.type,
            Transaction.category,
            total,
            func.count(Transaction.id).label("count"),
        )
        .where(Transaction.user_id == owner_id)
        .group_by(Transaction.type, Transaction.category)
        .order_by(total.desc(), Transaction.category.asc())
    )
    if start_date is not None:
        stmt = stmt.where(Transaction.date >= start_date)
    if end_date is not None:
        stmt = stmt.where(Transaction.date <= end_date)

    by_type = {TransactionType.INCOME: [], TransactionType.EXPENSE: []}
    for tx_type, category, amount, count in session.exec(stmt).all():
        by_type[TransactionType(tx_type)].append(
            CategoryTotal(category=category, total=_money(amount), count=count)
        )

    total_income = sum((row.total for row in by_type[TransactionType.INCOME]), Decimal("0.00"))
    total_expenses = sum((row.total for row in by_type[TransactionType.EXPENSE]), Decimal("0.00"))
    return TransactionSummary(
        total_income=total_income,
        total_expenses=total_expenses,
        balance=total_income - total_expenses,
        income_by_category=by_type[TransactionType.INCOME],
        expenses_by_category=by_type[TransactionType.EXPENSE],
    )


def total_balance(session: Session, owner_id: uuid.UUID) -> TotalBalance:
    stmt = select(
        func.coalesce(func.sum(Account.balance), 0),
        func.count(Account.id),
    ).where(Account.user_id == owner_id, Account.is_active == True)  # noqa: E712
    balance, count = session.exec(stmt).one()
    return TotalBalance(total_balance=_money(balance), account_count=count)
