import math
import uuid
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func
from sqlmodel import SQLModel, Session, select

from ..core.security import get_current_user
from ..database import get_session
from ..models.categories import TransactionType
from ..models.transaction import (
    Transaction,
    TransactionCreate,
    TransactionRead,
    TransactionUpdate,
)
from ..models.user import User
from ..services.engine import LedgerEngine
from ..services.reporter import TransactionSummary, transaction_summary

router = APIRouter(
    prefix="/transactions",
    tags=["transactions"],
)


class TransactionPage(SQLModel):
    count: int
    total: int
    page: int
    pages: int
    data: List[TransactionRead]


def get_engine(session: Session = Depends(get_session)) -> LedgerEngine:
    return LedgerEngine(session)


@router.get(
    "",
    response_model=TransactionPage,
)
def list_transactions(
    type: Optional[TransactionType] = None,
    category: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    limit: int = Query(default=50, ge=1, le=500),
    page: int = Query(default=1, ge=1),
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    """Transactions of the authenticated user, newest first."""
    conditions = [Transaction.user_id == current_user.id]
    if type is not None:
        conditions.append(Transaction.type == type)
    if category:
        conditions.append(Transaction.category == category)
    if start_date:
        conditions.append(Transaction.date >= start_date)
    if end_date:
        conditions.append(Transaction.date <= end_date)

    total = session.exec(select(func.count(Transaction.id)).where(*conditions)).one()
    stmt = (
        select(Transaction)
        .where(*conditions)
        .order_by(Transaction.date.desc(), Transaction.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    rows = list(session.exec(stmt).all())
    return TransactionPage(
        count=len(rows),
        total=total,
        page=page,
        pages=math.ceil(total / limit),
        data=rows,
    )


@router.get(
    "/stats/summary",
    response_model=TransactionSummary,
)
def get_transaction_stats(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return transaction_summary(session, current_user.id, start_date, end_date)


@router.get(
    "/{transaction_id}",
    response_model=TransactionRead,
)
def get_transaction(
    transaction_id: uuid.UUID,
    engine: LedgerEngine = Depends(get_engine),
    current_user: User = Depends(get_current_user),
):
    return engine.get(current_user.id, transaction_id)


@router.post(
    "",
    response_model=TransactionRead,
    status_code=status.HTTP_201_CREATED,
)
def create_transaction(
    transaction_in: TransactionCreate,
    engine: LedgerEngine = Depends(get_engine),
    current_user: User = Depends(get_current_user),
):
    """Record a transaction and apply it to its account and matching budget."""
    return engine.create(current_user.id, transaction_in)


@router.put(
    "/{transaction_id}",
    response_model=TransactionRead,
)
@router.patch(
    "/{transaction_id}",
    response_model=TransactionRead,
)
def update_transaction(
    transaction_id: uuid.UUID,
    transaction_in: TransactionUpdate,
    engine: LedgerEngine = Depends(get_engine),
    current_user: User = Depends(get_current_user),
):
    return engine.update(current_user.id, transaction_id, transaction_in)


@router.delete(
    "/{transaction_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
def delete_transaction(
    transaction_id: uuid.UUID,
    engine: LedgerEngine = Depends(get_engine),
    current_user: User = Depends(get_current_user),
):
    engine.delete(current_user.id, transaction_id)
    return None
