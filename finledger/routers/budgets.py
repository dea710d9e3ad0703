import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import model_validator
from sqlmodel import Field, Session, SQLModel, select

from ..core.errors import Unauthorized, ValidationError, budget_not_found
from ..core.security import get_current_user
from ..database import get_session, unit_of_work
from ..models.budget import Budget
from ..models.categories import BudgetPeriod, resolve_expense_category
from ..models.user import User
from ..services.ledgers import recompute_category_spent
from ..services.status import BudgetAlert, budget_alerts, budget_status


router = APIRouter(
    prefix="/budgets",
    tags=["budgets"],
)


class BudgetBase(SQLModel):
    category: str = Field(min_length=1, max_length=50)
    amount: Decimal = Field(ge=0, max_digits=14, decimal_places=2)
    period: BudgetPeriod = BudgetPeriod.MONTHLY
    start_date: date
    end_date: date
    alert_threshold: int = Field(default=80, ge=0, le=100)
    is_active: bool = True


class BudgetCreate(BudgetBase):
    @model_validator(mode="after")
    def _window_is_ordered(self):
        if self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        return self


class BudgetUpdate(SQLModel):
    category: Optional[str] = Field(default=None, min_length=1, max_length=50)
    amount: Optional[Decimal] = Field(default=None, ge=0, max_digits=14, decimal_places=2)
    period: Optional[BudgetPeriod] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    alert_threshold: Optional[int] = Field(default=None, ge=0, le=100)
    is_active: Optional[bool] = None


class BudgetRead(BudgetBase):
    id: uuid.UUID
    user_id: uuid.UUID
    spent: Decimal
    percentage_spent: Decimal
    remaining: Decimal
    is_exceeded: bool
    is_alert_triggered: bool
    created_at: datetime
    updated_at: datetime


# Changing any of these moves expenses between the budget and the ones it
# overlaps; an inactive budget misses every effect applied meanwhile
_SCOPE_FIELDS = {"category", "start_date", "end_date", "is_active"}


def _with_status(budget: Budget) -> BudgetRead:
    return BudgetRead(**budget.model_dump(), **budget_status(budget).model_dump())


def _load_owned(session: Session, budget_id: uuid.UUID, owner_id: uuid.UUID, for_update: bool = False) -> Budget:
    stmt = select(Budget).where(Budget.id == budget_id)
    if for_update:
        # Holds off spend ledger writes until a recomputed total is committed
        stmt = stmt.with_for_update()
    budget = session.exec(stmt).first()
    if budget is None:
        raise budget_not_found()
    if budget.user_id != owner_id:
        raise Unauthorized()
    return budget


@router.get(
    "",
    response_model=List[BudgetRead],
    status_code=status.HTTP_200_OK,
)
def list_budgets(
    is_active: Optional[bool] = None,
    category: Optional[str] = None,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    stmt = select(Budget).where(Budget.user_id == current_user.id)
    if is_active is not None:
        stmt = stmt.where(Budget.is_active == is_active)
    if category:
        stmt = stmt.where(Budget.category == category)
    stmt = stmt.order_by(Budget.created_at.desc())
    return [_with_status(b) for b in session.exec(stmt).all()]


@router.get(
    "/alerts",
    response_model=List[BudgetAlert],
)
def get_budget_alerts(
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    """Active budgets that are exceeded or past their alert threshold."""
    stmt = (
        select(Budget)
        .where(Budget.user_id == current_user.id, Budget.is_active == True)  # noqa: E712
        .order_by(Budget.created_at.desc())
    )
    return budget_alerts(session.exec(stmt).all())


@router.get(
    "/{budget_id}",
    response_model=BudgetRead,
)
def get_budget(
    budget_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return _with_status(_load_owned(session, budget_id, current_user.id))


@router.post(
    "",
    response_model=BudgetRead,
    status_code=status.HTTP_201_CREATED,
)
def create_budget(
    payload: BudgetCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    """Create a budget; spent starts at the expenses already recorded in its window."""
    now = datetime.utcnow()
    with unit_of_work(session):
        category = resolve_expense_category(payload.category)
        budget = Budget(
            id=uuid.uuid4(),
            user_id=current_user.id,
            category=category.value,
            amount=payload.amount,
            period=payload.period,
            start_date=payload.start_date,
            end_date=payload.end_date,
            alert_threshold=payload.alert_threshold,
            is_active=payload.is_active,
            created_at=now,
            updated_at=now,
        )
        session.add(budget)
        recompute_category_spent(session, current_user.id, budget.category)
    session.refresh(budget)
    return _with_status(budget)


@router.put(
    "/{budget_id}",
    response_model=BudgetRead,
)
def update_budget(
    budget_id: uuid.UUID,
    payload: BudgetUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    with unit_of_work(session):
        budget = _load_owned(session, budget_id, current_user.id, for_update=True)
        old_category = budget.category
        changes = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
        if not changes:
            raise ValidationError("No fields to update")
        if "category" in changes:
            changes["category"] = resolve_expense_category(changes["category"]).value

        for field, value in changes.items():
            setattr(budget, field, value)
        if budget.start_date > budget.end_date:
            raise ValidationError("start_date must not be after end_date")
        budget.updated_at = datetime.utcnow()
        session.add(budget)
        if _SCOPE_FIELDS & changes.keys():
            for category in {old_category, budget.category}:
                recompute_category_spent(session, current_user.id, category)
    session.refresh(budget)
    return _with_status(budget)


@router.delete(
    "/{budget_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
def delete_budget(
    budget_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    with unit_of_work(session):
        budget = _load_owned(session, budget_id, current_user.id)
        session.delete(budget)
        # Older budgets it overlapped take its expenses back
        recompute_category_spent(session, current_user.id, budget.category)
    return None
