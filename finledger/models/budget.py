import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Index
from sqlmodel import SQLModel, Field

from .categories import BudgetPeriod


class Budget(SQLModel, table=True):
    __tablename__ = "budgets"
    __table_args__ = (
        Index("ix_budgets_user_category_start", "user_id", "category", "start_date"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True, index=True)

    user_id: uuid.UUID = Field(foreign_key="users.id")

    # ExpenseCategory value
    category: str = Field(max_length=50)

    amount: Decimal = Field(max_digits=14, decimal_places=2)
    # Running total kept by the spend ledger, never below zero
    spent: Decimal = Field(default=Decimal("0.00"), max_digits=14, decimal_places=2)
    period: BudgetPeriod = Field(default=BudgetPeriod.MONTHLY)

    # Inclusive window
    start_date: date
    end_date: date

    alert_threshold: int = Field(default=80)
    is_active: bool = Field(default=True)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
