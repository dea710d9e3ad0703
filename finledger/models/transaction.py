import datetime as dt
import uuid
from decimal import Decimal
from typing import Optional

from sqlalchemy import Index
from sqlmodel import SQLModel, Field

from .categories import RecurringFrequency, TransactionType


class Transaction(SQLModel, table=True):
    __tablename__ = "transactions"
    __table_args__ = (
        Index("ix_transactions_user_date", "user_id", "date"),
        Index("ix_transactions_user_type_category", "user_id", "type", "category"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True, index=True)

    # Both references are fixed at creation
    user_id: uuid.UUID = Field(foreign_key="users.id")
    bank_account_id: uuid.UUID = Field(foreign_key="accounts.id", index=True)

    type: TransactionType
    # An IncomeCategory or ExpenseCategory value, matching ``type``
    category: str = Field(max_length=50)
    amount: Decimal = Field(max_digits=14, decimal_places=2)
    date: dt.date = Field(default_factory=dt.date.today)
    description: Optional[str] = Field(default=None, max_length=255)

    is_recurring: bool = Field(default=False)
    recurring_frequency: Optional[RecurringFrequency] = Field(default=None)

    created_at: dt.datetime = Field(default_factory=dt.datetime.utcnow)
    updated_at: dt.datetime = Field(default_factory=dt.datetime.utcnow)


# ─────────────────────────────
#   SCHEMAS
# ─────────────────────────────

class TransactionBase(SQLModel):
    type: TransactionType
    category: str = Field(min_length=1, max_length=50)
    amount: Decimal = Field(gt=0, max_digits=14, decimal_places=2)
    date: dt.date = Field(default_factory=dt.date.today)
    description: Optional[str] = Field(default=None, max_length=255)
    is_recurring: bool = False
    recurring_frequency: Optional[RecurringFrequency] = None


class TransactionCreate(TransactionBase):
    bank_account_id: uuid.UUID


class TransactionUpdate(SQLModel):
    """Partial edit. The account and owner of a transaction cannot change."""

    type: Optional[TransactionType] = None
    category: Optional[str] = Field(default=None, min_length=1, max_length=50)
    amount: Optional[Decimal] = Field(default=None, gt=0, max_digits=14, decimal_places=2)
    date: Optional[dt.date] = None
    description: Optional[str] = Field(default=None, max_length=255)
    is_recurring: Optional[bool] = None
    recurring_frequency: Optional[RecurringFrequency] = None


class TransactionRead(TransactionBase):
    id: uuid.UUID
    user_id: uuid.UUID
    bank_account_id: uuid.UUID
    created_at: dt.datetime
    updated_at: dt.datetime
