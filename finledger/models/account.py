import uuid
from datetime import datetime
from decimal import Decimal

from sqlmodel import SQLModel, Field

from .categories import AccountType


class Account(SQLModel, table=True):
    __tablename__ = "accounts"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True, index=True)

    user_id: uuid.UUID = Field(foreign_key="users.id", index=True)

    account_name: str = Field(max_length=100)
    bank_name: str = Field(max_length=100)
    # Ciphertext only, "ivhex:cipherhex"
    account_number: str = Field(max_length=255)
    account_type: AccountType = Field(default=AccountType.CHECKING)

    # Written by the balance ledger through atomic UPDATE statements only
    balance: Decimal = Field(default=Decimal("0.00"), max_digits=14, decimal_places=2)
    currency: str = Field(default="USD", max_length=3)
    is_active: bool = Field(default=True)
    last_synced: datetime = Field(default_factory=datetime.utcnow)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
