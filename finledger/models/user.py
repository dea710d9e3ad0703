import uuid
from datetime import datetime

from pydantic import EmailStr, field_validator
from sqlmodel import SQLModel, Field


SUPPORTED_CURRENCIES = {"USD", "EUR", "CAD", "COP", "GBP", "MXN"}


class User(SQLModel, table=True):
    """Owner of accounts, transactions and budgets."""

    __tablename__ = "users"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True, index=True)

    # Stored lower-cased
    email: str = Field(index=True, unique=True, max_length=255)
    hashed_password: str = Field(max_length=255)
    default_currency: str = Field(default="USD", max_length=3)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


# ─────────────────────────────
#   SCHEMAS
# ─────────────────────────────

class UserRegister(SQLModel):
    email: EmailStr
    password: str = Field(min_length=6)
    default_currency: str = Field(default="USD", min_length=3, max_length=3)

    @field_validator("password")
    @classmethod
    def _no_whitespace(cls, value: str) -> str:
        if any(c.isspace() for c in value):
            raise ValueError("Password must not contain whitespace")
        return value

    @field_validator("default_currency")
    @classmethod
    def _known_currency(cls, value: str) -> str:
        value = value.strip().upper()
        if value not in SUPPORTED_CURRENCIES:
            raise ValueError("Invalid default_currency")
        return value


class UserRead(SQLModel):
    id: uuid.UUID
    email: str
    default_currency: str
    created_at: datetime
    updated_at: datetime
