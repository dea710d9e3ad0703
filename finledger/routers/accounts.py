import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import field_validator
from sqlalchemy import func
from sqlmodel import Field, Session, SQLModel, select

from ..core.encryption import get_cipher, mask_account_number
from ..core.errors import Unauthorized, ValidationError, account_not_found
from ..core.security import get_current_user
from ..database import get_session, unit_of_work
from ..models.account import Account
from ..models.categories import AccountType
from ..models.transaction import Transaction
from ..models.user import User
from ..services.reporter import TotalBalance, total_balance


router = APIRouter(
    prefix="/accounts",
    tags=["accounts"],
)


def _upper_currency(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    value = value.strip().upper()
    if len(value) != 3 or not value.isalpha():
        raise ValueError("Currency must be a 3 letter code")
    return value


class AccountCreate(SQLModel):
    account_name: str = Field(min_length=1, max_length=100)
    bank_name: str = Field(min_length=1, max_length=100)
    account_number: str = Field(min_length=4, max_length=34)
    account_type: AccountType = AccountType.CHECKING
    balance: Decimal = Field(default=Decimal("0.00"), max_digits=14, decimal_places=2)
    currency: str = "USD"
    is_active: bool = True

    @field_validator("currency")
    @classmethod
    def _check_currency(cls, value):
        return _upper_currency(value)


class AccountUpdate(SQLModel):
    """Direct edit of an account. ``balance`` here overrides the ledger total."""

    account_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    bank_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    account_number: Optional[str] = Field(default=None, min_length=4, max_length=34)
    account_type: Optional[AccountType] = None
    balance: Optional[Decimal] = Field(default=None, max_digits=14, decimal_places=2)
    currency: Optional[str] = None
    is_active: Optional[bool] = None

    @field_validator("currency")
    @classmethod
    def _check_currency(cls, value):
        return _upper_currency(value)


class AccountRead(SQLModel):
    id: uuid.UUID
    user_id: uuid.UUID
    account_name: str
    bank_name: str
    account_number: str
    account_type: AccountType
    balance: Decimal
    currency: str
    is_active: bool
    last_synced: datetime
    created_at: datetime
    updated_at: datetime


def _to_read(account: Account) -> AccountRead:
    data = account.model_dump()
    data["account_number"] = mask_account_number(get_cipher().decrypt(account.account_number))
    return AccountRead(**data)


def _load_owned(session: Session, account_id: uuid.UUID, owner_id: uuid.UUID) -> Account:
    account = session.get(Account, account_id)
    if account is None:
        raise account_not_found()
    if account.user_id != owner_id:
        raise Unauthorized()
    return account


@router.get(
    "",
    response_model=List[AccountRead],
)
def list_accounts(
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    stmt = (
        select(Account)
        .where(Account.user_id == current_user.id)
        .order_by(Account.created_at.asc())
    )
    return [_to_read(a) for a in session.exec(stmt).all()]


@router.get(
    "/stats/total-balance",
    response_model=TotalBalance,
)
def get_total_balance(
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return total_balance(session, current_user.id)


@router.get(
    "/{account_id}",
    response_model=AccountRead,
)
def get_account(
    account_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return _to_read(_load_owned(session, account_id, current_user.id))


@router.post(
    "",
    response_model=AccountRead,
    status_code=status.HTTP_201_CREATED,
)
def create_account(
    payload: AccountCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    # Fails with EncryptionConfigError before anything is written
    encrypted_number = get_cipher().encrypt(payload.account_number.strip())

    now = datetime.utcnow()
    account = Account(
        id=uuid.uuid4(),
        user_id=current_user.id,
        account_name=payload.account_name.strip(),
        bank_name=payload.bank_name.strip(),
        account_number=encrypted_number,
        account_type=payload.account_type,
        balance=payload.balance,
        currency=payload.currency,
        is_active=payload.is_active,
        last_synced=now,
        created_at=now,
        updated_at=now,
    )
    with unit_of_work(session):
        session.add(account)
    session.refresh(account)
    return _to_read(account)


@router.put(
    "/{account_id}",
    response_model=AccountRead,
)
def update_account(
    account_id: uuid.UUID,
    payload: AccountUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    with unit_of_work(session):
        account = _load_owned(session, account_id, current_user.id)
        changes = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
        if not changes:
            raise ValidationError("No fields to update")
        if "account_number" in changes:
            changes["account_number"] = get_cipher().encrypt(changes["account_number"].strip())

        for field, value in changes.items():
            setattr(account, field, value)
        account.updated_at = datetime.utcnow()
        session.add(account)
    session.refresh(account)
    return _to_read(account)


@router.delete(
    "/{account_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
def delete_account(
    account_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    with unit_of_work(session):
        account = _load_owned(session, account_id, current_user.id)
        held = session.exec(
            select(func.count(Transaction.id)).where(Transaction.bank_account_id == account.id)
        ).one()
        if held:
            raise ValidationError(
                f"Account still holds {held} transaction(s); delete them or deactivate the account"
            )
        session.delete(account)
    return None
