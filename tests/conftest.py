"""
Shared fixtures for the finledger test-suite.

Every test gets its own SQLite file under tmp_path, so the real engine
settings (WAL, BEGIN IMMEDIATE, busy timeout) are exercised, including by
the multi-threaded tests.
"""

import os

os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("JWT_ALGORITHM", "HS256")
os.environ.setdefault("ENCRYPTION_KEY", "0123456789abcdef0123456789abcdef")
os.environ.setdefault("DATABASE_URL", "sqlite:///./finledger-test.db")

import uuid
from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest
from sqlmodel import Session

from finledger.core.encryption import get_cipher
from finledger.core.security import hash_password
from finledger.database import build_engine, init_db
from finledger.models.account import Account
from finledger.models.budget import Budget
from finledger.models.user import User


@pytest.fixture
def db_engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'ledger.db'}", timeout=10)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(db_engine):
    with Session(db_engine, expire_on_commit=False) as session:
        yield session


def fetch(session, model, pk):
    """Re-read a row from the database, bypassing the identity map."""
    return session.get(model, pk, populate_existing=True)


def make_user(session, email=None):
    now = datetime.utcnow()
    user = User(
        id=uuid.uuid4(),
        email=email or f"{uuid.uuid4().hex[:8]}@example.com",
        hashed_password=hash_password("secret123"),
        default_currency="USD",
        created_at=now,
        updated_at=now,
    )
    session.add(user)
    session.commit()
    return user


def make_account(session, owner, balance="1000.00", is_active=True):
    account = Account(
        id=uuid.uuid4(),
        user_id=owner.id,
        account_name="Checking",
        bank_name="First Bank",
        account_number=get_cipher().encrypt("123456789"),
        balance=Decimal(balance),
        is_active=is_active,
    )
    session.add(account)
    session.commit()
    return account


def make_budget(
    session,
    owner,
    category="food",
    amount="200.00",
    spent="0.00",
    start_date=None,
    end_date=None,
    alert_threshold=80,
    is_active=True,
    created_at=None,
):
    today = date.today()
    budget = Budget(
        id=uuid.uuid4(),
        user_id=owner.id,
        category=category,
        amount=Decimal(amount),
        spent=Decimal(spent),
        start_date=start_date or today.replace(day=1),
        end_date=end_date or today.replace(day=1) + timedelta(days=40),
        alert_threshold=alert_threshold,
        is_active=is_active,
        created_at=created_at or datetime.utcnow(),
    )
    session.add(budget)
    session.commit()
    return budget


@pytest.fixture
def owner(session):
    return make_user(session, "owner@example.com")


@pytest.fixture
def stranger(session):
    return make_user(session, "stranger@example.com")


@pytest.fixture
def account(session, owner):
    return make_account(session, owner)


@pytest.fixture
def food_budget(session, owner):
    return make_budget(session, owner)
