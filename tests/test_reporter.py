from datetime import date
from decimal import Decimal

from conftest import make_account

from finledger.models.transaction import TransactionCreate
from finledger.services.engine import LedgerEngine
from finledger.services.reporter import total_balance, transaction_summary


def _record(session, owner, account, tx_type, category, amount, on=date(2026, 3, 10)):
    return LedgerEngine(session).create(
        owner.id,
        TransactionCreate(
            bank_account_id=account.id,
            type=tx_type,
            category=category,
            amount=Decimal(amount),
            date=on,
        ),
    )


def test_summary_groups_by_category(session, owner, account):
    _record(session, owner, account, "income", "salary", "3000.00")
    _record(session, owner, account, "income", "freelance", "450.00")
    _record(session, owner, account, "expense", "food", "40.00")
    _record(session, owner, account, "expense", "food", "60.50")
    _record(session, owner, account, "expense", "housing", "1200.00")

    summary = transaction_summary(session, owner.id)

    assert summary.total_income == Decimal("3450.00")
    assert summary.total_expenses == Decimal("1300.50")
    assert summary.balance == Decimal("2149.50")
    assert [(c.category, c.total, c.count) for c in summary.income_by_category] == [
        ("salary", Decimal("3000.00"), 1),
        ("freelance", Decimal("450.00"), 1),
    ]
    assert [(c.category, c.total, c.count) for c in summary.expenses_by_category] == [
        ("housing", Decimal("1200.00"), 1),
        ("food", Decimal("100.50"), 2),
    ]


def test_summary_date_range_is_inclusive(session, owner, account):
    _record(session, owner, account, "expense", "food", "10.00", on=date(2026, 2, 28))
    _record(session, owner, account, "expense", "food", "20.00", on=date(2026, 3, 1))
    _record(session, owner, account, "expense", "food", "30.00", on=date(2026, 3, 31))
    _record(session, owner, account, "expense", "food", "40.00", on=date(2026, 4, 1))

    summary = transaction_summary(session, owner.id, date(2026, 3, 1), date(2026, 3, 31))

    assert summary.total_expenses == Decimal("50.00")
    assert summary.expenses_by_category[0].count == 2
    assert summary.income_by_category == []


def test_summary_is_scoped_to_owner(session, owner, stranger, account):
    theirs = make_account(session, stranger)
    _record(session, stranger, theirs, "income", "salary", "999.00")

    summary = transaction_summary(session, owner.id)

    assert summary.total_income == Decimal("0")
    assert summary.balance == Decimal("0")


def test_total_balance_counts_active_accounts(session, owner, stranger, account):
    make_account(session, owner, balance="250.25")
    make_account(session, owner, balance="5000.00", is_active=False)
    make_account(session, stranger, balance="77.00")

    result = total_balance(session, owner.id)

    assert result.total_balance == Decimal("1250.25")
    assert result.account_count == 2


def test_total_balance_without_accounts(session, stranger):
    result = total_balance(session, stranger.id)
    assert result.total_balance == Decimal("0.00")
    assert result.account_count == 0
