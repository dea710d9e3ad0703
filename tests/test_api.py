"""
End-to-end checks through the HTTP API, one SQLite file per test.
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from finledger.config import settings
from finledger.database import get_session
from finledger.main import app


TODAY = date.today()
WINDOW = {
    "start_date": TODAY.replace(day=1).isoformat(),
    "end_date": (TODAY.replace(day=1) + timedelta(days=40)).isoformat(),
}


@pytest.fixture
def client(db_engine):
    def override_get_session():
        with Session(db_engine, expire_on_commit=False) as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    yield TestClient(app)
    app.dependency_overrides.clear()


def _login(client, email="ana@example.com", password="secret123"):
    r = client.post("/auth/register", json={"email": email, "password": password})
    assert r.status_code == 201, r.text
    r = client.post("/auth/token", data={"username": email, "password": password})
    assert r.status_code == 200, r.text
    return {"Authorization": f"Bearer {r.json()['access_token']}"}


def _open_account(client, headers, balance="1000.00"):
    r = client.post(
        "/accounts",
        json={
            "account_name": "Checking",
            "bank_name": "First Bank",
            "account_number": "000123456789",
            "balance": balance,
        },
        headers=headers,
    )
    assert r.status_code == 201, r.text
    return r.json()


def _post_tx(client, headers, account_id, tx_type="expense", category="food", amount="45.00", on=TODAY):
    return client.post(
        "/transactions",
        json={
            "bank_account_id": account_id,
            "type": tx_type,
            "category": category,
            "amount": amount,
            "date": on.isoformat(),
        },
        headers=headers,
    )


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


class TestAuth:
    def test_register_login_me(self, client):
        headers = _login(client)
        r = client.get("/auth/me", headers=headers)
        assert r.status_code == 200
        assert r.json()["email"] == "ana@example.com"
        assert r.json()["default_currency"] == "USD"

    def test_duplicate_email(self, client):
        _login(client)
        r = client.post("/auth/register", json={"email": "ANA@example.com", "password": "secret123"})
        assert r.status_code == 409

    def test_bad_password(self, client):
        _login(client)
        r = client.post("/auth/token", data={"username": "ana@example.com", "password": "wrong-one"})
        assert r.status_code == 401

    def test_missing_token(self, client):
        assert client.get("/transactions").status_code == 401


class TestAccounts:
    def test_number_is_masked(self, client):
        headers = _login(client)
        account = _open_account(client, headers)

        assert account["account_number"] == "********6789"
        r = client.get(f"/accounts/{account['id']}", headers=headers)
        assert r.json()["account_number"] == "********6789"

    def test_total_balance(self, client):
        headers = _login(client)
        _open_account(client, headers, "100.00")
        _open_account(client, headers, "250.50")

        r = client.get("/accounts/stats/total-balance", headers=headers)
        assert Decimal(r.json()["total_balance"]) == Decimal("350.50")
        assert r.json()["account_count"] == 2

    def test_delete_refused_while_transactions_exist(self, client):
        headers = _login(client)
        account = _open_account(client, headers)
        tx = _post_tx(client, headers, account["id"]).json()

        r = client.delete(f"/accounts/{account['id']}", headers=headers)
        assert r.status_code == 400
        assert r.json()["kind"] == "ValidationError"

        client.delete(f"/transactions/{tx['id']}", headers=headers)
        assert client.delete(f"/accounts/{account['id']}", headers=headers).status_code == 204

    def test_foreign_account_is_unauthorized(self, client):
        owner = _login(client)
        account = _open_account(client, owner)
        intruder = _login(client, "eve@example.com")

        r = client.get(f"/accounts/{account['id']}", headers=intruder)
        assert r.status_code == 401
        assert r.json() == {"kind": "Unauthorized", "detail": "User not authorized"}

    def test_bad_encryption_key_is_reported(self, client, monkeypatch):
        headers = _login(client)
        _open_account(client, headers)
        monkeypatch.setattr(settings, "encryption_key", "too-short")

        r = client.get("/accounts", headers=headers)
        assert r.status_code == 500
        assert r.json()["kind"] == "EncryptionConfigError"
        assert "32 characters" in r.json()["detail"]


class TestTransactions:
    def test_lifecycle_keeps_balance_and_budget_in_step(self, client):
        headers = _login(client)
        account = _open_account(client, headers)
        budget = client.post(
            "/budgets", json={"category": "food", "amount": "200.00", **WINDOW}, headers=headers
        ).json()

        r = _post_tx(client, headers, account["id"], amount="45.00")
        assert r.status_code == 201, r.text
        tx = r.json()
        assert _balance(client, headers, account) == Decimal("955.00")
        assert _spent(client, headers, budget) == Decimal("45.00")

        r = client.patch(f"/transactions/{tx['id']}", json={"amount": "60.00"}, headers=headers)
        assert r.status_code == 200, r.text
        assert _balance(client, headers, account) == Decimal("940.00")
        assert _spent(client, headers, budget) == Decimal("60.00")

        r = client.delete(f"/transactions/{tx['id']}", headers=headers)
        assert r.status_code == 204
        assert _balance(client, headers, account) == Decimal("1000.00")
        assert _spent(client, headers, budget) == Decimal("0")

        r = client.get(f"/transactions/{tx['id']}", headers=headers)
        assert r.status_code == 404
        assert r.json() == {"kind": "NotFound", "detail": "Transaction not found"}

    def test_wrong_category_variant(self, client):
        headers = _login(client)
        account = _open_account(client, headers)

        r = _post_tx(client, headers, account["id"], tx_type="income", category="food")
        assert r.status_code == 400
        assert r.json()["kind"] == "ValidationError"
        assert _balance(client, headers, account) == Decimal("1000.00")

    def test_list_and_summary(self, client):
        headers = _login(client)
        account = _open_account(client, headers)
        _post_tx(client, headers, account["id"], "income", "salary", "3000.00")
        _post_tx(client, headers, account["id"], "expense", "food", "40.00")
        _post_tx(client, headers, account["id"], "expense", "food", "60.00")

        page = client.get("/transactions", params={"type": "expense", "limit": 1}, headers=headers).json()
        assert page["total"] == 2
        assert page["count"] == 1
        assert page["pages"] == 2

        summary = client.get("/transactions/stats/summary", headers=headers).json()
        assert Decimal(summary["total_income"]) == Decimal("3000.00")
        assert Decimal(summary["total_expenses"]) == Decimal("100.00")
        assert Decimal(summary["balance"]) == Decimal("2900.00")
        assert summary["expenses_by_category"][0]["count"] == 2


class TestBudgets:
    def test_create_picks_up_existing_expenses(self, client):
        headers = _login(client)
        account = _open_account(client, headers)
        _post_tx(client, headers, account["id"], amount="170.00")

        r = client.post(
            "/budgets",
            json={"category": "food", "amount": "200.00", "alert_threshold": 80, **WINDOW},
            headers=headers,
        )
        assert r.status_code == 201, r.text
        body = r.json()
        assert Decimal(body["spent"]) == Decimal("170.00")
        assert Decimal(body["percentage_spent"]) == Decimal("85.00")
        assert body["is_alert_triggered"] is True
        assert body["is_exceeded"] is False

        alerts = client.get("/budgets/alerts", headers=headers).json()
        assert [a["message"] for a in alerts] == ["Budget alert: 85% spent on food"]

    def test_income_category_is_rejected(self, client):
        headers = _login(client)
        r = client.post("/budgets", json={"category": "salary", "amount": "10.00", **WINDOW}, headers=headers)
        assert r.status_code == 400
        assert r.json()["kind"] == "ValidationError"

    def test_scope_change_recomputes_spent(self, client):
        headers = _login(client)
        account = _open_account(client, headers)
        _post_tx(client, headers, account["id"], category="travel", amount="30.00")
        budget = client.post(
            "/budgets", json={"category": "food", "amount": "200.00", **WINDOW}, headers=headers
        ).json()
        assert Decimal(budget["spent"]) == Decimal("0")

        r = client.put(f"/budgets/{budget['id']}", json={"category": "travel"}, headers=headers)
        assert r.status_code == 200, r.text
        assert Decimal(r.json()["spent"]) == Decimal("30.00")

    def test_overlapping_budgets_hand_spend_back_on_delete(self, client):
        headers = _login(client)
        account = _open_account(client, headers)
        _post_tx(client, headers, account["id"], amount="50.00")
        older = client.post(
            "/budgets", json={"category": "food", "amount": "200.00", **WINDOW}, headers=headers
        ).json()
        newer = client.post(
            "/budgets", json={"category": "food", "amount": "100.00", **WINDOW}, headers=headers
        ).json()

        assert _spent(client, headers, older) == Decimal("0")
        assert _spent(client, headers, newer) == Decimal("50.00")

        assert client.delete(f"/budgets/{newer['id']}", headers=headers).status_code == 204
        assert _spent(client, headers, older) == Decimal("50.00")


def _balance(client, headers, account):
    return Decimal(client.get(f"/accounts/{account['id']}", headers=headers).json()["balance"])


def _spent(client, headers, budget):
    return Decimal(client.get(f"/budgets/{budget['id']}", headers=headers).json()["spent"])
