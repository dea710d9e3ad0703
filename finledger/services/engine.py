"""Ledger consistency engine.

Every transaction mutation goes through :class:`LedgerEngine`, which keeps
account balances and budget spend totals in step with the transactions
that produced them:

- create applies the new transaction's effect,
- update reverses the stored transaction's effect, applies the patch, then
  applies the effect of the patched transaction (possibly against a
  different budget),
- delete reverses the stored transaction's effect on both the balance and
  the matched budget before removing the row.

Each mutation is one unit of work: a single database transaction which
commits only after every sub-effect succeeded. Validation, existence and
ownership are checked before anything is written, and a rejected call
leaves no open transaction behind.
"""

import logging
import uuid
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlmodel import Session

from ..core.errors import (
    LedgerError,
    Unauthorized,
    ValidationError,
    account_not_found,
    transaction_not_found,
)
from ..database import unit_of_work
from ..models.account import Account
from ..models.budget import Budget
from ..models.categories import TransactionType, resolve_category
from ..models.transaction import Transaction, TransactionCreate, TransactionUpdate
from . import ledgers
from .matcher import match_budget


logger = logging.getLogger(__name__)

# Patch fields a client may explicitly clear with null
_NULLABLE_FIELDS = {"description", "recurring_frequency"}


class LedgerEngine:
    def __init__(self, session: Session):
        self.session = session

    def get(self, owner_id: uuid.UUID, transaction_id: uuid.UUID) -> Transaction:
        return self._load_owned(owner_id, transaction_id)

    def create(self, owner_id: uuid.UUID, data: TransactionCreate) -> Transaction:
        with self._unit_of_work("create"):
            if data.bank_account_id is None:
                raise ValidationError("Please provide a bank account")
            category = resolve_category(data.type, data.category)
            _check_amount(data.amount)
            self._require_account(owner_id, data.bank_account_id)

            now = datetime.utcnow()
            transaction = Transaction(
                id=uuid.uuid4(),
                user_id=owner_id,
                bank_account_id=data.bank_account_id,
                type=TransactionType(data.type),
                category=category.value,
                amount=data.amount,
                date=data.date,
                description=data.description,
                is_recurring=data.is_recurring,
                recurring_frequency=data.recurring_frequency,
                created_at=now,
                updated_at=now,
            )
            self.session.add(transaction)
            self.session.flush()
            self._apply(_Effect.of(transaction))

        logger.info(
            "Created %s %s of %s on account %s (owner %s)",
            transaction.type.value,
            transaction.id,
            transaction.amount,
            transaction.bank_account_id,
            owner_id,
        )
        return transaction

    def update(
        self,
        owner_id: uuid.UUID,
        transaction_id: uuid.UUID,
        patch: TransactionUpdate,
    ) -> Transaction:
        with self._unit_of_work("update", transaction_id):
            transaction = self._load_owned(owner_id, transaction_id)
            changes = _changes_from(patch)

            new_type = TransactionType(changes.get("type", transaction.type))
            if "category" in changes or "type" in changes:
                category = resolve_category(new_type, changes.get("category", transaction.category))
                changes["category"] = category.value
                changes["type"] = new_type
            if "amount" in changes:
                _check_amount(changes["amount"])

            self._require_account(owner_id, transaction.bank_account_id)

            # Effect as stored, taken before the patch lands on the row
            original = _Effect.of(transaction)
            self._reverse(original)

            for field, value in changes.items():
                setattr(transaction, field, value)
            transaction.updated_at = datetime.utcnow()
            self.session.add(transaction)
            self.session.flush()

            self._apply(_Effect.of(transaction))

        logger.info(
            "Updated transaction %s (owner %s): %s/%s/%s -> %s/%s/%s",
            transaction.id,
            owner_id,
            original.type.value,
            original.category,
            original.amount,
            transaction.type.value,
            transaction.category,
            transaction.amount,
        )
        return transaction

    def delete(self, owner_id: uuid.UUID, transaction_id: uuid.UUID) -> None:
        with self._unit_of_work("delete", transaction_id):
            transaction = self._load_owned(owner_id, transaction_id)
            self._require_account(owner_id, transaction.bank_account_id)

            self._reverse(_Effect.of(transaction))
            self.session.delete(transaction)
            self.session.flush()

        logger.info("Deleted transaction %s (owner %s)", transaction_id, owner_id)

    def _load_owned(self, owner_id: uuid.UUID, transaction_id: uuid.UUID) -> Transaction:
        transaction = self.session.get(Transaction, transaction_id)
        if transaction is None:
            raise transaction_not_found()
        if transaction.user_id != owner_id:
            raise Unauthorized()
        return transaction

    def _require_account(self, owner_id: uuid.UUID, account_id: uuid.UUID) -> Account:
        account = self.session.get(Account, account_id)
        if account is None or not account.is_active:
            raise account_not_found()
        if account.user_id != owner_id:
            raise Unauthorized()
        return account

    def _apply(self, effect: "_Effect") -> None:
        ledgers.apply_effect(
            self.session, effect.account_id, effect.owner_id, effect.type, effect.amount
        )
        budget = self._match(effect)
        if budget is not None:
            ledgers.apply_spend(self.session, budget.id, effect.amount)

    def _reverse(self, effect: "_Effect") -> None:
        ledgers.reverse_effect(
            self.session, effect.account_id, effect.owner_id, effect.type, effect.amount
        )
        budget = self._match(effect)
        if budget is not None:
            ledgers.reverse_spend(self.session, budget.id, effect.amount)

    def _match(self, effect: "_Effect") -> Optional[Budget]:
        if effect.type is not TransactionType.EXPENSE:
            return None
        budget = match_budget(
            self.session, effect.owner_id, effect.type, effect.category, effect.date
        )
        if budget is not None:
            logger.debug(
                "Expense %s %s on %s matched budget %s",
                effect.category,
                effect.amount,
                effect.date,
                budget.id,
            )
        return budget

    @contextmanager
    def _unit_of_work(self, operation: str, transaction_id: Optional[uuid.UUID] = None):
        try:
            with unit_of_work(self.session):
                yield
        except LedgerError as exc:
            logger.info("Rejected %s of transaction %s: %s", operation, transaction_id, exc.message)
            raise
        except Exception:
            logger.exception("Rolled back %s of transaction %s", operation, transaction_id)
            raise


class _Effect:
    """The fields of a transaction that decide its balance and spend effects."""

    __slots__ = ("owner_id", "account_id", "type", "category", "amount", "date")

    def __init__(self, owner_id, account_id, tx_type, category, amount, date):
        self.owner_id = owner_id
        self.account_id = account_id
        self.type = TransactionType(tx_type)
        self.category = category
        self.amount = Decimal(str(amount))
        self.date = date

    @classmethod
    def of(cls, transaction: Transaction) -> "_Effect":
        return cls(
            transaction.user_id,
            transaction.bank_account_id,
            transaction.type,
            transaction.category,
            transaction.amount,
            transaction.date,
        )


def _changes_from(patch: TransactionUpdate) -> dict:
    changes = {
        field: value
        for field, value in patch.model_dump(exclude_unset=True).items()
        if value is not None or field in _NULLABLE_FIELDS
    }
    if not changes:
        raise ValidationError("No fields to update")
    return changes


def _check_amount(amount: Optional[Decimal]) -> None:
    if amount is None:
        raise ValidationError("Please provide an amount")
    if Decimal(str(amount)) <= 0:
        raise ValidationError("Amount must be greater than zero")
