from enum import Enum
from typing import Union

from ..core.errors import ValidationError


class TransactionType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


class IncomeCategory(str, Enum):
    SALARY = "salary"
    FREELANCE = "freelance"
    INVESTMENT = "investment"
    OTHER_INCOME = "other_income"


class ExpenseCategory(str, Enum):
    FOOD = "food"
    TRANSPORT = "transport"
    HOUSING = "housing"
    UTILITIES = "utilities"
    ENTERTAINMENT = "entertainment"
    HEALTHCARE = "healthcare"
    EDUCATION = "education"
    SHOPPING = "shopping"
    TRAVEL = "travel"
    OTHER_EXPENSE = "other_expense"


class BudgetPeriod(str, Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class RecurringFrequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class AccountType(str, Enum):
    CHECKING = "checking"
    SAVINGS = "savings"
    CREDIT = "credit"
    INVESTMENT = "investment"


Category = Union[IncomeCategory, ExpenseCategory]

_CATEGORIES_BY_TYPE = {
    TransactionType.INCOME: IncomeCategory,
    TransactionType.EXPENSE: ExpenseCategory,
}


def resolve_category(tx_type, category) -> Category:
    """Return ``category`` as the enum member of the variant owned by ``tx_type``.

    Raises ValidationError when the type is unknown, the category is missing,
    or the category belongs to the other variant.
    """
    try:
        tx_type = TransactionType(tx_type)
    except ValueError:
        raise ValidationError(f"Invalid transaction type: {tx_type!r}")
    if category is None or category == "":
        raise ValidationError("Please provide a category")

    variant = _CATEGORIES_BY_TYPE[tx_type]
    raw = category.value if isinstance(category, Enum) else str(category)
    try:
        return variant(raw)
    except ValueError:
        raise ValidationError(
            f"Category {raw!r} is not a valid {tx_type.value} category"
        )


def resolve_expense_category(category) -> ExpenseCategory:
    return resolve_category(TransactionType.EXPENSE, category)
