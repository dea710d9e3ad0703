import logging
import uuid
from datetime import date
from typing import Optional

from sqlmodel import Session, select

from ..models.budget import Budget
from ..models.categories import TransactionType


logger = logging.getLogger(__name__)


def match_budget(
    session: Session,
    owner_id: uuid.UUID,
    tx_type,
    category,
    on_date: date,
) -> Optional[Budget]:
    """Find the active budget tracking an expense of ``category`` on ``on_date``.

    Income never matches. The window is inclusive at both ends. When several
    active budgets overlap, the most recently created one wins (larger id on
    an exact created_at tie).
    """
    if TransactionType(tx_type) is not TransactionType.EXPENSE:
        return None

    category = getattr(category, "value", category)
    stmt = (
        select(Budget)
        .where(
            Budget.user_id == owner_id,
            Budget.category == category,
            Budget.is_active == True,  # noqa: E712
            Budget.start_date <= on_date,
            Budget.end_date >= on_date,
        )
        .order_by(Budget.created_at.desc(), Budget.id.desc())
        .limit(2)
    )
    candidates = list(session.exec(stmt).all())
    if not candidates:
        logger.debug("No budget for %s on %s (owner %s)", category, on_date, owner_id)
        return None
    if len(candidates) > 1:
        logger.warning(
            "Overlapping active budgets for %s on %s (owner %s); using %s",
            category,
            on_date,
            owner_id,
            candidates[0].id,
        )
    return candidates[0]
