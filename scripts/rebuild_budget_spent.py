"""Rebuild every budget's spent total from the transactions it tracks.

Repairs budgets whose cached total drifted (for example after a
ConsistencyWarning clamp). Usage: python scripts/rebuild_budget_spent.py [--dry-run]
"""

import sys
from pathlib import Path

# Ensure project root is on sys.path
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from sqlmodel import Session, select

from finledger.config import settings
from finledger.database import engine, unit_of_work
from finledger.models.budget import Budget
from finledger.services.ledgers import recompute_spent


def main(dry_run: bool = False):
    print(f"Database URL: {settings.database_url}")
    changed = 0
    with Session(engine) as session:
        with unit_of_work(session):
            for budget in session.exec(select(Budget).where(Budget.is_active == True)).all():  # noqa: E712
                before = budget.spent
                after = recompute_spent(session, budget)
                if before != after:
                    changed += 1
                    print(f"Budget {budget.id} ({budget.category}): {before} -> {after}")
            if dry_run:
                session.rollback()
                print(f"Dry run: {changed} budget(s) would change.")
                return
    print(f"Done. {changed} budget(s) updated.")


if __name__ == "__main__":
    main(dry_run="--dry-run" in sys.argv[1:])
