"""
Ledger collaborator adapter.
Supplies per-user, per-day income and expense totals for daily snapshots.
"""
from datetime import date
from typing import NamedTuple
from sqlalchemy import func
from sqlalchemy.orm import Session

from orbit.constants import LEDGER_TYPE_INCOME, LEDGER_TYPE_EXPENSE
from orbit.models import LedgerTransaction


class LedgerTotals(NamedTuple):
    income: float
    expense: float

    @property
    def net(self) -> float:
        return self.income - self.expense


class LedgerService:
    """Reads day totals from the ledger's transactions table"""

    def __init__(self, db: Session):
        self.db = db

    def get_day_totals(self, user_id: str, logical_day: date) -> LedgerTotals:
        rows = self.db.query(
            LedgerTransaction.type,
            func.coalesce(func.sum(LedgerTransaction.amount), 0.0)
        ).filter(
            LedgerTransaction.user_id == user_id,
            LedgerTransaction.logical_day == logical_day
        ).group_by(LedgerTransaction.type).all()

        totals = {entry_type: float(amount) for entry_type, amount in rows}
        return LedgerTotals(
            income=totals.get(LEDGER_TYPE_INCOME, 0.0),
            expense=totals.get(LEDGER_TYPE_EXPENSE, 0.0)
        )
