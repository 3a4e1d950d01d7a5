"""Monthly summary recalculation"""

import logging
from datetime import datetime, timezone
from typing import Iterable, List

from sqlalchemy.orm import Session

from billing_ledger.domain.models import Period
from billing_ledger.domain.summary import summarize_month
from billing_ledger.infrastructure.database.models import MonthlySummary
from billing_ledger.infrastructure.database.repositories import (
    InstallmentRepository,
    MonthlySummaryRepository,
    TransactionRepository,
)
from billing_ledger.infrastructure.database.session import unit_of_work
from billing_ledger.infrastructure.observability.metrics import summary_recalculation_counter
from billing_ledger.utils.date_utils import month_bounds

logger = logging.getLogger(__name__)


class MonthlySummaryService:
    """Derives per-user monthly totals from transactions and unpaid installments"""

    def __init__(self, db: Session):
        self.db = db
        self.summaries = MonthlySummaryRepository(db)
        self.transactions = TransactionRepository(db)
        self.installments = InstallmentRepository(db)

    def recalculate(self, user_id: str, month: int, year: int) -> MonthlySummary:
        """
        Rebuild the (user, month) summary from scratch and upsert it.

        Idempotent: with unchanged inputs only last_calculated_at moves.
        """
        start, end = month_bounds(month, year)

        transactions = self.transactions.list_between(user_id, start, end)
        bills = self.installments.list_unpaid_due_between(user_id, start, end)

        totals = summarize_month(
            ((txn.type, txn.value) for txn in transactions),
            (installment.amount for installment in bills),
        )

        with unit_of_work(self.db):
            summary = self.summaries.upsert(user_id, month, year, totals, datetime.now(timezone.utc))

        summary_recalculation_counter.labels(status=totals.status.value).inc()
        logger.info(
            "Monthly summary recalculated",
            extra={
                "user_id": user_id,
                "reference_month": month,
                "reference_year": year,
                "status": totals.status.value,
                "bills_count": totals.bills_count,
            },
        )
        return summary

    def recalculate_many(self, user_id: str, periods: Iterable[Period]) -> List[MonthlySummary]:
        """Recalculate each distinct period once, in the given order"""
        results = []
        seen = set()
        for period in periods:
            if period in seen:
                continue
            seen.add(period)
            results.append(self.recalculate(user_id, period.month, period.year))
        return results

    def get_summary(self, user_id: str, month: int, year: int) -> MonthlySummary:
        """Cached summary for the period, computed on first access"""
        summary = self.summaries.get(user_id, month, year)
        if summary is None:
            summary = self.recalculate(user_id, month, year)
        return summary
