# clinic/storage/stats.py
import asyncio
import logging
from datetime import date
from typing import Optional

from .. import schemas
from ..mappers import is_low_stock
from .base import Repositories

logger = logging.getLogger(__name__)


def today_str() -> str:
    """Caller's local calendar date, YYYY-MM-DD (same form as stored dates)."""
    return date.today().isoformat()


class StatsAggregator:
    """Derives dashboard and finance figures from the repositories' summarizing queries."""

    def __init__(self, repositories: Repositories):
        self.repositories = repositories

    async def compute_stats(self, today: Optional[str] = None) -> schemas.DashboardStats:
        repos = self.repositories
        day = today or today_str()
        # Independent queries; each degrades to zero/empty on its own
        total_patients, total_visits, today_appointments, fees, levels = await asyncio.gather(
            repos.patients.count(),
            repos.visits.count(),
            repos.appointments.count_for_date(day),
            repos.visits.list_fees(),
            repos.inventory.stock_levels(),
        )
        stats = schemas.DashboardStats(
            total_patients=total_patients,
            total_visits=total_visits,
            today_appointments=today_appointments,
            total_revenue=sum(fees, 0.0),
            low_stock_items=sum(1 for level in levels if is_low_stock(level)),
        )
        logger.debug(f"Dashboard stats for {day}: {stats.model_dump()}")
        return stats

    async def compute_finance_summary(self) -> schemas.FinanceSummary:
        fees, amounts = await asyncio.gather(
            self.repositories.visits.list_fees(),
            self.repositories.expenses.list_amounts(),
        )
        income = sum(fees, 0.0)
        expenses = sum(amounts, 0.0)
        return schemas.FinanceSummary(
            total_income=income,
            total_expenses=expenses,
            net_profit=income - expenses,
            visit_count=len(fees),
            expense_count=len(amounts),
        )
