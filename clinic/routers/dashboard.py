# clinic/routers/dashboard.py
from fastapi import APIRouter, Depends, Request
from typing import Any, Dict

from .. import schemas, security
from ..dependencies import get_stats_aggregator
from ..storage.stats import StatsAggregator

router = APIRouter(
    tags=["Dashboard"],
    dependencies=[Depends(security.require_session)],
)

@router.get("/dashboard/stats", response_model=schemas.DashboardStats)
async def get_dashboard_stats(stats: StatsAggregator = Depends(get_stats_aggregator)):
    return await stats.compute_stats()

@router.get("/finance/summary", response_model=schemas.FinanceSummary)
async def get_finance_summary(stats: StatsAggregator = Depends(get_stats_aggregator)):
    return await stats.compute_finance_summary()

@router.get("/meta")
async def get_meta(request: Request) -> Dict[str, Any]:
    """Clinic identity and the suggestion lists used by the forms."""
    settings = request.app.state.settings
    return {
        "clinicName": settings.clinic_name,
        "doctorName": settings.doctor_name,
        "doctorDegree": settings.doctor_degree,
        "currencySymbol": settings.currency_symbol,
        "backend": request.app.state.repositories.backend,
        "bloodGroups": schemas.BLOOD_GROUPS,
        "presetDosages": schemas.PRESET_DOSAGES,
        "expenseCategories": schemas.EXPENSE_CATEGORIES,
        "inventoryTypes": [t.value for t in schemas.InventoryType],
    }
