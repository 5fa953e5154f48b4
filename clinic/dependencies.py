# clinic/dependencies.py
from fastapi import HTTPException, Request, status

from .schemas import Failure, WriteResult
from .services.advice_service import AdviceService
from .storage.base import Repositories
from .storage.stats import StatsAggregator

_FAILURE_STATUS = {
    Failure.not_found: status.HTTP_404_NOT_FOUND,
    Failure.invalid: status.HTTP_422_UNPROCESSABLE_ENTITY,
    Failure.backend: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def get_repositories(request: Request) -> Repositories:
    return request.app.state.repositories

def get_stats_aggregator(request: Request) -> StatsAggregator:
    return request.app.state.stats

def get_advice_service(request: Request) -> AdviceService:
    return request.app.state.advice


def unwrap(result: WriteResult):
    """Return the written value or raise the matching HTTP error."""
    if not result.ok:
        raise HTTPException(status_code=_FAILURE_STATUS[result.failure], detail=result.detail)
    return result.value
