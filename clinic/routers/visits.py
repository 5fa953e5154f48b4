# clinic/routers/visits.py
from fastapi import APIRouter, Depends, status
from typing import List, Optional

from .. import schemas, security
from ..dependencies import get_repositories, unwrap
from ..storage.base import Repositories

router = APIRouter(
    tags=["Visits"],
    dependencies=[Depends(security.require_session)],
)

@router.get("/visits", response_model=List[schemas.Visit])
async def read_visits(patient_id: Optional[str] = None, repos: Repositories = Depends(get_repositories)):
    """Visit history, newest first, optionally for one patient."""
    return await repos.visits.list(patient_id=patient_id)

@router.post("/visits", response_model=schemas.Visit, status_code=status.HTTP_201_CREATED)
async def add_visit(visit: schemas.VisitCreate, repos: Repositories = Depends(get_repositories)):
    return unwrap(await repos.visits.create(visit))
