# clinic/routers/advice.py
from fastapi import APIRouter, Depends

from .. import schemas, security
from ..dependencies import get_advice_service
from ..services.advice_service import AdviceService

router = APIRouter(
    prefix="/advice",
    tags=["Advice"],
    dependencies=[Depends(security.require_session)],
)

@router.post("/health", response_model=schemas.TextResponse)
async def health_advice(payload: schemas.HealthAdviceRequest, advice: AdviceService = Depends(get_advice_service)):
    return schemas.TextResponse(text=await advice.get_health_advice(payload.symptoms, payload.diagnosis))

@router.post("/summary", response_model=schemas.TextResponse)
async def summarize_notes(payload: schemas.NotesSummaryRequest, advice: AdviceService = Depends(get_advice_service)):
    return schemas.TextResponse(text=await advice.summarize_notes(payload.notes))
