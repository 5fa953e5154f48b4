# clinic/routers/auth.py
import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status

from .. import schemas, security
from ..security import SessionManager, get_session_manager

logger = logging.getLogger(__name__)


router = APIRouter(
    prefix="/auth",
    tags=["Authentication"]
)

@router.post("/login", response_model=schemas.TokenResponse)
async def login(payload: schemas.LoginRequest, sessions: SessionManager = Depends(get_session_manager)):
    token = await sessions.login(payload.pin)
    if token is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect PIN",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return schemas.TokenResponse(access_token=token, expires_in=sessions.expire_minutes * 60)

@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(token: str = Depends(security.require_session),
                 sessions: SessionManager = Depends(get_session_manager)):
    sessions.logout(token)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

@router.post("/pin", status_code=status.HTTP_204_NO_CONTENT)
async def change_pin(payload: schemas.PinChangeRequest,
                     token: str = Depends(security.require_session),
                     sessions: SessionManager = Depends(get_session_manager)):
    try:
        await sessions.change_pin(payload.current_pin, payload.new_pin, payload.confirm_pin)
    except security.PinChangeError as e:
        logger.warning(f"PIN change rejected: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
