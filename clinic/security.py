# clinic/security.py - Shared-PIN session context
import logging
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional, Set

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

from .config import Settings
from .storage.base import StorageError
from .storage.kv import KeyValueStore

security_logger = logging.getLogger("security")

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

PIN_KEY = "clinic_pin"
MIN_PIN_LENGTH = 4

bearer_scheme = HTTPBearer(auto_error=False)


class PinChangeError(ValueError):
    pass


class SessionManager:
    """
    Explicit session context for the single shared clinic PIN.

    ``login`` exchanges the PIN for a signed token, ``verify`` checks a token,
    ``logout`` revokes it. The PIN itself is stored hashed under
    ``clinic_pin`` in the key/value store and seeded from settings on first use.
    """

    def __init__(self, store: KeyValueStore, secret_key: str, algorithm: str = "HS256",
                 expire_minutes: int = 720, default_pin: str = "1234"):
        self.store = store
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.expire_minutes = expire_minutes
        self.default_pin = default_pin
        self._revoked: Set[str] = set()

    @classmethod
    def from_settings(cls, settings: Settings, store: KeyValueStore) -> "SessionManager":
        return cls(
            store,
            secret_key=settings.secret_key or secrets.token_urlsafe(32),
            algorithm=settings.algorithm,
            expire_minutes=settings.session_expire_minutes,
            default_pin=settings.clinic_pin,
        )

    async def _pin_hash(self) -> str:
        stored = await self.store.get(PIN_KEY)
        if stored:
            return stored
        hashed = pwd_context.hash(self.default_pin)
        await self.store.set(PIN_KEY, hashed)
        return hashed

    async def check_pin(self, pin: str) -> bool:
        try:
            hashed = await self._pin_hash()
        except (StorageError, OSError) as e:
            security_logger.error(f"Could not read the clinic PIN: {e}")
            return False
        return pwd_context.verify(pin, hashed)

    async def login(self, pin: str) -> Optional[str]:
        if not await self.check_pin(pin):
            security_logger.warning("Rejected login with incorrect PIN")
            return None
        expire = datetime.now(timezone.utc) + timedelta(minutes=self.expire_minutes)
        token = jwt.encode(
            {"sub": "clinic", "jti": uuid.uuid4().hex, "exp": expire},
            self.secret_key,
            algorithm=self.algorithm,
        )
        security_logger.info("Clinic session opened")
        return token

    def _claims(self, token: str) -> Optional[dict]:
        try:
            claims = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError:
            return None
        if claims.get("jti") in self._revoked:
            return None
        return claims

    def verify(self, token: str) -> bool:
        return self._claims(token) is not None

    def logout(self, token: str) -> bool:
        claims = self._claims(token)
        if claims is None:
            return False
        self._revoked.add(claims["jti"])
        security_logger.info("Clinic session closed")
        return True

    async def change_pin(self, current_pin: str, new_pin: str, confirm_pin: str) -> None:
        if not await self.check_pin(current_pin):
            raise PinChangeError("Current PIN is incorrect.")
        if len(new_pin) < MIN_PIN_LENGTH or not new_pin.isdigit():
            raise PinChangeError(f"New PIN must be at least {MIN_PIN_LENGTH} digits.")
        if new_pin != confirm_pin:
            raise PinChangeError("New PIN and confirmation do not match.")
        try:
            await self.store.set(PIN_KEY, pwd_context.hash(new_pin))
        except (StorageError, OSError) as e:
            security_logger.error(f"Could not store the new clinic PIN: {e}")
            raise PinChangeError("The new PIN could not be saved.") from e
        security_logger.info("Clinic PIN changed")


# ==================== FASTAPI DEPENDENCIES ====================

def get_session_manager(request: Request) -> SessionManager:
    return request.app.state.sessions

async def require_session(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    sessions: SessionManager = Depends(get_session_manager),
) -> str:
    if credentials is None or not sessions.verify(credentials.credentials):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return credentials.credentials
