from typing import Optional, Protocol
from jose import JWTError, jwt
from pinme.core.config import settings
import logging

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"


class IdentityProvider(Protocol):
    def current_user_id(self) -> Optional[str]: ...


class StaticIdentity:
    """Identity fixed at construction time. ``None`` means nobody is signed in."""

    def __init__(self, user_id: Optional[str] = None):
        self._user_id = str(user_id) if user_id else None

    def current_user_id(self) -> Optional[str]:
        return self._user_id


def decode_user_id(token: Optional[str]) -> Optional[str]:
    """Returns the ``sub`` claim of a valid token, otherwise None (treated as signed out)."""
    if not token:
        return None
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.warning(f"⚠️ Rejected access token: {e}")
        return None
    sub = payload.get("sub")
    return str(sub) if sub else None
