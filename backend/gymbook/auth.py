"""Bearer-token authentication and the request principal."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import logging
from typing import Any, Dict, Optional, cast

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
import jwt
from jwt import PyJWTError

from .core.config import settings
from .core.enums import RoleName
from .core.exceptions import ForbiddenException, UnauthorizedException

logger = logging.getLogger(__name__)

oauth2_scheme_optional = OAuth2PasswordBearer(tokenUrl="auth/login", auto_error=False)

STAFF_ROLES = frozenset({RoleName.ADMIN.value, RoleName.STAFF.value})


@dataclass(frozen=True)
class Principal:
    """Authenticated caller resolved from the bearer token."""

    uid: str
    role: str = RoleName.MEMBER.value
    email: Optional[str] = None

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token.

    ``data`` must carry ``sub`` (the user id) and may carry ``role`` and ``email``.
    """
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(
        to_encode, settings.jwt_secret_key.get_secret_value(), algorithm=settings.jwt_algorithm
    )


def decode_access_token(token: str) -> Dict[str, Any]:
    payload = jwt.decode(
        token,
        settings.jwt_secret_key.get_secret_value(),
        algorithms=[settings.jwt_algorithm],
    )
    return cast(Dict[str, Any], payload)


def get_optional_principal(
    token: Optional[str] = Depends(oauth2_scheme_optional),
) -> Optional[Principal]:
    if not token:
        return None
    try:
        payload = decode_access_token(token)
    except PyJWTError as e:
        logger.info(f"Rejected bearer token: {str(e)}")
        raise UnauthorizedException("Could not validate credentials")

    uid = payload.get("sub")
    if not uid:
        raise UnauthorizedException("Could not validate credentials")
    role = str(payload.get("role") or RoleName.MEMBER.value).lower()
    if role not in {r.value for r in RoleName}:
        role = RoleName.MEMBER.value
    return Principal(uid=str(uid), role=role, email=payload.get("email"))


def get_current_principal(
    principal: Optional[Principal] = Depends(get_optional_principal),
) -> Principal:
    if principal is None:
        raise UnauthorizedException("You must be logged in.")
    return principal


def require_staff(principal: Principal = Depends(get_current_principal)) -> Principal:
    if not principal.is_staff:
        raise ForbiddenException("Staff access required.")
    return principal
