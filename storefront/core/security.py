"""
Caller identity

Tokens are issued elsewhere; this module only verifies the bearer token and
turns its claims into a ``CurrentUser``.
"""
from enum import Enum
from typing import Any, Dict, Optional

from jose import JWTError, jwt
from pydantic import BaseModel

from storefront.core.config import Settings
from storefront.core.exceptions import AuthenticationException
from storefront.core.logging import AuditLogger


class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"


class CurrentUser(BaseModel):
    id: str
    role: UserRole = UserRole.USER

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


def decode_access_token(token: str, settings: Settings) -> Dict[str, Any]:
    try:
        return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as e:
        AuditLogger.log_security_event("TOKEN_REJECTED", None, {"error": str(e)})
        raise AuthenticationException("Invalid or expired token")


def user_from_token(token: Optional[str], settings: Settings) -> CurrentUser:
    if not token:
        raise AuthenticationException()

    payload = decode_access_token(token, settings)
    user_id = payload.get("id") or payload.get("sub")
    if not user_id:
        raise AuthenticationException("Token carries no user id")

    role = str(payload.get("role", UserRole.USER.value)).lower()
    if role not in (UserRole.USER.value, UserRole.ADMIN.value):
        raise AuthenticationException("Unknown role")

    return CurrentUser(id=str(user_id), role=UserRole(role))
