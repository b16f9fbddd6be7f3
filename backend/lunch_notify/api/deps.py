"""
Request dependencies: caller identity from a bearer JWT, role checks, dispatcher.

Tokens are issued by the app's identity provider (HS256 with AUTH_SECRET) and carry
sub (user id), email and role.
"""
from dataclasses import dataclass

import jwt
from fastapi import Depends, Header

from lunch_notify.config import settings
from lunch_notify.core.constants import ADMIN_ROLES, ROLE_USER, ROLES
from lunch_notify.core.errors import Forbidden, Unauthorized
from lunch_notify.services.dispatcher import Dispatcher, get_dispatcher


@dataclass(frozen=True)
class Caller:
    user_id: str
    email: str = ""
    role: str = ROLE_USER

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES


def decode_caller(token: str, secret: str | None = None) -> Caller:
    try:
        claims = jwt.decode(token, secret or settings.auth_secret, algorithms=["HS256"])
    except jwt.PyJWTError as e:
        raise Unauthorized("Invalid or expired token") from e
    user_id = str(claims.get("sub") or "").strip()
    if not user_id:
        raise Unauthorized("Token has no subject")
    role = claims.get("role") or ROLE_USER
    if role not in ROLES:
        role = ROLE_USER
    return Caller(user_id=user_id, email=claims.get("email") or "", role=role)


def get_caller(authorization: str | None = Header(None)) -> Caller:
    if not authorization:
        raise Unauthorized("Unauthorized")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise Unauthorized("Unauthorized")
    return decode_caller(token.strip())


def require_admin(caller: Caller = Depends(get_caller)) -> Caller:
    if not caller.is_admin:
        raise Forbidden("Admin access required")
    return caller


def dispatcher_dep() -> Dispatcher:
    return get_dispatcher()
