"""
Identity provider adapter: JWT bearer tokens (or the auth cookie) carrying `sub` and `roles`.
Tokens are issued by the identity provider; create_jwt mints equivalent tokens for operators and tests.
"""
import logging
import time
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, Optional

import jwt
from fastapi import Depends, HTTPException, Request

from docreach.config import settings
from docreach.core.errors import ForbiddenError
from docreach.db.models import Role

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Caller:
    id: str
    roles: FrozenSet[Role] = field(default_factory=frozenset)

    def has_role(self, role: Role) -> bool:
        return role in self.roles


def create_jwt(user_id: str, roles: Iterable[Role], max_age_seconds: Optional[int] = None) -> str:
    now = int(time.time())
    payload = {
        "sub": user_id,
        "roles": [Role(r).value for r in roles],
        "exp": now + (max_age_seconds or settings.auth_token_max_age_seconds),
        "iat": now,
    }
    return jwt.encode(payload, settings.auth_secret_key, algorithm=settings.auth_algorithm)


def decode_jwt(token: str) -> Optional[dict]:
    try:
        return jwt.decode(token, settings.auth_secret_key, algorithms=[settings.auth_algorithm])
    except jwt.PyJWTError as e:
        logger.debug("JWT decode failed: %s", e)
        return None


def get_token_from_request(request: Request) -> Optional[str]:
    """Bearer token from the Authorization header, falling back to the auth cookie."""
    header = request.headers.get("authorization") or ""
    scheme, _, value = header.partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()
    return request.cookies.get(settings.auth_cookie_name)


def _parse_roles(raw) -> FrozenSet[Role]:
    if isinstance(raw, str):
        raw = [raw]
    roles = set()
    for r in raw or []:
        try:
            roles.add(Role(r))
        except ValueError:
            logger.debug("Ignoring unknown role claim %r", r)
    return frozenset(roles)


def get_current_caller(request: Request) -> Caller:
    """FastAPI dependency: the authenticated caller, or 401."""
    token = get_token_from_request(request)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")
    payload = decode_jwt(token)
    if not payload or not payload.get("sub"):
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return Caller(id=str(payload["sub"]), roles=_parse_roles(payload.get("roles")))


def require_role(*roles: Role):
    """Dependency factory: caller must hold at least one of roles."""

    def _dependency(caller: Caller = Depends(get_current_caller)) -> Caller:
        if not any(caller.has_role(r) for r in roles):
            raise ForbiddenError(
                f"Requires role: {' or '.join(r.value for r in roles)}",
                details={"caller_id": caller.id, "required_roles": [r.value for r in roles]},
            )
        return caller

    return _dependency
