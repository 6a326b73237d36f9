import logging
import re
from dataclasses import dataclass, field
from typing import FrozenSet

from fastapi import Depends, HTTPException, Request, status

from ..config import ADMIN_ROLE

log = logging.getLogger("job_pipeline.auth")


@dataclass(frozen=True)
class ActingUser:
    """The authenticated caller, as established by the gateway in front of the service"""
    id: int
    roles: FrozenSet[str] = field(default_factory=frozenset)


def _norm_roles(val: str) -> FrozenSet[str]:
    if not val:
        return frozenset()
    parts = re.split(r"[\s,]+", val.strip())
    return frozenset(p.lower() for p in parts if p)


def get_acting_user(request: Request) -> ActingUser:
    raw_id = (request.headers.get("X-User-Id") or "").strip()
    if not raw_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing X-User-Id")
    try:
        user_id = int(raw_id)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid X-User-Id")
    if user_id <= 0:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid X-User-Id")

    user = ActingUser(id=user_id, roles=_norm_roles(request.headers.get("X-User-Roles", "")))
    return user


def require_roles(*allowed: str):
    allowed_set = {r.lower() for r in allowed}

    def dep(user: ActingUser = Depends(get_acting_user)) -> ActingUser:
        if user.roles & allowed_set:
            return user
        log.warning("AUTH: role denied, need=%s have=%s", sorted(allowed_set), sorted(user.roles))
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="forbidden: missing role")

    return dep


def require_admin():
    """Require the admin role specifically"""
    return require_roles(ADMIN_ROLE)
