from __future__ import annotations

from typing import Any

from fastapi import Depends, HTTPException, Request

from ..softdelete import active_only
from ..store.database import get_store
from .users import ROLE_ADMIN

SESSION_KEY = "user_id"


def _session_user(request: Request) -> dict[str, Any] | None:
    """
    Resolve the session's user id against the users collection.

    Sessions only carry the id, so a role change, a lock or a deleted account
    takes effect on the next request rather than when the cookie expires.
    """
    user_id = request.session.get(SESSION_KEY)
    if not user_id:
        return None
    record = get_store().users.find_one(active_only({"id": user_id}))
    if record is None or record.get("is_locked"):
        request.session.pop(SESSION_KEY, None)
        return None
    return {"id": record["id"], "username": record["username"], "role": record["role"]}


def get_current_user(request: Request) -> dict | None:
    """Return the logged-in user, or ``None``."""
    return _session_user(request)


def require_user(request: Request) -> dict:
    """Raise 401 if no user is logged in."""
    user = _session_user(request)
    if not user:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user


def require_admin(user: dict = Depends(require_user)) -> dict:
    """Raise 403 unless the logged-in user is an admin."""
    if user.get("role") != ROLE_ADMIN:
        raise HTTPException(status_code=403, detail="Admin access required")
    return user
