from __future__ import annotations

from typing import Any

import bcrypt

from ..softdelete import active_only
from ..store.database import get_store, utcnow

ROLE_GUEST = "guest"
ROLE_ADMIN = "admin"

_DEMO_ACCOUNTS = {
    "user": ("user123", ROLE_GUEST, "Demo User"),
    "admin": ("admin123", ROLE_ADMIN, "Demo Admin"),
}


def hash_password(plain: str) -> str:
    return bcrypt.hashpw(plain.encode(), bcrypt.gensalt()).decode()


def _verify_password(plain: str, hashed: str) -> bool:
    return bcrypt.checkpw(plain.encode(), hashed.encode())


# Hashed once per process; reseeding an emptied database reuses them
_DEMO_HASHES = {name: hash_password(password) for name, (password, _, _) in _DEMO_ACCOUNTS.items()}


def seed_users() -> None:
    """Insert the demo accounts if they are missing."""
    users = get_store().users
    for username, (_, role, name) in _DEMO_ACCOUNTS.items():
        if users.find_one({"username": username}) is None:
            now = utcnow()
            users.insert_one({
                "id": f"usr_{username}",
                "username": username,
                "name": name,
                "email": f"{username}@example.com",
                "password_hash": _DEMO_HASHES[username],
                "role": role,
                "is_locked": False,
                "favorites": [],
                "created_at": now,
                "updated_at": now,
                "deleted_at": None,
            })


def authenticate(username: str, password: str) -> dict[str, Any] | None:
    """
    Verify credentials against non-deleted accounts.

    Returns ``{id, username, role, is_locked}`` or ``None``. Locked accounts
    still authenticate here; the caller decides how to refuse them.
    """
    record = get_store().users.find_one(active_only({"username": username}))
    if record and _verify_password(password, record["password_hash"]):
        return {
            "id": record["id"],
            "username": username,
            "role": record["role"],
            "is_locked": record.get("is_locked", False),
        }
    return None
