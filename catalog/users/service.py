from __future__ import annotations

import logging
import re
from typing import Any

from pymongo.errors import DuplicateKeyError

from ..auth.users import ROLE_ADMIN, hash_password
from ..config import DEFAULT_CATALOG_CONFIG, CatalogConfig
from ..errors import ConflictError, NotFoundError, ValidationFailure
from ..pagination import normalize_page, paginate, parse_sort, sort_documents
from ..softdelete import active_only, restore, soft_delete, status_query, with_status
from ..store.database import Document, get_store, utcnow
from .models import USER_SORT_KEYS, UserCreate, UserListResponse, UserOut, UserUpdate

logger = logging.getLogger(__name__)


def _to_out(doc: Document) -> UserOut:
    return UserOut.model_validate({
        **with_status(doc),
        "favorite_count": len(doc.get("favorites", [])),
    })


def _check_self_change(user_id: str, actor_id: str, fields: dict[str, Any]) -> None:
    """An admin may not lock or demote the account they are signed in with."""
    if user_id != actor_id:
        return
    if fields.get("is_locked"):
        raise ValidationFailure("You cannot lock your own account")
    if "role" in fields and fields["role"] != ROLE_ADMIN:
        raise ValidationFailure("You cannot remove your own admin role")


def create_user(data: UserCreate) -> UserOut:
    now = utcnow()
    try:
        doc = get_store().users.insert_one({
            "username": data.username,
            "name": data.name.strip(),
            "email": data.email.lower(),
            "password_hash": hash_password(data.password),
            "role": data.role,
            "is_locked": data.is_locked,
            "favorites": [],
            "created_at": now,
            "updated_at": now,
            "deleted_at": None,
        })
    except DuplicateKeyError:
        raise ConflictError("Username is already taken", username=data.username)
    logger.info("User %s created with role %s", doc["id"], doc["role"])
    return _to_out(doc)


def list_users(
    status: str | None = None,
    role: str | None = None,
    search: str | None = None,
    sort_by: str | None = None,
    page: int | None = None,
    limit: int | None = None,
    config: CatalogConfig = DEFAULT_CATALOG_CONFIG,
) -> UserListResponse:
    key, descending = parse_sort(sort_by, USER_SORT_KEYS)
    page, limit = normalize_page(page, limit, config=config)

    query = status_query(status)
    if role:
        query["role"] = role
    if search and search.strip():
        pattern = {"$regex": re.escape(search.strip()), "$options": "i"}
        query["$or"] = [{"username": pattern}, {"name": pattern}, {"email": pattern}]

    docs = get_store().users.find(query)
    items, pagination = paginate(sort_documents(docs, key, descending), page, limit)
    return UserListResponse(users=[_to_out(d) for d in items], pagination=pagination)


def get_user(user_id: str) -> UserOut:
    doc = get_store().users.find_one({"id": user_id})
    if doc is None:
        raise NotFoundError("User not found")
    return _to_out(doc)


def update_user(user_id: str, changes: UserUpdate, actor_id: str) -> UserOut:
    fields = changes.model_dump(exclude_unset=True)
    if not fields:
        raise ValidationFailure("No fields to update")
    _check_self_change(user_id, actor_id, fields)
    if "password" in fields:
        fields["password_hash"] = hash_password(fields.pop("password"))
    if "email" in fields:
        fields["email"] = fields["email"].lower()

    def apply(doc: Document) -> None:
        doc.update(fields)
        doc["updated_at"] = utcnow()

    doc = get_store().users.modify_one(active_only({"id": user_id}), apply)
    if doc is None:
        raise NotFoundError("User not found or soft-deleted")
    logger.info("User %s updated by %s (%s)", user_id, actor_id, ", ".join(sorted(fields)))
    return _to_out(doc)


def update_user_role(user_id: str, role: str, actor_id: str) -> UserOut:
    return update_user(user_id, UserUpdate(role=role), actor_id)


def toggle_user_lock(user_id: str, actor_id: str) -> UserOut:
    if user_id == actor_id:
        raise ValidationFailure("You cannot lock your own account")

    def apply(doc: Document) -> None:
        doc["is_locked"] = not doc.get("is_locked", False)
        doc["updated_at"] = utcnow()

    doc = get_store().users.modify_one(active_only({"id": user_id}), apply)
    if doc is None:
        raise NotFoundError("User not found or soft-deleted")
    logger.info("User %s %s by %s", user_id, "locked" if doc["is_locked"] else "unlocked", actor_id)
    return _to_out(doc)


def soft_delete_user(user_id: str, actor_id: str) -> UserOut:
    if user_id == actor_id:
        raise ValidationFailure("You cannot delete your own account")
    return _to_out(soft_delete(get_store().users, user_id, "User"))


def restore_user(user_id: str) -> UserOut:
    return _to_out(restore(get_store().users, user_id, "User"))
