"""
Soft-delete visibility rules shared by every read and lifecycle path.

Public reads only ever see documents whose ``deleted_at`` is null. Admin reads
see everything plus a derived ``status``. References to dishes held by other
documents (restaurant menus, favorites) are weak: they are resolved at read
time and anything missing or inactive is dropped.
"""
from __future__ import annotations

import logging
from typing import Any, Iterable

from .errors import ConflictError, NotFoundError
from .store.database import Collection, Document, Query, utcnow

logger = logging.getLogger(__name__)

ACTIVE = "active"
DELETED = "deleted"


def active_only(query: Query | None = None) -> Query:
    return {**(query or {}), "deleted_at": None}


def status_query(status: str | None, query: Query | None = None) -> Query:
    """Admin filter: ``active``, ``deleted`` or ``None`` for everything."""
    query = dict(query or {})
    if status == ACTIVE:
        query["deleted_at"] = None
    elif status == DELETED:
        query["deleted_at"] = {"$ne": None}
    return query


def status_of(doc: Document) -> str:
    return DELETED if doc.get("deleted_at") is not None else ACTIVE


def with_status(doc: Document) -> Document:
    return {**doc, "status": status_of(doc)}


def soft_delete(collection: Collection, entity_id: str, label: str) -> Document:
    """Mark an active document deleted. Deleting twice is a conflict."""
    updated = collection.update_one(active_only({"id": entity_id}), {"deleted_at": utcnow()})
    if updated is None:
        if collection.find_one({"id": entity_id}) is None:
            raise NotFoundError(f"{label} not found")
        raise ConflictError(f"{label} is already deleted")
    logger.info("%s %s soft-deleted", label, entity_id)
    return updated


def restore(collection: Collection, entity_id: str, label: str) -> Document:
    """Clear ``deleted_at`` on a deleted document. Restoring an active one is a conflict."""
    updated = collection.update_one(
        {"id": entity_id, "deleted_at": {"$ne": None}}, {"deleted_at": None}
    )
    if updated is None:
        if collection.find_one({"id": entity_id}) is None:
            raise NotFoundError(f"{label} not found")
        raise ConflictError(f"{label} is not deleted")
    logger.info("%s %s restored", label, entity_id)
    return updated


def active_ids(collection: Collection, ids: Iterable[str]) -> set[str]:
    wanted = list(dict.fromkeys(ids))
    if not wanted:
        return set()
    return {d["id"] for d in collection.find(active_only({"id": {"$in": wanted}}))}


def resolve_active(collection: Collection, ids: Iterable[str]) -> list[Document]:
    """Resolve references in their given order, dropping missing or inactive targets."""
    wanted = list(dict.fromkeys(ids))
    if not wanted:
        return []
    found: dict[str, Any] = {
        d["id"]: d for d in collection.find(active_only({"id": {"$in": wanted}}))
    }
    return [found[i] for i in wanted if i in found]
