"""
Dish version history and revert.

Every edit first appends a snapshot of the dish's content *before* the edit,
then applies the edit, in one atomic write. A revert does the same: the
current content is snapshotted (so the revert can itself be undone) and the
requested version's content is written back. Entries are only ever appended;
version numbers are ``len(history) + 1`` at append time.
"""
from __future__ import annotations

import copy
import logging
from typing import Any

from ..errors import NotFoundError, ValidationFailure
from ..softdelete import active_only
from ..store.database import Document, get_store, utcnow
from .models import MUTABLE_FIELDS, DishOut, DishUpdate

logger = logging.getLogger(__name__)


def snapshot(doc: Document) -> dict[str, Any]:
    """Capture the dish's content fields."""
    return {f: copy.deepcopy(doc.get(f)) for f in MUTABLE_FIELDS}


def _append_history(doc: Document, actor_id: str) -> int:
    history = doc.setdefault("history", [])
    version = len(history) + 1
    history.append({
        "version": version,
        "data": snapshot(doc),
        "modified_by": actor_id,
        "modified_at": utcnow(),
    })
    return version


def _check_merged_prices(doc: Document) -> None:
    min_price, max_price = doc.get("min_price"), doc.get("max_price")
    if min_price is not None and max_price is not None and min_price > max_price:
        raise ValidationFailure("Min price cannot be greater than max price")


def update_dish(dish_id: str, changes: DishUpdate, actor_id: str) -> DishOut:
    fields = changes.model_dump(exclude_unset=True)
    if not fields:
        raise ValidationFailure("No fields to update")

    def apply(doc: Document) -> None:
        _append_history(doc, actor_id)
        doc.update(fields)
        _check_merged_prices(doc)
        doc["updated_at"] = utcnow()

    doc = get_store().dishes.modify_one(active_only({"id": dish_id}), apply)
    if doc is None:
        raise NotFoundError("Dish not found")
    logger.info("Dish %s updated by %s (history length %d)", dish_id, actor_id, len(doc["history"]))
    return DishOut.model_validate(doc)


def revert_dish(dish_id: str, version: int, actor_id: str) -> DishOut:
    def apply(doc: Document) -> None:
        target = next((h for h in doc.get("history", []) if h["version"] == version), None)
        if target is None:
            raise NotFoundError("Version not found", version=version)
        _append_history(doc, actor_id)
        doc.update(copy.deepcopy(target["data"]))
        doc["updated_at"] = utcnow()

    doc = get_store().dishes.modify_one(active_only({"id": dish_id}), apply)
    if doc is None:
        raise NotFoundError("Dish not found")
    logger.info("Dish %s reverted to version %d by %s", dish_id, version, actor_id)
    return DishOut.model_validate(doc)
