"""
Rating aggregation.

``average_rating`` and ``review_count`` on dishes and restaurants are derived
fields. They are only ever written here, and always by a full recompute over
the target's currently visible reviews: whichever recompute runs last sees
the true review set, so concurrent or out-of-order review mutations cannot
leave the aggregate double-counted or drifted.
"""
from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from ..analytics.store import record_event
from ..config import DEFAULT_CATALOG_CONFIG, CatalogConfig
from ..errors import ConsistencyFailure
from ..store.database import Document, Query, get_store

logger = logging.getLogger(__name__)

RATING_INCONSISTENCY = "rating_inconsistency"


def visible_reviews_query(target_field: str, target_id: str) -> Query:
    """The one visibility rule shared by review listings and aggregates."""
    return {target_field: target_id, "deleted_at": None}


def summarize(ratings: Iterable[int]) -> tuple[float, int]:
    """Mean rounded half-up to one decimal, and count. ``(0.0, 0)`` when empty."""
    values = list(ratings)
    if not values:
        return 0.0, 0
    mean = Decimal(sum(values)) / Decimal(len(values))
    return float(mean.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)), len(values)


def _recompute(target_field: str, collection_name: str, target_id: str) -> tuple[float, int]:
    """
    Rewrite the aggregate on one target from its visible reviews.

    The reviews are read inside the target's read-modify-write, so a
    recompute that read an older review set can never be the last writer.
    """
    store = get_store()

    def apply(doc: Document) -> None:
        reviews = store.reviews.find(visible_reviews_query(target_field, target_id))
        doc["average_rating"], doc["review_count"] = summarize(r["rating"] for r in reviews)

    collection = getattr(store, collection_name)
    updated = collection.modify_one({"id": target_id}, apply)
    if updated is None:
        raise ConsistencyFailure(
            f"{collection_name} record {target_id} is missing; rating aggregate not written",
            target_id=target_id,
        )
    return updated["average_rating"], updated["review_count"]


def recompute_dish_rating(dish_id: str) -> tuple[float, int]:
    return _recompute("dish_id", "dishes", dish_id)


def recompute_restaurant_rating(restaurant_id: str) -> tuple[float, int]:
    return _recompute("restaurant_id", "restaurants", restaurant_id)


def refresh_rating(review: Document, config: CatalogConfig = DEFAULT_CATALOG_CONFIG) -> bool:
    """
    Recompute the aggregate on the review's target after a review mutation.

    Failures are retried and, if they persist, logged and recorded as a
    ``rating_inconsistency`` event. They never propagate: the review mutation
    that triggered the recompute has already been committed.
    """
    if review.get("dish_id"):
        kind, target_id, recompute = "dish", review["dish_id"], recompute_dish_rating
    else:
        kind, target_id, recompute = "restaurant", review["restaurant_id"], recompute_restaurant_rating

    attempts = max(1, config.rating_recompute_attempts)
    for attempt in range(1, attempts + 1):
        try:
            recompute(target_id)
            return True
        except Exception as exc:
            if attempt < attempts:
                logger.warning(
                    "Rating recompute for %s %s failed (attempt %d/%d), retrying",
                    kind, target_id, attempt, attempts, exc_info=True,
                )
                continue
            logger.error(
                "Rating recompute for %s %s abandoned after %d attempts; aggregate may be stale",
                kind, target_id, attempts, exc_info=True,
            )
            record_event(RATING_INCONSISTENCY, {
                "target": kind,
                "target_id": target_id,
                "review_id": review.get("id"),
                "attempts": attempts,
                "error": str(exc),
            })
    return False
