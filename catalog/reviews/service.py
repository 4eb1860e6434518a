from __future__ import annotations

import logging

from pymongo.errors import DuplicateKeyError

from ..config import DEFAULT_CATALOG_CONFIG, CatalogConfig
from ..errors import ConflictError, NotFoundError, ValidationFailure
from ..pagination import normalize_page, paginate, sort_documents
from ..softdelete import active_only
from ..store.database import Document, get_store, utcnow
from .aggregator import refresh_rating, visible_reviews_query
from .models import ReviewListResponse, ReviewOut

logger = logging.getLogger(__name__)

MAX_COMMENT_LENGTH = 1000


def _validate_rating(rating: int) -> None:
    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        raise ValidationFailure("Rating must be a whole number between 1 and 5")


def _validate_comment(comment: str | None) -> str:
    comment = (comment or "").strip()
    if len(comment) > MAX_COMMENT_LENGTH:
        raise ValidationFailure(f"Comment cannot exceed {MAX_COMMENT_LENGTH} characters")
    return comment


def _target(dish_id: str | None, restaurant_id: str | None) -> tuple[str, str]:
    if (dish_id is None) == (restaurant_id is None):
        raise ValidationFailure("A review targets exactly one dish or one restaurant")
    store = get_store()
    if dish_id is not None:
        if store.dishes.find_one(active_only({"id": dish_id})) is None:
            raise NotFoundError("Dish not found")
        return "dish_id", dish_id
    if store.restaurants.find_one(active_only({"id": restaurant_id})) is None:
        raise NotFoundError("Restaurant not found")
    return "restaurant_id", restaurant_id


def create_review(
    user_id: str,
    dish_id: str | None,
    rating: int,
    comment: str | None = None,
    restaurant_id: str | None = None,
) -> ReviewOut:
    _validate_rating(rating)
    comment = _validate_comment(comment)
    _target(dish_id, restaurant_id)

    store = get_store()
    pair = {"user_id": user_id, "dish_id": dish_id, "restaurant_id": restaurant_id}
    if store.reviews.find_one(active_only(pair)) is not None:
        raise ConflictError("You have already reviewed this item")

    now = utcnow()
    try:
        review = store.reviews.insert_one({
            **pair,
            "rating": rating,
            "comment": comment,
            "created_at": now,
            "updated_at": now,
            "deleted_at": None,
        })
    except DuplicateKeyError:
        # Lost a race with a concurrent insert for the same pair
        raise ConflictError("You have already reviewed this item")

    refresh_rating(review)
    return ReviewOut.model_validate(review)


def update_review(
    review_id: str,
    user_id: str,
    rating: int | None = None,
    comment: str | None = None,
) -> ReviewOut:
    if rating is None and comment is None:
        raise ValidationFailure("At least one field (rating or comment) must be provided for update")
    changes: dict = {"updated_at": utcnow()}
    if rating is not None:
        _validate_rating(rating)
        changes["rating"] = rating
    if comment is not None:
        changes["comment"] = _validate_comment(comment)

    review = get_store().reviews.update_one(
        active_only({"id": review_id, "user_id": user_id}), changes
    )
    if review is None:
        raise NotFoundError("Review not found or you are not the author")

    refresh_rating(review)
    return ReviewOut.model_validate(review)


def soft_delete_review(review_id: str, user_id: str) -> ReviewOut:
    review = get_store().reviews.update_one(
        active_only({"id": review_id, "user_id": user_id}), {"deleted_at": utcnow()}
    )
    if review is None:
        raise NotFoundError("Review not found or you are not the author")

    refresh_rating(review)
    return ReviewOut.model_validate(review)


def hard_delete_review(review_id: str) -> ReviewOut:
    review = get_store().reviews.delete_one({"id": review_id})
    if review is None:
        raise NotFoundError("Review not found")
    logger.info("Review %s hard-deleted", review_id)

    refresh_rating(review)
    return ReviewOut.model_validate(review)


def list_reviews(
    dish_id: str | None = None,
    restaurant_id: str | None = None,
    page: int | None = None,
    limit: int | None = None,
    config: CatalogConfig = DEFAULT_CATALOG_CONFIG,
) -> ReviewListResponse:
    """Visible reviews for one target, newest first."""
    target_field, target_id = _target(dish_id, restaurant_id)
    page, limit = normalize_page(page, limit, default_limit=config.review_page_size, config=config)

    docs: list[Document] = get_store().reviews.find(visible_reviews_query(target_field, target_id))
    items, pagination = paginate(sort_documents(docs, "created_at", True), page, limit)
    return ReviewListResponse(
        reviews=[ReviewOut.model_validate(r) for r in items],
        pagination=pagination,
    )
