from __future__ import annotations

import logging
from typing import Any

from ..config import DEFAULT_CATALOG_CONFIG, CatalogConfig
from ..dishes.models import DishSummary
from ..errors import NotFoundError, ValidationFailure
from ..pagination import normalize_page, paginate, parse_sort, sort_documents
from ..softdelete import active_ids, active_only, resolve_active, restore, soft_delete, status_query, with_status
from ..store.database import Document, get_store, utcnow
from .geo import RestaurantFilters, select_restaurants, validate_location
from .models import (
    RESTAURANT_SORT_KEYS,
    GeoPoint,
    RestaurantAdminListResponse,
    RestaurantAdminOut,
    RestaurantCreate,
    RestaurantListResponse,
    RestaurantOut,
    RestaurantUpdate,
)

logger = logging.getLogger(__name__)


def _resolved(doc: Document) -> dict[str, Any]:
    """Swap raw dish references for summaries of the dishes that are still active."""
    dishes = resolve_active(get_store().dishes, doc.get("dishes", []))
    return {
        **doc,
        "dishes": [DishSummary.model_validate(d) for d in dishes],
        "dish_ids": list(doc.get("dishes", [])),
    }


def _to_out(doc: Document) -> RestaurantOut:
    return RestaurantOut.model_validate(_resolved(doc))


def _to_admin_out(doc: Document) -> RestaurantAdminOut:
    return RestaurantAdminOut.model_validate(with_status(_resolved(doc)))


def _checked_dish_ids(dish_ids: list[str]) -> list[str]:
    """Deduplicate and require every id to be an active dish, naming the offenders."""
    wanted = list(dict.fromkeys(dish_ids))
    active = active_ids(get_store().dishes, wanted)
    invalid = [i for i in wanted if i not in active]
    if invalid:
        raise ValidationFailure(
            f"Cannot assign missing or deleted dishes: {', '.join(invalid)}",
            invalid_ids=invalid,
        )
    return wanted


def create_restaurant(data: RestaurantCreate) -> RestaurantAdminOut:
    validate_location(data.location.longitude, data.location.latitude)
    dish_ids = _checked_dish_ids(data.dishes)

    now = utcnow()
    doc = get_store().restaurants.insert_one({
        **data.model_dump(),
        "dishes": dish_ids,
        "average_rating": 0.0,
        "review_count": 0,
        "created_at": now,
        "updated_at": now,
        "deleted_at": None,
    })
    return _to_admin_out(doc)


def update_restaurant(restaurant_id: str, changes: RestaurantUpdate) -> RestaurantAdminOut:
    fields = changes.model_dump(exclude_unset=True)
    if not fields:
        raise ValidationFailure("No fields to update")
    if "location" in fields:
        validate_location(fields["location"]["longitude"], fields["location"]["latitude"])

    def apply(doc: Document) -> None:
        if "dishes" in fields:
            fields["dishes"] = _checked_dish_ids(fields["dishes"])
        doc.update(fields)
        doc["updated_at"] = utcnow()

    doc = get_store().restaurants.modify_one(active_only({"id": restaurant_id}), apply)
    if doc is None:
        raise NotFoundError("Restaurant not found or soft-deleted")
    return _to_admin_out(doc)


def assign_dishes_to_restaurant(restaurant_id: str, dish_ids: list[str]) -> RestaurantAdminOut:
    """
    Replace a restaurant's dish list.

    The whole write is rejected if any id is not a currently active dish.
    Dishes deleted later stay referenced; readers skip them.
    """
    def apply(doc: Document) -> None:
        doc["dishes"] = _checked_dish_ids(dish_ids)
        doc["updated_at"] = utcnow()

    doc = get_store().restaurants.modify_one(active_only({"id": restaurant_id}), apply)
    if doc is None:
        raise NotFoundError("Restaurant not found or soft-deleted")
    logger.info("Restaurant %s now serves %d dishes", restaurant_id, len(doc["dishes"]))
    return _to_admin_out(doc)


def get_restaurant(restaurant_id: str) -> RestaurantOut:
    doc = get_store().restaurants.find_one(active_only({"id": restaurant_id}))
    if doc is None:
        raise NotFoundError("Restaurant not found")
    return _to_out(doc)


def get_restaurant_admin(restaurant_id: str) -> RestaurantAdminOut:
    doc = get_store().restaurants.find_one({"id": restaurant_id})
    if doc is None:
        raise NotFoundError("Restaurant not found")
    return _to_admin_out(doc)


def find_nearby_restaurants(
    center: GeoPoint | None = None,
    radius_m: float | None = None,
    filters: RestaurantFilters | None = None,
    page: int | None = None,
    limit: int | None = None,
    config: CatalogConfig = DEFAULT_CATALOG_CONFIG,
) -> RestaurantListResponse:
    """
    Public restaurant search. Without a center this is the plain listing.

    Results follow the sort key, not distance. Totals describe the filtered set.
    """
    filters = filters or RestaurantFilters()
    key, descending = parse_sort(filters.sort_by, RESTAURANT_SORT_KEYS)
    page, limit = normalize_page(page, limit, config=config)

    docs = select_restaurants(filters, center, radius_m, config)
    items, pagination = paginate(sort_documents(docs, key, descending), page, limit)
    return RestaurantListResponse(
        restaurants=[_to_out(d) for d in items],
        pagination=pagination,
    )


def list_restaurants_by_dish(dish_id: str) -> list[RestaurantOut]:
    docs = select_restaurants(RestaurantFilters(dish_id=dish_id))
    return [_to_out(d) for d in docs]


def list_restaurants_admin(
    status: str | None = None,
    dish_id: str | None = None,
    search: str | None = None,
    sort_by: str | None = None,
    page: int | None = None,
    limit: int | None = None,
    config: CatalogConfig = DEFAULT_CATALOG_CONFIG,
) -> RestaurantAdminListResponse:
    key, descending = parse_sort(sort_by, RESTAURANT_SORT_KEYS)
    page, limit = normalize_page(page, limit, config=config)

    query = status_query(status)
    if dish_id:
        query["dishes"] = dish_id
    docs = get_store().restaurants.find(query)
    if search and search.strip():
        needle = search.strip().lower()
        docs = [d for d in docs if needle in d.get("name", "").lower()]

    items, pagination = paginate(sort_documents(docs, key, descending), page, limit)
    return RestaurantAdminListResponse(
        restaurants=[_to_admin_out(d) for d in items],
        pagination=pagination,
    )


def soft_delete_restaurant(restaurant_id: str) -> RestaurantAdminOut:
    return _to_admin_out(soft_delete(get_store().restaurants, restaurant_id, "Restaurant"))


def restore_restaurant(restaurant_id: str) -> RestaurantAdminOut:
    return _to_admin_out(restore(get_store().restaurants, restaurant_id, "Restaurant"))
