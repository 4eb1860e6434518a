from __future__ import annotations

from ..config import DEFAULT_CATALOG_CONFIG, CatalogConfig
from ..errors import NotFoundError
from ..pagination import normalize_page, paginate, parse_sort, sort_documents
from ..softdelete import active_only, restore, soft_delete, status_query, with_status
from ..store.database import Document, get_store, utcnow
from .models import (
    DISH_SORT_KEYS,
    DishAdminListResponse,
    DishAdminOut,
    DishCreate,
    DishListResponse,
    DishOut,
    HistoryEntry,
)


def _name_matches(doc: Document, search: str) -> bool:
    needle = search.strip().lower()
    name = doc.get("name") or {}
    return any(needle in (name.get(lang) or "").lower() for lang in ("ja", "vi"))


def _filter_dishes(
    docs: list[Document],
    category: str | None,
    region: str | None,
    search: str | None,
) -> list[Document]:
    if category:
        docs = [d for d in docs if d.get("category") == category]
    if region:
        docs = [d for d in docs if d.get("region") == region]
    if search and search.strip():
        docs = [d for d in docs if _name_matches(d, search)]
    return docs


def create_dish(data: DishCreate, actor_id: str) -> DishOut:
    now = utcnow()
    doc = get_store().dishes.insert_one({
        **data.model_dump(),
        "average_rating": 0.0,
        "review_count": 0,
        "created_by": actor_id,
        "history": [],
        "created_at": now,
        "updated_at": now,
        "deleted_at": None,
    })
    return DishOut.model_validate(doc)


def list_dishes(
    category: str | None = None,
    region: str | None = None,
    search: str | None = None,
    sort_by: str | None = None,
    page: int | None = None,
    limit: int | None = None,
    config: CatalogConfig = DEFAULT_CATALOG_CONFIG,
) -> DishListResponse:
    """Public dish listing: active dishes only, filtered before paginating."""
    key, descending = parse_sort(sort_by, DISH_SORT_KEYS)
    page, limit = normalize_page(page, limit, config=config)

    docs = _filter_dishes(get_store().dishes.find(active_only()), category, region, search)
    items, pagination = paginate(sort_documents(docs, key, descending), page, limit)
    return DishListResponse(
        dishes=[DishOut.model_validate(d) for d in items],
        pagination=pagination,
    )


def get_dish(dish_id: str) -> DishOut:
    doc = get_store().dishes.find_one(active_only({"id": dish_id}))
    if doc is None:
        raise NotFoundError("Dish not found")
    return DishOut.model_validate(doc)


def list_dishes_admin(
    status: str | None = None,
    category: str | None = None,
    region: str | None = None,
    search: str | None = None,
    sort_by: str | None = None,
    page: int | None = None,
    limit: int | None = None,
    config: CatalogConfig = DEFAULT_CATALOG_CONFIG,
) -> DishAdminListResponse:
    key, descending = parse_sort(sort_by, DISH_SORT_KEYS)
    page, limit = normalize_page(page, limit, config=config)

    docs = _filter_dishes(get_store().dishes.find(status_query(status)), category, region, search)
    items, pagination = paginate(sort_documents(docs, key, descending), page, limit)
    return DishAdminListResponse(
        dishes=[DishAdminOut.model_validate(with_status(d)) for d in items],
        pagination=pagination,
    )


def get_dish_admin(dish_id: str) -> DishAdminOut:
    doc = get_store().dishes.find_one({"id": dish_id})
    if doc is None:
        raise NotFoundError("Dish not found")
    return DishAdminOut.model_validate(with_status(doc))


def get_dish_history(dish_id: str) -> list[HistoryEntry]:
    doc = get_store().dishes.find_one({"id": dish_id})
    if doc is None:
        raise NotFoundError("Dish not found")
    return [HistoryEntry.model_validate(h) for h in doc.get("history", [])]


def soft_delete_dish(dish_id: str) -> DishAdminOut:
    doc = soft_delete(get_store().dishes, dish_id, "Dish")
    return DishAdminOut.model_validate(with_status(doc))


def restore_dish(dish_id: str) -> DishAdminOut:
    doc = restore(get_store().dishes, dish_id, "Dish")
    return DishAdminOut.model_validate(with_status(doc))


def list_unassigned_dishes(search: str | None = None) -> list[DishOut]:
    """Active dishes that no active restaurant currently serves."""
    store = get_store()
    assigned: set[str] = set()
    for restaurant in store.restaurants.find(active_only()):
        assigned.update(restaurant.get("dishes", []))

    docs = [d for d in store.dishes.find(active_only()) if d["id"] not in assigned]
    docs = _filter_dishes(docs, None, None, search)
    return [DishOut.model_validate(d) for d in sort_documents(docs, "created_at", True)]
