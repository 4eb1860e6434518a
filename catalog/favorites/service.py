from __future__ import annotations

from ..config import DEFAULT_CATALOG_CONFIG, CatalogConfig
from ..dishes.models import DishOut
from ..errors import NotFoundError
from ..pagination import normalize_page, paginate
from ..softdelete import active_only, resolve_active
from ..store.database import Document, get_store, utcnow
from .models import FavoriteListResponse, FavoriteOut


def _user(user_id: str) -> Document:
    user = get_store().users.find_one({"id": user_id})
    if user is None:
        raise NotFoundError("User not found")
    return user


def add_favorite(user_id: str, dish_id: str) -> bool:
    """Add an edge to an active dish. Returns False if it was already there."""
    store = get_store()
    if store.dishes.find_one(active_only({"id": dish_id})) is None:
        raise NotFoundError("Dish not found or inactive")

    added = False

    def apply(user: Document) -> None:
        nonlocal added
        added = False
        favorites = user.setdefault("favorites", [])
        if any(f["dish_id"] == dish_id for f in favorites):
            return
        favorites.append({"dish_id": dish_id, "added_at": utcnow()})
        added = True

    if store.users.modify_one({"id": user_id}, apply) is None:
        raise NotFoundError("User not found")
    return added


def remove_favorite(user_id: str, dish_id: str) -> bool:
    """Drop the edge if present. Returns False if there was nothing to remove."""
    removed = False

    def apply(user: Document) -> None:
        nonlocal removed
        favorites = user.get("favorites", [])
        kept = [f for f in favorites if f["dish_id"] != dish_id]
        removed = len(kept) != len(favorites)
        user["favorites"] = kept

    if get_store().users.modify_one({"id": user_id}, apply) is None:
        raise NotFoundError("User not found")
    return removed


def is_favorite(user_id: str, dish_id: str) -> bool:
    return any(f["dish_id"] == dish_id for f in _user(user_id).get("favorites", []))


def list_favorites(
    user_id: str,
    page: int | None = None,
    limit: int | None = None,
    config: CatalogConfig = DEFAULT_CATALOG_CONFIG,
) -> FavoriteListResponse:
    """
    Favorited dishes, newest first.

    Edges pointing at inactive dishes are kept on the user but filtered out
    here, before paginating and before counting.
    """
    page, limit = normalize_page(page, limit, config=config)
    edges = _user(user_id).get("favorites", [])

    dishes = {d["id"]: d for d in resolve_active(get_store().dishes, (e["dish_id"] for e in edges))}
    visible = [(pos, e) for pos, e in enumerate(edges) if e["dish_id"] in dishes]
    visible.sort(key=lambda item: (item[1]["added_at"], item[0]), reverse=True)

    items, pagination = paginate([e for _, e in visible], page, limit)
    return FavoriteListResponse(
        favorites=[
            FavoriteOut(dish=DishOut.model_validate(dishes[e["dish_id"]]), added_at=e["added_at"])
            for e in items
        ],
        pagination=pagination,
    )
