from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware

from .analytics.aggregator import compute_overview
from .analytics.store import get_events
from .auth.dependencies import SESSION_KEY, get_current_user, require_admin, require_user
from .auth.models import LoginRequest
from .auth.users import authenticate, seed_users
from .config import DEFAULT_CATALOG_CONFIG
from .dishes import history as dish_history
from .dishes import service as dishes
from .dishes.models import (
    CATEGORIES,
    REGIONS,
    DishAdminListResponse,
    DishAdminOut,
    DishCreate,
    DishListResponse,
    DishOut,
    DishUpdate,
    HistoryEntry,
    RevertRequest,
)
from .errors import CatalogError, ConflictError, NotFoundError, ValidationFailure
from .favorites import service as favorites
from .favorites.models import FavoriteListResponse
from .restaurants import service as restaurants
from .restaurants.geo import RestaurantFilters
from .restaurants.models import (
    AssignDishesRequest,
    GeoPoint,
    RestaurantAdminListResponse,
    RestaurantAdminOut,
    RestaurantCreate,
    RestaurantListResponse,
    RestaurantOut,
    RestaurantUpdate,
)
from .reviews import service as reviews
from .reviews.aggregator import RATING_INCONSISTENCY
from .reviews.models import ReviewCreate, ReviewListResponse, ReviewOut, ReviewUpdate
from .store.database import get_store
from .users import service as users
from .users.models import RoleUpdate, UserCreate, UserListResponse, UserOut, UserUpdate

logging.basicConfig(level=DEFAULT_CATALOG_CONFIG.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    get_store()
    seed_users()
    yield


app = FastAPI(title="Dish Catalog API", version="1.0.0", lifespan=lifespan)
app.add_middleware(SessionMiddleware, secret_key=DEFAULT_CATALOG_CONFIG.session_secret)

_ERROR_STATUS = {
    NotFoundError: 404,
    ConflictError: 409,
    ValidationFailure: 400,
}


@app.exception_handler(CatalogError)
async def catalog_error_handler(request: Request, exc: CatalogError) -> JSONResponse:
    status_code = next(
        (code for cls, code in _ERROR_STATUS.items() if isinstance(exc, cls)), 500
    )
    if status_code == 500:
        logger.error("Unhandled catalog error on %s: %s", request.url.path, exc.message)
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "code": exc.code, **exc.details},
    )


# ── Public endpoints ─────────────────────────────────────────────────────


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/metadata")
def metadata() -> dict:
    return {"categories": list(CATEGORIES), "regions": list(REGIONS)}


@app.get("/dishes", response_model=DishListResponse)
def list_dishes(
    category: str | None = None,
    region: str | None = None,
    search: str | None = None,
    sort_by: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1),
) -> DishListResponse:
    return dishes.list_dishes(category, region, search, sort_by, page, limit)


@app.get("/dishes/{dish_id}", response_model=DishOut)
def get_dish(dish_id: str) -> DishOut:
    return dishes.get_dish(dish_id)


@app.get("/dishes/{dish_id}/reviews", response_model=ReviewListResponse)
def list_dish_reviews(
    dish_id: str,
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1),
) -> ReviewListResponse:
    return reviews.list_reviews(dish_id=dish_id, page=page, limit=limit)


@app.get("/restaurants", response_model=RestaurantListResponse)
def list_restaurants(
    latitude: float | None = None,
    longitude: float | None = None,
    max_distance: float | None = Query(default=None, description="Radius in metres"),
    dish_id: str | None = None,
    search: str | None = None,
    category: str | None = None,
    min_rating: float | None = None,
    max_rating: float | None = None,
    sort_by: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1),
) -> RestaurantListResponse:
    if (latitude is None) != (longitude is None):
        raise ValidationFailure("Provide both latitude and longitude")
    center = None
    if latitude is not None and longitude is not None:
        center = GeoPoint(longitude=longitude, latitude=latitude)
    filters = RestaurantFilters(
        dish_id=dish_id,
        search=search,
        category=category,
        min_rating=min_rating,
        max_rating=max_rating,
        sort_by=sort_by,
    )
    return restaurants.find_nearby_restaurants(center, max_distance, filters, page, limit)


@app.get("/restaurants/dish/{dish_id}", response_model=list[RestaurantOut])
def list_restaurants_by_dish(dish_id: str) -> list[RestaurantOut]:
    return restaurants.list_restaurants_by_dish(dish_id)


@app.get("/restaurants/{restaurant_id}", response_model=RestaurantOut)
def get_restaurant(restaurant_id: str) -> RestaurantOut:
    return restaurants.get_restaurant(restaurant_id)


@app.get("/restaurants/{restaurant_id}/reviews", response_model=ReviewListResponse)
def list_restaurant_reviews(
    restaurant_id: str,
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1),
) -> ReviewListResponse:
    return reviews.list_reviews(restaurant_id=restaurant_id, page=page, limit=limit)


# ── Auth endpoints ───────────────────────────────────────────────────────


@app.post("/auth/login")
def login(body: LoginRequest, request: Request) -> dict:
    user = authenticate(body.username, body.password)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if user["is_locked"]:
        raise HTTPException(status_code=403, detail="Account is locked")
    request.session[SESSION_KEY] = user["id"]
    return {"status": "ok", "user": user}


@app.post("/auth/logout")
def logout(request: Request) -> dict:
    request.session.clear()
    return {"status": "logged_out"}


@app.get("/auth/me")
def auth_me(user: dict = Depends(require_user)) -> dict:
    return user


# ── User endpoints ───────────────────────────────────────────────────────


@app.post("/reviews", response_model=ReviewOut, status_code=201)
def create_review(body: ReviewCreate, user: dict = Depends(require_user)) -> ReviewOut:
    return reviews.create_review(
        user["id"],
        body.dish_id,
        body.rating,
        body.comment,
        restaurant_id=body.restaurant_id,
    )


@app.put("/reviews/{review_id}", response_model=ReviewOut)
def update_review(
    review_id: str,
    body: ReviewUpdate,
    user: dict = Depends(require_user),
) -> ReviewOut:
    return reviews.update_review(review_id, user["id"], body.rating, body.comment)


@app.delete("/reviews/{review_id}")
def delete_review(review_id: str, user: dict = Depends(require_user)) -> dict:
    reviews.soft_delete_review(review_id, user["id"])
    return {"message": "Review soft deleted successfully"}


@app.get("/users/favorites", response_model=FavoriteListResponse)
def list_favorites(
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1),
    user: dict = Depends(require_user),
) -> FavoriteListResponse:
    return favorites.list_favorites(user["id"], page, limit)


@app.get("/users/favorites/{dish_id}")
def check_favorite(dish_id: str, user: dict | None = Depends(get_current_user)) -> dict:
    if not user:
        return {"is_favorite": False}
    return {"is_favorite": favorites.is_favorite(user["id"], dish_id)}


@app.post("/users/favorites/{dish_id}")
def add_favorite(dish_id: str, user: dict = Depends(require_user)) -> dict:
    added = favorites.add_favorite(user["id"], dish_id)
    return {"message": "Dish added to favorites" if added else "Dish already in favorites"}


@app.delete("/users/favorites/{dish_id}")
def remove_favorite(dish_id: str, user: dict = Depends(require_user)) -> dict:
    favorites.remove_favorite(user["id"], dish_id)
    return {"message": "Dish removed from favorites"}


# ── Admin endpoints ──────────────────────────────────────────────────────


@app.delete("/reviews/{review_id}/hard")
def hard_delete_review(review_id: str, user: dict = Depends(require_admin)) -> dict:
    reviews.hard_delete_review(review_id)
    return {"message": "Review hard deleted successfully"}


@app.get("/admin/dishes", response_model=DishAdminListResponse)
def list_dishes_admin(
    status: str | None = Query(default=None, pattern="^(active|deleted)$"),
    category: str | None = None,
    region: str | None = None,
    search: str | None = None,
    sort_by: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1),
    user: dict = Depends(require_admin),
) -> DishAdminListResponse:
    return dishes.list_dishes_admin(status, category, region, search, sort_by, page, limit)


@app.post("/admin/dishes", response_model=DishOut, status_code=201)
def create_dish(body: DishCreate, user: dict = Depends(require_admin)) -> DishOut:
    return dishes.create_dish(body, user["id"])


@app.get("/admin/dishes/unassigned", response_model=list[DishOut])
def list_unassigned_dishes(
    search: str | None = None,
    user: dict = Depends(require_admin),
) -> list[DishOut]:
    return dishes.list_unassigned_dishes(search)


@app.get("/admin/dishes/{dish_id}", response_model=DishAdminOut)
def get_dish_admin(dish_id: str, user: dict = Depends(require_admin)) -> DishAdminOut:
    return dishes.get_dish_admin(dish_id)


@app.put("/admin/dishes/{dish_id}", response_model=DishOut)
def update_dish(dish_id: str, body: DishUpdate, user: dict = Depends(require_admin)) -> DishOut:
    return dish_history.update_dish(dish_id, body, user["id"])


@app.delete("/admin/dishes/{dish_id}", response_model=DishAdminOut)
def delete_dish(dish_id: str, user: dict = Depends(require_admin)) -> DishAdminOut:
    return dishes.soft_delete_dish(dish_id)


@app.post("/admin/dishes/{dish_id}/restore", response_model=DishAdminOut)
def restore_dish(dish_id: str, user: dict = Depends(require_admin)) -> DishAdminOut:
    return dishes.restore_dish(dish_id)


@app.get("/admin/dishes/{dish_id}/history", response_model=list[HistoryEntry])
def get_dish_history(dish_id: str, user: dict = Depends(require_admin)) -> list[HistoryEntry]:
    return dishes.get_dish_history(dish_id)


@app.post("/admin/dishes/{dish_id}/revert", response_model=DishOut)
def revert_dish(dish_id: str, body: RevertRequest, user: dict = Depends(require_admin)) -> DishOut:
    return dish_history.revert_dish(dish_id, body.version, user["id"])


@app.get("/admin/restaurants", response_model=RestaurantAdminListResponse)
def list_restaurants_admin(
    status: str | None = Query(default=None, pattern="^(active|deleted)$"),
    dish_id: str | None = None,
    search: str | None = None,
    sort_by: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1),
    user: dict = Depends(require_admin),
) -> RestaurantAdminListResponse:
    return restaurants.list_restaurants_admin(status, dish_id, search, sort_by, page, limit)


@app.post("/admin/restaurants", response_model=RestaurantAdminOut, status_code=201)
def create_restaurant(body: RestaurantCreate, user: dict = Depends(require_admin)) -> RestaurantAdminOut:
    return restaurants.create_restaurant(body)


@app.get("/admin/restaurants/{restaurant_id}", response_model=RestaurantAdminOut)
def get_restaurant_admin(restaurant_id: str, user: dict = Depends(require_admin)) -> RestaurantAdminOut:
    return restaurants.get_restaurant_admin(restaurant_id)


@app.put("/admin/restaurants/{restaurant_id}", response_model=RestaurantAdminOut)
def update_restaurant(
    restaurant_id: str,
    body: RestaurantUpdate,
    user: dict = Depends(require_admin),
) -> RestaurantAdminOut:
    return restaurants.update_restaurant(restaurant_id, body)


@app.delete("/admin/restaurants/{restaurant_id}", response_model=RestaurantAdminOut)
def delete_restaurant(restaurant_id: str, user: dict = Depends(require_admin)) -> RestaurantAdminOut:
    return restaurants.soft_delete_restaurant(restaurant_id)


@app.post("/admin/restaurants/{restaurant_id}/restore", response_model=RestaurantAdminOut)
def restore_restaurant(restaurant_id: str, user: dict = Depends(require_admin)) -> RestaurantAdminOut:
    return restaurants.restore_restaurant(restaurant_id)


@app.put("/admin/restaurants/{restaurant_id}/dishes", response_model=RestaurantAdminOut)
def assign_dishes(
    restaurant_id: str,
    body: AssignDishesRequest,
    user: dict = Depends(require_admin),
) -> RestaurantAdminOut:
    return restaurants.assign_dishes_to_restaurant(restaurant_id, body.dish_ids)


@app.get("/admin/analytics/overview")
def analytics_overview(
    days: int | None = None,
    user: dict = Depends(require_admin),
) -> dict:
    return compute_overview(days)


@app.get("/admin/inconsistencies")
def list_inconsistencies(
    since: float | None = Query(default=None, description="Unix timestamp"),
    user: dict = Depends(require_admin),
) -> dict:
    events = get_events(RATING_INCONSISTENCY, since=since)
    return {"total": len(events), "events": events}


@app.get("/admin/users", response_model=UserListResponse)
def list_users(
    status: str | None = Query(default=None, pattern="^(active|deleted)$"),
    role: str | None = Query(default=None, pattern="^(guest|admin)$"),
    search: str | None = None,
    sort_by: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1),
    user: dict = Depends(require_admin),
) -> UserListResponse:
    return users.list_users(status, role, search, sort_by, page, limit)


@app.post("/admin/users", response_model=UserOut, status_code=201)
def create_user(body: UserCreate, user: dict = Depends(require_admin)) -> UserOut:
    return users.create_user(body)


@app.get("/admin/users/{user_id}", response_model=UserOut)
def get_user(user_id: str, user: dict = Depends(require_admin)) -> UserOut:
    return users.get_user(user_id)


@app.put("/admin/users/{user_id}", response_model=UserOut)
def update_user(user_id: str, body: UserUpdate, user: dict = Depends(require_admin)) -> UserOut:
    return users.update_user(user_id, body, user["id"])


@app.put("/admin/users/{user_id}/role", response_model=UserOut)
def update_user_role(user_id: str, body: RoleUpdate, user: dict = Depends(require_admin)) -> UserOut:
    return users.update_user_role(user_id, body.role, user["id"])


@app.put("/admin/users/{user_id}/lock", response_model=UserOut)
def toggle_user_lock(user_id: str, user: dict = Depends(require_admin)) -> UserOut:
    return users.toggle_user_lock(user_id, user["id"])


@app.delete("/admin/users/{user_id}", response_model=UserOut)
def delete_user(user_id: str, user: dict = Depends(require_admin)) -> UserOut:
    return users.soft_delete_user(user_id, user["id"])


@app.post("/admin/users/{user_id}/restore", response_model=UserOut)
def restore_user(user_id: str, user: dict = Depends(require_admin)) -> UserOut:
    return users.restore_user(user_id)
