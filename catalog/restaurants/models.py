from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, model_validator

from ..dishes.models import DishSummary, reject_explicit_nulls
from ..pagination import Pagination

RESTAURANT_SORT_KEYS = ("created_at", "average_rating", "review_count", "name")

PHONE_PATTERN = r"^[\d\s\-\+\(\)]+$"
WEBSITE_PATTERN = r"^https?://.+"


class GeoPoint(BaseModel):
    # Ranges are checked by the service so out-of-range points get a specific error
    longitude: float
    latitude: float


class RestaurantCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=200)
    address: str = Field(..., min_length=5, max_length=500)
    location: GeoPoint
    phone: str = Field(..., pattern=PHONE_PATTERN)
    website: str | None = Field(default=None, pattern=WEBSITE_PATTERN)
    images: list[str] = Field(default_factory=list, max_length=15)
    dishes: list[str] = Field(default_factory=list)


class RestaurantUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=2, max_length=200)
    address: str | None = Field(default=None, min_length=5, max_length=500)
    location: GeoPoint | None = None
    phone: str | None = Field(default=None, pattern=PHONE_PATTERN)
    website: str | None = Field(default=None, pattern=WEBSITE_PATTERN)
    images: list[str] | None = Field(default=None, max_length=15)
    dishes: list[str] | None = None

    @model_validator(mode="after")
    def _only_website_clears(self) -> "RestaurantUpdate":
        reject_explicit_nulls(self, nullable=("website",))
        return self


class AssignDishesRequest(BaseModel):
    dish_ids: list[str]


class RestaurantOut(BaseModel):
    id: str
    name: str
    address: str
    location: GeoPoint
    phone: str
    website: str | None = None
    images: list[str]
    dishes: list[DishSummary]
    average_rating: float
    review_count: int
    created_at: datetime
    updated_at: datetime


class RestaurantAdminOut(RestaurantOut):
    status: str
    deleted_at: datetime | None = None
    # Raw references, including ones that no longer resolve to an active dish
    dish_ids: list[str] = Field(default_factory=list)


class RestaurantListResponse(BaseModel):
    restaurants: list[RestaurantOut]
    pagination: Pagination


class RestaurantAdminListResponse(BaseModel):
    restaurants: list[RestaurantAdminOut]
    pagination: Pagination
