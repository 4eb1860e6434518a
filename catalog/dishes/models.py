from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator

from ..pagination import Pagination

CATEGORIES = ("Phở", "Bánh", "Cơm", "Bún", "Gỏi", "Lẩu", "Chè", "Khác")
REGIONS = ("Miền Bắc", "Miền Trung", "Miền Nam")

Category = Literal["Phở", "Bánh", "Cơm", "Bún", "Gỏi", "Lẩu", "Chè", "Khác"]
Region = Literal["Miền Bắc", "Miền Trung", "Miền Nam"]

# Content fields captured by history snapshots and restored by a revert
MUTABLE_FIELDS = (
    "name",
    "description",
    "images",
    "ingredients",
    "category",
    "region",
    "cooking_time",
    "min_price",
    "max_price",
)

DISH_SORT_KEYS = ("created_at", "average_rating", "review_count", "cooking_time", "min_price")


class MultilingualText(BaseModel):
    ja: str = Field(..., min_length=1)
    vi: str = Field(..., min_length=1)


class Ingredient(BaseModel):
    name: str = Field(..., min_length=1)
    quantity: str = Field(..., min_length=1)


def _check_price_range(min_price: float | None, max_price: float | None) -> None:
    if min_price is not None and max_price is not None and min_price > max_price:
        raise ValueError("Min price cannot be greater than max price")


def reject_explicit_nulls(model: BaseModel, nullable: tuple[str, ...] = ()) -> None:
    """Partial updates may omit a field, but only ``nullable`` fields may be sent as null."""
    cleared = sorted(
        name for name in model.model_fields_set
        if getattr(model, name) is None and name not in nullable
    )
    if cleared:
        raise ValueError(f"Fields cannot be null: {', '.join(cleared)}")


class DishCreate(BaseModel):
    name: MultilingualText
    description: MultilingualText
    images: list[str] = Field(default_factory=list, max_length=10)
    ingredients: list[Ingredient] = Field(..., min_length=1)
    category: Category
    region: Region
    cooking_time: int = Field(..., ge=1, le=1440, description="Minutes")
    min_price: float = Field(default=0, ge=0)
    max_price: float = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _price_range(self) -> "DishCreate":
        _check_price_range(self.min_price, self.max_price)
        return self


class DishUpdate(BaseModel):
    name: MultilingualText | None = None
    description: MultilingualText | None = None
    images: list[str] | None = Field(default=None, max_length=10)
    ingredients: list[Ingredient] | None = Field(default=None, min_length=1)
    category: Category | None = None
    region: Region | None = None
    cooking_time: int | None = Field(default=None, ge=1, le=1440)
    min_price: float | None = Field(default=None, ge=0)
    max_price: float | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _price_range(self) -> "DishUpdate":
        reject_explicit_nulls(self)
        _check_price_range(self.min_price, self.max_price)
        return self


class HistoryEntry(BaseModel):
    version: int
    data: dict[str, Any]
    modified_by: str
    modified_at: datetime


class DishOut(BaseModel):
    id: str
    name: MultilingualText
    description: MultilingualText
    images: list[str]
    ingredients: list[Ingredient]
    category: str
    region: str
    cooking_time: int
    min_price: float
    max_price: float
    average_rating: float
    review_count: int
    created_by: str
    created_at: datetime
    updated_at: datetime


class DishAdminOut(DishOut):
    status: str
    deleted_at: datetime | None = None
    history: list[HistoryEntry] = Field(default_factory=list)


class DishSummary(BaseModel):
    id: str
    name: MultilingualText
    images: list[str]
    category: str
    region: str
    average_rating: float


class DishListResponse(BaseModel):
    dishes: list[DishOut]
    pagination: Pagination


class DishAdminListResponse(BaseModel):
    dishes: list[DishAdminOut]
    pagination: Pagination


class RevertRequest(BaseModel):
    version: int = Field(..., ge=1)
