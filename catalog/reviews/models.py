from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, model_validator

from ..pagination import Pagination


class ReviewCreate(BaseModel):
    dish_id: str | None = Field(default=None, min_length=1)
    restaurant_id: str | None = Field(default=None, min_length=1)
    rating: int = Field(..., ge=1, le=5)
    comment: str | None = Field(default=None, max_length=1000)

    @model_validator(mode="after")
    def _single_target(self) -> "ReviewCreate":
        if (self.dish_id is None) == (self.restaurant_id is None):
            raise ValueError("Provide exactly one of dish_id or restaurant_id")
        return self


class ReviewUpdate(BaseModel):
    rating: int | None = Field(default=None, ge=1, le=5)
    comment: str | None = Field(default=None, max_length=1000)

    @model_validator(mode="after")
    def _something_to_change(self) -> "ReviewUpdate":
        if self.rating is None and self.comment is None:
            raise ValueError("At least one field (rating or comment) must be provided for update")
        return self


class ReviewOut(BaseModel):
    id: str
    user_id: str
    dish_id: str | None = None
    restaurant_id: str | None = None
    rating: int
    comment: str
    created_at: datetime
    updated_at: datetime


class ReviewListResponse(BaseModel):
    reviews: list[ReviewOut]
    pagination: Pagination
