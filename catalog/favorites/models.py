from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from ..dishes.models import DishOut
from ..pagination import Pagination


class FavoriteOut(BaseModel):
    dish: DishOut
    added_at: datetime


class FavoriteListResponse(BaseModel):
    favorites: list[FavoriteOut]
    pagination: Pagination
