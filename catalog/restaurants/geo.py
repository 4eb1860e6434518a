"""
Proximity search over active restaurants.

"Within R metres of P" is answered with a spherical-cap test: R is turned
into an angular radius by dividing by a fixed Earth radius, and a restaurant
matches when the great-circle angle between its point and P is no larger.
This is not geodesic distance; it is good at city scale and drifts at very
large radii or near the poles. Results are never ranked by distance.
"""
from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import pandas as pd
from sklearn.metrics.pairwise import haversine_distances

from ..config import DEFAULT_CATALOG_CONFIG, CatalogConfig
from ..errors import ValidationFailure
from ..softdelete import active_only
from ..store.database import Document, get_store
from .models import GeoPoint


@dataclass(frozen=True)
class RestaurantFilters:
    dish_id: str | None = None
    search: str | None = None
    category: str | None = None
    min_rating: float | None = None
    max_rating: float | None = None
    sort_by: str | None = None


def validate_location(longitude: float, latitude: float) -> None:
    if not -180 <= longitude <= 180 or not -90 <= latitude <= 90:
        raise ValidationFailure(
            "Invalid coordinates. Longitude must be between -180 and 180, latitude between -90 and 90",
            longitude=longitude,
            latitude=latitude,
        )


def angular_radius(radius_m: float, config: CatalogConfig = DEFAULT_CATALOG_CONFIG) -> float:
    return radius_m / config.earth_radius_m


def within_cap(
    center: GeoPoint,
    longitudes: np.ndarray,
    latitudes: np.ndarray,
    radius_m: float,
    config: CatalogConfig = DEFAULT_CATALOG_CONFIG,
) -> np.ndarray:
    """Boolean mask of the points that fall inside the cap around ``center``."""
    if len(longitudes) == 0:
        return np.zeros(0, dtype=bool)
    # haversine_distances expects (lat, lon) in radians and returns angles
    origin = np.radians([[center.latitude, center.longitude]])
    points = np.radians(np.column_stack([latitudes, longitudes]))
    angles = haversine_distances(origin, points)[0]
    return angles <= angular_radius(radius_m, config)


def _check_rating_range(filters: RestaurantFilters) -> None:
    for value in (filters.min_rating, filters.max_rating):
        if value is not None and not 0 <= value <= 5:
            raise ValidationFailure("Rating filters must be between 0 and 5")
    if (
        filters.min_rating is not None
        and filters.max_rating is not None
        and filters.min_rating > filters.max_rating
    ):
        raise ValidationFailure("min_rating cannot be greater than max_rating")


def select_restaurants(
    filters: RestaurantFilters | None = None,
    center: GeoPoint | None = None,
    radius_m: float | None = None,
    config: CatalogConfig = DEFAULT_CATALOG_CONFIG,
) -> list[Document]:
    """
    Active restaurants matching every given filter, in insertion order.

    Every public restaurant read path goes through here, so the active-only
    rule is the same whether the caller searches by name, by dish or by point.
    """
    filters = filters or RestaurantFilters()
    _check_rating_range(filters)
    if center is not None:
        validate_location(center.longitude, center.latitude)
        radius_m = config.default_max_distance_m if radius_m is None else radius_m
        if radius_m < 0:
            raise ValidationFailure("Radius cannot be negative")
    elif radius_m is not None:
        raise ValidationFailure("A radius needs both latitude and longitude")

    store = get_store()
    docs = store.restaurants.find(active_only())
    if not docs:
        return []

    df = pd.DataFrame.from_records([
        {
            "name": d.get("name", ""),
            "longitude": d["location"]["longitude"],
            "latitude": d["location"]["latitude"],
            "average_rating": d.get("average_rating", 0.0),
            "dishes": d.get("dishes", []),
        }
        for d in docs
    ])
    mask = pd.Series(True, index=df.index)

    if filters.search and filters.search.strip():
        mask &= df["name"].str.contains(filters.search.strip(), case=False, regex=False, na=False)

    if filters.dish_id:
        mask &= df["dishes"].apply(lambda ids: filters.dish_id in ids)

    if filters.category:
        category_ids = {
            d["id"] for d in store.dishes.find(active_only({"category": filters.category}))
        }
        mask &= df["dishes"].apply(lambda ids: bool(category_ids.intersection(ids)))

    if filters.min_rating is not None:
        mask &= df["average_rating"] >= filters.min_rating
    if filters.max_rating is not None:
        mask &= df["average_rating"] <= filters.max_rating

    if center is not None:
        inside = within_cap(
            center,
            df["longitude"].to_numpy(dtype=float),
            df["latitude"].to_numpy(dtype=float),
            radius_m,
            config,
        )
        mask &= pd.Series(inside, index=df.index)

    return [doc for doc, keep in zip(docs, mask.tolist()) if keep]
