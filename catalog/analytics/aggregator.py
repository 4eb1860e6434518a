from __future__ import annotations

from collections import Counter
from datetime import datetime, time, timedelta, timezone
from typing import Any

from ..config import DEFAULT_CATALOG_CONFIG, CatalogConfig
from ..softdelete import active_only
from ..store.database import Document, get_store, utcnow


def _clamp_days(days: int | None, config: CatalogConfig) -> int:
    if days is None:
        return config.analytics_default_days
    return max(config.analytics_min_days, min(config.analytics_max_days, int(days)))


def _count_by_day(docs: list[Document], start: datetime, end: datetime) -> Counter[str]:
    counter: Counter[str] = Counter()
    for d in docs:
        created = d.get("created_at")
        if created is not None and start <= created <= end:
            counter[created.date().isoformat()] += 1
    return counter


def compute_overview(
    days: int | None = None,
    now: datetime | None = None,
    config: CatalogConfig = DEFAULT_CATALOG_CONFIG,
) -> dict[str, Any]:
    safe_days = _clamp_days(days, config)
    now = now or utcnow()
    end = datetime.combine(now.date(), time.max, tzinfo=timezone.utc)
    start = datetime.combine(now.date() - timedelta(days=safe_days - 1), time.min, tzinfo=timezone.utc)

    store = get_store()
    users = store.users.find(active_only())
    restaurants = store.restaurants.find(active_only())
    dishes = store.dishes.find(active_only())
    reviews = store.reviews.find(active_only())

    by_day = {
        "users": _count_by_day(users, start, end),
        "restaurants": _count_by_day(restaurants, start, end),
        "dishes": _count_by_day(dishes, start, end),
        "reviews": _count_by_day(reviews, start, end),
    }
    timeseries = []
    for offset in range(safe_days):
        key = (start.date() + timedelta(days=offset)).isoformat()
        timeseries.append({"date": key, **{name: c.get(key, 0) for name, c in by_day.items()}})

    # Roles
    role_counter: Counter[str] = Counter(u.get("role", "unknown") for u in users)
    user_roles = [{"key": k, "value": v} for k, v in sorted(role_counter.items())]

    # Always report every star value so charts stay stable
    rating_counter: Counter[int] = Counter(r["rating"] for r in reviews)
    review_ratings = [{"key": str(k), "value": rating_counter.get(k, 0)} for k in range(1, 6)]

    category_counter: Counter[str] = Counter(d.get("category", "unknown") for d in dishes)
    dish_categories = [{"key": k, "value": v} for k, v in category_counter.most_common(5)]

    return {
        "range": {"days": safe_days, "start": start.isoformat(), "end": end.isoformat()},
        "timeseries": timeseries,
        "user_roles": user_roles,
        "review_ratings": review_ratings,
        "dish_categories": dish_categories,
    }
