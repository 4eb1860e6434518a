from __future__ import annotations

import math
from datetime import datetime
from typing import Any, Sequence

from pydantic import BaseModel

from .config import DEFAULT_CATALOG_CONFIG, CatalogConfig
from .errors import ValidationFailure
from .store.database import Document


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


def normalize_page(
    page: int | None,
    limit: int | None,
    default_limit: int | None = None,
    config: CatalogConfig = DEFAULT_CATALOG_CONFIG,
) -> tuple[int, int]:
    page = max(1, page or 1)
    limit = limit or default_limit or config.default_page_size
    return page, max(1, min(limit, config.max_page_size))


def build_pagination(page: int, limit: int, total: int) -> Pagination:
    return Pagination(
        page=page,
        limit=limit,
        total=total,
        total_pages=math.ceil(total / limit) if total else 0,
    )


def paginate(items: Sequence[Any], page: int, limit: int) -> tuple[list[Any], Pagination]:
    """Slice an already filtered sequence and describe the page."""
    skip = (page - 1) * limit
    return list(items[skip:skip + limit]), build_pagination(page, limit, len(items))


def parse_sort(sort_by: str | None, allowed: Sequence[str], default: str = "-created_at") -> tuple[str, bool]:
    """Turn ``"-field"`` / ``"field"`` into ``(field, descending)``."""
    raw = (sort_by or default).strip()
    descending = raw.startswith("-")
    key = raw.lstrip("-+")
    if key not in allowed:
        raise ValidationFailure(
            f"Cannot sort by '{key}'. Allowed: {', '.join(allowed)}",
            allowed_sort_keys=list(allowed),
        )
    return key, descending


def _sort_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.timestamp()
    if isinstance(value, str):
        return value.lower()
    return value


def sort_documents(docs: list[Document], key: str, descending: bool) -> list[Document]:
    """Sort by ``key``; ties fall back to insertion order in the same direction."""
    present = [d for d in docs if d.get(key) is not None]
    missing = [d for d in docs if d.get(key) is None]
    present.sort(key=lambda d: (_sort_value(d[key]), d.get("_seq", 0)), reverse=descending)
    return present + missing
