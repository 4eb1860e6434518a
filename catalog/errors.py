from __future__ import annotations

from typing import Any


class CatalogError(Exception):
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class NotFoundError(CatalogError):
    code = "NOT_FOUND"


class ConflictError(CatalogError):
    code = "CONFLICT"


class ValidationFailure(CatalogError):
    code = "VALIDATION_ERROR"


class ConsistencyFailure(CatalogError):
    """A derived field could not be brought back in line with its source records."""

    code = "CONSISTENCY_ERROR"
