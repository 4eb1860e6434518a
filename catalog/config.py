from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
load_dotenv(Path(__file__).resolve().parent.parent / ".env")


@dataclass(frozen=True)
class CatalogConfig:
    session_secret: str = os.getenv("SESSION_SECRET", "dish-catalog-secret-change-in-production")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    rating_recompute_attempts: int = int(os.getenv("RATING_RECOMPUTE_ATTEMPTS", "2"))

    database_url: str = os.getenv("DATABASE_URL", "mongodb://localhost:27017")
    database_name: str = os.getenv("DATABASE_NAME", "dish_catalog")
    # Read-modify-write retries when another writer bumps a document's revision first
    store_modify_attempts: int = int(os.getenv("STORE_MODIFY_ATTEMPTS", "5"))

    earth_radius_m: float = 6378100.0
    default_max_distance_m: float = 10000.0

    default_page_size: int = 12
    review_page_size: int = 10
    max_page_size: int = 100

    analytics_default_days: int = 90
    analytics_min_days: int = 7
    analytics_max_days: int = 365


DEFAULT_CATALOG_CONFIG = CatalogConfig()
