"""
Entity store backed by MongoDB.

Every entity collection is wrapped in a ``Collection`` that the services talk
to instead of the raw driver:

- documents are addressed by a string ``id`` (unique index); Mongo's own
  ``_id`` never leaves this module
- ``find`` returns documents in insertion order, tracked in ``_seq``
- every write bumps the document's ``_rev``; ``modify_one`` replaces a
  document only if its revision is still the one it read, and re-runs the
  mutator on the fresh document otherwise
- writes issued by this process are serialized per collection

Conditional writes ("set deleted_at only if it is currently null") go through
``find_one_and_update`` and the one-active-review rule is a partial unique
index, so they hold across processes as well.
"""
from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Callable

from pymongo import ASCENDING, MongoClient, ReturnDocument
from pymongo.database import Database

from ..config import DEFAULT_CATALOG_CONFIG, CatalogConfig
from ..errors import ConflictError

logger = logging.getLogger(__name__)

Document = dict[str, Any]
Query = dict[str, Any]

_VISIBLE = {"_id": False}
_COUNTERS = "counters"


def utcnow() -> datetime:
    # MongoDB keeps millisecond precision; truncate so written and re-read values compare equal
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


class Collection:
    def __init__(self, db: Database, name: str, modify_attempts: int) -> None:
        self.name = name
        self._col = db[name]
        self._counters = db[_COUNTERS]
        self._modify_attempts = max(1, modify_attempts)
        self._write_lock = threading.Lock()

    def _next_seq(self) -> int:
        counter = self._counters.find_one_and_update(
            {"_id": self.name},
            {"$inc": {"seq": 1}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return counter["seq"]

    # ── reads ────────────────────────────────────────────────────────────

    def find_one(self, query: Query | None = None) -> Document | None:
        return self._col.find_one(query or {}, _VISIBLE)

    def find(self, query: Query | None = None) -> list[Document]:
        """Return matching documents in insertion order."""
        return list(self._col.find(query or {}, _VISIBLE).sort("_seq", ASCENDING))

    def count(self, query: Query | None = None) -> int:
        return self._col.count_documents(query or {})

    # ── writes ───────────────────────────────────────────────────────────

    def insert_one(self, doc: Document) -> Document:
        """Insert and return the stored document. Raises ``DuplicateKeyError`` on a unique clash."""
        new = dict(doc)
        new.setdefault("id", uuid.uuid4().hex)
        with self._write_lock:
            new["_seq"] = self._next_seq()
            new["_rev"] = 0
            self._col.insert_one(new)
        return self.find_one({"id": new["id"]})

    def modify_one(self, query: Query, mutator: Callable[[Document], None]) -> Document | None:
        """
        Read-modify-write the first document matching ``query``.

        The mutator edits a fresh copy. If it raises, nothing is written and
        the exception propagates. If another writer changed the document in
        between, the mutator runs again on the new state. Returns the written
        document, or ``None`` when nothing matched.
        """
        with self._write_lock:
            for attempt in range(1, self._modify_attempts + 1):
                current = self.find_one(query)
                if current is None:
                    return None
                doc_id, seq, rev = current["id"], current["_seq"], current["_rev"]
                mutator(current)
                current.update({"id": doc_id, "_seq": seq, "_rev": rev + 1})
                result = self._col.replace_one({"id": doc_id, "_rev": rev}, current)
                if result.matched_count:
                    return current
                logger.debug(
                    "%s %s changed under modify (attempt %d/%d)",
                    self.name, doc_id, attempt, self._modify_attempts,
                )
        raise ConflictError(f"{self.name} document is being modified concurrently, try again")

    def update_one(self, query: Query, changes: dict[str, Any]) -> Document | None:
        """Set ``changes`` on the first match, atomically. Returns the updated document or ``None``."""
        with self._write_lock:
            return self._col.find_one_and_update(
                query,
                {"$set": changes, "$inc": {"_rev": 1}},
                projection=_VISIBLE,
                return_document=ReturnDocument.AFTER,
            )

    def delete_one(self, query: Query) -> Document | None:
        with self._write_lock:
            return self._col.find_one_and_delete(query, projection=_VISIBLE)

    def ensure_indexes(self) -> None:
        self._col.create_index("id", unique=True, name="id_unique")
        self._col.create_index("_seq", name="insertion_order")


class EntityStore:
    def __init__(self, db: Database, config: CatalogConfig = DEFAULT_CATALOG_CONFIG) -> None:
        self.db = db
        attempts = config.store_modify_attempts
        self.dishes = Collection(db, "dishes", attempts)
        self.restaurants = Collection(db, "restaurants", attempts)
        self.reviews = Collection(db, "reviews", attempts)
        self.users = Collection(db, "users", attempts)

    def collections(self) -> list[Collection]:
        return [self.dishes, self.restaurants, self.reviews, self.users]

    def ensure_indexes(self) -> None:
        for collection in self.collections():
            collection.ensure_indexes()
        # One live review per user and target; withdrawn reviews drop out of the index
        self.db["reviews"].create_index(
            [("user_id", ASCENDING), ("dish_id", ASCENDING), ("restaurant_id", ASCENDING)],
            unique=True,
            partialFilterExpression={"deleted_at": None},
            name="one_active_review_per_target",
        )
        self.db["users"].create_index("username", unique=True, name="username_unique")
        self.db["dishes"].create_index([("category", ASCENDING), ("region", ASCENDING)])


_store: EntityStore | None = None
_store_lock = threading.Lock()


def connect(config: CatalogConfig = DEFAULT_CATALOG_CONFIG) -> Database:
    client: MongoClient = MongoClient(config.database_url, tz_aware=True)
    return client[config.database_name]


def use_database(db: Database, config: CatalogConfig = DEFAULT_CATALOG_CONFIG) -> EntityStore:
    """Point the process at ``db`` and make sure its indexes exist."""
    global _store
    store = EntityStore(db, config)
    store.ensure_indexes()
    with _store_lock:
        _store = store
    logger.info("Entity store using database %s", db.name)
    return store


def get_store() -> EntityStore:
    """Return the process-wide entity store, connecting on first call."""
    if _store is None:
        use_database(connect())
    return _store
