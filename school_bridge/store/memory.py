"""
school-bridge in-memory document store.

A real document store implementation backed by Python dicts. No MongoDB
required. Used for demos and tests, and as the fallback when the server
is started with SCHOOL_DOCUMENT_STORE=memory.

Drop-in replacement for MongoDocumentStore — same async surface, same
semantics where they matter to the data layer:

  - every inserted document gets an ObjectId "_id"
  - filters are exact-match and type-strict, so {"teacher_id": 7}
    does NOT match a document holding "7" (this is what makes the
    identifier reconciler necessary against a real MongoDB)
  - callers get copies; mutating a returned document never touches
    the stored one
"""

from __future__ import annotations

import copy
from collections import defaultdict

from bson import ObjectId

from school_bridge.core.errors import StoreUnavailable


# ─────────────────────────────────────────────────────────────
# Filter evaluator
# ─────────────────────────────────────────────────────────────

_MISSING = object()


def _same(stored, wanted) -> bool:
    """Equality without Python's cross-type leniency (1 == 1.0 aside)."""
    if isinstance(stored, bool) or isinstance(wanted, bool):
        return type(stored) is type(wanted) and stored == wanted
    numeric = (int, float)
    if isinstance(stored, numeric) and isinstance(wanted, numeric):
        return stored == wanted
    return type(stored) is type(wanted) and stored == wanted


def _matches(doc: dict, filter: dict | None) -> bool:
    if not filter:
        return True
    for key, wanted in filter.items():
        stored = doc.get(key, _MISSING)
        if wanted is None:
            # Mongo: {"f": None} matches null or missing
            if stored is not _MISSING and stored is not None:
                return False
            continue
        if stored is _MISSING:
            return False
        if isinstance(stored, list) and not isinstance(wanted, list):
            if not any(_same(item, wanted) for item in stored):
                return False
            continue
        if not _same(stored, wanted):
            return False
    return True


# ─────────────────────────────────────────────────────────────
# Store
# ─────────────────────────────────────────────────────────────

class MemoryDocumentStore:
    name = "document"

    def __init__(self, *, connected: bool = True):
        self._connected = connected
        self.reset()

    def reset(self) -> None:
        self.collections: dict[str, list[dict]] = defaultdict(list)

    def summary(self) -> dict:
        return {name: len(docs) for name, docs in sorted(self.collections.items())}

    # ── Lifecycle ─────────────────────────────────────────────

    @property
    def available(self) -> bool:
        return self._connected

    async def connect(self, retries: int = 1, delay: float = 0.0) -> bool:
        self._connected = True
        return True

    async def close(self) -> None:
        self._connected = False

    async def ping(self) -> bool:
        return self._connected

    def _collection(self, name: str) -> list[dict]:
        if not self._connected:
            raise StoreUnavailable(self.name, "in-memory store is disconnected")
        return self.collections[name]

    # ── Operations ────────────────────────────────────────────

    async def find(self, collection: str, filter: dict | None = None) -> list[dict]:
        return [copy.deepcopy(d) for d in self._collection(collection) if _matches(d, filter)]

    async def find_one(self, collection: str, filter: dict) -> dict | None:
        for d in self._collection(collection):
            if _matches(d, filter):
                return copy.deepcopy(d)
        return None

    async def insert_one(self, collection: str, doc: dict) -> dict:
        stored = copy.deepcopy(doc)
        stored.setdefault("_id", ObjectId())
        self._collection(collection).append(stored)
        return copy.deepcopy(stored)

    async def insert_many(self, collection: str, docs: list[dict]) -> int:
        for doc in docs:
            await self.insert_one(collection, doc)
        return len(docs)

    async def update_one(self, collection: str, filter: dict, fields: dict) -> dict | None:
        for d in self._collection(collection):
            if _matches(d, filter):
                d.update(copy.deepcopy(fields))
                return copy.deepcopy(d)
        return None

    async def delete_one(self, collection: str, filter: dict) -> dict | None:
        docs = self._collection(collection)
        for i, d in enumerate(docs):
            if _matches(d, filter):
                return docs.pop(i)
        return None

    async def delete_many(self, collection: str, filter: dict | None = None) -> int:
        docs = self._collection(collection)
        keep = [d for d in docs if not _matches(d, filter)]
        removed = len(docs) - len(keep)
        self.collections[collection] = keep
        return removed

    def __repr__(self) -> str:
        return f"<MemoryDocumentStore {self.summary()}>"
