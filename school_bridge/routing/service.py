"""
school-bridge data layer — the one object callers talk to.

    tabular   = TabularStore(create_engine_for())
    documents = MongoDocumentStore()
    await documents.connect()

    data = DataLayer(tabular, documents)

    await data.list("teachers")                       # all three views
    await data.list("party-class", view="combined")
    await data.create("teacher", {"first_name": "Ada", "department": "Math"})
    await data.update("teacher", "7", {"phone_number": "555-0199"})
    await data.delete("teacher", 7, cascade=True)

Stores are injected at construction. The data layer holds no other state,
so one instance serves every concurrent request.
"""

from __future__ import annotations

import logging
from typing import Any

from school_bridge.core.errors import InvalidView
from school_bridge.core.merger import merge
from school_bridge.core.registry import SchemaRegistry, Store, get_default_registry
from school_bridge.routing.dependencies import UNSET, DependencyResolver
from school_bridge.routing.reader import DenormalizingReader
from school_bridge.routing.writer import DeleteOutcome, WriteRouter
from school_bridge.store import seed
from school_bridge.store.tabular import TabularStore

logger = logging.getLogger(__name__)

VIEWS = ("all", "tabular", "document", "combined")


def parse_view(view: str | None) -> str:
    """Normalize a list view name, accepting backend names (postgres, mongodb)."""
    key = (view or "all").strip().lower()
    if key in VIEWS:
        return key
    try:
        return Store.from_string(key).value
    except ValueError:
        raise InvalidView(
            f"Unknown view {view!r}. Valid: {', '.join(VIEWS)}",
            {"view": view},
        ) from None


class DataLayer:
    """Entity-type-generic operations over the tabular and document stores."""

    def __init__(
        self,
        tabular: TabularStore,
        documents,
        registry: SchemaRegistry | None = None,
    ):
        self.registry  = registry or get_default_registry()
        self.tabular   = tabular
        self.documents = documents
        self.resolver  = DependencyResolver(self.registry)
        self.reader    = DenormalizingReader(self.registry, tabular, documents)
        self.writer    = WriteRouter(self.registry, tabular, documents, self.resolver)

    # ── Reads ─────────────────────────────────────────────────

    async def list(self, entity_type: str, view: str = "all") -> dict | list:
        """List one entity type.

        view="all" returns {"tabular": [...], "document": [...], "combined": [...]};
        any other view returns that one list. A store that fails to answer
        contributes an empty list and the read still succeeds.
        """
        schema = self.registry.get(entity_type)
        which = parse_view(view)

        rows = []
        docs = []
        if which != Store.DOCUMENT.value:
            rows = await self.reader.read_tabular(schema)
        if which != Store.TABULAR.value:
            docs = await self.reader.read_documents(schema)

        merged = merge(rows, docs)
        if which == "all":
            return merged.to_dict()
        return getattr(merged, which)

    async def join(self, entity_type: str) -> list[dict]:
        """The combined view: every record of both stores, origin-tagged."""
        return await self.list(entity_type, view="combined")

    # ── Writes ────────────────────────────────────────────────

    async def create(
        self,
        entity_type: str,
        payload: dict,
        store: Store | str | None = None,
    ) -> dict:
        return await self.writer.create(entity_type, payload, store)

    async def update(self, entity_type: str, identity: Any, payload: dict) -> dict | None:
        return await self.writer.update(entity_type, identity, payload)

    async def delete(
        self,
        entity_type: str,
        identity: Any,
        cascade: bool = False,
        reassign_to: Any = UNSET,
    ) -> DeleteOutcome | None:
        return await self.writer.delete(entity_type, identity, cascade, reassign_to)

    # ── Admin ─────────────────────────────────────────────────

    async def bulk_reset(self, target: str | None = "all") -> dict:
        """Truncate and reseed one or both stores."""
        report = await seed.bulk_reset(target, self.tabular, self.documents, self.registry)
        logger.info(f"Bulk reset complete: {report['target']}")
        return report

    async def health(self) -> dict:
        tabular_ok  = await self.tabular.ping()
        document_ok = await self.documents.ping()
        return {
            "status": "OK" if tabular_ok and document_ok else "PARTIAL",
            "databases": {
                "tabular":  "connected" if tabular_ok else "disconnected",
                "document": "connected" if document_ok else "disconnected",
            },
        }
