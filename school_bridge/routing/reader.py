"""
Denormalizing reader — listings with foreign references resolved to labels.

Tabular listings attach a human-readable label for each reference column
declared on the entity's schema:

    subject, party-class  → teacher_name   (teachers.first_name + last_name)
    enrollment            → student_name, subject_name

Each reference column costs one extra full-table query on the target
table, resolved through an in-memory id → label map. A reference that
points nowhere (NULL, or a dangling id) gets a None label.

Document listings of classes resolve teacher_name against the Teachers
collection on their own. The two stores never look each other up.

Reads degrade: a store failure is logged and yields an empty list for
that store. The caller still gets the other store's records.
"""

from __future__ import annotations

import logging

from pymongo.errors import PyMongoError
from sqlalchemy.exc import SQLAlchemyError

from school_bridge.core.errors import StoreUnavailable
from school_bridge.core.registry import EntitySchema, LabelSpec, SchemaRegistry
from school_bridge.store.tabular import TableRepo, TabularStore

logger = logging.getLogger(__name__)


def _label(record: dict, fields: tuple[str, ...]) -> str | None:
    parts = [str(record[f]) for f in fields if record.get(f) not in (None, "")]
    return " ".join(parts) or None


class DenormalizingReader:
    """Lists one entity type from each store, labels attached."""

    def __init__(self, registry: SchemaRegistry, tabular: TabularStore, documents):
        self.registry  = registry
        self.tabular   = tabular
        self.documents = documents

    # ── Tabular ───────────────────────────────────────────────

    async def read_tabular(self, schema: EntitySchema) -> list[dict]:
        if not schema.in_tabular:
            return []
        try:
            async with self.tabular.transaction() as repo:
                rows = await repo.select_all(schema.table, order_by=schema.id_column)
                for lookup in schema.labels:
                    labels = await self._tabular_labels(repo, lookup)
                    for row in rows:
                        row[lookup.label] = labels.get(row.get(lookup.column))
        except (SQLAlchemyError, StoreUnavailable, OSError) as e:
            logger.error(f"Tabular read of {schema.name} failed: {e}")
            return []
        return rows

    async def _tabular_labels(self, repo: TableRepo, lookup: LabelSpec) -> dict:
        target = self.registry.get(lookup.target)
        rows = await repo.select_columns(
            target.table, [target.id_column, *lookup.fields],
        )
        return {r[target.id_column]: _label(r, lookup.fields) for r in rows}

    # ── Document ──────────────────────────────────────────────

    async def read_documents(self, schema: EntitySchema) -> list[dict]:
        if not schema.in_document:
            return []
        if not self.documents.available:
            logger.warning(
                f"Document store unavailable; {schema.name} listing has no documents"
            )
            return []
        try:
            docs = await self.documents.find(schema.collection)
            for lookup in schema.document_labels:
                labels = await self._document_labels(lookup)
                for doc in docs:
                    ref = doc.get(lookup.column)
                    doc[lookup.label] = labels.get(str(ref)) if ref is not None else None
        except (PyMongoError, StoreUnavailable, OSError) as e:
            logger.error(f"Document read of {schema.name} failed: {e}")
            return []
        return docs

    async def _document_labels(self, lookup: LabelSpec) -> dict:
        # keyed by str(id) so 7 and "7" resolve alike
        target = self.registry.get(lookup.target)
        docs = await self.documents.find(target.collection)
        return {
            str(d[target.id_field]): _label(d, lookup.fields)
            for d in docs
            if d.get(target.id_field) is not None
        }
