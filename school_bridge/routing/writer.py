"""
Write router — create, update and delete across the two stores.

CREATE
    The destination is decided first, as an explicit Store value, and the
    write dispatches on it:

        override given            → that store (StoreNotSupported if absent)
        tabular-only type         → tabular
        document-only type        → document
        dual-store type           → document if the payload carries any
                                    document-only field, else tabular

    One store operation per create. Nothing is mirrored.

UPDATE
    Dual-store types prefer the document copy: if a document holds the
    identity, or the payload carries a document-only field, the update
    goes to the document store. Otherwise the document-only fields are
    stripped and the tabular row is updated, with one last document
    attempt if no row matched. Update never inserts: a miss is None.

DELETE
    The tabular delete (with its dependency policy) runs first, in its
    own transaction, then the document copy is removed through the
    identifier reconciler. A delete blocked by HasDependents therefore
    touches neither store. The two deletes are otherwise independent:
    a store that cannot be reached is recorded in the outcome's errors
    and the other store is still tried. Success if either store held the
    record, None if neither did.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from pymongo.errors import PyMongoError
from sqlalchemy.exc import InterfaceError, OperationalError

from school_bridge.core.errors import (
    InvalidPayload,
    NoUpdatableFields,
    StoreNotSupported,
    StoreUnavailable,
)
from school_bridge.core.identity import IdentifierReconciler
from school_bridge.core.merger import document_view
from school_bridge.core.registry import EntitySchema, SchemaRegistry, Store
from school_bridge.routing.dependencies import UNSET, DeletePolicy, DependencyResolver
from school_bridge.store.tabular import TabularStore

logger = logging.getLogger(__name__)


@dataclass
class DeleteOutcome:
    """What a delete removed, per store."""
    entity_type: str
    identity:    Any
    tabular:     dict | None = None          # removed row
    document:    dict | None = None          # removed document
    mode:        str | None = None           # direct / cascade / reassign / nullify
    affected:    dict[str, int] = field(default_factory=dict)
    errors:      dict[str, str] = field(default_factory=dict)

    @property
    def found(self) -> bool:
        return self.tabular is not None or self.document is not None

    @property
    def stores(self) -> list[str]:
        held = []
        if self.tabular is not None:
            held.append(Store.TABULAR.value)
        if self.document is not None:
            held.append(Store.DOCUMENT.value)
        return held

    def to_dict(self) -> dict:
        return {
            "entity_type": self.entity_type,
            "identity":    self.identity,
            "stores":      self.stores,
            "mode":        self.mode,
            "tabular":     self.tabular,
            "document":    self.document,
            "affected":    self.affected,
            "errors":      self.errors,
        }


class WriteRouter:

    def __init__(
        self,
        registry: SchemaRegistry,
        tabular: TabularStore,
        documents,
        resolver: DependencyResolver | None = None,
    ):
        self.registry   = registry
        self.tabular    = tabular
        self.documents  = documents
        self.resolver   = resolver or DependencyResolver(registry)
        self.reconciler = IdentifierReconciler(documents)

    # ─────────────────────────────────────────────────────────
    # Create
    # ─────────────────────────────────────────────────────────

    def plan_create(
        self,
        schema: EntitySchema,
        payload: dict,
        store: Store | str | None = None,
    ) -> Store:
        """Pick the one store a create goes to.

        Raises:
            StoreNotSupported: The override names a store the type does not use.
            InvalidPayload:    The override is not a store name.
        """
        if store is not None:
            try:
                target = Store.from_string(store)
            except ValueError as e:
                raise InvalidPayload(str(e), {"store": store}) from None
            if not schema.supports(target):
                raise StoreNotSupported(schema.name, target.value)
            return target
        if not schema.in_document:
            return Store.TABULAR
        if not schema.in_tabular:
            return Store.DOCUMENT
        if schema.has_document_fields(payload):
            return Store.DOCUMENT
        return Store.TABULAR

    async def create(
        self,
        entity_type: str,
        payload: dict,
        store: Store | str | None = None,
    ) -> dict:
        """Insert one record. Returns it as stored, identity included.

        Raises:
            UnknownEntityType, StoreNotSupported, StoreUnavailable, InvalidPayload
        """
        schema = self.registry.get(entity_type)
        payload = dict(payload or {})
        target = self.plan_create(schema, payload, store)
        logger.debug(f"create {schema.name} → {target.value}")

        if target is Store.TABULAR:
            # an override can send document-shaped payloads here
            values = schema.strip_document_fields(payload)
            async with self.tabular.transaction() as repo:
                return await repo.insert(schema.table, values)

        doc = dict(payload)
        if doc.get(schema.id_field) is None:
            doc[schema.id_field] = await self._next_document_id(schema)
        stored = await self.documents.insert_one(schema.collection, doc)
        return document_view(stored)

    async def _next_document_id(self, schema: EntitySchema) -> int:
        """One past the highest integer identity in the collection."""
        highest = 0
        for doc in await self.documents.find(schema.collection):
            value = doc.get(schema.id_field)
            if isinstance(value, bool) or value is None:
                continue
            try:
                highest = max(highest, int(str(value).strip()))
            except ValueError:
                continue
        return highest + 1

    # ─────────────────────────────────────────────────────────
    # Update
    # ─────────────────────────────────────────────────────────

    async def update(self, entity_type: str, identity: Any, payload: dict) -> dict | None:
        """Partial update in place. Returns the record after, or None on a miss.

        Raises:
            NoUpdatableFields: Nothing left to write once the payload is routed.
            StoreUnavailable:  The store the update needs has no connection.
        """
        schema = self.registry.get(entity_type)
        payload = dict(payload or {})
        if not payload:
            raise NoUpdatableFields(schema.name, [])

        if schema.is_dual_store:
            return await self._update_dual(schema, identity, payload)
        if schema.in_tabular:
            return await self._update_tabular(schema, identity, payload)

        doc = await self.reconciler.update(
            schema.collection, schema.id_field, identity, payload,
        )
        return document_view(doc) if doc else None

    async def _update_dual(self, schema: EntitySchema, identity: Any, payload: dict) -> dict | None:
        wants_document = schema.has_document_fields(payload)
        tried_document = False

        existing = None
        if self.documents.available:
            existing = await self.reconciler.find(
                schema.collection, schema.id_field, identity,
            )
        elif wants_document:
            raise StoreUnavailable(
                self.documents.name,
                f"{', '.join(sorted(schema.document_fields & payload.keys()))} "
                f"can only be written to the document store",
            )
        else:
            logger.warning(
                f"Document store unavailable; updating {schema.name} {identity} "
                f"in the tabular store only"
            )

        if existing is not None or wants_document:
            tried_document = True
            doc = await self.reconciler.update(
                schema.collection, schema.id_field, identity, payload,
            )
            if doc:
                return document_view(doc)

        values = schema.strip_document_fields(payload)
        if not values:
            raise NoUpdatableFields(schema.name, sorted(payload))

        row = await self._update_tabular(schema, identity, values)
        if row is not None:
            return row

        if self.documents.available and not tried_document:
            doc = await self.reconciler.update(
                schema.collection, schema.id_field, identity, payload,
            )
            if doc:
                return document_view(doc)
        return None

    async def _update_tabular(self, schema: EntitySchema, identity: Any, values: dict) -> dict | None:
        async with self.tabular.transaction() as repo:
            return await repo.update(schema.table, schema.id_column, identity, values)

    # ─────────────────────────────────────────────────────────
    # Delete
    # ─────────────────────────────────────────────────────────

    async def delete(
        self,
        entity_type: str,
        identity: Any,
        cascade: bool = False,
        reassign_to: Any = UNSET,
    ) -> DeleteOutcome | None:
        """Remove a record from every store that holds it.

        Returns None if no store held it.

        Raises:
            HasDependents:    Tabular dependents exist and no policy covers them.
            InvalidPayload:   reassign_to is not a usable parent identity.
            StoreUnavailable: A store needed for the delete has no connection
                              and nothing was removed elsewhere.
        """
        schema = self.registry.get(entity_type)
        policy = DeletePolicy(cascade=bool(cascade), reassign_to=reassign_to)
        outcome = DeleteOutcome(entity_type=schema.name, identity=identity)

        tabular_error = None
        if schema.in_tabular:
            try:
                async with self.tabular.transaction() as repo:
                    result = await self.resolver.delete(repo, schema, identity, policy)
            except (StoreUnavailable, OperationalError, InterfaceError) as e:
                if not schema.in_document:
                    raise
                tabular_error = (
                    e if isinstance(e, StoreUnavailable)
                    else StoreUnavailable(Store.TABULAR.value, str(e))
                )
                outcome.errors[Store.TABULAR.value] = str(e)
                logger.warning(
                    f"Tabular delete of {schema.name} {identity} failed, "
                    f"trying the document store: {e}"
                )
            else:
                if result is not None:
                    outcome.tabular  = result.row
                    outcome.mode     = result.mode
                    outcome.affected = result.affected

        if schema.in_document:
            try:
                doc = await self.reconciler.delete(
                    schema.collection, schema.id_field, identity,
                )
            except (StoreUnavailable, PyMongoError) as e:
                if outcome.tabular is None:
                    raise tabular_error or e
                outcome.errors[Store.DOCUMENT.value] = str(e)
                logger.warning(
                    f"Deleted {schema.name} {identity} from the tabular store "
                    f"but the document delete failed: {e}"
                )
            else:
                if doc:
                    outcome.document = document_view(doc)
                    outcome.mode = outcome.mode or "direct"

        if not outcome.found:
            if tabular_error is not None:
                raise tabular_error
            return None
        if schema.is_dual_store and len(outcome.stores) == 1 and not outcome.errors:
            logger.info(
                f"Deleted {schema.name} {identity}: held by the "
                f"{outcome.stores[0]} store only"
            )
        return outcome
