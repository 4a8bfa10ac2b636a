"""
Dependency resolver — referential policy for tabular deletes.

The foreign keys in the tabular store have no ON DELETE action, so a row
that is still referenced cannot be deleted outright. Before removing a
row the resolver counts the rows that reference it (one count per edge
in the schema registry) and applies the caller's policy, checked in
this order:

    1. cascade=True           delete dependents first (recursively —
                              a cascaded class takes its students and
                              their enrollments with it), then the row
    2. reassign_to=<id>       point dependents at another parent row
    3. reassign_to=None       detach dependents (foreign key → NULL)
    4. dependents exist       raise HasDependents, change nothing
    5. no dependents          delete the row

Edges into enrollments are not reassignable: for a student or subject
with enrollments only block or cascade apply, and a reassign request
is refused with HasDependents.

All statements run on the TableRepo the caller passes in, i.e. inside
the caller's transaction. A failure at any step rolls back the whole
delete, dependent mutations included.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any

from school_bridge.core.errors import HasDependents, InvalidPayload
from school_bridge.core.registry import EntitySchema, ForeignKeyEdge, SchemaRegistry
from school_bridge.store.tabular import TableRepo, coerce_identity

logger = logging.getLogger(__name__)


class _Unset:
    """Sentinel: reassign_to was not supplied (distinct from None)."""

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET = _Unset()


@dataclass(frozen=True)
class DeletePolicy:
    cascade:     bool = False
    reassign_to: Any = UNSET

    @property
    def mode(self) -> str:
        if self.cascade:
            return "cascade"
        if self.reassign_to is UNSET:
            return "block"
        return "nullify" if self.reassign_to is None else "reassign"


@dataclass
class TabularDelete:
    """What one tabular delete removed or rewrote."""
    row:      dict
    mode:     str
    affected: dict[str, int] = field(default_factory=dict)   # table → rows touched


class DependencyResolver:
    """Applies a DeletePolicy to one tabular row and its dependents."""

    def __init__(self, registry: SchemaRegistry):
        self.registry = registry

    async def count_dependents(
        self,
        repo: TableRepo,
        schema: EntitySchema,
        key: int,
    ) -> dict[ForeignKeyEdge, int]:
        """Rows referencing key, per edge. Edges with no rows are omitted."""
        counts: dict[ForeignKeyEdge, int] = {}
        for edge in self.registry.dependents_of(schema.name):
            n = await repo.count_where(edge.child_table, edge.column, key)
            if n:
                counts[edge] = n
        return counts

    async def delete(
        self,
        repo: TableRepo,
        schema: EntitySchema,
        identity: Any,
        policy: DeletePolicy = DeletePolicy(),
    ) -> TabularDelete | None:
        """Delete one row under policy. Returns None if the row does not exist.

        Raises:
            HasDependents:  Dependents exist and the policy does not cover them.
            InvalidPayload: reassign_to names a missing or identical parent.
        """
        key = coerce_identity(identity)
        if key is None:
            return None
        if await repo.get(schema.table, schema.id_column, key) is None:
            return None

        counts = await self.count_dependents(repo, schema, key)
        affected: Counter[str] = Counter()

        if counts:
            if policy.cascade:
                for edge in counts:
                    await self._cascade(repo, edge, key, affected)
            elif policy.reassign_to is not UNSET:
                fixed = [e for e in counts if not e.reassignable]
                if fixed:
                    raise HasDependents(
                        schema.name, identity,
                        {e.child_table: counts[e] for e in fixed},
                        reassignable=False,
                    )
                new_key = await self._check_reassign_target(repo, schema, key, policy.reassign_to)
                for edge in counts:
                    affected[edge.child_table] += await repo.update_where(
                        edge.child_table, edge.column, key, new_key,
                    )
            else:
                raise HasDependents(
                    schema.name, identity,
                    {e.child_table: n for e, n in counts.items()},
                    reassignable=all(e.reassignable for e in counts),
                )

        row = await repo.delete(schema.table, schema.id_column, key)
        if affected:
            logger.info(
                f"Deleted {schema.name} {key} ({policy.mode}); "
                f"dependents touched: {dict(affected)}"
            )
        return TabularDelete(row=row, mode=policy.mode if counts else "direct",
                             affected=dict(affected))

    async def _cascade(
        self,
        repo: TableRepo,
        edge: ForeignKeyEdge,
        parent_key: int,
        affected: Counter,
    ) -> None:
        """Delete every row on edge pointing at parent_key, grandchildren first."""
        child = self.registry.get(edge.child)
        sub_edges = self.registry.dependents_of(child.name)
        if sub_edges:
            child_ids = await repo.ids_where(
                edge.child_table, child.id_column, edge.column, parent_key,
            )
            for child_id in child_ids:
                for sub in sub_edges:
                    await self._cascade(repo, sub, child_id, affected)
        affected[edge.child_table] += await repo.delete_where(
            edge.child_table, edge.column, parent_key,
        )

    async def _check_reassign_target(
        self,
        repo: TableRepo,
        schema: EntitySchema,
        key: int,
        reassign_to: Any,
    ) -> int | None:
        if reassign_to is None:
            return None
        new_key = coerce_identity(reassign_to)
        if new_key is None:
            raise InvalidPayload(
                f"reassign_to must be an integer id or null, got {reassign_to!r}",
                {"reassign_to": reassign_to},
            )
        if new_key == key:
            raise InvalidPayload(
                f"Cannot reassign dependents of {schema.name} {key} to itself",
                {"reassign_to": reassign_to},
            )
        if await repo.get(schema.table, schema.id_column, new_key) is None:
            raise InvalidPayload(
                f"reassign_to target {schema.name} {new_key} does not exist",
                {"reassign_to": reassign_to},
            )
        return new_key
