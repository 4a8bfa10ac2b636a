"""
school-bridge schema registry.

The registry is the static map from an entity type name to where that
entity lives and how it is keyed. Nothing else in the package hardcodes
table names, collection names or identity columns — the routers ask here.

THREE KINDS OF ENTITY TYPE — the routing decision hangs on this:

    dual-store      — a table AND a collection. The two copies are
                      independent and correlated only by equal identity.
                      (party-teacher, party-class, party-student)

    tabular-only    — a table, no collection. (subject, enrollment)

    document-only   — a collection, no table. (library-book, event)

Document-only fields:
    Fields that only exist in the document representation of a dual-store
    type (department, schedule, enrollment_year). Their presence in a
    create payload routes the write to the document store.

Foreign-key edges:
    Referential edges exist only between tables. The registry enumerates
    them so the dependency resolver can count and rewrite dependents
    before a delete. Edges into enrollments are not reassignable — an
    enrollment without its student or subject is meaningless.

Usage:
    registry = SchemaRegistry.default()

    schema = registry.get("teachers")        # aliases resolve
    schema.name                              # → "party-teacher"
    schema.is_dual_store                     # → True
    registry.dependents_of(schema.name)      # → [ForeignKeyEdge(classes...), ...]
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Optional

from school_bridge.core.errors import UnknownEntityType


# ─────────────────────────────────────────────────────────────
# Store tag
# ─────────────────────────────────────────────────────────────

class Store(str, enum.Enum):
    """Explicit write target. Carried by every routed write."""
    TABULAR  = "tabular"
    DOCUMENT = "document"

    @classmethod
    def from_string(cls, value: "str | Store") -> "Store":
        """Parse a store name, accepting backend names (postgres, mongodb) as aliases."""
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower()
        alias = _STORE_ALIASES.get(key, key)
        try:
            return cls(alias)
        except ValueError:
            raise ValueError(
                f"Unknown store {value!r}. Valid: {[s.value for s in cls]}"
            ) from None


_STORE_ALIASES = {
    "postgres":   "tabular",
    "postgresql": "tabular",
    "sql":        "tabular",
    "mongodb":    "document",
    "mongo":      "document",
}


# ─────────────────────────────────────────────────────────────
# Definitions
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class LabelSpec:
    """A human-readable label resolved from a foreign reference.

    column      — the reference column on the listed row (teacher_id)
    target      — entity type the column points at (party-teacher)
    label       — key attached to the listed row (teacher_name)
    fields      — fields of the target joined with a space to form the label
    """
    column: str
    target: str
    label:  str
    fields: tuple[str, ...]


@dataclass(frozen=True)
class ForeignKeyEdge:
    """child_table.column → parent entity's table."""
    child:        str            # child entity type name
    child_table:  str
    column:       str
    parent:       str            # parent entity type name
    reassignable: bool = True    # nullable + may be pointed elsewhere


@dataclass(frozen=True)
class EntitySchema:
    """Where one entity type lives and how it is keyed."""
    name:             str
    table:            Optional[str] = None
    collection:       Optional[str] = None
    id_column:        Optional[str] = None
    id_field:         Optional[str] = None
    document_fields:  frozenset[str] = field(default_factory=frozenset)
    aliases:          tuple[str, ...] = ()
    labels:           tuple[LabelSpec, ...] = ()
    document_labels:  tuple[LabelSpec, ...] = ()

    @property
    def in_tabular(self) -> bool:
        return self.table is not None

    @property
    def in_document(self) -> bool:
        return self.collection is not None

    @property
    def is_dual_store(self) -> bool:
        return self.in_tabular and self.in_document

    def supports(self, store: Store) -> bool:
        return self.in_tabular if store is Store.TABULAR else self.in_document

    def has_document_fields(self, payload: dict) -> bool:
        """True if the payload carries any document-only field."""
        return any(f in payload for f in self.document_fields)

    def strip_document_fields(self, payload: dict) -> dict:
        """Return a copy of payload with the document-only fields removed."""
        return {k: v for k, v in payload.items() if k not in self.document_fields}


# ─────────────────────────────────────────────────────────────
# Registry
# ─────────────────────────────────────────────────────────────

class SchemaRegistry:
    """Entity type name → EntitySchema, plus the foreign-key edge list."""

    def __init__(self):
        self._by_name: dict[str, EntitySchema] = {}
        self._aliases: dict[str, str] = {}
        self._edges:   list[ForeignKeyEdge] = []

    @classmethod
    def default(cls) -> "SchemaRegistry":
        """Create a registry holding the seven school entity types."""
        registry = cls()
        registry._seed()
        return registry

    # ── Registration ──────────────────────────────────────────

    def register(self, schema: EntitySchema) -> EntitySchema:
        """Add an entity type.

        Raises:
            ValueError: If the name or one of its aliases is already taken.
        """
        for key in (schema.name, *schema.aliases):
            if key in self._by_name or key in self._aliases:
                raise ValueError(f"Entity type name '{key}' is already registered.")
        self._by_name[schema.name] = schema
        for alias in schema.aliases:
            self._aliases[alias] = schema.name
        return schema

    def add_edge(
        self,
        child: str,
        column: str,
        parent: str,
        *,
        reassignable: bool = True,
    ) -> ForeignKeyEdge:
        child_schema = self.get(child)
        parent_schema = self.get(parent)
        if not (child_schema.in_tabular and parent_schema.in_tabular):
            raise ValueError(
                f"Foreign-key edges only exist between tables: {child} → {parent}"
            )
        edge = ForeignKeyEdge(
            child=child_schema.name,
            child_table=child_schema.table,
            column=column,
            parent=parent_schema.name,
            reassignable=reassignable,
        )
        self._edges.append(edge)
        return edge

    # ── Lookup ────────────────────────────────────────────────

    def resolve_name(self, name: str) -> str:
        """Return the canonical entity type name for a name or alias.

        Raises:
            UnknownEntityType: If neither matches.
        """
        key = (name or "").strip().lower()
        if key in self._by_name:
            return key
        if key in self._aliases:
            return self._aliases[key]
        raise UnknownEntityType(name, self.names())

    def get(self, name: str) -> EntitySchema:
        return self._by_name[self.resolve_name(name)]

    def __contains__(self, name: str) -> bool:
        try:
            self.resolve_name(name)
        except UnknownEntityType:
            return False
        return True

    def names(self) -> list[str]:
        return list(self._by_name.keys())

    def all(self) -> list[EntitySchema]:
        return list(self._by_name.values())

    def dependents_of(self, name: str) -> list[ForeignKeyEdge]:
        """Edges whose parent is this entity type — "what references this?"."""
        canonical = self.resolve_name(name)
        return [e for e in self._edges if e.parent == canonical]

    def edges(self) -> list[ForeignKeyEdge]:
        return list(self._edges)

    def summary(self) -> dict:
        """Serializable registry description (sent in the welcome message)."""
        types = {}
        for s in self._by_name.values():
            stores = [st.value for st in Store if s.supports(st)]
            types[s.name] = {
                "stores":          stores,
                "table":           s.table,
                "collection":      s.collection,
                "document_fields": sorted(s.document_fields),
                "aliases":         list(s.aliases),
            }
        return {
            "entity_types": types,
            "edges": [
                f"{e.child_table}.{e.column} → {e.parent}" for e in self._edges
            ],
        }

    # ── Defaults ──────────────────────────────────────────────

    def _seed(self) -> None:
        teacher_label = LabelSpec(
            "teacher_id", "party-teacher", "teacher_name", ("first_name", "last_name"),
        )

        self.register(EntitySchema(
            name="party-teacher",
            table="teachers", collection="Teachers",
            id_column="teacher_id", id_field="teacher_id",
            document_fields=frozenset({"department"}),
            aliases=("teacher", "teachers"),
        ))
        self.register(EntitySchema(
            name="party-class",
            table="classes", collection="Classes",
            id_column="class_id", id_field="class_id",
            document_fields=frozenset({"schedule"}),
            aliases=("class", "classes"),
            labels=(teacher_label,),
            document_labels=(teacher_label,),
        ))
        self.register(EntitySchema(
            name="party-student",
            table="students", collection="Students",
            id_column="student_id", id_field="student_id",
            document_fields=frozenset({"enrollment_year"}),
            aliases=("student", "students"),
        ))
        self.register(EntitySchema(
            name="subject",
            table="subjects", id_column="subject_id",
            aliases=("subjects",),
            labels=(teacher_label,),
        ))
        self.register(EntitySchema(
            name="enrollment",
            table="enrollments", id_column="enrollment_id",
            aliases=("enrollments",),
            labels=(
                LabelSpec("student_id", "party-student", "student_name",
                          ("first_name", "last_name")),
                LabelSpec("subject_id", "subject", "subject_name",
                          ("subject_name",)),
            ),
        ))
        self.register(EntitySchema(
            name="library-book",
            collection="LibraryBooks", id_field="book_id",
            aliases=("library_book", "librarybooks", "books"),
        ))
        self.register(EntitySchema(
            name="event",
            collection="Events", id_field="event_id",
            aliases=("events",),
        ))

        self.add_edge("party-class",   "teacher_id", "party-teacher")
        self.add_edge("subject",       "teacher_id", "party-teacher")
        self.add_edge("party-student", "class_id",   "party-class")
        self.add_edge("enrollment",    "student_id", "party-student", reassignable=False)
        self.add_edge("enrollment",    "subject_id", "subject",       reassignable=False)


# ─────────────────────────────────────────────────────────────
# Process-wide default
# ─────────────────────────────────────────────────────────────

_default_registry: SchemaRegistry | None = None


def get_default_registry() -> SchemaRegistry:
    global _default_registry
    if _default_registry is None:
        _default_registry = SchemaRegistry.default()
    return _default_registry
