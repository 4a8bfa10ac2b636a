"""
school-bridge core — schema registry, error kinds, merging and
identity reconciliation. No I/O lives here.

    from school_bridge.core import (
        SchemaRegistry, EntitySchema, ForeignKeyEdge, LabelSpec, Store,
        BridgeError, UnknownEntityType, StoreUnavailable, NoUpdatableFields,
        HasDependents, StoreNotSupported, InvalidPayload, InvalidView,
        IdentifierReconciler, identity_candidates,
        MergedView, merge,
    )
"""

from school_bridge.core.errors import (
    BridgeError,
    HasDependents,
    InvalidPayload,
    InvalidView,
    NoUpdatableFields,
    StoreNotSupported,
    StoreUnavailable,
    UnknownEntityType,
)
from school_bridge.core.identity import IdentifierReconciler, identity_candidates
from school_bridge.core.merger import MergedView, merge
from school_bridge.core.registry import (
    EntitySchema,
    ForeignKeyEdge,
    LabelSpec,
    SchemaRegistry,
    Store,
    get_default_registry,
)

__all__ = [
    # Registry
    "SchemaRegistry", "EntitySchema", "ForeignKeyEdge", "LabelSpec",
    "Store", "get_default_registry",
    # Errors
    "BridgeError", "UnknownEntityType", "StoreUnavailable",
    "NoUpdatableFields", "HasDependents", "StoreNotSupported",
    "InvalidPayload", "InvalidView",
    # Reconciliation
    "IdentifierReconciler", "identity_candidates",
    "MergedView", "merge",
]
