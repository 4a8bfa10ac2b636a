"""
school-bridge error kinds.

Every failure the data layer raises is a BridgeError subclass carrying a
machine-readable ``code`` (the same string the wire protocol sends back)
and a human-readable message.

"Not found" is deliberately absent: update and delete return None when
no store holds the record. That is a negative result, not an error.
"""

from __future__ import annotations


class BridgeError(Exception):
    """Base class for all data layer errors."""

    code = "INTERNAL"

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class UnknownEntityType(BridgeError, KeyError):
    """The entity type name is not in the schema registry."""

    code = "UNKNOWN_ENTITY_TYPE"

    def __init__(self, name: str, known: list[str] | None = None):
        self.name = name
        hint = f" Known types: {', '.join(known)}." if known else ""
        super().__init__(f"Unknown entity type '{name}'.{hint}")

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return self.message


class StoreUnavailable(BridgeError):
    """The store chosen for an operation has no live connection."""

    code = "STORE_UNAVAILABLE"

    def __init__(self, store: str, reason: str | None = None):
        self.store = store
        msg = f"{store} store connection not available"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, {"store": store})


class NoUpdatableFields(BridgeError):
    """An update payload became empty after store-specific filtering."""

    code = "NO_UPDATABLE_FIELDS"

    def __init__(self, entity_type: str, dropped: list[str]):
        self.entity_type = entity_type
        self.dropped = dropped
        super().__init__(
            f"No valid fields to update for {entity_type}: "
            f"all fields ({', '.join(dropped) or 'none'}) are document-only "
            f"and no document holds this record.",
            {"dropped": dropped},
        )


class HasDependents(BridgeError):
    """A tabular delete was blocked by rows that reference the target."""

    code = "HAS_DEPENDENTS"

    def __init__(
        self,
        entity_type: str,
        identity,
        dependents: dict[str, int],
        reassignable: bool = True,
    ):
        self.entity_type = entity_type
        self.identity = identity
        self.dependents = dict(dependents)
        self.reassignable = reassignable

        parts = ", ".join(
            f"{count} row{'s' if count != 1 else ''} in {table}"
            for table, count in self.dependents.items()
        )
        if reassignable:
            options = "Pass cascade=true to delete them, reassign_to=<id> to move them, or reassign_to=null to detach them."
        else:
            options = "Pass cascade=true to delete them."
        super().__init__(
            f"Cannot delete {entity_type} {identity}: {parts} still reference it. {options}",
            {"dependents": self.dependents, "reassignable": reassignable},
        )


class StoreNotSupported(BridgeError):
    """An explicit store override names a store the entity type does not use."""

    code = "STORE_NOT_SUPPORTED"

    def __init__(self, entity_type: str, store: str):
        self.entity_type = entity_type
        self.store = store
        super().__init__(
            f"{entity_type} has no {store} representation",
            {"store": store},
        )


class InvalidPayload(BridgeError):
    """A write payload does not fit the target store."""

    code = "INVALID"


class InvalidView(BridgeError):
    """Unknown list view or reset target."""

    code = "INVALID"
