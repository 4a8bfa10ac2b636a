"""
Document identity reconciliation.

The document store keeps no type constraint on identity fields, so a
teacher written as {"teacher_id": 7} and one written as {"teacher_id": "7"}
are both legal and both common. Callers usually send identities as text.

Every document-store lookup by identity therefore tries two keys in order:

    1. the value parsed as an integer   (7)
    2. the value as an opaque string    ("7")

The first attempt that matches wins; later attempts are skipped. A value
that does not parse as an integer ("abc", "7.5") only gets the string try.

This is a workaround for the unenforced schema. Enforcing one identity
type in the document store would make it unnecessary, but callers rely
on the current tolerance.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)


def identity_candidates(value: Any) -> list[Any]:
    """Return the lookup keys for a caller-supplied identity, in try order."""
    candidates: list[Any] = []
    if not isinstance(value, bool):
        try:
            candidates.append(int(str(value).strip()))
        except (TypeError, ValueError):
            pass
    candidates.append(str(value))
    return candidates


class IdentifierReconciler:
    """Runs document-store operations keyed by a tolerant identity match."""

    def __init__(self, documents):
        self.documents = documents

    async def find(self, collection: str, id_field: str, identity: Any) -> dict | None:
        return await self._first(
            lambda key: self.documents.find_one(collection, {id_field: key}),
            collection, id_field, identity,
        )

    async def update(
        self,
        collection: str,
        id_field: str,
        identity: Any,
        fields: dict,
    ) -> dict | None:
        """Apply a partial update to the first matching document.

        Returns the document after the update, or None if nothing matched.
        Never inserts.
        """
        return await self._first(
            lambda key: self.documents.update_one(collection, {id_field: key}, fields),
            collection, id_field, identity,
        )

    async def delete(self, collection: str, id_field: str, identity: Any) -> dict | None:
        """Remove the first matching document and return it, or None."""
        return await self._first(
            lambda key: self.documents.delete_one(collection, {id_field: key}),
            collection, id_field, identity,
        )

    async def _first(
        self,
        attempt: Callable[[Any], Awaitable[dict | None]],
        collection: str,
        id_field: str,
        identity: Any,
    ) -> dict | None:
        candidates = identity_candidates(identity)
        for n, key in enumerate(candidates):
            result = await attempt(key)
            if result:
                if n > 0:
                    logger.debug(
                        f"{collection}.{id_field}={identity!r} matched on "
                        f"{type(key).__name__} key after numeric miss"
                    )
                return result
        return None
