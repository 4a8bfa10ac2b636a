"""
Record merger — tabular, document and combined views of one entity type.

    tabular   — rows exactly as the tabular store returned them
    document  — documents as the document store returned them; the
                internal "_id" is rendered as a string and stays here
    combined  — tabular rows tagged origin="tabular", then documents
                tagged origin="document" with "_id" removed

Combined is a concatenation, not a join. A teacher held by both stores
appears twice, once per origin — identity correlation across stores is a
convention only, and merging on it would hide divergent copies.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from school_bridge.core.registry import Store

ORIGIN_KEY = "origin"
INTERNAL_ID = "_id"


@dataclass
class MergedView:
    tabular:  list[dict] = field(default_factory=list)
    document: list[dict] = field(default_factory=list)
    combined: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "tabular":  self.tabular,
            "document": self.document,
            "combined": self.combined,
        }


def document_view(doc: dict) -> dict:
    """A document for the document-only view: "_id" kept, as a string."""
    out = dict(doc)
    if INTERNAL_ID in out and out[INTERNAL_ID] is not None:
        out[INTERNAL_ID] = str(out[INTERNAL_ID])
    return out


def strip_internal(doc: dict) -> dict:
    """A document with the store-internal identifier removed."""
    return {k: v for k, v in doc.items() if k != INTERNAL_ID}


def tag(record: dict, origin: Store) -> dict:
    # the store tag overrides any record field of the same name
    return {**record, ORIGIN_KEY: origin.value}


def merge(rows: Iterable[dict], docs: Iterable[dict]) -> MergedView:
    """Build all three views. Inputs are not mutated."""
    rows = [dict(r) for r in rows]
    docs = list(docs)

    combined = [tag(r, Store.TABULAR) for r in rows]
    combined.extend(tag(strip_internal(d), Store.DOCUMENT) for d in docs)

    return MergedView(
        tabular=rows,
        document=[document_view(d) for d in docs],
        combined=combined,
    )
