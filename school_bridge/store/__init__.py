"""
school-bridge persistence layer.

The store package manages all access to both stores. Nothing outside
this package writes SQL or document-store queries directly.

    from school_bridge.store.session import create_engine_for, create_tables
    from school_bridge.store.tabular import TabularStore
    from school_bridge.store.documents import MongoDocumentStore
    from school_bridge.store.memory import MemoryDocumentStore

The server holds one engine and one document client, injected into the
data layer at startup.
"""

from school_bridge.store.documents import MongoDocumentStore
from school_bridge.store.memory import MemoryDocumentStore
from school_bridge.store.session import (
    create_engine_for,
    create_tables,
    get_db_url,
)
from school_bridge.store.tabular import TableRepo, TabularStore

__all__ = [
    "TabularStore", "TableRepo",
    "MongoDocumentStore", "MemoryDocumentStore",
    "create_engine_for", "create_tables",
    "get_db_url",
]
