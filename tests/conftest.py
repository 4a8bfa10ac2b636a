"""
Shared fixtures.

No Postgres or MongoDB required: the tabular store runs on a throwaway
SQLite file (foreign keys switched on) and the document store is the
in-memory drop-in. Every test gets freshly seeded stores.
"""

from __future__ import annotations

import pytest
import pytest_asyncio

from school_bridge.core.registry import SchemaRegistry
from school_bridge.routing.service import DataLayer
from school_bridge.store.memory import MemoryDocumentStore
from school_bridge.store.session import create_engine_for, create_tables
from school_bridge.store.tabular import TabularStore


@pytest.fixture
def registry():
    return SchemaRegistry.default()


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_engine_for(f"sqlite+aiosqlite:///{tmp_path / 'school.db'}")
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def tabular(engine):
    return TabularStore(engine)


@pytest.fixture
def documents():
    return MemoryDocumentStore()


@pytest_asyncio.fixture
async def data(tabular, documents, registry):
    """A DataLayer over both stores, reset to the seed set."""
    layer = DataLayer(tabular, documents, registry)
    await layer.bulk_reset("all")
    return layer
