"""
school-bridge — one data layer over a tabular store and a document store.

    from school_bridge.routing import DataLayer
    from school_bridge.store import TabularStore, MongoDocumentStore, create_engine_for

    data = DataLayer(TabularStore(create_engine_for()), MongoDocumentStore())
"""

__version__ = "0.1.0"
