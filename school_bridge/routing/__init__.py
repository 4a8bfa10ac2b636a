"""
school-bridge routing — reads, writes and delete policy across both stores.

    from school_bridge.routing import DataLayer, UNSET

    data = DataLayer(tabular, documents)
"""

from school_bridge.routing.dependencies import (
    UNSET,
    DeletePolicy,
    DependencyResolver,
    TabularDelete,
)
from school_bridge.routing.reader import DenormalizingReader
from school_bridge.routing.service import VIEWS, DataLayer, parse_view
from school_bridge.routing.writer import DeleteOutcome, WriteRouter

__all__ = [
    "DataLayer", "VIEWS", "parse_view",
    "DenormalizingReader",
    "WriteRouter", "DeleteOutcome",
    "DependencyResolver", "DeletePolicy", "TabularDelete", "UNSET",
]
