"""
school-bridge client.

    AsyncClient  — async/await API over the WebSocket protocol
"""

from school_bridge.client.async_client import (
    AsyncClient,
    ClientError,
    ConnectionError,
    ServerError,
    TimeoutError,
)

__all__ = [
    "AsyncClient",
    "ClientError", "ServerError", "ConnectionError", "TimeoutError",
]
