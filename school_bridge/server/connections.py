"""
school-bridge connection manager.

Tracks every connected WebSocket client: registration after the hello
handshake, cleanup on disconnect. It has no store access and never
calls the router.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

from websockets.asyncio.server import ServerConnection

logger = logging.getLogger(__name__)


@dataclass
class ConnectedClient:
    """Everything the server knows about one live connection.

    session_id   — generated at handshake, echoed in the welcome message
    ws           — the live WebSocket connection
    client_name  — self-reported name from hello
    """
    session_id:  uuid.UUID
    ws:          ServerConnection
    client_name: str

    @property
    def remote_address(self) -> str:
        try:
            host, port = self.ws.remote_address[:2]
            return f"{host}:{port}"
        except (TypeError, ValueError):
            return "unknown"


class ConnectionManager:
    """All live connections, keyed by session id. Single event loop, no locks."""

    def __init__(self):
        self._clients: dict[uuid.UUID, ConnectedClient] = {}

    def register(
        self,
        session_id: uuid.UUID,
        ws: ServerConnection,
        client_name: str,
    ) -> ConnectedClient:
        client = ConnectedClient(session_id=session_id, ws=ws, client_name=client_name)
        self._clients[session_id] = client
        logger.info(
            f"Client connected: {client_name!r} from {client.remote_address} "
            f"— session {session_id!s:.8}..."
        )
        return client

    def unregister(self, session_id: uuid.UUID) -> ConnectedClient | None:
        client = self._clients.pop(session_id, None)
        if client:
            logger.info(
                f"Client disconnected: {client.client_name!r} "
                f"session {session_id!s:.8}..."
            )
        return client

    def get(self, session_id: uuid.UUID) -> ConnectedClient | None:
        return self._clients.get(session_id)

    def all_clients(self) -> list[ConnectedClient]:
        return list(self._clients.values())

    @property
    def count(self) -> int:
        return len(self._clients)
