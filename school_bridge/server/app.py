"""
school-bridge server application.

Entry point: python -m school_bridge.server

Lifecycle:
  1. Start — open the tabular engine, connect the document store
             (with retries), bind the WebSocket port
  2. Run   — accept connections, dispatch messages via Router
  3. Stop  — close the socket, then both stores

Each connected client gets its own asyncio task running the connection
loop. The Router and its DataLayer are shared and stateless per message.

Configuration via environment variables:

    SCHOOL_DB_URL            Tabular store URL (async driver)
    SCHOOL_MONGO_URI         Document store URI
    SCHOOL_MONGO_DB          Document store database name
    SCHOOL_DOCUMENT_STORE    "mongodb" (default) or "memory"
    SCHOOL_HOST              Bind host (default: 0.0.0.0)
    SCHOOL_PORT              Bind port (default: 9998)
    SCHOOL_LOG_LEVEL         Logging level (default: INFO)
    SCHOOL_CONNECT_RETRIES   Document store connect attempts (default: 10)
    SCHOOL_CONNECT_DELAY     Seconds between attempts (default: 5)
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import signal
import uuid

import websockets
from websockets.asyncio.server import ServerConnection, serve

from school_bridge.routing.service import DataLayer
from school_bridge.server.connections import ConnectedClient, ConnectionManager
from school_bridge.server.protocol import (
    ErrorCode, Message, MsgType,
    error, welcome,
)
from school_bridge.server.router import Router
from school_bridge.store.documents import MongoDocumentStore
from school_bridge.store.memory import MemoryDocumentStore
from school_bridge.store.session import create_engine_for, create_tables
from school_bridge.store.tabular import TabularStore

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────
# Application
# ─────────────────────────────────────────────────────────────

class SchoolBridgeServer:
    """The school-bridge WebSocket server.

    Holds:
        connections  — ConnectionManager (who is connected)
        data         — DataLayer (both stores, injected or built on start)
        router       — Router (handles all message types)
    """

    VERSION = Router.VERSION

    def __init__(
        self,
        host: str = "0.0.0.0",
        port: int = 9998,
        data: DataLayer | None = None,
        connect_retries: int = 10,
        connect_delay: float = 5.0,
    ):
        self.host = host
        self.port = port
        self.connections = ConnectionManager()
        self.data        = data
        self.router      = None   # populated on startup
        self._retries    = connect_retries
        self._delay      = connect_delay
        self._owns_data  = data is None
        self._server     = None
        self._shutdown   = asyncio.Event()

    # ── Lifecycle ─────────────────────────────────────────────

    async def start(self) -> None:
        """Connect both stores and bind the socket."""
        logger.info(f"school-bridge server v{self.VERSION} starting...")

        if self.data is None:
            self.data = await self._build_data_layer()

        self.router = Router(self.data)

        self._server = await serve(
            self._connection_handler,
            self.host,
            self.port,
            ping_interval=30,
            ping_timeout=10,
            max_size=10 * 1024 * 1024,
        )
        logger.info(f"Listening on ws://{self.host}:{self.port}")

    async def _build_data_layer(self) -> DataLayer:
        engine = create_engine_for()
        await create_tables(engine)
        logger.info("Tabular tables verified.")

        if os.environ.get("SCHOOL_DOCUMENT_STORE", "mongodb").lower() == "memory":
            documents = MemoryDocumentStore()
            logger.info("Using the in-memory document store.")
        else:
            documents = MongoDocumentStore()
            await documents.connect(retries=self._retries, delay=self._delay)

        return DataLayer(TabularStore(engine), documents)

    async def run_forever(self) -> None:
        """Run until a shutdown signal is received."""
        await self.start()

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, self._request_shutdown)

        logger.info("Server ready. Press Ctrl+C to stop.")
        await self._shutdown.wait()
        await self.stop()

    def _request_shutdown(self) -> None:
        logger.info("Shutdown signal received.")
        self._shutdown.set()

    async def stop(self) -> None:
        logger.info("Shutting down...")

        if self._server:
            self._server.close()
            await self._server.wait_closed()

        if self._owns_data and self.data is not None:
            await self.data.documents.close()
            await self.data.tabular.close()

        logger.info("Server stopped.")

    # ── Connection handler ────────────────────────────────────

    async def _connection_handler(self, ws: ServerConnection) -> None:
        """Manage one client connection from connect to disconnect."""
        client = None
        try:
            client = await self._handshake(ws)
            if client is None:
                return
            await self._message_loop(ws, client)

        except websockets.exceptions.ConnectionClosed:
            pass  # normal disconnect
        except Exception as e:
            logger.exception(f"Unexpected error in connection handler: {e}")
        finally:
            if client:
                self.connections.unregister(client.session_id)

    async def _handshake(self, ws: ServerConnection) -> ConnectedClient | None:
        """Wait for hello, register the client, send welcome."""
        try:
            raw = await asyncio.wait_for(ws.recv(), timeout=15.0)
        except asyncio.TimeoutError:
            logger.warning(f"Connection from {ws.remote_address} timed out waiting for hello")
            await ws.close()
            return None

        try:
            msg = Message.parse(raw)
        except (ValueError, json.JSONDecodeError) as e:
            logger.warning(f"Malformed hello message: {e}")
            await ws.close()
            return None

        if msg.type != MsgType.HELLO:
            logger.warning(f"Expected hello, got {msg.type!r}")
            err = error(msg.msg_id, ErrorCode.INVALID, "First message must be hello")
            await ws.send(err.serialize())
            await ws.close()
            return None

        session_id = uuid.uuid4()
        client = self.connections.register(
            session_id=session_id,
            ws=ws,
            client_name=msg.get("client_name", "unknown"),
        )

        reply = welcome(
            session_id=str(session_id),
            request_id=msg.msg_id,
            server_version=self.VERSION,
            registry_summary=self.data.registry.summary(),
        )
        await ws.send(reply.serialize())
        return client

    async def _message_loop(self, ws: ServerConnection, client: ConnectedClient) -> None:
        """Receive and dispatch messages until the connection closes."""
        async for raw in ws:
            try:
                msg = Message.parse(raw)
            except (ValueError, json.JSONDecodeError) as e:
                err = error(None, ErrorCode.INVALID, f"Malformed message: {e}")
                await ws.send(err.serialize())
                continue

            reply = await self.router.dispatch(msg, client)

            if reply is not None:
                await ws.send(reply.serialize())

            if msg.type == MsgType.BYE:
                await ws.close()
                break


# ─────────────────────────────────────────────────────────────
# Entry point
# ─────────────────────────────────────────────────────────────

def main() -> None:
    """Entry point: python -m school_bridge.server"""
    log_level = os.environ.get("SCHOOL_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
        datefmt="%H:%M:%S",
    )

    server = SchoolBridgeServer(
        host=os.environ.get("SCHOOL_HOST", "0.0.0.0"),
        port=int(os.environ.get("SCHOOL_PORT", "9998")),
        connect_retries=int(os.environ.get("SCHOOL_CONNECT_RETRIES", "10")),
        connect_delay=float(os.environ.get("SCHOOL_CONNECT_DELAY", "5")),
    )

    asyncio.run(server.run_forever())


if __name__ == "__main__":
    main()
