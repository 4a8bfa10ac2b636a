"""
school-bridge async client.

Design:

  - Connects once, reconnects automatically with backoff
  - Pending requests tracked by message ID — send and await reply
  - One asyncio event loop, everything runs there

Usage:

    async with AsyncClient.connect("registrar", "ws://server:9998") as client:
        teachers = await client.list_entities("teachers", view="combined")

        created = await client.create_entity("teacher", {
            "first_name": "Ada", "last_name": "Lovelace",
            "department": "Mathematics",
        })

        try:
            await client.delete_entity("teacher", 1)
        except ServerError as e:
            if e.code == "HAS_DEPENDENTS":
                print(e.details["dependents"])   # {"classes": 1, "subjects": 1}
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

import websockets
import websockets.asyncio.client as ws_asyncio
from websockets.protocol import State as WsState

from school_bridge.server.protocol import (
    ErrorCode, Message, MsgType,
    bye, entity_create, entity_delete, entity_join, entity_list,
    entity_update, health, hello, ping, restore,
)

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────
# Exceptions
# ─────────────────────────────────────────────────────────────

class ClientError(Exception):
    """Base error for client operations."""


class ServerError(ClientError):
    """The server returned an error response."""
    def __init__(self, code: str, message: str, details: dict | None = None):
        self.code    = code
        self.message = message
        self.details = details or {}
        super().__init__(f"[{code}] {message}")


class ConnectionError(ClientError):
    """Could not connect or connection was lost."""


class TimeoutError(ClientError):
    """Request timed out waiting for a response."""


# ─────────────────────────────────────────────────────────────
# Pending request tracking
# ─────────────────────────────────────────────────────────────

class PendingRequest:
    """Tracks one in-flight request waiting for a server response."""
    __slots__ = ("future",)

    def __init__(self, loop: asyncio.AbstractEventLoop):
        self.future: asyncio.Future = loop.create_future()

    def resolve(self, msg: Message) -> None:
        if not self.future.done():
            self.future.set_result(msg)

    def reject(self, exc: Exception) -> None:
        if not self.future.done():
            self.future.set_exception(exc)


# ─────────────────────────────────────────────────────────────
# Async Client
# ─────────────────────────────────────────────────────────────

_UNSET = object()


class AsyncClient:
    """Async WebSocket client for school-bridge.

    Instantiate with AsyncClient.connect() context manager, or
    create manually and call start()/stop().
    """

    DEFAULT_TIMEOUT      = 30.0
    RECONNECT_BASE_DELAY = 1.0
    RECONNECT_MAX_DELAY  = 60.0
    RECONNECT_MULTIPLIER = 2.0

    def __init__(
        self,
        client_name: str,
        server_url: str = "ws://localhost:9998",
        auto_reconnect: bool = True,
        request_timeout: float = DEFAULT_TIMEOUT,
    ):
        self.client_name     = client_name
        self.server_url      = server_url
        self.auto_reconnect  = auto_reconnect
        self.request_timeout = request_timeout

        self._ws = None
        self._session_id:       str | None = None
        self._server_version:   str | None = None
        self._registry_summary: dict = {}

        # msg_id → PendingRequest
        self._pending: dict[str, PendingRequest] = {}

        self._connected       = asyncio.Event()
        self._stopped         = False
        self._recv_task:      asyncio.Task | None = None
        self._reconnect_delay = self.RECONNECT_BASE_DELAY

    # ── Connection lifecycle ──────────────────────────────────

    @classmethod
    @asynccontextmanager
    async def connect(
        cls,
        client_name: str,
        server_url: str = "ws://localhost:9998",
        **kwargs,
    ) -> AsyncGenerator["AsyncClient", None]:
        """Async context manager that connects and disconnects cleanly."""
        client = cls(client_name, server_url, **kwargs)
        await client.start()
        try:
            yield client
        finally:
            await client.stop()

    async def start(self) -> None:
        """Connect to the server and start the receive loop."""
        await self._connect()
        self._recv_task = asyncio.create_task(
            self._receive_loop(),
            name=f"school-client-recv-{self.client_name}",
        )

    async def stop(self) -> None:
        """Disconnect cleanly."""
        self._stopped = True

        if self._ws is not None and self._ws.state == WsState.OPEN:
            try:
                await self._ws.send(bye().serialize())
                await self._ws.close()
            except websockets.exceptions.WebSocketException as e:
                logger.debug(f"Close handshake failed: {e}")

        if self._recv_task and not self._recv_task.done():
            self._recv_task.cancel()
            try:
                await self._recv_task
            except asyncio.CancelledError:
                pass

        for pending in self._pending.values():
            pending.reject(ConnectionError("Client stopped"))
        self._pending.clear()

        logger.info(f"Client {self.client_name!r} disconnected.")

    async def wait_until_connected(self, timeout: float = 15.0) -> None:
        await asyncio.wait_for(self._connected.wait(), timeout=timeout)

    @property
    def is_connected(self) -> bool:
        return (
            self._ws is not None
            and self._ws.state == WsState.OPEN
            and self._connected.is_set()
        )

    @property
    def session_id(self) -> str | None:
        return self._session_id

    @property
    def server_version(self) -> str | None:
        return self._server_version

    @property
    def registry_summary(self) -> dict:
        """Entity types and edges as reported by the server at connect time."""
        return self._registry_summary

    # ── Request/response ──────────────────────────────────────

    async def request(self, msg: Message, timeout: float | None = None) -> Any:
        """Send a request and wait for the server's response.

        Returns the result of the ok response.

        Raises:
            ServerError:  The server replied with an error.
            TimeoutError: No reply within timeout seconds.
        """
        if not self.is_connected:
            await self.wait_until_connected()

        if not msg.msg_id:
            raise ClientError("Message has no id — use protocol constructors")

        loop    = asyncio.get_running_loop()
        pending = PendingRequest(loop)
        self._pending[msg.msg_id] = pending

        try:
            await self._ws.send(msg.serialize())
            reply = await asyncio.wait_for(
                pending.future,
                timeout=timeout or self.request_timeout,
            )
        except asyncio.TimeoutError:
            raise TimeoutError(
                f"No response to {msg.type!r} after {timeout or self.request_timeout}s"
            ) from None
        finally:
            self._pending.pop(msg.msg_id, None)

        if reply.type == MsgType.ERROR:
            raise ServerError(
                reply.get("code", ErrorCode.INTERNAL),
                reply.get("message", "Unknown error"),
                reply.get("details"),
            )

        return reply.get("result")

    # ── Operations ────────────────────────────────────────────

    async def ping(self) -> None:
        await self.request(ping())

    async def list_entities(self, entity_type: str, view: str = "all") -> dict | list:
        return await self.request(entity_list(entity_type, view))

    async def join_entities(self, entity_type: str) -> list[dict]:
        return await self.request(entity_join(entity_type))

    async def create_entity(
        self,
        entity_type: str,
        data: dict,
        store: str | None = None,
    ) -> dict:
        return await self.request(entity_create(entity_type, data, store))

    async def update_entity(self, entity_type: str, entity_id: Any, data: dict) -> dict:
        return await self.request(entity_update(entity_type, entity_id, data))

    async def delete_entity(
        self,
        entity_type: str,
        entity_id: Any,
        cascade: bool = False,
        reassign_to: Any = _UNSET,
    ) -> dict:
        """Delete a record. reassign_to=None detaches dependents; omit it to block."""
        options = {} if reassign_to is _UNSET else {"reassign_to": reassign_to}
        return await self.request(entity_delete(entity_type, entity_id, cascade, **options))

    async def restore(self, target: str = "all") -> dict:
        return await self.request(restore(target))

    async def health(self) -> dict:
        return await self.request(health())

    # ── Internal ──────────────────────────────────────────────

    async def _connect(self) -> None:
        """Establish the WebSocket connection and complete the handshake."""
        self._connected.clear()

        try:
            ws = await ws_asyncio.connect(self.server_url)
        except (OSError, websockets.exceptions.WebSocketException) as e:
            raise ConnectionError(f"Could not connect to {self.server_url}: {e}") from e
        self._ws = ws

        await ws.send(hello(client_name=self.client_name).serialize())

        raw     = await asyncio.wait_for(ws.recv(), timeout=15.0)
        welcome = Message.parse(raw)

        if welcome.type != MsgType.WELCOME:
            raise ConnectionError(
                f"Expected welcome, got {welcome.type!r}: "
                f"{welcome.get('message', '')}"
            )

        self._session_id       = welcome.get("session_id")
        self._server_version   = welcome.get("server_version")
        self._registry_summary = welcome.get("registry_summary", {})
        self._reconnect_delay  = self.RECONNECT_BASE_DELAY
        self._connected.set()

        logger.info(
            f"Connected to {self.server_url} as {self.client_name!r} "
            f"(session {self._session_id!s:.8}...)"
        )

    async def _receive_loop(self) -> None:
        """Continuously receive messages and resolve pending requests."""
        while not self._stopped:
            try:
                raw = await self._ws.recv()
            except websockets.exceptions.ConnectionClosed as e:
                self._connected.clear()
                logger.warning(f"Connection closed: {e}")
                if not self._stopped and self.auto_reconnect:
                    await self._reconnect()
                break

            try:
                msg = Message.parse(raw)
            except ValueError as e:
                logger.warning(f"Failed to parse message: {e} — raw: {raw!r:.100}")
                continue

            self._handle_message(msg)

    def _handle_message(self, msg: Message) -> None:
        if msg.type in (MsgType.OK, MsgType.ERROR, MsgType.PONG, MsgType.WELCOME):
            msg_id = msg.msg_id
            if msg_id and msg_id in self._pending:
                self._pending[msg_id].resolve(msg)
            else:
                logger.debug(f"Received {msg.type!r} with no matching pending request: {msg_id}")
        else:
            logger.debug(f"Unhandled message type: {msg.type!r}")

    async def _reconnect(self) -> None:
        """Attempt to reconnect with exponential backoff."""
        while not self._stopped:
            delay = self._reconnect_delay
            logger.info(f"Reconnecting in {delay:.1f}s...")
            await asyncio.sleep(delay)

            self._reconnect_delay = min(
                delay * self.RECONNECT_MULTIPLIER,
                self.RECONNECT_MAX_DELAY,
            )

            try:
                await self._connect()
            except (ClientError, OSError, asyncio.TimeoutError) as e:
                logger.warning(f"Reconnect failed: {e}")
                continue
            self._recv_task = asyncio.create_task(
                self._receive_loop(),
                name=f"school-client-recv-{self.client_name}",
            )
            logger.info("Reconnected successfully.")
            return
