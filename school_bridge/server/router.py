"""
school-bridge message router.

Every message that arrives from a client comes here. The router owns
the DataLayer and maps each message type to one handler method.

Design:
  - Each message type maps to one handler method
  - Handlers are async coroutines and call exactly one DataLayer operation
  - Errors are caught and returned as error messages — they never
    crash the server or disconnect the client

Error mapping:
    BridgeError subclasses   → their own code (HAS_DEPENDENTS, ...)
    None from update/delete  → NOT_FOUND
    tabular IntegrityError   → CONSTRAINT
    anything else            → INTERNAL, logged with traceback
"""

from __future__ import annotations

import logging
from typing import Callable

from sqlalchemy.exc import IntegrityError

from school_bridge.core.errors import BridgeError
from school_bridge.routing.dependencies import UNSET
from school_bridge.routing.service import DataLayer
from school_bridge.server.connections import ConnectedClient
from school_bridge.server.protocol import (
    ErrorCode, Message, MsgType,
    error, ok, pong, welcome,
)

logger = logging.getLogger(__name__)


def _flag(value) -> bool:
    """A boolean message field. Accepts true, "true" and "1"; anything else is false."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1")
    return value == 1


class Router:
    """Dispatches incoming messages to handler methods.

    All handlers follow the signature:
        async def _handle_*(
            self,
            msg: Message,
            client: ConnectedClient | None,
        ) -> Message | None
    """

    VERSION = "0.1.0"

    def __init__(self, data: DataLayer):
        self.data = data
        self._dispatch: dict[str, Callable] = {
            MsgType.HELLO: self._handle_hello,
            MsgType.PING:  self._handle_ping,
            MsgType.BYE:   self._handle_bye,

            # Entities
            MsgType.ENTITY_LIST:   self._handle_entity_list,
            MsgType.ENTITY_JOIN:   self._handle_entity_join,
            MsgType.ENTITY_CREATE: self._handle_entity_create,
            MsgType.ENTITY_UPDATE: self._handle_entity_update,
            MsgType.ENTITY_DELETE: self._handle_entity_delete,

            # Admin
            MsgType.RESTORE: self._handle_restore,
            MsgType.HEALTH:  self._handle_health,
        }

    async def dispatch(
        self,
        msg: Message,
        client: ConnectedClient | None = None,
    ) -> Message | None:
        """Route a message to the right handler.

        Returns a reply message, or None if no reply should be sent
        (BYE is fire-and-forget).
        """
        handler = self._dispatch.get(msg.type)
        if handler is None:
            return error(
                msg.msg_id,
                ErrorCode.UNKNOWN_TYPE,
                f"Unknown message type: {msg.type!r}",
            )
        try:
            return await handler(msg, client)
        except BridgeError as e:
            logger.info(f"{msg.type} rejected ({e.code}): {e.message}")
            return error(msg.msg_id, e.code, e.message, e.details)
        except IntegrityError as e:
            logger.warning(f"{msg.type} violated a tabular constraint: {e.orig}")
            return error(msg.msg_id, ErrorCode.CONSTRAINT, str(e.orig))
        except Exception as e:
            logger.exception(f"Unhandled error in handler for {msg.type!r}: {e}")
            return error(
                msg.msg_id,
                ErrorCode.INTERNAL,
                f"Internal server error: {e}",
            )

    # ─────────────────────────────────────────────────────────
    # Handshake
    # ─────────────────────────────────────────────────────────

    async def _handle_hello(self, msg: Message, client: ConnectedClient | None) -> Message:
        # A hello after the handshake just re-sends the welcome
        return welcome(
            session_id=str(client.session_id) if client else "",
            request_id=msg.msg_id,
            server_version=self.VERSION,
            registry_summary=self.data.registry.summary(),
        )

    async def _handle_ping(self, msg: Message, client: ConnectedClient | None) -> Message:
        return pong(msg.msg_id)

    async def _handle_bye(self, msg: Message, client: ConnectedClient | None) -> None:
        # Disconnect is handled by the server's connection loop
        return None

    # ─────────────────────────────────────────────────────────
    # Entities
    # ─────────────────────────────────────────────────────────

    async def _handle_entity_list(self, msg: Message, client: ConnectedClient | None) -> Message:
        entity_type = msg.get("entity_type")
        if not entity_type:
            return error(msg.msg_id, ErrorCode.INVALID, "entity_type required")
        result = await self.data.list(entity_type, msg.get("view") or "all")
        return ok(msg.msg_id, result)

    async def _handle_entity_join(self, msg: Message, client: ConnectedClient | None) -> Message:
        entity_type = msg.get("entity_type")
        if not entity_type:
            return error(msg.msg_id, ErrorCode.INVALID, "entity_type required")
        return ok(msg.msg_id, await self.data.join(entity_type))

    async def _handle_entity_create(self, msg: Message, client: ConnectedClient | None) -> Message:
        entity_type = msg.get("entity_type")
        data        = msg.get("data")
        if not entity_type or not isinstance(data, dict):
            return error(msg.msg_id, ErrorCode.INVALID, "entity_type and data required")
        record = await self.data.create(entity_type, data, msg.get("store"))
        return ok(msg.msg_id, record)

    async def _handle_entity_update(self, msg: Message, client: ConnectedClient | None) -> Message:
        entity_type = msg.get("entity_type")
        entity_id   = msg.get("entity_id")
        data        = msg.get("data")
        if not entity_type or entity_id is None or not isinstance(data, dict):
            return error(msg.msg_id, ErrorCode.INVALID,
                         "entity_type, entity_id and data required")
        record = await self.data.update(entity_type, entity_id, data)
        if record is None:
            return error(msg.msg_id, ErrorCode.NOT_FOUND,
                         f"{entity_type} {entity_id} not found")
        return ok(msg.msg_id, record)

    async def _handle_entity_delete(self, msg: Message, client: ConnectedClient | None) -> Message:
        entity_type = msg.get("entity_type")
        entity_id   = msg.get("entity_id")
        if not entity_type or entity_id is None:
            return error(msg.msg_id, ErrorCode.INVALID, "entity_type and entity_id required")
        # an absent key blocks on dependents, an explicit null detaches them
        reassign_to = msg["reassign_to"] if "reassign_to" in msg else UNSET
        outcome = await self.data.delete(
            entity_type, entity_id,
            cascade=_flag(msg.get("cascade", False)),
            reassign_to=reassign_to,
        )
        if outcome is None:
            return error(msg.msg_id, ErrorCode.NOT_FOUND,
                         f"{entity_type} {entity_id} not found")
        return ok(msg.msg_id, outcome.to_dict())

    # ─────────────────────────────────────────────────────────
    # Admin
    # ─────────────────────────────────────────────────────────

    async def _handle_restore(self, msg: Message, client: ConnectedClient | None) -> Message:
        report = await self.data.bulk_reset(msg.get("target") or "all")
        return ok(msg.msg_id, {
            "message": f"Restore of {report['target']} completed",
            "report":  report,
        })

    async def _handle_health(self, msg: Message, client: ConnectedClient | None) -> Message:
        return ok(msg.msg_id, await self.data.health())
