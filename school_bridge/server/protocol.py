"""
school-bridge wire protocol.

Every message that crosses the socket is defined here — client→server
and server→client. Both sides import from this module.

Message format: JSON object with at minimum:

    {
        "type": "<message_type>",
        "id":   "<uuid>",          # client-generated request ID (requests only)
        ...payload fields...
    }

Server responses always echo the request "id":

    {
        "type":   "ok",
        "id":     "<same uuid>",
        "result": ...
    }

Errors:

    {
        "type":    "error",
        "id":      "<same uuid or null>",
        "code":    "HAS_DEPENDENTS",
        "message": "Cannot delete party-teacher 1: 1 row in classes ...",
        "details": {"dependents": {"classes": 1}, "reassignable": true}
    }

Message types are grouped:
  - Handshake:   hello, welcome, ping, pong, bye
  - Entities:    entity.*
  - Admin:       admin.restore, health
"""

from __future__ import annotations

import json
import uuid
from typing import Any


# ─────────────────────────────────────────────────────────────
# Message type constants
# ─────────────────────────────────────────────────────────────

class MsgType:
    # Handshake
    HELLO   = "hello"       # client → server on connect
    WELCOME = "welcome"     # server → client after hello
    PING    = "ping"
    PONG    = "pong"
    BYE     = "bye"         # clean disconnect notification

    # Generic responses
    OK      = "ok"
    ERROR   = "error"

    # Entities
    ENTITY_LIST   = "entity.list"
    ENTITY_JOIN   = "entity.join"
    ENTITY_CREATE = "entity.create"
    ENTITY_UPDATE = "entity.update"
    ENTITY_DELETE = "entity.delete"

    # Admin
    RESTORE = "admin.restore"
    HEALTH  = "health"


# ─────────────────────────────────────────────────────────────
# Error codes
# ─────────────────────────────────────────────────────────────

class ErrorCode:
    NOT_FOUND           = "NOT_FOUND"
    INVALID             = "INVALID"
    UNKNOWN_TYPE        = "UNKNOWN_TYPE"          # unknown message type
    UNKNOWN_ENTITY_TYPE = "UNKNOWN_ENTITY_TYPE"
    STORE_UNAVAILABLE   = "STORE_UNAVAILABLE"
    STORE_NOT_SUPPORTED = "STORE_NOT_SUPPORTED"
    NO_UPDATABLE_FIELDS = "NO_UPDATABLE_FIELDS"
    HAS_DEPENDENTS      = "HAS_DEPENDENTS"
    CONSTRAINT          = "CONSTRAINT"            # tabular integrity violation
    INTERNAL            = "INTERNAL"


# ─────────────────────────────────────────────────────────────
# Base message helpers
# ─────────────────────────────────────────────────────────────

def _new_id() -> str:
    return str(uuid.uuid4())


class Message(dict):
    """A wire message — just a dict with a type field and helpers.

    We subclass dict so it serializes directly with json.dumps() and
    can be pattern-matched on ["type"] without unwrapping.
    """

    @classmethod
    def parse(cls, raw: str | bytes) -> "Message":
        """Deserialize a JSON string into a Message."""
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError(f"Expected JSON object, got {type(data)}")
        if "type" not in data:
            raise ValueError("Message missing 'type' field")
        return cls(data)

    def serialize(self) -> str:
        """Serialize to JSON string.

        Store values JSON has no type for (dates, ObjectIds) go out as str().
        """
        return json.dumps(self, default=str)

    @property
    def type(self) -> str:
        return self["type"]

    @property
    def msg_id(self) -> str | None:
        return self.get("id")

    def is_request(self) -> bool:
        return "id" in self

    def __repr__(self) -> str:
        return f"Message(type={self.type!r}, id={self.msg_id!r})"


# ─────────────────────────────────────────────────────────────
# Constructors: client → server messages
# ─────────────────────────────────────────────────────────────

def hello(client_name: str) -> Message:
    return Message({
        "type":        MsgType.HELLO,
        "id":          _new_id(),
        "client_name": client_name,
    })


def ping(msg_id: str | None = None) -> Message:
    return Message({"type": MsgType.PING, "id": msg_id or _new_id()})


def bye(reason: str = "client_shutdown") -> Message:
    return Message({"type": MsgType.BYE, "reason": reason})


def entity_list(entity_type: str, view: str = "all") -> Message:
    return Message({
        "type":        MsgType.ENTITY_LIST,
        "id":          _new_id(),
        "entity_type": entity_type,
        "view":        view,
    })


def entity_join(entity_type: str) -> Message:
    return Message({
        "type":        MsgType.ENTITY_JOIN,
        "id":          _new_id(),
        "entity_type": entity_type,
    })


def entity_create(entity_type: str, data: dict, store: str | None = None) -> Message:
    msg = Message({
        "type":        MsgType.ENTITY_CREATE,
        "id":          _new_id(),
        "entity_type": entity_type,
        "data":        data,
    })
    if store is not None:
        msg["store"] = store
    return msg


def entity_update(entity_type: str, entity_id: Any, data: dict) -> Message:
    return Message({
        "type":        MsgType.ENTITY_UPDATE,
        "id":          _new_id(),
        "entity_type": entity_type,
        "entity_id":   entity_id,
        "data":        data,
    })


def entity_delete(
    entity_type: str,
    entity_id: Any,
    cascade: bool = False,
    **options: Any,
) -> Message:
    """Delete request. Pass reassign_to=<id> or reassign_to=None to
    move or detach dependents; leave it out to block on them."""
    msg = Message({
        "type":        MsgType.ENTITY_DELETE,
        "id":          _new_id(),
        "entity_type": entity_type,
        "entity_id":   entity_id,
        "cascade":     cascade,
    })
    if "reassign_to" in options:
        msg["reassign_to"] = options["reassign_to"]
    return msg


def restore(target: str = "all") -> Message:
    return Message({"type": MsgType.RESTORE, "id": _new_id(), "target": target})


def health() -> Message:
    return Message({"type": MsgType.HEALTH, "id": _new_id()})


# ─────────────────────────────────────────────────────────────
# Constructors: server → client messages
# ─────────────────────────────────────────────────────────────

def ok(request_id: str, result: Any = None) -> Message:
    msg = Message({"type": MsgType.OK, "id": request_id})
    if result is not None:
        msg["result"] = result
    return msg


def error(
    request_id: str | None,
    code: str,
    message: str,
    details: dict | None = None,
) -> Message:
    msg = Message({
        "type":    MsgType.ERROR,
        "id":      request_id,
        "code":    code,
        "message": message,
    })
    if details:
        msg["details"] = details
    return msg


def welcome(
    session_id: str,
    request_id: str,
    server_version: str = "0.1.0",
    registry_summary: dict | None = None,
) -> Message:
    return Message({
        "type":             MsgType.WELCOME,
        "id":               request_id,
        "session_id":       session_id,
        "server_version":   server_version,
        "registry_summary": registry_summary or {},
    })


def pong(request_id: str) -> Message:
    return Message({"type": MsgType.PONG, "id": request_id})
