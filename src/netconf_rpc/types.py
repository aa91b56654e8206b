"""Data model for NETCONF sessions, requests and replies."""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

BASE_1_0 = "urn:ietf:params:netconf:base:1.0"
BASE_1_1 = "urn:ietf:params:netconf:base:1.1"

NETCONF_BASE_NS = "urn:ietf:params:xml:ns:netconf:base:1.0"

CLIENT_CAPABILITIES: list[str] = [BASE_1_1]
"""Capabilities advertised in the client hello."""

FIRST_MESSAGE_ID = 101
"""The message-id counter starts at 100 and is incremented before use."""

MessageId = int | str

Capability = str


class SessionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    AWAITING_HELLO = "awaiting_hello"
    ESTABLISHED = "established"
    CLOSED = "closed"
    FAILED = "failed"


class NamedOperation(BaseModel):
    """An operation without arguments, rendered as an empty element."""

    name: str


class StructuredOperation(BaseModel):
    """An operation given as an xmltodict-style tree.

    `body` holds the children of the `<rpc>` element. `attributes` are placed on
    `<rpc>` itself; `message-id` is always assigned by the session.
    """

    body: dict[str, Any]
    attributes: dict[str, Any] = Field(default_factory=dict)


Request = NamedOperation | StructuredOperation | str | dict[str, Any]


class RpcErrorInfo(BaseModel):
    """A single `<rpc-error>` element."""

    model_config = ConfigDict(extra="allow")

    error_type: str | None = None
    error_tag: str | None = None
    error_severity: str | None = None
    error_message: str | None = None
    error_path: str | None = None
    error_info: Any = None


class _ReplyBase(BaseModel):
    data: dict[str, Any] = Field(default_factory=dict)
    """The decoded document, keyed by its (sanitized) root element name."""

    raw: str | None = None
    """Original XML text, only populated in raw mode."""

    _source: str = PrivateAttr(default="")

    @property
    def source(self) -> str:
        """The XML text this reply was decoded from."""
        return self._source


class Hello(_ReplyBase):
    kind: Literal["hello"] = "hello"
    session_id: Any = None
    capabilities: list[Capability] = Field(default_factory=list)


class RpcReply(_ReplyBase):
    kind: Literal["rpc-reply"] = "rpc-reply"
    message_id: MessageId | None = None

    @property
    def body(self) -> Any:
        """Content of the `<rpc-reply>` element."""
        return self.data.get("rpc_reply")

    @property
    def ok(self) -> bool:
        body = self.body
        return isinstance(body, dict) and "ok" in body


class RpcErrorReply(_ReplyBase):
    kind: Literal["rpc-error"] = "rpc-error"
    message_id: MessageId | None = None
    errors: list[RpcErrorInfo] = Field(default_factory=list)
    diagnostic: str = ""


Reply = Annotated[Hello | RpcReply | RpcErrorReply, Field(discriminator="kind")]


class LoadOptions(BaseModel):
    """Arguments of a Junos `load-configuration` call."""

    config: Any = None
    action: str = "merge"
    """One of merge, replace, override, update or set."""
    format: Literal["text", "xml", "set"] = "text"


class JunosFacts(BaseModel):
    hostname: Any = None
    version: Any = None
    model: Any = None
    uptime: Any = None
    serial: Any = None
