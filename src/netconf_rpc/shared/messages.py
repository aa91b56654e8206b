"""Conversion between NETCONF XML documents and reply/request objects."""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from typing import Any
from xml.parsers.expat import ExpatError

import xmltodict

from netconf_rpc.shared.exceptions import DecodeError, EncodeError
from netconf_rpc.types import (
    NETCONF_BASE_NS,
    Hello,
    MessageId,
    NamedOperation,
    Reply,
    Request,
    RpcErrorInfo,
    RpcErrorReply,
    RpcReply,
    StructuredOperation,
)

logger = logging.getLogger(__name__)

ATTR_PREFIX = "@"
TEXT_KEY = "#text"

_MESSAGE_ID = re.compile(r"""message-id\s*=\s*["']([^"']+)["']""")
_NUMBER = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


def sanitize_name(name: str) -> str:
    """Replace characters that prevent attribute-style access to a key."""
    return name.replace("-", "_").replace(":", "_")


def coerce_number(value: Any) -> Any:
    if not isinstance(value, str) or _NUMBER.fullmatch(value) is None:
        return value
    try:
        return int(value)
    except ValueError:
        return float(value)


def _normalize(path: list[Any], key: str, value: Any) -> tuple[str, Any]:
    return sanitize_name(key), coerce_number(value)


def _strip_attributes(value: Any) -> Any:
    if isinstance(value, list):
        return [_strip_attributes(item) for item in value]
    if not isinstance(value, dict):
        return value
    stripped = {k: _strip_attributes(v) for k, v in value.items() if not k.startswith(ATTR_PREFIX)}
    if list(stripped) == [TEXT_KEY]:
        return stripped[TEXT_KEY]
    return stripped or None


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def text_of(value: Any) -> Any:
    """The text content of a decoded node, ignoring any attributes."""
    if isinstance(value, dict):
        return value.get(TEXT_KEY)
    return value


def find_message_id(text: str) -> MessageId | None:
    """Locate a `message-id` attribute in raw, possibly malformed, XML text."""
    match = _MESSAGE_ID.search(text)
    if match is None:
        return None
    return coerce_number(match.group(1))


def parse_rpc_errors(node: Any) -> list[RpcErrorInfo]:
    """Collect the `rpc-error` children of a decoded element."""
    if not isinstance(node, dict):
        return []
    errors: list[RpcErrorInfo] = []
    for item in _as_list(node.get("rpc_error")):
        if isinstance(item, dict):
            fields: dict[str, Any] = {}
            for key, value in item.items():
                if key.startswith(ATTR_PREFIX):
                    continue
                if key != "error_info":
                    value = text_of(value)
                    value = None if value is None else str(value)
                fields[key] = value
            errors.append(RpcErrorInfo(**fields))
        else:
            errors.append(RpcErrorInfo(error_message=None if item is None else str(item)))
    return errors


def has_rpc_error(node: Any) -> bool:
    return isinstance(node, dict) and "rpc_error" in node


class MessageDecoder:
    """Turns XML text received from a device into a classified reply.

    Element and attribute names are sanitized (`-` and `:` become `_`), numeric
    values are coerced and surrounding whitespace is trimmed.

    Args:
        raw: Attach the original XML text to every decoded reply.
        preserve_attributes: Keep XML attributes (as `@name` keys) in the
            decoded data.
    """

    def __init__(self, raw: bool = False, preserve_attributes: bool = True) -> None:
        self.raw = raw
        self.preserve_attributes = preserve_attributes

    def decode(self, text: str) -> dict[str, Any]:
        """Parse `text` into a normalized dictionary."""
        try:
            document = xmltodict.parse(
                text,
                attr_prefix=ATTR_PREFIX,
                cdata_key=TEXT_KEY,
                strip_whitespace=True,
                postprocessor=_normalize,
            )
        except (ExpatError, ValueError) as exc:
            raise DecodeError(f"Malformed XML: {exc}") from exc
        if not isinstance(document, dict) or not document:
            raise DecodeError("Document has no root element")
        return dict(document)

    def parse(self, text: str) -> Reply:
        document = self.decode(text)
        root_name, root = next(iter(document.items()))
        message_id = root.get("@message_id") if isinstance(root, dict) else None
        if not self.preserve_attributes:
            document = {root_name: _strip_attributes(root)}
            root = document[root_name]

        reply: Hello | RpcReply | RpcErrorReply
        if root_name == "hello":
            reply = self._parse_hello(document, root)
        elif root_name == "rpc_reply":
            if has_rpc_error(root):
                reply = RpcErrorReply(
                    message_id=message_id,
                    data=document,
                    errors=parse_rpc_errors(root),
                    diagnostic=text,
                )
            else:
                reply = RpcReply(message_id=message_id, data=document)
        else:
            raise DecodeError(f"Unexpected root element <{root_name}>")

        reply._source = text
        if self.raw:
            reply.raw = text
        return reply

    def _parse_hello(self, document: dict[str, Any], root: Any) -> Hello:
        if not isinstance(root, dict):
            return Hello(data=document)
        capabilities = root.get("capabilities")
        if isinstance(capabilities, dict):
            listed = [text_of(c) for c in _as_list(capabilities.get("capability"))]
        else:
            listed = []
        return Hello(
            session_id=text_of(root.get("session_id")),
            capabilities=[str(c) for c in listed if c is not None],
            data=document,
        )


def _request_tree(request: Request) -> tuple[dict[str, Any], dict[str, Any]]:
    if isinstance(request, str):
        request = NamedOperation(name=request)
    elif isinstance(request, Mapping):
        attributes = {k[len(ATTR_PREFIX) :]: v for k, v in request.items() if isinstance(k, str) and k.startswith(ATTR_PREFIX)}
        body = {k: v for k, v in request.items() if not (isinstance(k, str) and k.startswith(ATTR_PREFIX))}
        request = StructuredOperation(body=body, attributes=attributes)

    if isinstance(request, NamedOperation):
        if not request.name:
            raise EncodeError("Operation name must not be empty")
        return {request.name: None}, {}
    if isinstance(request, StructuredOperation):
        return dict(request.body), dict(request.attributes)
    raise EncodeError(f"Unsupported request type: {type(request).__name__}")


def render_rpc(request: Request, message_id: MessageId) -> str:
    """Serialize `request` as an `<rpc>` envelope carrying `message_id`.

    Caller supplied attributes are kept; the base namespace is only a default,
    and `message-id` always reflects `message_id`.

    Raises:
        EncodeError: If the request tree cannot be serialized.
    """
    body, attributes = _request_tree(request)
    envelope: dict[str, Any] = {f"{ATTR_PREFIX}xmlns": NETCONF_BASE_NS}
    for name, value in attributes.items():
        envelope[f"{ATTR_PREFIX}{name}"] = value
    envelope[f"{ATTR_PREFIX}message-id"] = message_id
    envelope.update(body)
    return _unparse({"rpc": envelope})


def render_hello(capabilities: list[str]) -> str:
    return _unparse(
        {
            "hello": {
                f"{ATTR_PREFIX}xmlns": NETCONF_BASE_NS,
                "capabilities": {"capability": list(capabilities)},
            }
        },
        full_document=True,
    )


def _unparse(tree: dict[str, Any], full_document: bool = False) -> str:
    try:
        return xmltodict.unparse(
            tree,
            full_document=full_document,
            short_empty_elements=True,
            attr_prefix=ATTR_PREFIX,
            cdata_key=TEXT_KEY,
        )
    except (ValueError, TypeError, AttributeError) as exc:
        raise EncodeError(f"Cannot serialize request: {exc}") from exc
