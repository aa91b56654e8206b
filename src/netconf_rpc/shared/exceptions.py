from __future__ import annotations

from netconf_rpc.types import RpcErrorInfo, RpcErrorReply, RpcReply


class NetconfError(Exception):
    """Base class for every error raised by this package."""


class TransportError(NetconfError):
    """The secure transport failed to connect, or failed while in use.

    Transport errors are fatal to the session that observed them.
    """


class EncodeError(NetconfError, ValueError):
    """An outgoing request could not be serialized.

    Raised before anything is written, so the session stays usable.
    """


class DecodeError(NetconfError):
    """An incoming message could not be decoded."""


class FramingError(DecodeError):
    """The inbound byte stream does not follow the expected framing."""


class SessionNotEstablished(NetconfError):
    """The hello exchange did not (yet) produce a usable session."""


class ConnectionClosed(NetconfError):
    """The session ended while a request was outstanding."""


class RequestTimeout(NetconfError, TimeoutError):
    """No reply arrived within the allotted time."""


class RpcError(NetconfError):
    """Exception raised when the device answers with an `<rpc-error>`.

    Also raised by vendor operations that report failures inside a nested
    result element rather than at the top of the reply.

    Attributes:
        reply: The decoded reply that carried the error
        errors: The individual `<rpc-error>` elements found
        diagnostic: The full text of the reply
    """

    reply: RpcReply | RpcErrorReply
    errors: list[RpcErrorInfo]
    diagnostic: str

    def __init__(self, reply: RpcReply | RpcErrorReply, errors: list[RpcErrorInfo] | None = None):
        if errors is None:
            errors = reply.errors if isinstance(reply, RpcErrorReply) else []
        self.reply = reply
        self.errors = errors
        self.diagnostic = reply.diagnostic if isinstance(reply, RpcErrorReply) else reply.source
        messages = [e.error_message for e in errors if e.error_message]
        super().__init__("; ".join(str(m) for m in messages) or "rpc-error in reply")
