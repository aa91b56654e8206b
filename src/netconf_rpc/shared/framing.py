"""NETCONF message framing (RFC 6242).

The hello exchange uses the legacy end-of-message delimiter. Every message
after it uses chunked framing. Only single-chunk messages are supported: a
frame made of several chunks is rejected with a FramingError instead of being
reassembled.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from enum import Enum

from netconf_rpc.shared.exceptions import FramingError

EOM_DELIMITER = b"]]>]]>"
END_OF_CHUNKS = b"\n##\n"

_CHUNK_HEADER = re.compile(rb"[ \t\r\n]*?\n#([0-9]+)\n")
_PARTIAL_CHUNK_HEADER = re.compile(rb"[ \t\r\n]*(?:#[0-9]*)?")
# chunk-size is at most 4294967295 (ten digits)
_MAX_SIZE_DIGITS = 10


class FramingMode(str, Enum):
    END_OF_MESSAGE = "end-of-message"
    CHUNKED = "chunked"


def encode_chunked(xml: str) -> bytes:
    payload = xml.encode("utf-8")
    return b"\n#%d\n" % len(payload) + payload + END_OF_CHUNKS


def encode_end_of_message(xml: str) -> bytes:
    return xml.encode("utf-8") + b"\n" + EOM_DELIMITER


def encode(xml: str, mode: FramingMode = FramingMode.CHUNKED) -> bytes:
    if mode is FramingMode.END_OF_MESSAGE:
        return encode_end_of_message(xml)
    return encode_chunked(xml)


def _decode_end_of_message(buffer: bytes | bytearray) -> tuple[str, bytes] | None:
    index = buffer.find(EOM_DELIMITER)
    if index < 0:
        return None
    message = bytes(buffer[:index]).decode("utf-8").strip()
    return message, bytes(buffer[index + len(EOM_DELIMITER) :])


def _decode_chunked(buffer: bytes | bytearray) -> tuple[str, bytes] | None:
    header = _CHUNK_HEADER.match(buffer)
    if header is None:
        if _PARTIAL_CHUNK_HEADER.fullmatch(buffer) is not None:
            return None
        raise FramingError(f"Malformed chunk header: {bytes(buffer[:32])!r}")

    digits = header.group(1)
    if len(digits) > _MAX_SIZE_DIGITS or int(digits) == 0 or digits.startswith(b"0"):
        raise FramingError(f"Invalid chunk size: {digits.decode()}")

    start = header.end()
    end = start + int(digits)
    if len(buffer) < end + len(END_OF_CHUNKS):
        return None

    trailer = bytes(buffer[end : end + len(END_OF_CHUNKS)])
    if trailer != END_OF_CHUNKS:
        if trailer.startswith(b"\n#") and trailer[2:3].isdigit():
            raise FramingError("Messages spanning multiple chunks are not supported")
        raise FramingError(f"Expected end of chunks marker, got {trailer!r}")

    message = bytes(buffer[start:end]).decode("utf-8")
    return message, bytes(buffer[end + len(END_OF_CHUNKS) :])


def decode(buffer: bytes | bytearray, mode: FramingMode = FramingMode.CHUNKED) -> tuple[str, bytes] | None:
    """Extract the first complete message from `buffer`.

    Returns the message text and the unconsumed remainder, or None when the
    buffer does not hold a complete message yet.

    Raises:
        FramingError: If the buffer cannot be the start of a valid frame.
    """
    try:
        if mode is FramingMode.END_OF_MESSAGE:
            return _decode_end_of_message(buffer)
        return _decode_chunked(buffer)
    except UnicodeDecodeError as exc:
        raise FramingError(f"Message is not valid UTF-8: {exc}") from exc


class FrameDecoder:
    """Accumulates inbound bytes and yields complete messages.

    Bytes are only discarded once a complete message has been extracted; a
    partial frame stays buffered until the rest of it arrives.
    """

    def __init__(self, mode: FramingMode = FramingMode.END_OF_MESSAGE) -> None:
        self.mode = mode
        self._buffer = bytearray()

    @property
    def pending(self) -> int:
        """Number of buffered bytes not yet attributed to a message."""
        return len(self._buffer)

    def feed(self, data: bytes) -> None:
        self._buffer.extend(data)

    def messages(self) -> Iterator[str]:
        # The mode is consulted per message so a switch made by the consumer
        # applies to bytes that are already buffered.
        while self._buffer:
            result = decode(self._buffer, self.mode)
            if result is None:
                return
            message, remainder = result
            self._buffer = bytearray(remainder)
            yield message
