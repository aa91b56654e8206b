"""Tests for NETCONF message framing."""

import pytest

from netconf_rpc.shared.exceptions import FramingError
from netconf_rpc.shared.framing import (
    EOM_DELIMITER,
    FrameDecoder,
    FramingMode,
    decode,
    encode,
    encode_chunked,
    encode_end_of_message,
)


def test_encode_chunked_uses_byte_length():
    assert encode_chunked("<ok/>") == b"\n#5\n<ok/>\n##\n"
    # "é" is two bytes in UTF-8
    assert encode_chunked("<a>é</a>").startswith(b"\n#9\n")


def test_encode_end_of_message():
    assert encode_end_of_message("<hello/>") == b"<hello/>\n]]>]]>"
    assert encode("<hello/>", FramingMode.END_OF_MESSAGE).endswith(EOM_DELIMITER)
    assert encode("<ok/>") == encode_chunked("<ok/>")


def test_decode_chunked_complete_message_with_remainder():
    buffer = encode_chunked("<rpc-reply/>") + b"\n#3"
    message, remainder = decode(buffer)
    assert message == "<rpc-reply/>"
    assert remainder == b"\n#3"


@pytest.mark.parametrize(
    "buffer",
    [
        b"\n",
        b"\n#",
        b"\n#12",
        b"\n#12\n<rpc-",
        b"\n#5\n<ok/>\n#",
    ],
)
def test_decode_chunked_incomplete(buffer: bytes):
    assert decode(buffer) is None


def test_decode_chunked_tolerates_leading_whitespace():
    message, remainder = decode(b"\r\n" + encode_chunked("<ok/>"))
    assert message == "<ok/>"
    assert remainder == b""


def test_decode_rejects_multiple_chunks():
    buffer = b"\n#4\n<rpc\n#8\n-reply/>\n##\n"
    with pytest.raises(FramingError, match="multiple chunks"):
        decode(buffer)


@pytest.mark.parametrize("buffer", [b"<rpc-reply/>", b"\n#0\n\n##\n", b"\n#007\n<ok/>\n\n##\n", b"\n#5\n<ok/>XXXX"])
def test_decode_rejects_malformed_frames(buffer: bytes):
    with pytest.raises(FramingError):
        decode(buffer)


def test_decode_end_of_message():
    assert decode(b"<hello/>\n]]>]]>\n#5", FramingMode.END_OF_MESSAGE) == ("<hello/>", b"\n#5")
    assert decode(b"<hello/>\n]]>]]", FramingMode.END_OF_MESSAGE) is None


def test_frame_decoder_keeps_partial_frames():
    decoder = FrameDecoder(FramingMode.CHUNKED)
    frame = encode_chunked("<rpc-reply message-id='101'/>")

    decoder.feed(frame[:7])
    assert list(decoder.messages()) == []
    assert decoder.pending == 7

    decoder.feed(frame[7:] + frame[:3])
    assert list(decoder.messages()) == ["<rpc-reply message-id='101'/>"]
    assert decoder.pending == 3


def test_frame_decoder_mode_switch_applies_to_buffered_bytes():
    decoder = FrameDecoder()
    decoder.feed(encode_end_of_message("<hello/>") + encode_chunked("<ok/>"))

    messages = []
    for message in decoder.messages():
        messages.append(message)
        decoder.mode = FramingMode.CHUNKED

    assert messages == ["<hello/>", "<ok/>"]
    assert decoder.pending == 0
