"""NatNet packet layout: message types, header and sender block."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum

MAX_NAME_LENGTH = 256
MAX_PACKET_SIZE = 100000

_HEADER = struct.Struct("<HH")
_SENDER = struct.Struct(f"<{MAX_NAME_LENGTH}s4B4B")

HEADER_SIZE = _HEADER.size
SENDER_SIZE = _SENDER.size


class MessageType(IntEnum):
    CONNECT = 0
    SERVER_INFO = 1
    REQUEST = 2
    RESPONSE = 3
    REQUEST_MODEL_DEF = 4
    MODEL_DEF = 5
    REQUEST_FRAME_OF_DATA = 6
    FRAME_OF_DATA = 7
    MESSAGE_STRING = 8
    UNRECOGNIZED_REQUEST = 100
    UNDEFINED = 999999


@dataclass(frozen=True)
class Sender:
    """The sending application's name and versions."""

    name: str
    version: tuple[int, int, int, int]
    natnet_version: tuple[int, int, int, int]

    @classmethod
    def from_bytes(cls, data: bytes) -> "Sender":
        """Decode a sender block from the start of a packet payload."""
        if len(data) < SENDER_SIZE:
            raise ValueError(
                f"sender block needs {SENDER_SIZE} bytes, got {len(data)}"
            )
        raw_name, *versions = _SENDER.unpack_from(data)
        name = raw_name.split(b"\0", 1)[0].decode("utf-8", errors="replace")
        return cls(
            name=name,
            version=tuple(versions[:4]),
            natnet_version=tuple(versions[4:]),
        )


def pack_header(message_id: int, num_data_bytes: int) -> bytes:
    """Encode the four-byte packet header."""
    try:
        return _HEADER.pack(message_id, num_data_bytes)
    except struct.error as exc:
        raise ValueError(f"header field out of range: {exc}") from exc


def unpack_header(data: bytes) -> tuple[int, int]:
    """Return ``(message_id, num_data_bytes)`` from the start of a packet."""
    if len(data) < HEADER_SIZE:
        raise ValueError(f"packet header needs {HEADER_SIZE} bytes, got {len(data)}")
    message_id, num_data_bytes = _HEADER.unpack_from(data)
    return message_id, num_data_bytes