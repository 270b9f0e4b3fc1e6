"""Encoding and decoding of NatNet protocol messages."""

from __future__ import annotations

import logging
import struct
from collections.abc import Callable
from typing import TypeVar

from .data_model import (
    DataModel,
    Marker,
    MarkerSet,
    Orientation,
    Pose,
    Position,
    RigidBody,
)
from .packet import HEADER_SIZE, MessageType, Sender, pack_header, unpack_header
from .version import Version

logger = logging.getLogger(__name__)

_V2_0 = Version(2, 0)
_V2_1 = Version(2, 1)
_V2_3 = Version(2, 3)
_V2_6 = Version(2, 6)
_V2_7 = Version(2, 7)
_V2_9 = Version(2, 9)
_V3_0 = Version(3, 0)

_INT = struct.Struct("<i")
_UINT = struct.Struct("<I")
_SHORT = struct.Struct("<h")
_FLOAT = struct.Struct("<f")
_DOUBLE = struct.Struct("<d")
_UINT64 = struct.Struct("<Q")
_MARKER = struct.Struct("<3f")
_POSE = struct.Struct("<7f")

_T = TypeVar("_T")

_logged_once: set[str] = set()


class MessageError(ValueError):
    """A message is too short or otherwise malformed."""


def _log_info_once(message: str, *args: object) -> None:
    if message in _logged_once:
        return
    _logged_once.add(message)
    logger.info(message, *args)


class _Reader:
    """Sequential little-endian reader over a message buffer."""

    def __init__(self, buffer: bytes, offset: int = 0) -> None:
        self._buffer = bytes(buffer)
        self._offset = offset

    def _unpack(self, layout: struct.Struct) -> tuple:
        end = self._offset + layout.size
        if end > len(self._buffer):
            raise MessageError(
                f"message truncated: need {layout.size} bytes at offset "
                f"{self._offset}, buffer holds {len(self._buffer)}"
            )
        values = layout.unpack_from(self._buffer, self._offset)
        self._offset = end
        return values

    def int32(self) -> int:
        return self._unpack(_INT)[0]

    def uint32(self) -> int:
        return self._unpack(_UINT)[0]

    def int16(self) -> int:
        return self._unpack(_SHORT)[0]

    def float32(self) -> float:
        return self._unpack(_FLOAT)[0]

    def float64(self) -> float:
        return self._unpack(_DOUBLE)[0]

    def uint64(self) -> int:
        return self._unpack(_UINT64)[0]

    def count(self, what: str) -> int:
        value = self.int32()
        if value < 0:
            raise MessageError(f"negative {what} count: {value}")
        return value

    def marker(self) -> Marker:
        x, y, z = self._unpack(_MARKER)
        return Marker(x, y, z)

    def pose(self) -> Pose:
        px, py, pz, ox, oy, oz, ow = self._unpack(_POSE)
        return Pose(Position(px, py, pz), Orientation(ox, oy, oz, ow))

    def cstring(self) -> str:
        end = self._buffer.find(b"\0", self._offset)
        if end < 0:
            raise MessageError(f"unterminated string at offset {self._offset}")
        text = self._buffer[self._offset:end].decode("utf-8", errors="replace")
        self._offset = end + 1
        return text


def _resize(items: list[_T], size: int, factory: Callable[[], _T]) -> None:
    del items[size:]
    items.extend(factory() for _ in range(size - len(items)))


def decode_marker_id(source_id: int) -> tuple[int, int]:
    """Split a labeled marker id into ``(model_id, marker_id)``."""
    return source_id >> 16, source_id & 0x0000FFFF


def decode_timecode(timecode: int, subframe: int) -> tuple[int, int, int, int, int]:
    """Return ``(hour, minute, second, frame, subframe)`` from a SMPTE timecode."""
    return (
        (timecode >> 24) & 255,
        (timecode >> 16) & 255,
        (timecode >> 8) & 255,
        timecode & 255,
        subframe,
    )


def stringify_timecode(timecode: int, subframe: int) -> str:
    """Format a timecode as ``HH:MM:SS:FF.sub`` with zero padding."""
    hour, minute, second, frame, sub = decode_timecode(timecode, subframe)
    text = f"{hour:2d}:{minute:2d}:{second:2d}:{frame:2d}.{sub:d}"
    return text.replace(" ", "0")


def serialize_connection_request() -> bytes:
    """Build the packet that asks a server to identify itself."""
    return pack_header(MessageType.CONNECT, 0)


def deserialize_server_info(buffer: bytes, data_model: DataModel) -> None:
    """Store the versions carried by a server-info packet in ``data_model``."""
    try:
        sender = Sender.from_bytes(bytes(buffer[HEADER_SIZE:]))
    except ValueError as exc:
        raise MessageError(str(exc)) from exc
    data_model.set_versions(sender.natnet_version, sender.version)


def _read_rigid_body(reader: _Reader, body: RigidBody, natnet_version: Version) -> None:
    body.body_id = reader.int32()
    body.pose = reader.pose()
    position, orientation = body.pose.position, body.pose.orientation
    logger.debug("  Rigid body ID: %d", body.body_id)
    logger.debug(
        "    Pos: [%3.2f,%3.2f,%3.2f], Ori: [%3.2f,%3.2f,%3.2f,%3.2f]",
        position.x, position.y, position.z,
        orientation.x, orientation.y, orientation.z, orientation.w,
    )
    if natnet_version >= _V2_0:
        body.mean_marker_error = reader.float32()
        logger.debug("    Mean marker error: %3.2f", body.mean_marker_error)
    if natnet_version >= _V2_6:
        params = reader.int16()
        body.is_tracking_valid = bool(params & 0x01)
        logger.debug(
            "    Successfully tracked in this frame: %s",
            "YES" if body.is_tracking_valid else "NO",
        )


def _skip_channels(reader: _Reader, kind: str) -> None:
    for _ in range(reader.count(kind)):
        item_id = reader.int32()
        logger.debug("%s ID: %d", kind, item_id)
        for channel in range(reader.count("channel")):
            logger.debug("    Channel %d: ", channel)
            for frame in range(reader.count("frame")):
                logger.debug("      Frame %d: %3.2f", frame, reader.float32())


def deserialize_data_frame(buffer: bytes, data_model: DataModel) -> None:
    """Decode a frame-of-data packet into ``data_model``.

    Only marker sets, unlabeled markers, rigid bodies, latency and the
    timestamp are kept; other sections are read past.
    """
    reader = _Reader(buffer, HEADER_SIZE)
    version = data_model.natnet_version()
    frame = data_model.data_frame

    data_model.frame_number = reader.int32()
    logger.debug("=== BEGIN DATA FRAME ===")
    logger.debug("Frame number: %d", data_model.frame_number)

    _resize(frame.marker_sets, reader.count("marker set"), MarkerSet)
    for index, marker_set in enumerate(frame.marker_sets):
        marker_set.name = reader.cstring()
        logger.debug("  Marker set %d: %s", index, marker_set.name)
        num_markers = reader.count("marker")
        marker_set.markers = [reader.marker() for _ in range(num_markers)]

    num_unlabeled = reader.count("unlabeled marker")
    frame.other_markers[:] = [reader.marker() for _ in range(num_unlabeled)]

    _resize(frame.rigid_bodies, reader.count("rigid body"), RigidBody)
    for body in frame.rigid_bodies:
        _read_rigid_body(reader, body, version)

    if version >= _V2_1:
        for _ in range(reader.count("skeleton")):
            skeleton_id = reader.int32()
            logger.debug("Skeleton ID: %d", skeleton_id)
            for _ in range(reader.count("bone")):
                _read_rigid_body(reader, RigidBody(), version)

    if version >= _V2_3:
        for _ in range(reader.count("labeled marker")):
            model_id, marker_id = decode_marker_id(reader.int32())
            marker = reader.marker()
            size = reader.float32()
            if version >= _V2_6:
                reader.int16()
            logger.debug("  MarkerID: %d, ModelID: %d", marker_id, model_id)
            logger.debug("    Pos: [%3.2f,%3.2f,%3.2f]", marker.x, marker.y, marker.z)
            logger.debug("    Size: %3.2f", size)
            if version >= _V3_0:
                logger.debug("    Residual:  %3.2f", reader.float32())

    if version >= _V2_9:
        _skip_channels(reader, "Force plate")

    if version >= _V3_0:
        _skip_channels(reader, "Device")

    if version < _V3_0:
        frame.latency = reader.float32()
        logger.debug("Software latency : %3.3f", frame.latency)

    timecode = reader.uint32()
    timecode_sub = reader.uint32()
    logger.debug("Timecode: %s", stringify_timecode(timecode, timecode_sub))

    timestamp = reader.float64() if version >= _V2_7 else reader.float32()
    logger.debug("Timestamp: %3.3f", timestamp)
    for body in frame.rigid_bodies:
        body.track_timestamp = timestamp

    if version >= _V3_0:
        logger.debug("Mid-exposure timestamp: %d", reader.uint64())
        logger.debug("Camera data received timestamp: %d", reader.uint64())
        logger.debug("Transmit timestamp: %d", reader.uint64())

    reader.int16()  # frame params
    reader.int32()  # end of data tag
    logger.debug("=== END DATA FRAME ===")


def dispatch(buffer: bytes, data_model: DataModel) -> int:
    """Decode ``buffer`` according to its message id; return that id."""
    try:
        message_id, _ = unpack_header(bytes(buffer))
    except ValueError as exc:
        raise MessageError(str(exc)) from exc

    if message_id in (MessageType.MODEL_DEF, MessageType.FRAME_OF_DATA):
        if data_model.has_server_info():
            deserialize_data_frame(buffer, data_model)
        else:
            logger.warning(
                "Client has not received server info request. "
                "Parsing data message aborted."
            )
    elif message_id == MessageType.SERVER_INFO:
        deserialize_server_info(buffer, data_model)
        _log_info_once("NATNet Version : %s", data_model.natnet_version())
        _log_info_once("Server Version : %s", data_model.server_version())
    elif message_id == MessageType.UNRECOGNIZED_REQUEST:
        logger.warning("Received unrecognized request")
    return message_id