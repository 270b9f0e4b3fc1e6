import logging
import struct

import pytest

from natnetbridge.data_model import DataModel
from natnetbridge.messages import (
    MessageError,
    decode_marker_id,
    decode_timecode,
    deserialize_data_frame,
    deserialize_server_info,
    dispatch,
    serialize_connection_request,
    stringify_timecode,
)
from natnetbridge.packet import MessageType, unpack_header
from natnetbridge.version import Version


def _server_info_packet(server_version, natnet_version, name=b"Motive"):
    payload = struct.pack("<256s4B4B", name, *server_version, *natnet_version)
    return struct.pack("<HH", MessageType.SERVER_INFO, len(payload)) + payload


def _model(version):
    model = DataModel()
    model.set_versions(version, version)
    return model


def _frame_v3(body_params=1, timestamp=12.25):
    body = struct.pack("<i7f", 4, 1.0, 2.0, 3.0, 0.0, 0.0, 0.0, 1.0)
    body += struct.pack("<f", 0.5) + struct.pack("<h", body_params)
    payload = struct.pack("<i", 42)
    payload += struct.pack("<i", 1) + b"set\0" + struct.pack("<i", 1)
    payload += struct.pack("<3f", 0.5, 1.5, 2.5)
    payload += struct.pack("<i", 1) + struct.pack("<3f", -1.0, -2.0, -3.0)
    payload += struct.pack("<i", 1) + body
    payload += struct.pack("<i", 1) + struct.pack("<ii", 9, 1) + body
    payload += struct.pack("<i", 1) + struct.pack("<i4fhf", (2 << 16) | 3, 1.0, 1.0, 1.0, 0.1, 0, 0.2)
    payload += struct.pack("<i", 1) + struct.pack("<iii", 5, 1, 2) + struct.pack("<2f", 1.0, 2.0)
    payload += struct.pack("<i", 1) + struct.pack("<iii", 6, 1, 1) + struct.pack("<f", 3.0)
    payload += struct.pack("<II", 0x01020304, 0)
    payload += struct.pack("<d", timestamp)
    payload += struct.pack("<QQQ", 1, 2, 3)
    payload += struct.pack("<hi", 0, 0)
    return struct.pack("<HH", MessageType.FRAME_OF_DATA, len(payload)) + payload


def _frame_v2():
    payload = struct.pack("<i", 7)
    payload += struct.pack("<i", 0)
    payload += struct.pack("<i", 0)
    payload += struct.pack("<i", 1)
    payload += struct.pack("<i7ff", 11, 1.0, 2.0, 3.0, 0.0, 0.0, 0.0, 1.0, 0.25)
    payload += struct.pack("<f", 4.5)
    payload += struct.pack("<II", 0, 0)
    payload += struct.pack("<f", 8.5)
    payload += struct.pack("<hi", 0, 0)
    return struct.pack("<HH", MessageType.FRAME_OF_DATA, len(payload)) + payload


def test_connection_request_is_bare_connect_header():
    data = serialize_connection_request()
    assert data == b"\x00\x00\x00\x00"
    assert unpack_header(data) == (MessageType.CONNECT, 0)


def test_decode_marker_id_splits_halves():
    assert decode_marker_id((3 << 16) | 5) == (3, 5)


def test_decode_timecode_fields():
    assert decode_timecode(0x01020304, 7) == (1, 2, 3, 4, 7)


def test_stringify_timecode_zero_pads():
    assert stringify_timecode(0x01020304, 7) == "01:02:03:04.7"
    assert " " not in stringify_timecode(0, 0)


def test_server_info_sets_versions():
    model = DataModel()
    deserialize_server_info(_server_info_packet((2, 2, 0, 0), (3, 0, 0, 0)), model)
    assert model.has_server_info()
    assert model.natnet_version() == Version(3, 0, 0, 0)
    assert model.server_version() == Version(2, 2, 0, 0)


def test_short_server_info_raises():
    with pytest.raises(MessageError):
        deserialize_server_info(struct.pack("<HH", MessageType.SERVER_INFO, 0), DataModel())


def test_dispatch_server_info_returns_id():
    model = DataModel()
    message_id = dispatch(_server_info_packet((1, 2, 3, 4), (3, 1, 0, 0)), model)
    assert message_id == MessageType.SERVER_INFO
    assert model.natnet_version() == Version(3, 1, 0, 0)


def test_frame_v3_fills_model():
    model = _model((3, 0, 0, 0))
    deserialize_data_frame(_frame_v3(), model)
    assert model.frame_number == 42
    frame = model.data_frame
    assert [s.name for s in frame.marker_sets] == ["set"]
    assert (frame.marker_sets[0].markers[0].x, frame.marker_sets[0].markers[0].z) == (0.5, 2.5)
    assert frame.other_markers[0].y == -2.0
    assert len(frame.rigid_bodies) == 1
    body = frame.rigid_bodies[0]
    assert body.body_id == 4
    assert (body.pose.position.x, body.pose.position.y, body.pose.position.z) == (1.0, 2.0, 3.0)
    assert body.pose.orientation.w == 1.0
    assert body.mean_marker_error == 0.5
    assert body.has_valid_data()
    assert body.track_timestamp == 12.25


def test_frame_v3_tracking_flag_clear():
    model = _model((3, 0, 0, 0))
    deserialize_data_frame(_frame_v3(body_params=0), model)
    assert not model.data_frame.rigid_bodies[0].has_valid_data()


def test_frame_v2_reads_latency_and_float_timestamp():
    model = _model((2, 0, 0, 0))
    deserialize_data_frame(_frame_v2(), model)
    assert model.frame_number == 7
    assert model.data_frame.latency == 4.5
    body = model.data_frame.rigid_bodies[0]
    assert body.body_id == 11
    assert body.mean_marker_error == 0.25
    assert body.track_timestamp == 8.5
    assert not body.has_valid_data()


def test_clear_then_decode_again_gives_same_result():
    model = _model((3, 0, 0, 0))
    deserialize_data_frame(_frame_v3(), model)
    first = list(model.data_frame.rigid_bodies)
    model.clear()
    assert model.data_frame.rigid_bodies == []
    deserialize_data_frame(_frame_v3(), model)
    assert model.data_frame.rigid_bodies == first


def test_truncated_frame_raises():
    model = _model((3, 0, 0, 0))
    with pytest.raises(MessageError):
        deserialize_data_frame(_frame_v3()[:-3], model)


def test_negative_count_raises():
    payload = struct.pack("<ii", 1, -1)
    packet = struct.pack("<HH", MessageType.FRAME_OF_DATA, len(payload)) + payload
    with pytest.raises(MessageError):
        deserialize_data_frame(packet, _model((3, 0, 0, 0)))


def test_unterminated_marker_set_name_raises():
    payload = struct.pack("<ii", 1, 1) + b"abc"
    packet = struct.pack("<HH", MessageType.FRAME_OF_DATA, len(payload)) + payload
    with pytest.raises(MessageError):
        deserialize_data_frame(packet, _model((3, 0, 0, 0)))


def test_dispatch_frame_without_server_info_is_ignored(caplog):
    model = DataModel()
    with caplog.at_level(logging.WARNING, logger="natnetbridge.messages"):
        message_id = dispatch(_frame_v3(), model)
    assert message_id == MessageType.FRAME_OF_DATA
    assert model.data_frame.rigid_bodies == []
    assert any("server info" in r.getMessage() for r in caplog.records)


def test_dispatch_frame_with_server_info_decodes():
    model = _model((3, 0, 0, 0))
    dispatch(_frame_v3(), model)
    assert model.frame_number == 42
    assert model.data_frame.rigid_bodies[0].body_id == 4


def test_dispatch_unrecognized_request_warns(caplog):
    packet = struct.pack("<HH", MessageType.UNRECOGNIZED_REQUEST, 0)
    with caplog.at_level(logging.WARNING, logger="natnetbridge.messages"):
        assert dispatch(packet, DataModel()) == MessageType.UNRECOGNIZED_REQUEST
    assert any("unrecognized request" in r.getMessage() for r in caplog.records)


def test_dispatch_short_buffer_raises():
    with pytest.raises(MessageError):
        dispatch(b"\x07", DataModel())