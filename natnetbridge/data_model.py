"""In-memory model of what the motion-capture server has reported."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from .version import Version


@dataclass
class Marker:
    """Position of a single marker in 3D space."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0


@dataclass
class Position:
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0


@dataclass
class Orientation:
    """Orientation as a quaternion."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    w: float = 0.0


@dataclass
class Pose:
    position: Position = field(default_factory=Position)
    orientation: Orientation = field(default_factory=Orientation)


@dataclass
class RigidBody:
    """One tracked rigid body in a frame."""

    body_id: int = 0
    pose: Pose = field(default_factory=Pose)
    mean_marker_error: float = 0.0
    is_tracking_valid: bool = False
    track_timestamp: float = 0.0

    def has_valid_data(self) -> bool:
        return self.is_tracking_valid


@dataclass
class ModelDescription:
    """Description of a single tracked model."""

    name: str = ""
    marker_names: list[str] = field(default_factory=list)

    def clear(self) -> None:
        self.marker_names.clear()


@dataclass
class MarkerSet:
    name: str = ""
    markers: list[Marker] = field(default_factory=list)

    def clear(self) -> None:
        self.markers.clear()


@dataclass
class ModelFrame:
    """Everything received in one frame of data."""

    marker_sets: list[MarkerSet] = field(default_factory=list)
    other_markers: list[Marker] = field(default_factory=list)
    rigid_bodies: list[RigidBody] = field(default_factory=list)
    latency: float = 0.0

    def clear(self) -> None:
        self.marker_sets.clear()
        self.other_markers.clear()
        self.rigid_bodies.clear()


@dataclass
class ServerInfo:
    natnet_version: Version = field(default_factory=Version)
    server_version: Version = field(default_factory=Version)


class DataModel:
    """Latest frame plus the server's version information."""

    def __init__(self) -> None:
        self.frame_number = 0
        self.data_frame = ModelFrame()
        self._server_info = ServerInfo()
        self._has_valid_server_info = False

    def clear(self) -> None:
        """Drop the current frame's contents."""
        self.data_frame.clear()

    def set_versions(
        self, natnet_version: Sequence[int], server_version: Sequence[int]
    ) -> None:
        """Record the protocol and server versions from four-part sequences."""
        if len(natnet_version) < 4 or len(server_version) < 4:
            raise ValueError("version sequences need four components")
        self._server_info = ServerInfo(
            natnet_version=Version(*(int(part) for part in natnet_version[:4])),
            server_version=Version(*(int(part) for part in server_version[:4])),
        )
        self._has_valid_server_info = True

    def natnet_version(self) -> Version:
        return self._server_info.natnet_version

    def server_version(self) -> Version:
        return self._server_info.server_version

    def has_server_info(self) -> bool:
        return self._has_valid_server_info