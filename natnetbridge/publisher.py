"""Turn rigid-body frames into pose, odometry and transform messages."""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from .config import PublisherConfiguration
from .data_model import Orientation, Pose, Position, RigidBody
from .version import Version

logger = logging.getLogger(__name__)

_V1_7 = Version(1, 7)
_V2_0 = Version(2, 0)


@dataclass
class Header:
    """Timestamp split into whole seconds and nanoseconds, plus a frame id."""

    sec: int = 0
    nanosec: int = 0
    frame_id: str = ""

    @property
    def seconds(self) -> float:
        return self.sec + self.nanosec * 1e-9


@dataclass
class PoseStamped:
    header: Header = field(default_factory=Header)
    pose: Pose = field(default_factory=Pose)


@dataclass
class Odometry:
    header: Header = field(default_factory=Header)
    child_frame_id: str = ""
    pose: Pose = field(default_factory=Pose)


@dataclass
class TransformStamped:
    header: Header = field(default_factory=Header)
    child_frame_id: str = ""
    translation: Position = field(default_factory=Position)
    rotation: Orientation = field(default_factory=Orientation)


@runtime_checkable
class PublishSink(Protocol):
    """Destination for the messages produced by the publishers."""

    def publish_pose(self, topic: str, message: PoseStamped) -> None: ...

    def publish_odometry(self, topic: str, message: Odometry) -> None: ...

    def send_transform(self, message: TransformStamped) -> None: ...


def _split_seconds(value: float) -> tuple[int, int]:
    return int(value), int((value - math.floor(value)) * 1e9)


def _convert_pose(pose: Pose, coordinates_version: Version) -> Pose:
    position, orientation = pose.position, pose.orientation
    if coordinates_version < _V2_0 and coordinates_version >= _V1_7:
        # Coordinate system of Motive 1.7 up to (not including) 2.0.
        return Pose(
            Position(-position.x, position.z, position.y),
            Orientation(-orientation.x, orientation.z, orientation.y, orientation.w),
        )
    # The server swaps the y and z axes.
    return Pose(
        Position(position.x, -position.z, position.y),
        Orientation(orientation.x, -orientation.z, orientation.y, orientation.w),
    )


def to_pose_stamped(body: RigidBody, coordinates_version: Version) -> PoseStamped:
    """Express a rigid body's pose in the robot coordinate convention."""
    return PoseStamped(pose=_convert_pose(body.pose, coordinates_version))


def to_odometry(body: RigidBody, coordinates_version: Version) -> Odometry:
    """Odometry message carrying the converted pose of ``body``."""
    return Odometry(pose=_convert_pose(body.pose, coordinates_version))


class RigidBodyPublisher:
    """Publishes the messages configured for one rigid body."""

    def __init__(
        self,
        sink: PublishSink,
        natnet_version: Version,
        config: PublisherConfiguration,
    ) -> None:
        self._sink = sink
        self.config = config
        self.coordinates_version = natnet_version
        # Offset between the server clock and the local clock.
        self.time_difference = 0.0

    def publish(self, time: float, body: RigidBody) -> bool:
        """Publish ``body`` observed at local ``time`` (seconds).

        Returns ``False`` when the body carries no usable data.
        """
        if not body.has_valid_data():
            return False
        if math.isnan(body.pose.position.x):
            return False

        pose = to_pose_stamped(body, self.coordinates_version)
        odom = to_odometry(body, self.coordinates_version)

        current_difference = time - body.track_timestamp
        if self.time_difference == 0:
            logger.debug("Initial clock sync: %.0f seconds", current_difference)
            self.time_difference = current_difference
        if current_difference < self.time_difference:
            logger.debug(
                "Improving clock sync by %.5f seconds",
                self.time_difference - current_difference,
            )
            self.time_difference = current_difference

        sec, nanosec = _split_seconds(body.track_timestamp + self.time_difference)
        pose.header = Header(sec, nanosec)
        odom.header = Header(sec, nanosec)

        config = self.config
        if config.publish_pose:
            pose.header.frame_id = config.parent_frame_id
            self._sink.publish_pose(config.pose_topic_name, pose)

        if config.publish_odom:
            odom.header.frame_id = config.parent_frame_id
            odom.child_frame_id = config.child_frame_id
            self._sink.publish_odometry(config.odom_topic_name, odom)

        if config.publish_tf:
            stamp_sec, stamp_nanosec = _split_seconds(time)
            transform = TransformStamped(
                header=Header(stamp_sec, stamp_nanosec, config.parent_frame_id),
                child_frame_id=config.child_frame_id,
                translation=Position(
                    pose.pose.position.x, pose.pose.position.y, pose.pose.position.z
                ),
                rotation=Orientation(
                    pose.pose.orientation.x,
                    pose.pose.orientation.y,
                    pose.pose.orientation.z,
                    pose.pose.orientation.w,
                ),
            )
            self._sink.send_transform(transform)
        return True


class RigidBodyPublishDispatcher:
    """Routes each rigid body to the publisher configured for its id."""

    def __init__(
        self,
        sink: PublishSink,
        natnet_version: Version,
        configs: Iterable[PublisherConfiguration],
    ) -> None:
        self._publishers = {
            config.rigid_body_id: RigidBodyPublisher(sink, natnet_version, config)
            for config in configs
        }

    @property
    def body_ids(self) -> list[int]:
        return sorted(self._publishers)

    def publish(self, time: float, rigid_bodies: Iterable[RigidBody]) -> int:
        """Publish every body that has a publisher; return how many were published."""
        published = 0
        for body in rigid_bodies:
            publisher = self._publishers.get(body.body_id)
            if publisher is not None and publisher.publish(time, body):
                published += 1
        return published