"""Node configuration: server connection settings and per-body publishers."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from os import PathLike
from typing import Any

import yaml

logger = logging.getLogger(__name__)

KEY_MULTICAST_IP_ADDRESS = "optitrack_config.multicast_address"
KEY_COMMAND_PORT = "optitrack_config.command_port"
KEY_DATA_PORT = "optitrack_config.data_port"
KEY_ENABLE_OPTITRACK = "optitrack_config.enable_optitrack"
KEY_VERSION = "optitrack_config.version"
KEY_RIGID_BODIES = "rigid_bodies"
KEY_POSE_TOPIC_NAME = "pose"
KEY_ODOM_TOPIC_NAME = "odom"
KEY_ENABLE_TF_PUBLISHER = "tf"
KEY_CHILD_FRAME_ID = "child_frame_id"
KEY_PARENT_FRAME_ID = "parent_frame_id"
KEY_QOS_OVERRIDE_DURABILITY = "qos_overrides./tf.publisher.durability"
KEY_QOS_OVERRIDE_HISTORY = "qos_overrides./tf.publisher.history"
KEY_QOS_OVERRIDE_DEPTH = "qos_overrides./tf.publisher.depth"
KEY_QOS_OVERRIDE_RELIABILITY = "qos_overrides./tf.publisher.reliability"

DEFAULT_COMMAND_PORT = 1511
DEFAULT_DATA_PORT = 9001
DEFAULT_MULTICAST_IP_ADDRESS = "224.0.0.251"
DEFAULT_ENABLE_OPTITRACK = True

_DEFAULT_POSE_TOPIC = "pose"
_DEFAULT_ODOM_TOPIC = "odom"
_DEFAULT_TF = ""
_DEFAULT_CHILD_FRAME = "base_link"
_DEFAULT_PARENT_FRAME = "world"


@dataclass
class ServerDescription:
    """How to reach the motion-capture server."""

    command_port: int = DEFAULT_COMMAND_PORT
    data_port: int = DEFAULT_DATA_PORT
    multicast_ip_address: str = DEFAULT_MULTICAST_IP_ADDRESS
    enable_optitrack: bool = DEFAULT_ENABLE_OPTITRACK
    version: list[int] = field(default_factory=list)
    qos_override_durability: str = ""
    qos_override_history: str = ""
    qos_override_depth: int = 0
    qos_override_reliability: str = ""


@dataclass
class PublisherConfiguration:
    """What to publish for one rigid body."""

    rigid_body_id: int = 0
    pose_topic_name: str = _DEFAULT_POSE_TOPIC
    odom_topic_name: str = _DEFAULT_ODOM_TOPIC
    enable_tf_publisher: str = _DEFAULT_TF
    child_frame_id: str = _DEFAULT_CHILD_FRAME
    parent_frame_id: str = _DEFAULT_PARENT_FRAME
    publish_pose: bool = True
    publish_odom: bool = True
    publish_tf: bool = True


def _check(key: str, value: Any, kind: type) -> Any:
    if kind is int:
        ok = isinstance(value, int) and not isinstance(value, bool)
    else:
        ok = isinstance(value, kind)
    if not ok:
        raise TypeError(
            f"parameter {key!r} must be of type {kind.__name__}, "
            f"got {type(value).__name__}"
        )
    return value


def _get_or(params: Mapping[str, Any], key: str, default: Any, kind: type, what: str) -> Any:
    if key not in params:
        logger.warning("Could not get %s, using default: %s", what, default)
        return default
    return _check(key, params[key], kind)


def _get_version(params: Mapping[str, Any]) -> list[int]:
    if KEY_VERSION not in params:
        logger.warning("Could not get server version, using auto")
        return []
    value = params[KEY_VERSION]
    if not isinstance(value, (list, tuple)):
        raise TypeError(f"parameter {KEY_VERSION!r} must be a list of integers")
    return [_check(KEY_VERSION, part, int) for part in value]


def _rigid_body_prefixes(params: Mapping[str, Any]) -> list[str]:
    start = KEY_RIGID_BODIES + "."
    prefixes = {
        name.rsplit(".", 1)[0]
        for name in params
        if name.startswith(start) and "." in name[len(start):]
    }
    return sorted(prefixes)


def _rigid_body_id(prefix: str) -> int:
    # Only the first character after "rigid_bodies." names the body.
    digit = prefix[len(KEY_RIGID_BODIES) + 1:len(KEY_RIGID_BODIES) + 2]
    return int(digit) if digit and digit in "0123456789" else 0


def _body_string(params: Mapping[str, Any], prefix: str, key: str, default: str) -> str:
    name = f"{prefix}.{key}"
    value = params.get(name, default)
    return _check(name, value, str)


def _publisher_configuration(params: Mapping[str, Any], prefix: str) -> PublisherConfiguration:
    body_id = _rigid_body_id(prefix)

    pose_topic = _body_string(params, prefix, KEY_POSE_TOPIC_NAME, _DEFAULT_POSE_TOPIC)
    if not pose_topic:
        logger.warning(
            "Failed to parse %s for body %d. Pose publishing disabled.",
            KEY_POSE_TOPIC_NAME, body_id,
        )

    odom_topic = _body_string(params, prefix, KEY_ODOM_TOPIC_NAME, _DEFAULT_ODOM_TOPIC)
    if not odom_topic:
        logger.warning(
            "Failed to parse %s for body %d. Odom publishing disabled.",
            KEY_ODOM_TOPIC_NAME, body_id,
        )

    enable_tf = _body_string(params, prefix, KEY_ENABLE_TF_PUBLISHER, _DEFAULT_TF)
    if not enable_tf:
        logger.warning(
            "Failed to parse %s for body %d. TF publishing disabled.",
            KEY_ENABLE_TF_PUBLISHER, body_id,
        )

    child = _body_string(params, prefix, KEY_CHILD_FRAME_ID, _DEFAULT_CHILD_FRAME)
    parent = _body_string(params, prefix, KEY_PARENT_FRAME_ID, _DEFAULT_PARENT_FRAME)
    for key, value in ((KEY_CHILD_FRAME_ID, child), (KEY_PARENT_FRAME_ID, parent)):
        if not value:
            logger.warning(
                "Failed to parse %s for body %d. TF publishing disabled.", key, body_id
            )

    return PublisherConfiguration(
        rigid_body_id=body_id,
        pose_topic_name=pose_topic,
        odom_topic_name=odom_topic,
        enable_tf_publisher=enable_tf,
        child_frame_id=child,
        parent_frame_id=parent,
        publish_pose=bool(pose_topic),
        publish_odom=bool(odom_topic),
        publish_tf=bool(child) and bool(parent),
    )


def from_parameters(
    params: Mapping[str, Any],
) -> tuple[ServerDescription, list[PublisherConfiguration]]:
    """Build the server description and publisher list from flat dotted parameters.

    Missing server settings fall back to their defaults with a warning.
    Every ``rigid_bodies.<id>.*`` namespace yields one publisher
    configuration; the body id is taken from the first character of ``<id>``.
    """
    description = ServerDescription(
        multicast_ip_address=_get_or(
            params, KEY_MULTICAST_IP_ADDRESS, DEFAULT_MULTICAST_IP_ADDRESS, str,
            "multicast address",
        ),
        command_port=_get_or(
            params, KEY_COMMAND_PORT, DEFAULT_COMMAND_PORT, int, "command port"
        ),
        enable_optitrack=_get_or(
            params, KEY_ENABLE_OPTITRACK, DEFAULT_ENABLE_OPTITRACK, bool,
            "enable optitrack",
        ),
        data_port=_get_or(params, KEY_DATA_PORT, DEFAULT_DATA_PORT, int, "data port"),
        version=_get_version(params),
    )
    configs = [
        _publisher_configuration(params, prefix)
        for prefix in _rigid_body_prefixes(params)
    ]
    return description, configs


def _flatten(tree: Mapping[Any, Any], prefix: str = "") -> dict[str, Any]:
    flat: dict[str, Any] = {}
    for key, value in tree.items():
        name = f"{prefix}{key}"
        if isinstance(value, Mapping):
            flat.update(_flatten(value, name + "."))
        else:
            flat[name] = value
    return flat


def load_parameter_file(path: str | PathLike[str], node_name: str) -> dict[str, Any]:
    """Read a node parameter YAML file and return its parameters as dotted keys.

    Parameters under the ``/**`` wildcard section apply first; those under
    ``node_name`` (with or without a leading slash) override them.
    """
    with open(path, encoding="utf-8") as handle:
        document = yaml.safe_load(handle)
    if not isinstance(document, Mapping):
        raise ValueError(f"{path}: parameter file must hold a mapping")

    params: dict[str, Any] = {}
    found = False
    for section in ("/**", node_name.lstrip("/"), "/" + node_name.lstrip("/")):
        body = document.get(section)
        if body is None:
            continue
        if not isinstance(body, Mapping):
            raise ValueError(f"{path}: section {section!r} must be a mapping")
        values = body.get("ros__parameters", {})
        if not isinstance(values, Mapping):
            raise ValueError(f"{path}: ros__parameters of {section!r} must be a mapping")
        params.update(_flatten(values))
        found = True
    if not found:
        raise ValueError(f"{path}: no parameters for node {node_name!r}")
    return params