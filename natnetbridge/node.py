"""The bridge that polls the motion-capture server and publishes rigid bodies."""

from __future__ import annotations

import argparse
import json
import logging
import sys
import threading
import time as _time
from collections.abc import Callable, Iterable, Mapping
from dataclasses import asdict, dataclass
from typing import Any, TextIO

import yaml

from .config import (
    KEY_COMMAND_PORT,
    KEY_DATA_PORT,
    KEY_ENABLE_OPTITRACK,
    KEY_MULTICAST_IP_ADDRESS,
    KEY_QOS_OVERRIDE_DEPTH,
    KEY_QOS_OVERRIDE_DURABILITY,
    KEY_QOS_OVERRIDE_HISTORY,
    KEY_QOS_OVERRIDE_RELIABILITY,
    PublisherConfiguration,
    ServerDescription,
    from_parameters,
    load_parameter_file,
)
from .data_model import DataModel
from .messages import MessageError, dispatch, serialize_connection_request
from .publisher import (
    Odometry,
    PoseStamped,
    PublishSink,
    RigidBodyPublishDispatcher,
    TransformStamped,
)
from .transport import SocketError, UdpMulticastSocket

logger = logging.getLogger(__name__)

_NOT_RECONFIGURABLE = "Parameter is not dynamic reconfigurable"

_RECONFIGURABLE: dict[str, tuple[str, type]] = {
    KEY_COMMAND_PORT: ("command_port", int),
    KEY_DATA_PORT: ("data_port", int),
    KEY_MULTICAST_IP_ADDRESS: ("multicast_ip_address", str),
    KEY_ENABLE_OPTITRACK: ("enable_optitrack", bool),
    KEY_QOS_OVERRIDE_DURABILITY: ("qos_override_durability", str),
    KEY_QOS_OVERRIDE_HISTORY: ("qos_override_history", str),
    KEY_QOS_OVERRIDE_DEPTH: ("qos_override_depth", int),
    KEY_QOS_OVERRIDE_RELIABILITY: ("qos_override_reliability", str),
}


@dataclass
class SetParametersResult:
    successful: bool = True
    reason: str = ""


def _checked(name: str, value: Any, kind: type) -> Any:
    if kind is int:
        ok = isinstance(value, int) and not isinstance(value, bool)
    else:
        ok = isinstance(value, kind)
    if not ok:
        raise TypeError(
            f"parameter {name!r} must be of type {kind.__name__}, "
            f"got {type(value).__name__}"
        )
    return value


class OptiTrackBridge:
    """Requests server info, then decodes frames and publishes rigid bodies.

    ``socket_factory``, ``clock`` and ``sleep`` are plain attributes and may be
    replaced after construction.
    """

    def __init__(
        self,
        server_description: ServerDescription,
        publisher_configurations: Iterable[PublisherConfiguration],
        sink: PublishSink,
    ) -> None:
        self.server_description = server_description
        self.publisher_configurations = list(publisher_configurations)
        self.data_model = DataModel()
        self.initialized = False
        self.socket_factory: Callable[[int, str], Any] = UdpMulticastSocket
        self.clock: Callable[[], float] = _time.time
        self.sleep: Callable[[float], None] = _time.sleep
        self._sink = sink
        self._socket: Any = None
        self._dispatcher: RigidBodyPublishDispatcher | None = None
        self._stop = threading.Event()

    def stop(self) -> None:
        """Ask ``run`` and ``initialize`` to return."""
        self._stop.set()

    def close(self) -> None:
        if self._socket is not None:
            self._socket.close()
            self._socket = None

    def initialize(self) -> None:
        """Open the socket and wait until the server has reported its versions."""
        description = self.server_description
        if not description.enable_optitrack:
            logger.info("Initialization incomplete")
            self.initialized = False
            return

        self.close()
        self._socket = self.socket_factory(
            description.data_port, description.multicast_ip_address
        )

        if description.version:
            parts = [int(part) for part in description.version[:4]]
            parts.extend([0] * (4 - len(parts)))
            self.data_model.set_versions(parts, parts)

        request = serialize_connection_request()
        while not self._stop.is_set() and not self.data_model.has_server_info():
            try:
                self._socket.send(request, description.command_port)
            except SocketError as exc:
                logger.debug("Connection request not sent: %s", exc)
            if self.update_data_model_from_server():
                self.sleep(10e-6)
            else:
                self.sleep(1.0)

        self._dispatcher = RigidBodyPublishDispatcher(
            self._sink, self.data_model.natnet_version(), self.publisher_configurations
        )
        logger.info("Initialization complete")
        self.initialized = True

    def run(self) -> None:
        """Poll the server and publish until ``stop`` is called."""
        while not self._stop.is_set():
            if self.initialized and self.server_description.enable_optitrack:
                if self.update_data_model_from_server() and self._dispatcher is not None:
                    self._dispatcher.publish(
                        self.clock(), self.data_model.data_frame.rigid_bodies
                    )
                    self.data_model.clear()
                self.sleep(100e-6)
            else:
                if self.server_description.enable_optitrack:
                    self.initialize()
                self.sleep(1.0)

    def update_data_model_from_server(self) -> bool:
        """Decode one waiting datagram into the data model; ``False`` if none."""
        if self._socket is None:
            return False
        data = self._socket.recv()
        if not data:
            return False
        try:
            dispatch(data, self.data_model)
        except MessageError as exc:
            logger.warning("Discarding malformed message: %s", exc)
            self.data_model.clear()
            return False
        return True

    def set_parameters(
        self, parameters: Mapping[str, Any] | Iterable[tuple[str, Any]]
    ) -> SetParametersResult:
        """Apply run-time parameter changes to the server description."""
        items = parameters.items() if isinstance(parameters, Mapping) else parameters
        result = SetParametersResult()
        for name, value in items:
            logger.info("Got parameter: '{%s, %s}'", name, value)
            target = _RECONFIGURABLE.get(name)
            if target is None:
                result.successful = False
                result.reason = _NOT_RECONFIGURABLE
                logger.warning("Parameter %s not dynamically reconfigurable", name)
                continue
            attribute, kind = target
            setattr(self.server_description, attribute, _checked(name, value, kind))
        return result


class _JsonLinesSink:
    """Writes every message as one JSON object per line."""

    def __init__(self, stream: TextIO) -> None:
        self._stream = stream

    def _write(self, kind: str, topic: str, message: Any) -> None:
        record = {"kind": kind, "topic": topic, "message": asdict(message)}
        self._stream.write(json.dumps(record) + "\n")
        self._stream.flush()

    def publish_pose(self, topic: str, message: PoseStamped) -> None:
        self._write("pose", topic, message)

    def publish_odometry(self, topic: str, message: Odometry) -> None:
        self._write("odometry", topic, message)

    def send_transform(self, message: TransformStamped) -> None:
        self._write("transform", "tf", message)


def _parse_override(text: str) -> tuple[str, Any]:
    name, separator, raw = text.partition(":=")
    if not separator or not name:
        raise argparse.ArgumentTypeError(f"expected NAME:=VALUE, got {text!r}")
    try:
        value = yaml.safe_load(raw)
    except yaml.YAMLError:
        value = raw
    return name, value


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="natnetbridge",
        description="Publish rigid bodies streamed by a NatNet motion-capture server.",
    )
    parser.add_argument("--params-file", help="YAML node parameter file")
    parser.add_argument("--node-name", default="mocap_node")
    parser.add_argument(
        "-p", "--param", action="append", default=[], type=_parse_override,
        metavar="NAME:=VALUE", help="override a single parameter",
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    params: dict[str, Any] = {}
    try:
        if args.params_file:
            params.update(load_parameter_file(args.params_file, args.node_name))
        params.update(dict(args.param))
        description, configs = from_parameters(params)
    except (OSError, ValueError, TypeError) as exc:
        logger.error("Invalid configuration: %s", exc)
        return 2

    bridge = OptiTrackBridge(description, configs, _JsonLinesSink(sys.stdout))
    try:
        bridge.initialize()
        bridge.run()
    except KeyboardInterrupt:
        pass
    except SocketError as exc:
        logger.error("%s", exc)
        return 1
    finally:
        bridge.close()
    return 0