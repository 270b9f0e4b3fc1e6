# natnetbridge

`natnetbridge` listens to a NatNet motion-capture server, such as OptiTrack
Motive, over UDP multicast. It decodes the frames the server sends. For each
configured rigid body it produces a stamped pose, odometry and a transform.

## What it does

- It sends a connection request to the server's command port until the server
  replies with its NatNet and server versions. You can set a fixed version in
  the configuration (`optitrack_config.version`) instead.
- It decodes data frames according to the NatNet version. Marker sets,
  unlabeled markers, rigid bodies, software latency and the frame timestamp
  are kept in a `DataModel`. Skeletons, labeled markers, force plates, device
  data, timecode and the high-resolution timestamps are read past but not
  stored.
- It converts the server's coordinate frame by swapping the y and z axes. For
  NatNet versions from 1.7 up to but not including 2.0 the conversion is
  different.
- It aligns the server's timestamps with the local clock, using the smallest
  offset seen so far.
- For each configured rigid body that has valid tracking data, it publishes a
  pose, odometry and a transform. Each of the three can be switched off.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Running the bridge

The package installs the `natnet-bridge` command:

```
natnet-bridge --params-file params.yaml
```

The command takes these options:

- `--params-file PATH` is a YAML parameter file.
- `--node-name NAME` picks the section of that file to read. It defaults to
  `mocap_node`. Parameters under `/**` are applied first. Parameters under the
  node name, with or without a leading `/`, then override them.
- `-p NAME:=VALUE` / `--param NAME:=VALUE` overrides a single dotted parameter.
  The value is read as YAML, for example
  `-p optitrack_config.data_port:=9001`. You can repeat this option.
- `-v` / `--verbose` turns on debug logging.

Every published message is written to standard output as one JSON object per
line:

```
{"kind": "pose" | "odometry" | "transform", "topic": ..., "message": {...}}
```

Transforms use the topic `tf`. Stop the bridge with Ctrl-C. The exit status is
`2` for an invalid configuration and `1` when the socket cannot be set up.

An example parameter file:

```yaml
mocap_node:
  ros__parameters:
    optitrack_config:
      multicast_address: "224.0.0.251"
      command_port: 1511
      data_port: 9001
      enable_optitrack: true
    rigid_bodies:
      "1":
        pose: "robot1/pose"
        odom: "robot1/odom"
        tf: "tf"
        child_frame_id: "robot1/base_link"
        parent_frame_id: "world"
```

Missing server settings fall back to their defaults, and a warning is logged.
The defaults are:

| Setting           | Default       |
| ----------------- | ------------- |
| multicast address | `224.0.0.251` |
| command port      | `1511`        |
| data port         | `9001`        |

Each `rigid_bodies.<id>` section configures one body. Only the first character
of `<id>` is used as the body id.

A body with an empty `pose` or `odom` topic does not publish that output.
Transforms are switched off when `child_frame_id` or `parent_frame_id` is
empty. An empty `tf` only logs a warning.

The per-body defaults are:

| Key               | Default     |
| ----------------- | ----------- |
| `pose`            | `pose`      |
| `odom`            | `odom`      |
| `child_frame_id`  | `base_link` |
| `parent_frame_id` | `world`     |

## Using it as a library

```python
from natnetbridge.data_model import DataModel
from natnetbridge.messages import serialize_connection_request, dispatch
from natnetbridge.transport import UdpMulticastSocket

model = DataModel()

with UdpMulticastSocket(9001, "224.0.0.251") as sock:
    sock.send(serialize_connection_request(), 1511)
    packet = sock.recv()  # None when no datagram is waiting
    if packet:
        dispatch(packet, model)

if model.has_server_info():
    print("NatNet", model.natnet_version())
    for body in model.data_frame.rigid_bodies:
        print(body)
```

### Transport

`UdpMulticastSocket` is non-blocking. `send` goes to the host of the last
datagram received. Before any datagram has arrived, that host is `0.0.0.0`.

### Decoding messages

`dispatch` returns the message id. Malformed or truncated messages raise
`MessageError`.

### Versions

`Version.parse("2.9")` reads dotted version strings. Missing parts are zero.
Versions compare with the usual operators, component by component: one
version is greater than another if any single component is greater.

### Configuration

`natnetbridge.config` has two functions:

- `load_parameter_file(path, node_name)` reads a parameter file into flat
  dotted keys.
- `from_parameters(params)` turns those keys into a `ServerDescription` and a
  list of `PublisherConfiguration`.

### Publishing

To send messages somewhere other than standard output, give an object that
follows the `PublishSink` protocol to `RigidBodyPublishDispatcher` or
`OptiTrackBridge`. The protocol has three methods: `publish_pose`,
`publish_odometry` and `send_transform`.

`to_pose_stamped` and `to_odometry` convert a single rigid body without
publishing it.

`OptiTrackBridge.set_parameters` changes these settings while the bridge
runs:

- the ports
- the multicast address
- `enable_optitrack`
- the `qos_overrides./tf.publisher.*` values

Any other name makes the result unsuccessful.

## What it does not do

The bridge is not tied to any robotics middleware. It publishes through a
`PublishSink`, and the command line writes JSON lines. The QoS override
parameters are stored but have no effect. Model definitions are not decoded
into model descriptions.