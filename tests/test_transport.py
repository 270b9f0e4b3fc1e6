import errno
import os
import socket

import pytest

from natnetbridge.transport import SocketError, UdpMulticastSocket


class FakeSocket:
    def __init__(self, factory, family, kind):
        self.factory = factory
        self.family = family
        self.kind = kind
        self.options = []
        self.bound = None
        self.blocking = True
        self.closed = False
        self.incoming = []
        self.sent = []
        self.recv_sizes = []

    def setsockopt(self, level, name, value):
        failure = self.factory.fail_option
        if failure is not None and failure[0] == name:
            raise OSError(failure[1], os.strerror(failure[1]))
        self.options.append((level, name, value))

    def bind(self, address):
        if self.factory.fail_bind is not None:
            raise OSError(self.factory.fail_bind, os.strerror(self.factory.fail_bind))
        self.bound = address

    def setblocking(self, flag):
        self.blocking = flag

    def recvfrom(self, size):
        self.recv_sizes.append(size)
        if not self.incoming:
            raise BlockingIOError(errno.EAGAIN, "would block")
        return self.incoming.pop(0)

    def sendto(self, data, address):
        self.sent.append((data, address))
        return len(data)

    def close(self):
        self.closed = True


class FakeSocketFactory:
    def __init__(self):
        self.instances = []
        self.fail_option = None
        self.fail_bind = None

    def __call__(self, family=socket.AF_INET, kind=socket.SOCK_DGRAM, *args):
        sock = FakeSocket(self, family, kind)
        self.instances.append(sock)
        return sock


@pytest.fixture
def fake(monkeypatch):
    factory = FakeSocketFactory()
    monkeypatch.setattr(socket, "socket", factory)
    return factory


def test_setup_binds_joins_and_goes_nonblocking(fake):
    sock = UdpMulticastSocket(1511, "239.255.42.99")
    (raw,) = fake.instances
    assert raw.family == socket.AF_INET
    assert raw.kind == socket.SOCK_DGRAM
    assert raw.bound == ("0.0.0.0", 1511)
    assert (socket.SOL_SOCKET, socket.SO_REUSEADDR, 1) in raw.options
    membership = socket.inet_aton("239.255.42.99") + socket.inet_aton("0.0.0.0")
    assert (socket.IPPROTO_IP, socket.IP_ADD_MEMBERSHIP, membership) in raw.options
    assert raw.blocking is False
    assert sock.closed is False


def test_recv_returns_none_when_nothing_waiting(fake):
    sock = UdpMulticastSocket(9001)
    assert sock.recv() is None
    assert fake.instances[0].recv_sizes == [UdpMulticastSocket.MAX_RECV]


def test_recv_returns_datagram_and_remembers_sender(fake):
    sock = UdpMulticastSocket(9001)
    fake.instances[0].incoming.append((b"\x01\x00\x00\x00", ("192.0.2.7", 1510)))
    assert sock.recv() == b"\x01\x00\x00\x00"
    assert sock.remote_address == "192.0.2.7"


def test_send_goes_to_last_sender(fake):
    sock = UdpMulticastSocket(9001)
    fake.instances[0].incoming.append((b"x", ("192.0.2.7", 1510)))
    sock.recv()
    assert sock.send(b"\x00\x00\x00\x00", 1510) == 4
    assert fake.instances[0].sent == [(b"\x00\x00\x00\x00", ("192.0.2.7", 1510))]


def test_send_before_any_recv_uses_any_address(fake):
    sock = UdpMulticastSocket(9001)
    assert sock.send(b"ab", 1510) == 2
    assert fake.instances[0].sent == [(b"ab", ("0.0.0.0", 1510))]


def test_option_failure_names_errno(fake):
    fake.fail_option = (socket.SO_REUSEADDR, errno.EINVAL)
    with pytest.raises(SocketError, match="Failed to set socket option: EINVAL"):
        UdpMulticastSocket(9001)
    assert fake.instances[0].closed is True


def test_membership_failure_with_unnamed_errno(fake):
    fake.fail_option = (socket.IP_ADD_MEMBERSHIP, errno.ENODEV)
    with pytest.raises(SocketError, match="Failed to set socket option: unknown error"):
        UdpMulticastSocket(9001)


def test_bind_failure(fake):
    fake.fail_bind = errno.EADDRINUSE
    with pytest.raises(SocketError, match="^Failed to bind socket to local address:"):
        UdpMulticastSocket(9001)
    assert fake.instances[0].closed is True


def test_invalid_multicast_address(fake):
    with pytest.raises(SocketError):
        UdpMulticastSocket(9001, "not an address")


def test_context_manager_closes(fake):
    with UdpMulticastSocket(9001) as sock:
        assert sock.closed is False
    assert sock.closed is True
    assert fake.instances[0].closed is True


def test_use_after_close_raises(fake):
    sock = UdpMulticastSocket(9001)
    sock.close()
    with pytest.raises(SocketError):
        sock.recv()
    with pytest.raises(SocketError):
        sock.send(b"x", 1510)