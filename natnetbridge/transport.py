"""Non-blocking UDP multicast socket for talking to the server."""

from __future__ import annotations

import errno
import logging
import os
import socket
from types import TracebackType

logger = logging.getLogger(__name__)

_ANY_ADDRESS = "0.0.0.0"
_NAMED_OPTION_ERRORS = {
    errno.EBADF: "EBADF",
    errno.EFAULT: "EFAULT",
    errno.EINVAL: "EINVAL",
    errno.ENOPROTOOPT: "ENOPROTOOPT",
    errno.ENOTSOCK: "ENOTSOCK",
}


class SocketError(RuntimeError):
    """Raised when the socket cannot be set up or used."""


def _strerror(exc: OSError) -> str:
    if exc.strerror:
        return exc.strerror
    if exc.errno is not None:
        return os.strerror(exc.errno)
    return str(exc)


def _option_error(exc: OSError) -> SocketError:
    name = _NAMED_OPTION_ERRORS.get(exc.errno, "unknown error")
    return SocketError(f"Failed to set socket option: {name}")


class UdpMulticastSocket:
    """Joins a multicast group and exchanges datagrams with the server.

    Replies are sent to the address of the last datagram received.
    """

    MAX_RECV = 3000

    def __init__(self, local_port: int, multicast_ip: str = "224.0.0.1") -> None:
        self._remote_host = _ANY_ADDRESS
        self._closed = False
        logger.info("Creating socket...")
        try:
            self._sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        except OSError as exc:
            raise SocketError(_strerror(exc)) from exc
        try:
            self._configure(local_port, multicast_ip)
        except BaseException:
            self.close()
            raise

    def _configure(self, local_port: int, multicast_ip: str) -> None:
        logger.info("Setting socket options...")
        try:
            self._sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        except OSError as exc:
            raise _option_error(exc) from exc

        logger.info("Local address: %s:%i", _ANY_ADDRESS, local_port)
        logger.info("Binding socket to local address...")
        try:
            self._sock.bind((_ANY_ADDRESS, local_port))
        except (OSError, OverflowError) as exc:
            reason = _strerror(exc) if isinstance(exc, OSError) else str(exc)
            raise SocketError(
                f"Failed to bind socket to local address:{reason}"
            ) from exc

        try:
            group = socket.inet_aton(multicast_ip)
        except OSError as exc:
            raise SocketError(f"Invalid multicast address: {multicast_ip}") from exc
        logger.info("Joining multicast group %s...", socket.inet_ntoa(group))
        membership = group + socket.inet_aton(_ANY_ADDRESS)
        try:
            self._sock.setsockopt(socket.IPPROTO_IP, socket.IP_ADD_MEMBERSHIP, membership)
        except OSError as exc:
            raise _option_error(exc) from exc

        logger.info("Enabling non-blocking I/O")
        try:
            self._sock.setblocking(False)
        except OSError as exc:
            raise SocketError(
                f"Failed to enable non-blocking I/O: {_strerror(exc)}"
            ) from exc

    @property
    def remote_address(self) -> str:
        """Host that replies are sent to."""
        return self._remote_host

    @property
    def closed(self) -> bool:
        return self._closed

    def recv(self) -> bytes | None:
        """Return the next datagram, or ``None`` if none is waiting."""
        if self._closed:
            raise SocketError("socket is closed")
        try:
            data, (host, port) = self._sock.recvfrom(self.MAX_RECV)
        except OSError as exc:
            logger.debug("No data received: %s", exc)
            return None
        if data:
            logger.debug("%4i bytes received from %s:%i", len(data), host, port)
        else:
            logger.debug("Connection closed by peer")
        self._remote_host = host
        return data

    def send(self, data: bytes, port: int) -> int:
        """Send ``data`` to the last remote host at ``port``; return bytes sent."""
        if self._closed:
            raise SocketError("socket is closed")
        try:
            return self._sock.sendto(bytes(data), (self._remote_host, port))
        except OSError as exc:
            raise SocketError(f"Failed to send: {_strerror(exc)}") from exc

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._sock.close()

    def __enter__(self) -> "UdpMulticastSocket":
        return self

    def __exit__(
        self,
        *args: type[BaseException] | BaseException | TracebackType | None,
    ) -> None:
        self.close()