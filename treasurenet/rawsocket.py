"""Opening a promiscuous raw packet socket on a network interface (Linux)."""

from __future__ import annotations

import socket
import struct

ETH_P_ALL = 0x0003
SOL_PACKET = getattr(socket, "SOL_PACKET", 263)
PACKET_ADD_MEMBERSHIP = 1
PACKET_MR_PROMISC = 1


class SocketSetupError(OSError):
    """The raw socket could not be created or configured."""


def open_raw_socket(interface: str) -> socket.socket:
    """Create a raw socket bound to interface, receiving all traffic promiscuously."""
    family = getattr(socket, "AF_PACKET", None)
    if family is None:
        raise SocketSetupError("raw packet sockets are not supported on this platform")
    try:
        sock = socket.socket(family, socket.SOCK_RAW, socket.htons(ETH_P_ALL))
    except OSError as exc:
        raise SocketSetupError("could not create socket: check that you are root") from exc

    try:
        try:
            index = socket.if_nametoindex(interface)
        except OSError as exc:
            raise SocketSetupError(f"unknown network interface {interface!r}") from exc
        try:
            sock.bind((interface, ETH_P_ALL))
        except OSError as exc:
            raise SocketSetupError(f"could not bind socket to {interface!r}") from exc
        membership = struct.pack("iHH8s", index, PACKET_MR_PROMISC, 0, b"")
        try:
            sock.setsockopt(SOL_PACKET, PACKET_ADD_MEMBERSHIP, membership)
        except OSError as exc:
            raise SocketSetupError(
                "could not enable promiscuous mode: check the network interface name"
            ) from exc
    except SocketSetupError:
        sock.close()
        raise
    return sock