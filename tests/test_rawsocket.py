import socket
import struct
from unittest import mock

import pytest

from treasurenet.rawsocket import (
    ETH_P_ALL,
    PACKET_ADD_MEMBERSHIP,
    PACKET_MR_PROMISC,
    SOL_PACKET,
    SocketSetupError,
    open_raw_socket,
)

FAKE_FAMILY = 17


def test_opens_bound_promiscuous_socket():
    with mock.patch.object(socket, "AF_PACKET", FAKE_FAMILY, create=True), \
            mock.patch.object(socket, "if_nametoindex", return_value=4), \
            mock.patch("socket.socket") as socket_cls:
        result = open_raw_socket("eth-test0")
    assert result is socket_cls.return_value
    socket_cls.assert_called_once_with(FAKE_FAMILY, socket.SOCK_RAW, socket.htons(ETH_P_ALL))
    result.bind.assert_called_once_with(("eth-test0", ETH_P_ALL))
    result.setsockopt.assert_called_once_with(
        SOL_PACKET,
        PACKET_ADD_MEMBERSHIP,
        struct.pack("iHH8s", 4, PACKET_MR_PROMISC, 0, b""),
    )
    result.close.assert_not_called()


def test_missing_packet_family_raises():
    with mock.patch.object(socket, "AF_PACKET", None, create=True):
        with pytest.raises(SocketSetupError):
            open_raw_socket("eth-test0")


def test_permission_failure_mentions_root():
    with mock.patch.object(socket, "AF_PACKET", FAKE_FAMILY, create=True), \
            mock.patch("socket.socket", side_effect=PermissionError("denied")):
        with pytest.raises(SocketSetupError, match="root"):
            open_raw_socket("eth-test0")


def test_unknown_interface_closes_socket():
    with mock.patch.object(socket, "AF_PACKET", FAKE_FAMILY, create=True), \
            mock.patch.object(socket, "if_nametoindex", side_effect=OSError("no such device")), \
            mock.patch("socket.socket") as socket_cls:
        with pytest.raises(SocketSetupError, match="eth-missing"):
            open_raw_socket("eth-missing")
    socket_cls.return_value.close.assert_called_once_with()


def test_bind_failure_raises_and_closes():
    with mock.patch.object(socket, "AF_PACKET", FAKE_FAMILY, create=True), \
            mock.patch.object(socket, "if_nametoindex", return_value=2), \
            mock.patch("socket.socket") as socket_cls:
        socket_cls.return_value.bind.side_effect = OSError("bind failed")
        with pytest.raises(SocketSetupError, match="bind"):
            open_raw_socket("eth-test0")
    socket_cls.return_value.close.assert_called_once_with()


def test_promiscuous_failure_raises_and_closes():
    with mock.patch.object(socket, "AF_PACKET", FAKE_FAMILY, create=True), \
            mock.patch.object(socket, "if_nametoindex", return_value=2), \
            mock.patch("socket.socket") as socket_cls:
        socket_cls.return_value.setsockopt.side_effect = OSError("setsockopt failed")
        with pytest.raises(SocketSetupError, match="interface"):
            open_raw_socket("eth-test0")
    socket_cls.return_value.close.assert_called_once_with()


def test_setup_error_is_an_os_error():
    with mock.patch.object(socket, "AF_PACKET", None, create=True):
        with pytest.raises(OSError):
            open_raw_socket("eth-test0")