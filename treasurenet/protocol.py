"""Framing, validation and transport of treasure-game protocol messages.

Every frame is exactly ``FRAME_SIZE`` bytes long::

    [0] start marker (0x7E)
    [1] payload length (0..127)
    [2] sequence number (0..31)
    [3] message type (0..15)
    [4] checksum
    [5:] payload, zero padded
"""

from __future__ import annotations

import socket
import time
from dataclasses import dataclass
from enum import IntEnum

FRAME_SIZE = 132
HEADER_SIZE = 5
START_MARKER = 0x7E
MAX_DATA_SIZE = 127
MAX_SEQUENCE = 31
SEQUENCE_MODULUS = 32
MAX_TYPE = 0x0F


class MessageType(IntEnum):
    """Message types carried in byte 3 of a frame."""

    ACK = 0x00
    NACK = 0x01
    OK = 0x02
    FREE_1 = 0x03
    SIZE = 0x04
    DATA = 0x05
    TEXT = 0x06
    VIDEO = 0x07
    IMAGE = 0x08
    END_OF_FILE = 0x09
    MOVE_RIGHT = 0x0A
    MOVE_UP = 0x0B
    MOVE_DOWN = 0x0C
    MOVE_LEFT = 0x0D
    FREE_2 = 0x0E
    ERROR = 0x0F


class ErrorCode(IntEnum):
    """Payload of an ERROR message."""

    NO_ACCESS = 0
    NO_SPACE = 1


_MOVES = frozenset(
    {MessageType.MOVE_RIGHT, MessageType.MOVE_UP, MessageType.MOVE_DOWN, MessageType.MOVE_LEFT}
)
_FILE_CHUNKS = frozenset({MessageType.TEXT, MessageType.IMAGE, MessageType.VIDEO})


class ProtocolError(Exception):
    """Base class for protocol failures."""


class InvalidMessageError(ProtocolError):
    """The frame does not follow the protocol layout."""


class ChecksumError(ProtocolError):
    """The frame is well formed but its checksum does not match."""


class ReceiveTimeout(ProtocolError, TimeoutError):
    """No message arrived before the timeout."""


def compute_checksum(frame: bytes) -> int:
    """Sum of the length, sequence, type and payload bytes, modulo 256."""
    length = frame[1]
    return (sum(frame[1:4]) + sum(frame[HEADER_SIZE:HEADER_SIZE + length])) & 0xFF


def validate_frame(frame: bytes) -> None:
    """Raise InvalidMessageError or ChecksumError if the frame is not acceptable."""
    if len(frame) != FRAME_SIZE:
        raise InvalidMessageError(f"frame must be {FRAME_SIZE} bytes, got {len(frame)}")
    if frame[0] != START_MARKER:
        raise InvalidMessageError(f"bad start marker 0x{frame[0]:02X}")
    if frame[1] > MAX_DATA_SIZE:
        raise InvalidMessageError(f"payload length {frame[1]} exceeds {MAX_DATA_SIZE}")
    if frame[3] > MAX_TYPE:
        raise InvalidMessageError(f"unknown message type 0x{frame[3]:02X}")
    if frame[2] > MAX_SEQUENCE:
        raise InvalidMessageError(f"sequence number {frame[2]} exceeds {MAX_SEQUENCE}")
    if compute_checksum(frame) != frame[4]:
        raise ChecksumError(
            f"checksum 0x{frame[4]:02X} does not match 0x{compute_checksum(frame):02X}"
        )


@dataclass(frozen=True)
class Message:
    """A single protocol message."""

    kind: MessageType
    data: bytes = b""
    sequence: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", MessageType(self.kind))
        object.__setattr__(self, "data", bytes(self.data))
        if len(self.data) > MAX_DATA_SIZE:
            raise ValueError(f"payload of {len(self.data)} bytes exceeds {MAX_DATA_SIZE}")
        if not 0 <= self.sequence <= MAX_SEQUENCE:
            raise ValueError(f"sequence number {self.sequence} outside 0..{MAX_SEQUENCE}")

    def encode(self) -> bytes:
        """Build the full wire frame, checksum included."""
        frame = bytearray(FRAME_SIZE)
        frame[0] = START_MARKER
        frame[1] = len(self.data)
        frame[2] = self.sequence
        frame[3] = self.kind
        frame[HEADER_SIZE:HEADER_SIZE + len(self.data)] = self.data
        frame[4] = compute_checksum(frame)
        return bytes(frame)

    @classmethod
    def decode(cls, frame: bytes) -> Message:
        """Parse a wire frame, raising if it is invalid."""
        frame = bytes(frame)
        validate_frame(frame)
        length = frame[1]
        return cls(MessageType(frame[3]), frame[HEADER_SIZE:HEADER_SIZE + length], frame[2])

    def is_move(self) -> bool:
        return self.kind in _MOVES

    def is_file_chunk(self) -> bool:
        return self.kind in _FILE_CHUNKS


def send_message(sock, message: Message) -> int:
    """Send one frame and return the number of bytes written."""
    return sock.send(message.encode())


def receive_message(sock, timeout_ms: int) -> Message:
    """Wait for the next well-formed frame.

    Frames that do not follow the protocol layout are skipped. A frame with a
    bad checksum raises ChecksumError; nothing arriving in time raises
    ReceiveTimeout.
    """
    deadline = time.monotonic() + timeout_ms / 1000
    buffer = bytearray()
    while True:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise ReceiveTimeout(f"no message within {timeout_ms} ms")
        sock.settimeout(remaining)
        try:
            chunk = sock.recv(FRAME_SIZE - len(buffer))
        except (socket.timeout, TimeoutError):
            raise ReceiveTimeout(f"no message within {timeout_ms} ms") from None
        if not chunk:
            time.sleep(min(0.001, max(remaining, 0)))
            continue
        buffer += chunk
        if len(buffer) < FRAME_SIZE:
            continue
        frame = bytes(buffer)
        buffer.clear()
        try:
            return Message.decode(frame)
        except InvalidMessageError:
            continue