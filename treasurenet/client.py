"""The player's side of the treasure game: moving and collecting treasure files."""

from __future__ import annotations

import shutil
import sys
import time
from pathlib import Path
from typing import Callable, TextIO

from treasurenet.board import BOARD_SIZE, Board, Direction, Position, start_position
from treasurenet.protocol import (
    ChecksumError,
    ErrorCode,
    Message,
    MessageType,
    ReceiveTimeout,
    SEQUENCE_MODULUS,
    receive_message,
    send_message,
)

TIMEOUT_MS = 2000
DOWNLOAD_DIR = "./tesouro"

_KEYS = {
    "w": Direction.UP,
    "a": Direction.LEFT,
    "s": Direction.DOWN,
    "d": Direction.RIGHT,
}

_MOVE_TYPES = {
    Direction.UP: MessageType.MOVE_UP,
    Direction.LEFT: MessageType.MOVE_LEFT,
    Direction.DOWN: MessageType.MOVE_DOWN,
    Direction.RIGHT: MessageType.MOVE_RIGHT,
}

_CLEAR_SCREEN = "\033[H\033[2J"


def direction_from_key(key: str) -> Direction | None:
    """Map a w/a/s/d key to a direction; any other input gives None."""
    return _KEYS.get(key.strip())


class ClientSession:
    """Plays the game against a server over a connected socket."""

    def __init__(
        self,
        sock,
        *,
        download_dir=DOWNLOAD_DIR,
        board_size: int = BOARD_SIZE,
        timeout_ms: int = TIMEOUT_MS,
        free_space: Callable[[], int] | None = None,
        out: TextIO | None = None,
        pause: float = 1.0,
        clear: bool = True,
    ) -> None:
        self.sock = sock
        self.download_dir = Path(download_dir)
        self.timeout_ms = timeout_ms
        self.board = Board(board_size)
        self.position: Position = start_position(board_size)
        self.board.place_player(self.position)
        self._free_space = free_space
        self._out = out if out is not None else sys.stdout
        self._pause = pause
        self._clear = clear
        self._start_round(Message(MessageType.ACK))

    # -- output -----------------------------------------------------------

    def _say(self, text: str) -> None:
        print(f"        {text}", file=self._out)

    def _refresh(self) -> None:
        if self._pause:
            time.sleep(self._pause)
        if self._clear:
            self._out.write(_CLEAR_SCREEN)
        print(self.board.render(), file=self._out)

    def _available_space(self) -> int:
        if self._free_space is not None:
            return self._free_space()
        self.download_dir.mkdir(parents=True, exist_ok=True)
        return shutil.disk_usage(self.download_dir).free

    # -- round state ------------------------------------------------------

    def _start_round(self, move: Message) -> None:
        self._current = move
        self._previous = move
        self._last_was_nack = True
        self._has_treasure = False
        self._treasure_processed = False
        self._round_over = False
        self._expected_sequence = 0
        self._file = None
        self._file_path: Path | None = None
        self._collected: Path | None = None

    def _close_file(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None

    # -- protocol ---------------------------------------------------------

    def handle(self, message: Message) -> Message | None:
        """Choose the reply to a message from the server.

        Returns None once the round is over and nothing more is to be sent.
        """
        reply = self._current
        kind = message.kind

        if kind is MessageType.OK:
            if not self._treasure_processed:
                self._has_treasure = bool(message.data[0]) if message.data else False
                if self._has_treasure:
                    row, col = self.position.display_coords(self.board.size)
                    self._say(f"[!] Treasure found at ({row} , {col})!")
                else:
                    self._say("[~] No treasure here...")
                    self._round_over = True
                self._treasure_processed = True
            reply = Message(MessageType.ACK)

        elif kind is MessageType.SIZE:
            size = int.from_bytes(message.data[:4], "little")
            self._say(f"[B] Treasure size: {size} B")
            if size > self._available_space():
                reply = Message(MessageType.ERROR, bytes([ErrorCode.NO_SPACE]))
            else:
                reply = Message(MessageType.ACK)

        elif kind is MessageType.DATA:
            raw_name = message.data.split(b"\0", 1)[0].decode("utf-8", errors="replace")
            name = Path(raw_name).name or "treasure"
            self._say(f"[N] Treasure name: {name}")
            self._close_file()
            self.download_dir.mkdir(parents=True, exist_ok=True)
            self._file_path = self.download_dir / name
            self._file = self._file_path.open("wb")
            self._expected_sequence = 0
            reply = Message(MessageType.ACK)

        elif message.is_file_chunk():
            expected = self._expected_sequence
            if message.sequence == expected:
                if self._file is not None:
                    self._file.write(message.data)
                self._expected_sequence = (expected + 1) % SEQUENCE_MODULUS
                reply = Message(MessageType.ACK)
            elif message.sequence == (expected - 1) % SEQUENCE_MODULUS:
                reply = Message(MessageType.ACK)

        elif kind is MessageType.END_OF_FILE:
            if self._has_treasure:
                if self._file is not None:
                    self._close_file()
                    self._collected = self._file_path
                    self._say("[Y] Treasure collected!")
                self._round_over = True
            if self._round_over:
                return None

        elif kind is MessageType.NACK:
            reply = Message(MessageType.NACK) if self._last_was_nack else self._previous

        elif kind is MessageType.ERROR:
            self._say("[E] Error. Treasure not collected.")
            reply = Message(MessageType.ACK)

        self._last_was_nack = reply.kind is MessageType.NACK
        if not self._last_was_nack:
            self._previous = reply
        self._current = reply
        return reply

    def play_move(self, direction: Direction) -> Path | None:
        """Make one move and run the exchange with the server until the round ends.

        Returns the path of the collected treasure file, if any.
        """
        self.board.mark_visited(self.position)
        self.position = self.position.moved(direction, self.board.size)
        self.board.place_player(self.position)
        self._refresh()

        self._start_round(Message(_MOVE_TYPES[direction]))
        send_message(self.sock, self._current)
        try:
            while True:
                try:
                    incoming = receive_message(self.sock, self.timeout_ms)
                except ReceiveTimeout:
                    send_message(self.sock, self._current)
                    continue
                except ChecksumError:
                    send_message(self.sock, Message(MessageType.NACK))
                    continue
                reply = self.handle(incoming)
                if reply is None:
                    return self._collected
                send_message(self.sock, reply)
        finally:
            self._close_file()

    def run(self, read_move: Callable[[], str | None]) -> list[Path]:
        """Play until every cell is visited or read_move returns None.

        Unknown keys are ignored. Returns the paths of collected treasures.
        """
        print(self.board.render(), file=self._out)
        collected: list[Path] = []
        while not self.board.is_finished():
            key = read_move()
            if key is None:
                return collected
            direction = direction_from_key(key)
            if direction is None:
                continue
            path = self.play_move(direction)
            if path is not None:
                collected.append(path)
        print(self.board.render(), file=self._out)
        print("              [Game Over]            ", file=self._out)
        print("           Thanks for playing! =D      ", file=self._out)
        return collected