"""The host's side of the treasure game: hiding treasures and sending them."""

from __future__ import annotations

import sys
import time
from typing import Iterator, TextIO

from treasurenet.board import (
    BOARD_SIZE,
    PLAYER,
    TREASURE_COUNT,
    VISITED,
    Board,
    Direction,
    Position,
    Treasure,
    open_treasures,
    start_position,
)
from treasurenet.protocol import (
    MAX_DATA_SIZE,
    SEQUENCE_MODULUS,
    ChecksumError,
    ErrorCode,
    Message,
    MessageType,
    ReceiveTimeout,
    receive_message,
    send_message,
)

TIMEOUT_MS = 2000
TREASURES_DIR = "./objetos"
SIZE_FIELD_BYTES = 8

_DIRECTIONS = {
    MessageType.MOVE_UP: Direction.UP,
    MessageType.MOVE_LEFT: Direction.LEFT,
    MessageType.MOVE_DOWN: Direction.DOWN,
    MessageType.MOVE_RIGHT: Direction.RIGHT,
}

_CLEAR_SCREEN = "\033[H\033[2J"


class ServerSession:
    """Hosts the game for one player over a connected socket."""

    def __init__(
        self,
        sock,
        *,
        treasures: list[Treasure] | None = None,
        treasures_dir=TREASURES_DIR,
        board_size: int = BOARD_SIZE,
        treasure_count: int = TREASURE_COUNT,
        timeout_ms: int = TIMEOUT_MS,
        rng=None,
        out: TextIO | None = None,
        pause: float = 1.0,
        clear: bool = True,
    ) -> None:
        self.sock = sock
        self.timeout_ms = timeout_ms
        self._out = out if out is not None else sys.stdout
        self._pause = pause
        self._clear = clear
        self.board = Board(board_size)
        self.board.place_treasures(treasure_count, rng)
        self.position: Position = start_position(board_size)
        if treasures is None:
            treasures = open_treasures(treasures_dir, treasure_count)
            for treasure in treasures:
                state = "available" if treasure.available else "missing"
                print(f"Treasure {treasure.number}: {treasure.name or '-'} ({state})", file=self._out)
        self.treasures = list(treasures)

        self._current: Message | None = None
        self._previous = Message(MessageType.FREE_1)
        self._last_was_nack = False
        self._move_processed = False
        self._treasure_number = 0
        self._treasure: Treasure | None = None
        self._chunks: Iterator[bytes] | None = None
        self._sequence = 0
        self._round_done = False

    # -- output -----------------------------------------------------------

    def _say(self, text: str) -> None:
        print(f"        {text}", file=self._out)

    def _refresh(self) -> None:
        if self._pause:
            time.sleep(self._pause)
        if self._clear:
            self._out.write(_CLEAR_SCREEN)
        print(self.board.render(), file=self._out)

    # -- game state -------------------------------------------------------

    def _all_visited(self) -> bool:
        return all(cell in (VISITED, PLAYER) for row in self.board.cells for cell in row)

    def _process_move(self, direction: Direction) -> None:
        size = self.board.size
        before = self.position.display_coords(size)
        self.board.mark_visited(self.position)
        self.position = self.position.moved(direction, size)
        self._treasure_number = self.board.treasure_at(self.position)
        self.board.place_player(self.position)
        self._refresh()
        after = self.position.display_coords(size)
        self._say(f"[M] Player move: {before} -> {after}")
        if self._treasure_number:
            self._say(f"[!] Treasure found at {after}!")
        else:
            self._say("[~] No treasure here....")

    def _close_chunks(self) -> None:
        if self._chunks is not None:
            self._chunks.close()
            self._chunks = None

    def _end_round(self) -> Message:
        self._close_chunks()
        self._move_processed = False
        self._round_done = True
        return Message(MessageType.END_OF_FILE)

    def _next_chunk(self) -> Message:
        chunk = next(self._chunks, None) if self._chunks is not None else None
        if chunk:
            return Message(MessageType.TEXT, chunk, self._sequence)
        return self._end_round()

    def _treasure_for(self, number: int) -> Treasure:
        if 1 <= number <= len(self.treasures):
            return self.treasures[number - 1]
        return Treasure(number)

    def _after_ack(self) -> Message | None:
        previous = self._previous.kind
        if previous is MessageType.OK:
            if not self._treasure_number:
                return self._end_round()
            self._treasure = self._treasure_for(self._treasure_number)
            if not self._treasure.available:
                self._say(f"[E] Could not open treasure {self._treasure_number}.")
                return Message(MessageType.ERROR, bytes([ErrorCode.NO_ACCESS]))
            self._say(f"[N] Treasure name: {self._treasure.name}")
            size = self._treasure.size()
            self._say(f"[B] Treasure size: {size} B")
            return Message(MessageType.SIZE, size.to_bytes(SIZE_FIELD_BYTES, "little"))
        if previous is MessageType.SIZE:
            name = (self._treasure.name or "").encode("utf-8")[:MAX_DATA_SIZE]
            return Message(MessageType.DATA, name)
        if previous is MessageType.DATA:
            self._sequence = 0
            self._close_chunks()
            self._chunks = self._treasure.read_chunks(MAX_DATA_SIZE)
            return self._next_chunk()
        if previous in (MessageType.TEXT, MessageType.IMAGE, MessageType.VIDEO):
            self._sequence = (self._sequence + 1) % SEQUENCE_MODULUS
            return self._next_chunk()
        if previous is MessageType.ERROR:
            return self._end_round()
        return None

    # -- protocol ---------------------------------------------------------

    def handle(self, message: Message) -> Message | None:
        """Choose the reply to a message from the player.

        Returns None when there is nothing to send yet.
        """
        reply = self._current
        kind = message.kind

        if message.is_move():
            if not self._move_processed:
                self._process_move(_DIRECTIONS[kind])
                self._move_processed = True
            reply = Message(MessageType.OK, bytes([self._treasure_number]))

        elif kind is MessageType.ACK:
            answer = self._after_ack()
            if answer is not None:
                reply = answer

        elif kind is MessageType.NACK:
            reply = Message(MessageType.NACK) if self._last_was_nack else self._previous

        elif kind is MessageType.ERROR:
            if message.data[:1] == bytes([ErrorCode.NO_SPACE]):
                self._say("[E] Not enough space for the treasure.")
                reply = self._end_round()

        if reply is None:
            return None
        self._last_was_nack = reply.kind is MessageType.NACK
        if not self._last_was_nack:
            self._previous = reply
        self._current = reply
        return reply

    def run_round(self) -> int:
        """Serve one move and its treasure transfer.

        Returns the number of the treasure found in this round, or 0.
        """
        self._round_done = False
        while not self._round_done:
            try:
                incoming = receive_message(self.sock, self.timeout_ms)
            except ReceiveTimeout:
                if self._current is not None:
                    send_message(self.sock, self._current)
                continue
            except ChecksumError:
                send_message(self.sock, Message(MessageType.NACK))
                continue
            reply = self.handle(incoming)
            if reply is not None:
                send_message(self.sock, reply)
        return self._treasure_number

    def run(self) -> list[int]:
        """Serve rounds until every cell has been visited.

        Returns the numbers of the treasures found, in order.
        """
        print(self.board.render(), file=self._out)
        found: list[int] = []
        try:
            while not self._all_visited():
                number = self.run_round()
                if number:
                    found.append(number)
        finally:
            self._close_chunks()
        self._refresh()
        print("              [Game Over]            ", file=self._out)
        return found