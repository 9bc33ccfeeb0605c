"""The game board, player positions and treasure files."""

from __future__ import annotations

import random
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterator

BOARD_SIZE = 8
TREASURE_COUNT = 8
TREASURE_EXTENSIONS = ("jpg", "mp4", "txt")

EMPTY = " "
VISITED = "*"
PLAYER = "P"


class Direction(Enum):
    """A move on the board as a (row, column) offset."""

    UP = (-1, 0)
    LEFT = (0, -1)
    DOWN = (1, 0)
    RIGHT = (0, 1)


@dataclass(frozen=True)
class Position:
    """A cell addressed by matrix row and column; row 0 is the top."""

    row: int
    col: int

    def moved(self, direction: Direction, size: int = BOARD_SIZE) -> Position:
        """The position one step away, clamped to the board edges."""
        d_row, d_col = direction.value
        row = min(max(self.row + d_row, 0), size - 1)
        col = min(max(self.col + d_col, 0), size - 1)
        return Position(row, col)

    def display_coords(self, size: int = BOARD_SIZE) -> tuple[int, int]:
        """Coordinates as shown to players: row counted from the bottom."""
        return size - 1 - self.row, self.col


def start_position(size: int = BOARD_SIZE) -> Position:
    """The bottom-left cell where every game begins."""
    return Position(size - 1, 0)


class Board:
    """A square grid of one-character cells."""

    def __init__(self, size: int = BOARD_SIZE) -> None:
        self.size = size
        self.cells = [[EMPTY] * size for _ in range(size)]

    def __getitem__(self, position: Position) -> str:
        return self.cells[position.row][position.col]

    def render(self) -> str:
        """Draw the board with box characters and axis labels."""
        size = self.size
        lines = [
            "          [Treasure Planet]          ",
            "   ┌" + "┬".join(["───"] * size) + "┐ ",
        ]
        for i, row in enumerate(self.cells):
            lines.append(f" {size - i - 1} " + "".join(f"│ {cell} " for cell in row) + "│")
            if i != size - 1:
                lines.append("   ├" + "┼".join(["───"] * size) + "┤ ")
        lines.append("   └" + "┴".join(["───"] * size) + "┘ ")
        lines.append("     " + "".join(f"{j}   " for j in range(size)))
        return "\n".join(lines) + "\n"

    def place_treasures(self, count: int = TREASURE_COUNT, rng: random.Random | None = None) -> None:
        """Put the player on the start cell and numbered treasures on random empty cells."""
        start = start_position(self.size)
        free = sum(
            1
            for r, row in enumerate(self.cells)
            for c, cell in enumerate(row)
            if cell == EMPTY and Position(r, c) != start
        )
        if count > 9 or count > free:
            raise ValueError(f"cannot place {count} treasures on this board")
        rng = rng or random.Random()
        self.cells[start.row][start.col] = PLAYER
        placed = 0
        while placed != count:
            cell = rng.randrange(self.size * self.size)
            row, col = divmod(cell, self.size)
            if Position(row, col) != start and self.cells[row][col] == EMPTY:
                self.cells[row][col] = str(placed + 1)
                placed += 1

    def treasure_at(self, position: Position) -> int:
        """The treasure number at a cell, or 0 if there is none."""
        cell = self[position]
        return int(cell) if cell in "123456789" and cell != "" else 0

    def mark_visited(self, position: Position) -> None:
        self.cells[position.row][position.col] = VISITED

    def place_player(self, position: Position) -> None:
        self.cells[position.row][position.col] = PLAYER

    def is_finished(self) -> bool:
        """True once no cell is left blank."""
        return all(cell != EMPTY for row in self.cells for cell in row)


@dataclass
class Treasure:
    """A treasure file; path is None when no readable file was found."""

    number: int
    name: str | None = None
    path: Path | None = None

    @property
    def available(self) -> bool:
        return self.path is not None

    def _require_path(self) -> Path:
        if self.path is None:
            raise FileNotFoundError(f"treasure {self.number} has no readable file")
        return self.path

    def read_chunks(self, chunk_size: int = 127) -> Iterator[bytes]:
        """Yield the file contents in pieces of at most chunk_size bytes."""
        with self._require_path().open("rb") as handle:
            while chunk := handle.read(chunk_size):
                yield chunk

    def size(self) -> int:
        return self._require_path().stat().st_size


def _readable(path: Path) -> bool:
    try:
        with path.open("rb"):
            return True
    except OSError:
        return False


def open_treasures(directory, count: int = TREASURE_COUNT) -> list[Treasure]:
    """Find treasures 1..count in directory as N.jpg, N.mp4 or N.txt.

    When several files exist for one number the last extension tried wins.
    """
    directory = Path(directory)
    treasures = []
    for number in range(1, count + 1):
        treasure = Treasure(number)
        for extension in TREASURE_EXTENSIONS:
            candidate = directory / f"{number}.{extension}"
            if _readable(candidate):
                treasure.name = candidate.name
                treasure.path = candidate
        treasures.append(treasure)
    return treasures