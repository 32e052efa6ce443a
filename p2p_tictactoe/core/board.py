from __future__ import annotations

from collections.abc import Iterable, Sequence
from enum import StrEnum

from p2p_tictactoe.errors import Occupied, OutOfRange

BOARD_SIZE = 3

Cell = tuple[int, int]
Line = tuple[Cell, Cell, Cell]


class Mark(StrEnum):
    local = "local"
    opponent = "opponent"
    empty = "empty"


# Local player plays circles, the opponent crosses.
_GLYPHS: dict[Mark, str] = {
    Mark.local: "O",
    Mark.opponent: "X",
    Mark.empty: " ",
}


def glyph_for(mark: Mark) -> str:
    return _GLYPHS[mark]


MAIN_DIAGONAL: Line = ((0, 0), (1, 1), (2, 2))
ANTI_DIAGONAL: Line = ((0, 2), (1, 1), (2, 0))

# Corners lie on one diagonal, the center on both, edge midpoints on none.
_DIAGONALS_THROUGH: dict[Cell, tuple[Line, ...]] = {
    (0, 0): (MAIN_DIAGONAL,),
    (2, 2): (MAIN_DIAGONAL,),
    (0, 2): (ANTI_DIAGONAL,),
    (2, 0): (ANTI_DIAGONAL,),
    (1, 1): (MAIN_DIAGONAL, ANTI_DIAGONAL),
}


def lines_through(row: int, col: int) -> tuple[Line, ...]:
    """Every winning line that passes through `(row, col)`.

    That is the row, the column, and zero, one or two diagonals.
    """

    row_line: Line = ((row, 0), (row, 1), (row, 2))
    col_line: Line = ((0, col), (1, col), (2, col))
    return (row_line, col_line) + _DIAGONALS_THROUGH.get((row, col), ())


def _in_range(row: int, col: int) -> bool:
    return 0 <= row < BOARD_SIZE and 0 <= col < BOARD_SIZE


class Board:
    """3x3 tic-tac-toe grid with incremental win detection.

    After a mark lands on `(r, c)` only the lines through that cell are
    inspected: a new win can only be created by a line containing the cell
    that was just filled.
    """

    __slots__ = ("_cells",)

    def __init__(self) -> None:
        self._cells: list[list[Mark]] = []
        self.reset()

    @classmethod
    def from_marks(cls, rows: Sequence[Sequence[Mark]]) -> "Board":
        if len(rows) != BOARD_SIZE or any(len(r) != BOARD_SIZE for r in rows):
            raise ValueError("Board must be 3x3")
        board = cls()
        board._cells = [[Mark(m) for m in r] for r in rows]
        return board

    def reset(self) -> None:
        self._cells = [[Mark.empty] * BOARD_SIZE for _ in range(BOARD_SIZE)]

    def mark_at(self, row: int, col: int) -> Mark:
        if not _in_range(row, col):
            raise OutOfRange(row, col)
        return self._cells[row][col]

    def place(self, owner: Mark, row: int, col: int) -> bool:
        """Put `owner`'s mark on `(row, col)` and report whether that move wins.

        Raises `OutOfRange` / `Occupied` without touching the board.
        """

        if owner == Mark.empty:
            raise ValueError("Only a player's mark can be placed")
        if not _in_range(row, col):
            raise OutOfRange(row, col)
        if self._cells[row][col] != Mark.empty:
            raise Occupied(row, col)

        self._cells[row][col] = owner
        return self.wins_through(owner, row, col)

    def wins_through(self, owner: Mark, row: int, col: int) -> bool:
        if owner == Mark.empty:
            return False
        return any(self._line_is(owner, line) for line in lines_through(row, col))

    def _line_is(self, owner: Mark, line: Iterable[Cell]) -> bool:
        return all(self._cells[r][c] == owner for r, c in line)

    @property
    def filled_count(self) -> int:
        return sum(1 for r in self._cells for m in r if m != Mark.empty)

    def is_full(self) -> bool:
        return self.filled_count == BOARD_SIZE * BOARD_SIZE

    def marks(self) -> tuple[tuple[Mark, ...], ...]:
        return tuple(tuple(r) for r in self._cells)

    def state(self) -> tuple[tuple[str, ...], ...]:
        """Read-only glyph projection of the grid, for rendering."""

        return tuple(tuple(glyph_for(m) for m in r) for r in self._cells)
