"""Coordinate math over the fixed 3x3 board. No state."""
import logging
from typing import Callable, NamedTuple

from kigaslot.logic.models import Board, SymbolDef


logger = logging.getLogger(__name__)

ROWS = 3
COLS = 3
BOARD_SIZE = ROWS * COLS

# Rows, then columns, then the two diagonals
PAYLINES: tuple[tuple[int, int, int], ...] = (
    (0, 1, 2), (3, 4, 5), (6, 7, 8),
    (0, 3, 6), (1, 4, 7), (2, 5, 8),
    (0, 4, 8), (2, 4, 6),
)


class Position(NamedTuple):
    row: int
    col: int


INVALID_POSITION = Position(-1, -1)
INVALID_INDEX = -1


class Neighbor(NamedTuple):
    symbol: SymbolDef | None
    position: Position
    index: int


def empty_board() -> Board:
    return [None] * BOARD_SIZE


def position_of(index: int) -> Position:
    """Return (row, col) for a board index, INVALID_POSITION if out of range."""
    if index < 0 or index >= BOARD_SIZE:
        logger.error("Invalid index: %d. Must be between 0 and %d.", index, BOARD_SIZE - 1)
        return INVALID_POSITION
    return Position(index // COLS, index % COLS)


def index_of(row: int, col: int) -> int:
    """Return the board index for (row, col), INVALID_INDEX if out of range."""
    if row < 0 or row >= ROWS or col < 0 or col >= COLS:
        logger.error("Invalid position: (%d, %d). Row and column must be between 0 and 2.", row, col)
        return INVALID_INDEX
    return row * COLS + col


def neighbors_of(board: Board, index: int) -> list[Neighbor]:
    """
    List the up to 8 orthogonal/diagonal neighbors of a cell.

    Order is row offset -1..1 outer, column offset -1..1 inner, so message
    concatenation built from neighbors is reproducible.
    """
    origin = position_of(index)
    if origin == INVALID_POSITION:
        return []

    neighbors: list[Neighbor] = []
    for row_offset in (-1, 0, 1):
        for col_offset in (-1, 0, 1):
            if row_offset == 0 and col_offset == 0:
                continue
            row = origin.row + row_offset
            col = origin.col + col_offset
            if 0 <= row < ROWS and 0 <= col < COLS:
                neighbor_index = row * COLS + col
                neighbors.append(Neighbor(board[neighbor_index], Position(row, col), neighbor_index))
    return neighbors


def count_matching(board: Board, predicate: Callable[[SymbolDef], bool]) -> int:
    """Count occupied cells whose symbol satisfies predicate."""
    return sum(1 for symbol in board if symbol is not None and predicate(symbol))


def collect_matching(
    board: Board, predicate: Callable[[SymbolDef], bool] | None = None
) -> list[SymbolDef]:
    """Collect occupied cells' symbols, optionally filtered by predicate."""
    return [
        symbol
        for symbol in board
        if symbol is not None and (predicate is None or predicate(symbol))
    ]
