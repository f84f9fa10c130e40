"""Core rules for ClassicXO: board, outcome detection, and move application."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import List, Tuple, Union

EMPTY = " "

Line = Tuple[int, int, int]
Board = Tuple[str, ...]  # 9 cells, each Mark.X, Mark.O or EMPTY

WINNING_LINES: Tuple[Line, ...] = (
    (0, 1, 2),
    (3, 4, 5),
    (6, 7, 8),
    (0, 3, 6),
    (1, 4, 7),
    (2, 5, 8),
    (0, 4, 8),
    (2, 4, 6),
)


class Mark(str, Enum):
    X = "X"
    O = "O"

    @property
    def opponent(self) -> "Mark":
        return Mark.O if self is Mark.X else Mark.X


# ---------- Outcomes ----------


@dataclass(frozen=True)
class InProgress:
    pass


@dataclass(frozen=True)
class Win:
    mark: Mark
    line: Line


@dataclass(frozen=True)
class Draw:
    pass


Outcome = Union[InProgress, Win, Draw]


# ---------- Errors ----------


class MoveError(ValueError):
    """Base class for rejected moves. The session is never modified."""

    code = "move_error"


class OutOfRange(MoveError):
    code = "out_of_range"


class CellOccupied(MoveError):
    code = "cell_occupied"


class GameAlreadyOver(MoveError):
    code = "game_already_over"


# ---------- Board helpers ----------


def empty_board() -> Board:
    return (EMPTY,) * 9


def empty_cells(board: Board) -> List[int]:
    return [i for i, c in enumerate(board) if c == EMPTY]


def evaluate_outcome(board: Board) -> Outcome:
    """Scan the winning lines in order; the first complete one wins."""
    for line in WINNING_LINES:
        a, b, c = line
        v = board[a]
        if v != EMPTY and v == board[b] == board[c]:
            return Win(mark=Mark(v), line=line)
    if EMPTY not in board:
        return Draw()
    return InProgress()


# ---------- Session ----------


@dataclass(frozen=True)
class GameSession:
    board: Board = field(default_factory=empty_board)
    turn: Mark = Mark.X
    outcome: Outcome = field(default_factory=InProgress)

    @classmethod
    def new(cls) -> "GameSession":
        return cls()

    @property
    def is_over(self) -> bool:
        return not isinstance(self.outcome, InProgress)


def apply_move(session: GameSession, cell_index: int) -> GameSession:
    """Place the current mark at ``cell_index`` and return the next session.

    Raises ``OutOfRange``, ``GameAlreadyOver`` or ``CellOccupied``; in every
    error case ``session`` is left exactly as it was.
    """
    if (
        isinstance(cell_index, bool)
        or not isinstance(cell_index, int)
        or not 0 <= cell_index <= 8
    ):
        raise OutOfRange(f"Cell index {cell_index!r} is outside 0-8")
    if session.is_over:
        raise GameAlreadyOver("Game already finished")
    if session.board[cell_index] != EMPTY:
        raise CellOccupied(f"Cell {cell_index} is already occupied")

    cells = list(session.board)
    cells[cell_index] = session.turn
    board: Board = tuple(cells)
    outcome = evaluate_outcome(board)

    # Turn is frozen once the game is decided
    turn = session.turn
    if isinstance(outcome, InProgress):
        turn = turn.opponent
    return replace(session, board=board, turn=turn, outcome=outcome)
