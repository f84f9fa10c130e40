"""Heuristic tic-tac-toe opponent with three difficulty tiers."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from .game import EMPTY, WINNING_LINES, Board, Mark, empty_cells

logger = logging.getLogger(__name__)

CENTER = 4
CORNERS = (0, 2, 6, 8)

# Medium plays the hard policy this often, otherwise a random cell
MEDIUM_HARD_RATIO = 0.7


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class NoLegalMove(RuntimeError):
    """Raised when the opponent is asked to move on a full board."""

    code = "no_legal_move"


def find_winning_move(board: Board, mark: Mark) -> Optional[int]:
    """Empty cell completing a line holding two of ``mark``, if any."""
    for line in WINNING_LINES:
        trio = [board[i] for i in line]
        if trio.count(mark) == 2 and trio.count(EMPTY) == 1:
            return line[trio.index(EMPTY)]
    return None


@dataclass
class HeuristicOpponent:
    """One-ply opponent: win, block, center, corner, anything.

    Pass a seeded ``random.Random`` (or a subclass with scripted rolls) as
    ``rng`` for reproducible play.
    """

    rng: random.Random = field(default_factory=random.Random, repr=False)

    # ---- public API ----

    def select_move(self, board: Board, mark: Mark, difficulty: Difficulty) -> int:
        moves = empty_cells(board)
        if not moves:
            raise NoLegalMove("No valid moves available")

        mark = Mark(mark)
        difficulty = Difficulty(difficulty)
        if difficulty is Difficulty.EASY:
            move = self._random_move(moves)
        elif difficulty is Difficulty.MEDIUM:
            move = self._medium_move(board, mark, moves)
        else:
            move = self._hard_move(board, mark, moves)

        logger.debug("%s (%s) plays cell %d", mark.value, difficulty.value, move)
        return move

    # ---- policies ----

    def _random_move(self, moves: List[int]) -> int:
        return self.rng.choice(moves)

    def _medium_move(self, board: Board, mark: Mark, moves: List[int]) -> int:
        if self.rng.random() < MEDIUM_HARD_RATIO:
            return self._hard_move(board, mark, moves)
        return self._random_move(moves)

    def _hard_move(self, board: Board, mark: Mark, moves: List[int]) -> int:
        # 1) win, 2) block
        for player in (mark, mark.opponent):
            move = find_winning_move(board, player)
            if move is not None:
                return move

        # 3) center
        if board[CENTER] == EMPTY:
            return CENTER

        # 4) corners
        corners = [i for i in CORNERS if board[i] == EMPTY]
        if corners:
            return self.rng.choice(corners)

        # 5) whatever is left
        return self._random_move(moves)
