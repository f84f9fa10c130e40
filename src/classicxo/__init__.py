"""ClassicXO package exposing game rules, the heuristic AI, and the web application."""

from .ai import Difficulty, HeuristicOpponent, NoLegalMove
from .game import (
    GameSession,
    Mark,
    MoveError,
    apply_move,
    evaluate_outcome,
)
from .ui import app

__all__ = [
    "Difficulty",
    "GameSession",
    "HeuristicOpponent",
    "Mark",
    "MoveError",
    "NoLegalMove",
    "app",
    "apply_move",
    "evaluate_outcome",
]
