"""Deterministic, headless rules engine for Word Warrior.

Nothing in this package touches the filesystem or a display. Randomness
comes from the session's seeded RNG and pacing from its Scheduler; the
wall clock is only read to stamp question statistics.
"""

from .actions import (
    ConfirmSelectionAction,
    ContinueAction,
    EnterNodeAction,
    MoveToNodeAction,
    PauseAction,
    PickCardAction,
    QuitAction,
    ResumeAction,
    SelectRoleAction,
    StartGameAction,
    SubmitAnswerAction,
)
from .game import GameConfig, GameSession, GameState, StepResult
from .types import CardType, PartOfSpeech, Rarity

__all__ = [
    "CardType",
    "ConfirmSelectionAction",
    "ContinueAction",
    "EnterNodeAction",
    "GameConfig",
    "GameSession",
    "GameState",
    "MoveToNodeAction",
    "PartOfSpeech",
    "PauseAction",
    "PickCardAction",
    "QuitAction",
    "Rarity",
    "ResumeAction",
    "SelectRoleAction",
    "StartGameAction",
    "StepResult",
    "SubmitAnswerAction",
]
