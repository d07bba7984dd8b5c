from __future__ import annotations

from dataclasses import dataclass

from .types import PartOfSpeech


@dataclass(frozen=True)
class StartGameAction:
    pass


@dataclass(frozen=True)
class EnterNodeAction:
    pass


@dataclass(frozen=True)
class MoveToNodeAction:
    node_id: str


@dataclass(frozen=True)
class PickCardAction:
    card_uid: str


@dataclass(frozen=True)
class ConfirmSelectionAction:
    pass


@dataclass(frozen=True)
class SelectRoleAction:
    block_index: int
    role: PartOfSpeech


@dataclass(frozen=True)
class SubmitAnswerAction:
    pass


@dataclass(frozen=True)
class ContinueAction:
    pass


@dataclass(frozen=True)
class PauseAction:
    pass


@dataclass(frozen=True)
class ResumeAction:
    pass


@dataclass(frozen=True)
class QuitAction:
    pass


Action = (
    StartGameAction
    | EnterNodeAction
    | MoveToNodeAction
    | PickCardAction
    | ConfirmSelectionAction
    | SelectRoleAction
    | SubmitAnswerAction
    | ContinueAction
    | PauseAction
    | ResumeAction
    | QuitAction
)
