from __future__ import annotations

from dataclasses import dataclass

from . import mapgen
from .actions import (
    Action,
    ConfirmSelectionAction,
    ContinueAction,
    EnterNodeAction,
    MoveToNodeAction,
    PickCardAction,
    SelectRoleAction,
    StartGameAction,
    SubmitAnswerAction,
)
from .game import GameSession
from .types import ROLES, Card


@dataclass(frozen=True)
class AISpec:
    """Simulated player tuning.

    accuracy: chance of tagging each ground-truth block correctly.
    slip_rate: chance of tagging an untargeted block with a wrong role.
    """

    accuracy: float = 0.85
    slip_rate: float = 0.05


def _card_value(card: Card, hero_hp_ratio: float) -> float:
    d = card.definition
    if d.type == "ATTACK":
        return float(d.base_attack * max(1, d.attack_count))
    if d.type == "DEFENSE":
        v = float(d.base_block) * (1.0 + d.hp_conversion_rate * 4)
        # favour shields when hurt
        return v * (2.0 if hero_hp_ratio < 0.5 else 0.8)
    return 1.0


def _choose_cards(session: GameSession) -> list[Action]:
    hero = session.hero
    ratio = hero.current_hp / hero.max_hp if hero.max_hp else 0.0
    ranked = sorted(session.hand, key=lambda c: _card_value(c, ratio), reverse=True)
    actions: list[Action] = [PickCardAction(card_uid=c.uid) for c in ranked[: session.max_selectable]]
    actions.append(ConfirmSelectionAction())
    return actions


def _answer(session: GameSession, spec: AISpec) -> list[Action]:
    sentence = session.current_sentence
    if sentence is None:
        return []
    actions: list[Action] = []
    tagged: set[int] = set()
    for role in ROLES:
        for idx in sentence.analysis.indices_for(role):
            if session.rng.random() < spec.accuracy:
                actions.append(SelectRoleAction(block_index=idx, role=role))
                tagged.add(idx)
    for b in session.blocks:
        if b.original_index in tagged:
            continue
        if session.rng.random() < spec.slip_rate:
            role = ROLES[session.rng.randrange(len(ROLES))]
            actions.append(SelectRoleAction(block_index=b.original_index, role=role))
    actions.append(SubmitAnswerAction())
    return actions


def next_actions(session: GameSession, spec: AISpec) -> list[Action]:
    status = session.state.status
    if status in ("START", "GAMEOVER"):
        return [StartGameAction()]
    if status == "MAP":
        assert session.map_state is not None
        current = session.map_state.current_node
        if current is not None and not current.completed:
            return [EnterNodeAction()]
        reachable = mapgen.reachable_nodes(session.map_state)
        return [MoveToNodeAction(node_id=reachable[0].id)] if reachable else []
    if status == "CARD_SELECTION":
        return _choose_cards(session)
    if status == "PLAYING":
        return _answer(session, spec)
    if status == "FEEDBACK" and session.feedback is not None:
        return [ContinueAction()]
    if status == "VICTORY":
        return [ContinueAction()]
    return []


def autoplay(
    session: GameSession,
    spec: AISpec | None = None,
    max_floor: int = 1,
    max_actions: int = 10_000,
) -> list[Action]:
    """Play until the hero dies, `max_floor` is cleared, or the action budget runs out.

    Uses the session RNG so a run is reproducible for a given seed.
    """
    spec = spec or AISpec()
    taken: list[Action] = []
    if session.state.status == "START":
        session.step(StartGameAction())
        taken.append(StartGameAction())

    while len(taken) < max_actions:
        if session.awaiting_timer():
            session.settle()
            continue
        status = session.state.status
        if status == "GAMEOVER":
            break
        if session.map_state is not None and session.map_state.floor > max_floor:
            break
        batch = next_actions(session, spec)
        if not batch:
            break
        for action in batch:
            session.step(action)
            taken.append(action)
    return taken
