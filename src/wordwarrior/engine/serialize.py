from __future__ import annotations

from dataclasses import asdict

from .game import GameSession
from .scoring import Feedback
from .types import Card, CharacterBlock, Entity, MapState


def _card_to_dict(c: Card) -> dict[str, object]:
    d = c.definition
    return {
        "uid": c.uid,
        "card_id": d.id,
        "name": d.name,
        "type": d.type,
        "rarity": d.rarity,
        "effect": d.effect,
    }


def _block_to_dict(b: CharacterBlock) -> dict[str, object]:
    return {"char": b.char, "index": b.original_index, "selected": b.selected_type}


def _entity_to_dict(e: Entity) -> dict[str, object]:
    return asdict(e)


def _feedback_to_dict(f: Feedback | None) -> dict[str, object] | None:
    if f is None:
        return None
    return {
        "question_id": f.question_id,
        "card_uid": f.card_uid,
        "is_perfect": f.is_perfect,
        "accuracy": f.accuracy,
        "time_multiplier": f.time_multiplier,
        "user_blocks": [_block_to_dict(b) for b in f.user_blocks],
        "correct_blocks": [_block_to_dict(b) for b in f.correct_blocks],
        "result": asdict(f.result),
    }


def _map_to_dict(m: MapState | None) -> dict[str, object] | None:
    if m is None:
        return None
    return {
        "floor": m.floor,
        "current_node_id": m.current_node_id,
        "nodes": [
            {
                "id": n.id,
                "type": n.type,
                "x": n.x,
                "y": n.y,
                "connections": list(n.connections),
                "completed": n.completed,
            }
            for n in m.nodes
        ],
    }


def snapshot(session: GameSession) -> dict[str, object]:
    """Return a JSON-serializable view of everything the presentation layer draws."""
    sentence = session.current_sentence
    question: dict[str, object] | None = None
    if sentence is not None:
        question = {
            "id": sentence.id,
            "text": sentence.text,
            "difficulty": sentence.difficulty,
            "time_limit": sentence.time_limit,
            "time_left": session.time_left,
            "index": session.question_index,
            "total": len(session.questions),
            "blocks": [_block_to_dict(b) for b in session.blocks],
        }
    return {
        "seed": session.seed,
        "state": asdict(session.state),
        "hero": _entity_to_dict(session.hero),
        "enemies": [_entity_to_dict(e) for e in session.enemies],
        "map": _map_to_dict(session.map_state),
        "piles": {
            "deck": len(session.deck),
            "hand": [_card_to_dict(c) for c in session.hand],
            "discard": len(session.discard),
            "selected": list(session.selected_uids),
        },
        "question": question,
        "feedback": _feedback_to_dict(session.feedback),
        "paused_from": session.paused_from,
    }
