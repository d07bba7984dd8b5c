from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence

from .selector import StatsStore, update_stats
from .types import ROLES, Card, CardResult, CharacterBlock, Sentence

MAX_TARGETS_PER_ROUND = 10
PERFECT_ATTACK_COUNT_BONUS = 1
PERFECT_HP_CONVERSION_BONUS = 0.01


@dataclass(frozen=True)
class Grade:
    correct: int
    wrong: int
    total_targets: int
    accuracy: float
    is_perfect: bool


@dataclass(frozen=True)
class Feedback:
    """Read-only snapshot of one graded answer for display."""

    question_id: str
    card_uid: str
    user_blocks: tuple[CharacterBlock, ...]
    correct_blocks: tuple[CharacterBlock, ...]
    is_perfect: bool
    accuracy: float
    time_multiplier: float
    result: CardResult


def grade_answer(sentence: Sentence, blocks: Sequence[CharacterBlock]) -> Grade:
    by_index = {b.original_index: b for b in blocks}
    correct = 0
    wrong = 0
    total = 0
    for role in ROLES:
        targets = set(sentence.analysis.indices_for(role))
        total += len(targets)
        for idx in targets:
            block = by_index.get(idx)
            if block is not None and block.selected_type == role:
                correct += 1
        for b in blocks:
            if b.selected_type == role and b.original_index not in targets:
                wrong += 1

    accuracy = max(0.0, (correct - wrong) / max(1, total))
    return Grade(
        correct=correct,
        wrong=wrong,
        total_targets=total,
        accuracy=accuracy,
        is_perfect=correct == total and wrong == 0,
    )


def correct_blocks(sentence: Sentence) -> tuple[CharacterBlock, ...]:
    blocks = list(sentence.blank_blocks())
    for role in ROLES:
        for idx in sentence.analysis.indices_for(role):
            if 0 <= idx < len(blocks):
                blocks[idx] = CharacterBlock(char=blocks[idx].char, original_index=idx, selected_type=role)
    return tuple(blocks)


def time_multiplier(remaining: float, time_limit: float) -> float:
    if time_limit <= 0:
        return 1.0
    clamped = min(max(0.0, remaining), time_limit)
    return 1.0 + clamped / time_limit


def card_result(card: Card, grade: Grade, time_mult: float) -> CardResult:
    d = card.definition
    if d.type == "ATTACK":
        attack = math.floor(d.base_attack * grade.accuracy)
        if d.effect == "DOUBLE_DAMAGE":
            attack *= 2
        count = d.attack_count + (PERFECT_ATTACK_COUNT_BONUS if grade.is_perfect else 0)
        if d.effect == "AOE":
            count = max(count, MAX_TARGETS_PER_ROUND)
        return CardResult(
            card_uid=card.uid,
            card_type="ATTACK",
            time_multiplier=time_mult,
            attack=attack,
            attack_count=count,
        )
    if d.type == "DEFENSE":
        return CardResult(
            card_uid=card.uid,
            card_type="DEFENSE",
            time_multiplier=time_mult,
            block=math.floor(d.base_block * grade.accuracy),
            hp_conversion=d.hp_conversion_rate
            + (PERFECT_HP_CONVERSION_BONUS if grade.is_perfect else 0.0),
        )
    return CardResult(card_uid=card.uid, card_type=d.type, time_multiplier=time_mult)


def score_answer(
    sentence: Sentence,
    blocks: Sequence[CharacterBlock],
    card: Card,
    remaining_time: float,
    store: StatsStore,
    now: float | None = None,
) -> Feedback:
    """Grade a submission, record the outcome and build the card result."""
    grade = grade_answer(sentence, blocks)
    mult = time_multiplier(remaining_time, sentence.time_limit)
    result = card_result(card, grade, mult)
    update_stats(sentence.id, grade.is_perfect, store, now=now)
    return Feedback(
        question_id=sentence.id,
        card_uid=card.uid,
        user_blocks=tuple(blocks),
        correct_blocks=correct_blocks(sentence),
        is_perfect=grade.is_perfect,
        accuracy=grade.accuracy,
        time_multiplier=mult,
        result=result,
    )
