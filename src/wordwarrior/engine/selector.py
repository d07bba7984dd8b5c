from __future__ import annotations

import random
import time
from dataclasses import replace
from typing import Mapping, Protocol, Sequence, TypeVar

from .types import Card, QuestionStats, QuizCatalog, Rarity, Sentence

MAX_RECENT_RESULTS = 5

DEFAULT_TIME_LIMITS: dict[Rarity, float] = {"R": 30.0, "SR": 25.0, "UR": 20.0}


class StatsStore(Protocol):
    def get(self, question_id: str) -> QuestionStats | None: ...

    def put(self, question_id: str, stats: QuestionStats) -> None: ...


class InMemoryStatsStore:
    def __init__(self) -> None:
        self._records: dict[str, QuestionStats] = {}

    def get(self, question_id: str) -> QuestionStats | None:
        rec = self._records.get(question_id)
        if rec is None:
            return None
        # hand out copies so callers cannot edit history behind our back
        return QuestionStats.from_dict(rec.to_dict())

    def put(self, question_id: str, stats: QuestionStats) -> None:
        self._records[question_id] = QuestionStats.from_dict(stats.to_dict())


class _HasId(Protocol):
    @property
    def id(self) -> str: ...


T = TypeVar("T", bound=_HasId)


def calculate_weight(question_id: str, store: StatsStore) -> float:
    """Selection weight from the last three outcomes (0.05 .. 2.0)."""
    stats = store.get(question_id)
    if stats is None or len(stats.recent_results) < 3:
        return 1.0

    recent3 = stats.recent_results[-3:]
    passes = sum(1 for r in recent3 if r)
    if passes == 3:
        return 0.05
    if passes == 0:
        return 2.0
    if passes == 2:
        return 0.7
    return 1.3


def weighted_select(pool: Sequence[T], store: StatsStore, rng: random.Random) -> T:
    if not pool:
        raise ValueError("Cannot select from an empty pool.")
    if len(pool) == 1:
        return pool[0]

    weights = [calculate_weight(item.id, store) for item in pool]
    total = sum(weights)
    x = rng.random() * total
    acc = 0.0
    for item, w in zip(pool, weights):
        acc += w
        if acc > x:
            return item
    # float rounding can leave x == acc on the last item
    return pool[-1]


def update_stats(
    question_id: str,
    was_perfect: bool,
    store: StatsStore,
    now: float | None = None,
) -> QuestionStats:
    existing = store.get(question_id)
    stats = existing if existing is not None else QuestionStats(question_id=question_id)

    stats.recent_results.append(was_perfect)
    if len(stats.recent_results) > MAX_RECENT_RESULTS:
        del stats.recent_results[: len(stats.recent_results) - MAX_RECENT_RESULTS]
    stats.total_attempts += 1
    if was_perfect:
        stats.total_correct += 1
    stats.last_attempt_time = time.time() if now is None else now

    store.put(question_id, stats)
    return stats


def fetch_sentences(
    catalog: QuizCatalog,
    count: int,
    difficulty: Rarity | None,
    rng: random.Random,
) -> list[Sentence]:
    """Plain (count, difficulty) query: a random sample without weighting."""
    pool = catalog.by_difficulty(difficulty) if difficulty is not None else catalog.all()
    if not pool:
        pool = catalog.all()
    return rng.sample(pool, k=min(max(0, count), len(pool)))


def select_questions_for_cards(
    catalog: QuizCatalog,
    cards: Sequence[Card],
    store: StatsStore,
    rng: random.Random,
    time_limits: Mapping[Rarity, float] | None = None,
) -> list[Sentence]:
    """One question per card, matching the card's rarity where possible.

    Questions already handed out for this hand are skipped while the pool
    still has unused ones.
    """
    limits = DEFAULT_TIME_LIMITS if time_limits is None else time_limits
    used: set[str] = set()
    chosen: list[Sentence] = []
    for card in cards:
        pool = catalog.by_difficulty(card.rarity) or catalog.all()
        fresh = [s for s in pool if s.id not in used]
        pick = weighted_select(fresh or pool, store, rng)
        used.add(pick.id)
        chosen.append(replace(pick, time_limit=limits.get(card.rarity, pick.time_limit)))
    return chosen
