from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Sequence

from .types import Card, CardDatabase, StarterEntry


@dataclass(frozen=True)
class DrawResult:
    drawn: list[Card]
    deck: list[Card]
    discard: list[Card]


def _new_uid(rng: random.Random, card_id: str, serial: int) -> str:
    # serial keeps uids unique even if the random suffix collides
    return f"{card_id}-{serial}-{rng.getrandbits(32):08x}"


def initialize_deck(
    cards: CardDatabase,
    rng: random.Random,
    starter: Sequence[StarterEntry] | None = None,
) -> list[Card]:
    """Build the starter set in content order, one fresh uid per instance."""
    entries = cards.starter_deck if starter is None else starter
    deck: list[Card] = []
    for entry in entries:
        definition = cards.get(entry.card_id)
        for _ in range(max(0, entry.count)):
            deck.append(Card(uid=_new_uid(rng, entry.card_id, len(deck)), definition=definition))
    return deck


def shuffle(deck: Sequence[Card], rng: random.Random) -> list[Card]:
    """Fisher-Yates over a copy; the input is left untouched."""
    shuffled = list(deck)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randrange(i + 1)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def draw_with_reshuffle(
    deck: Sequence[Card],
    discard: Sequence[Card],
    count: int,
    rng: random.Random,
) -> DrawResult:
    """Draw up to `count` cards from the top of `deck`.

    When the deck runs dry the discard pile is shuffled into a new deck.
    If both piles are empty the draw stops early and returns fewer cards.
    """
    current_deck = list(deck)
    current_discard = list(discard)
    drawn: list[Card] = []

    for _ in range(max(0, count)):
        if not current_deck:
            if not current_discard:
                break
            current_deck = shuffle(current_discard, rng)
            current_discard = []
        drawn.append(current_deck.pop(0))

    return DrawResult(drawn=drawn, deck=current_deck, discard=current_discard)


def discard_hand(hand: Sequence[Card], discard: Sequence[Card]) -> list[Card]:
    return [*discard, *hand]
