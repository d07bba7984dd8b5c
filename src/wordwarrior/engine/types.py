from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Literal

CardType = Literal["ATTACK", "DEFENSE", "SKILL"]
Rarity = Literal["R", "SR", "UR"]
CardEffect = Literal["NONE", "AOE", "SWAP_ATK_DEF", "DOUBLE_DAMAGE", "HEAL"]

PartOfSpeech = Literal["SUBJECT", "VERB", "OBJECT", "HELPER"]
ROLES: tuple[PartOfSpeech, ...] = ("SUBJECT", "VERB", "OBJECT", "HELPER")

EnemyIntent = Literal["ATTACK", "DEFEND", "CAST", "UNKNOWN"]
MapNodeType = Literal["BATTLE", "ELITE", "BOSS", "TREASURE", "SHOP", "REST", "EVENT"]

Status = Literal[
    "START",
    "MAP",
    "CARD_SELECTION",
    "PLAYING",
    "FEEDBACK",
    "PLAYER_ATTACK",
    "ENEMY_ATTACK",
    "VICTORY",
    "GAMEOVER",
    "PAUSED",
]


# ---------------------------------------------------------------- cards


@dataclass(frozen=True)
class CardDefinition:
    """Card content. `time_bonus_multiplier` is carried from content but not
    used by any scoring formula."""

    id: str
    name: str
    type: CardType
    rarity: Rarity
    base_attack: int = 0
    attack_count: int = 0
    base_block: int = 0
    hp_conversion_rate: float = 0.0
    time_bonus_multiplier: float = 1.0
    effect: CardEffect = "NONE"


@dataclass(frozen=True)
class Card:
    """A drawn card instance. `uid` is unique within a run."""

    uid: str
    definition: CardDefinition

    @property
    def type(self) -> CardType:
        return self.definition.type

    @property
    def rarity(self) -> Rarity:
        return self.definition.rarity

    @property
    def name(self) -> str:
        return self.definition.name


@dataclass(frozen=True)
class StarterEntry:
    card_id: str
    count: int


@dataclass(frozen=True)
class CardDatabase:
    """Immutable card database used by the engine."""

    cards: dict[str, CardDefinition]
    starter_deck: tuple[StarterEntry, ...] = ()

    def get(self, card_id: str) -> CardDefinition:
        return self.cards[card_id]

    def all_ids(self) -> Sequence[str]:
        return list(self.cards.keys())


@dataclass(frozen=True)
class CardResult:
    card_uid: str
    card_type: CardType
    time_multiplier: float
    attack: int = 0
    attack_count: int = 0
    block: int = 0
    hp_conversion: float = 0.0


# ------------------------------------------------------------ sentences


@dataclass(frozen=True)
class RoleAnalysis:
    subject: tuple[int, ...] = ()
    verb: tuple[int, ...] = ()
    object: tuple[int, ...] = ()
    helper: tuple[int, ...] = ()

    def indices_for(self, role: PartOfSpeech) -> tuple[int, ...]:
        if role == "SUBJECT":
            return self.subject
        if role == "VERB":
            return self.verb
        if role == "OBJECT":
            return self.object
        return self.helper

    def total_targets(self) -> int:
        return sum(len(self.indices_for(r)) for r in ROLES)


@dataclass(frozen=True)
class CharacterBlock:
    char: str
    original_index: int
    selected_type: PartOfSpeech | None = None


@dataclass(frozen=True)
class Sentence:
    id: str
    text: str
    analysis: RoleAnalysis
    difficulty: Rarity = "R"
    time_limit: float = 30.0
    perfect_threshold: float = 1.0

    def blank_blocks(self) -> tuple[CharacterBlock, ...]:
        return tuple(CharacterBlock(char=ch, original_index=i) for i, ch in enumerate(self.text))


@dataclass(frozen=True)
class QuizCatalog:
    """Read-only quiz content, keyed by sentence id."""

    sentences: dict[str, Sentence]

    def get(self, sentence_id: str) -> Sentence:
        return self.sentences[sentence_id]

    def all(self) -> list[Sentence]:
        return list(self.sentences.values())

    def by_difficulty(self, difficulty: Rarity) -> list[Sentence]:
        return [s for s in self.sentences.values() if s.difficulty == difficulty]


@dataclass
class QuestionStats:
    question_id: str
    recent_results: list[bool] = field(default_factory=list)
    total_correct: int = 0
    total_attempts: int = 0
    last_attempt_time: float = 0.0

    @staticmethod
    def from_dict(d: dict[str, object]) -> "QuestionStats":
        qid = d.get("question_id")
        recent = d.get("recent_results", [])
        correct = d.get("total_correct", 0)
        attempts = d.get("total_attempts", 0)
        last = d.get("last_attempt_time", 0.0)
        if not isinstance(qid, str) or not isinstance(recent, list):
            raise ValueError("Invalid question stats record")
        if not isinstance(correct, int) or not isinstance(attempts, int):
            raise ValueError("Invalid question stats counters")
        if not isinstance(last, (int, float)):
            raise ValueError("Invalid question stats timestamp")
        return QuestionStats(
            question_id=qid,
            recent_results=[bool(r) for r in recent],
            total_correct=correct,
            total_attempts=attempts,
            last_attempt_time=float(last),
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "question_id": self.question_id,
            "recent_results": list(self.recent_results),
            "total_correct": self.total_correct,
            "total_attempts": self.total_attempts,
            "last_attempt_time": self.last_attempt_time,
        }


# ------------------------------------------------------------- entities


@dataclass(frozen=True)
class Entity:
    id: str
    current_hp: int
    max_hp: int
    block: int = 0
    is_hit: bool = False
    is_attacking: bool = False
    last_damage_taken: int | None = None
    intent: EnemyIntent = "UNKNOWN"
    intent_value: int = 0
    enemy_type: str | None = None

    @property
    def alive(self) -> bool:
        return self.current_hp > 0


# ------------------------------------------------------------------ map


@dataclass(frozen=True)
class MapNode:
    id: str
    type: MapNodeType
    x: int
    y: int
    connections: tuple[str, ...]
    completed: bool = False


@dataclass(frozen=True)
class MapState:
    nodes: tuple[MapNode, ...]
    current_node_id: str | None
    floor: int

    def node(self, node_id: str | None) -> MapNode | None:
        for n in self.nodes:
            if n.id == node_id:
                return n
        return None

    @property
    def current_node(self) -> MapNode | None:
        return self.node(self.current_node_id)


@dataclass(frozen=True)
class Encounter:
    id: str
    enemy_types: tuple[str, ...]
    enemy_count: int
    difficulty: float
