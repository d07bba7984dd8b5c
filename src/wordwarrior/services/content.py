from __future__ import annotations

import json
from pathlib import Path
from typing import Mapping

from jsonschema import Draft202012Validator

from wordwarrior.engine.types import (
    CardDatabase,
    CardDefinition,
    QuizCatalog,
    RoleAnalysis,
    Sentence,
    StarterEntry,
)


class ContentError(RuntimeError):
    pass


def _load_json(path: Path) -> object:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ContentError(f"Missing content file: {path}") from e
    except json.JSONDecodeError as e:
        raise ContentError(f"Invalid JSON in {path}: {e}") from e


def validate_json(instance: object, schema: object, *, context: str) -> None:
    validator = Draft202012Validator(schema)
    errors = sorted(validator.iter_errors(instance), key=lambda e: e.path)
    if errors:
        lines = [f"Schema validation failed for {context}:"]
        for err in errors[:10]:
            loc = "/".join(str(p) for p in err.absolute_path)
            lines.append(f"- {loc}: {err.message}")
        raise ContentError("\n".join(lines))


def _require_str(obj: Mapping[str, object], key: str) -> str:
    v = obj.get(key)
    if not isinstance(v, str):
        raise ContentError(f"Expected string for {key}")
    return v


def _require_int(obj: Mapping[str, object], key: str) -> int:
    v = obj.get(key)
    if not isinstance(v, int):
        raise ContentError(f"Expected int for {key}")
    return v


def _optional_number(obj: Mapping[str, object], key: str, default: float) -> float:
    v = obj.get(key, default)
    if not isinstance(v, (int, float)):
        raise ContentError(f"Expected number for {key}")
    return float(v)


def _indices(obj: Mapping[str, object], key: str, length: int) -> tuple[int, ...]:
    raw = obj.get(key, [])
    if not isinstance(raw, list):
        raise ContentError(f"{key} must be a list")
    out: list[int] = []
    for idx in raw:
        if not isinstance(idx, int) or idx < 0 or idx >= length:
            raise ContentError(f"{key}: index {idx!r} out of range for a {length}-character sentence")
        out.append(idx)
    return tuple(out)


def _parse_card(item: Mapping[str, object]) -> CardDefinition:
    return CardDefinition(
        id=_require_str(item, "id"),
        name=_require_str(item, "name"),
        type=_require_str(item, "type"),  # type: ignore[arg-type]
        rarity=_require_str(item, "rarity"),  # type: ignore[arg-type]
        base_attack=int(item.get("base_attack", 0)),  # type: ignore[call-overload]
        attack_count=int(item.get("attack_count", 0)),  # type: ignore[call-overload]
        base_block=int(item.get("base_block", 0)),  # type: ignore[call-overload]
        hp_conversion_rate=_optional_number(item, "hp_conversion_rate", 0.0),
        time_bonus_multiplier=_optional_number(item, "time_bonus_multiplier", 1.0),
        effect=str(item.get("effect", "NONE")),  # type: ignore[arg-type]
    )


def _parse_sentence(item: Mapping[str, object]) -> Sentence:
    text = _require_str(item, "text")
    analysis = RoleAnalysis(
        subject=_indices(item, "subject_indices", len(text)),
        verb=_indices(item, "verb_indices", len(text)),
        object=_indices(item, "object_indices", len(text)),
        helper=_indices(item, "helper_indices", len(text)),
    )
    return Sentence(
        id=_require_str(item, "id"),
        text=text,
        analysis=analysis,
        difficulty=str(item.get("difficulty", "R")),  # type: ignore[arg-type]
        time_limit=_optional_number(item, "time_limit", 30.0),
        perfect_threshold=_optional_number(item, "perfect_threshold", 1.0),
    )


class ContentService:
    def __init__(self, data_dir: Path, schema_dir: Path) -> None:
        self._data_dir = data_dir
        self._schema_dir = schema_dir

    def _load_validated(self, name: str) -> dict[str, object]:
        path = self._data_dir / f"{name}.json"
        raw = _load_json(path)
        schema = _load_json(self._schema_dir / f"{name}.schema.json")
        validate_json(raw, schema, context=str(path))
        if not isinstance(raw, dict):
            raise ContentError(f"{name}.json must be an object")
        return raw

    def load_cards_db(self) -> CardDatabase:
        raw = self._load_validated("cards")
        raw_cards = raw.get("cards")
        if not isinstance(raw_cards, list):
            raise ContentError("cards.json.cards must be a list")

        cards: dict[str, CardDefinition] = {}
        for item in raw_cards:
            if not isinstance(item, dict):
                continue
            card = _parse_card(item)
            cards[card.id] = card

        starter: list[StarterEntry] = []
        raw_starter = raw.get("starter_deck", [])
        if isinstance(raw_starter, list):
            for entry in raw_starter:
                if not isinstance(entry, dict):
                    continue
                card_id = _require_str(entry, "card_id")
                if card_id not in cards:
                    raise ContentError(f"Starter deck references unknown card: {card_id}")
                starter.append(StarterEntry(card_id=card_id, count=_require_int(entry, "count")))
        return CardDatabase(cards=cards, starter_deck=tuple(starter))

    def load_quiz_catalog(self) -> QuizCatalog:
        raw = self._load_validated("sentences")
        raw_sentences = raw.get("sentences")
        if not isinstance(raw_sentences, list):
            raise ContentError("sentences.json.sentences must be a list")

        sentences: dict[str, Sentence] = {}
        for item in raw_sentences:
            if not isinstance(item, dict):
                continue
            sentence = _parse_sentence(item)
            if sentence.id in sentences:
                raise ContentError(f"Duplicate sentence id: {sentence.id}")
            sentences[sentence.id] = sentence
        return QuizCatalog(sentences=sentences)

    def validate_all(self) -> None:
        # Load is validation (schema + parse)
        _ = self.load_cards_db()
        _ = self.load_quiz_catalog()
