from __future__ import annotations

import json
from pathlib import Path

from loguru import logger

from wordwarrior.engine.types import QuestionStats


class JsonFileStatsStore:
    """Question statistics kept in one JSON object keyed by question id.

    A missing or unreadable file, or a malformed entry, reads as "no
    history" for the affected questions. Every `put` rewrites the file.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._records: dict[str, dict[str, object]] = self._load()

    def _load(self) -> dict[str, dict[str, object]]:
        if not self._path.exists():
            return {}
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable stats file {}: {}", self._path, e)
            return {}
        if not isinstance(raw, dict):
            logger.warning("Ignoring stats file {}: expected a JSON object", self._path)
            return {}
        return {k: v for k, v in raw.items() if isinstance(k, str) and isinstance(v, dict)}

    def get(self, question_id: str) -> QuestionStats | None:
        raw = self._records.get(question_id)
        if raw is None:
            return None
        try:
            return QuestionStats.from_dict(raw)
        except ValueError as e:
            logger.warning("Corrupt stats entry for {}: {}", question_id, e)
            return None

    def put(self, question_id: str, stats: QuestionStats) -> None:
        self._records[question_id] = stats.to_dict()
        self.save()

    def save(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(self._records, indent=2, ensure_ascii=False), encoding="utf-8")

    def clear(self) -> None:
        self._records = {}
        self.save()
