from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Mapping

# engine events worth keeping once a run is over
RECORDED_EVENTS = frozenset(
    {"GAME_STARTED", "ENCOUNTER_STARTED", "VICTORY", "FLOOR_ADVANCED", "GAME_OVER"}
)


@dataclass
class TelemetryService:
    path: Path

    def log(self, event_type: str, payload: Mapping[str, object]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        rec = {
            "ts": datetime.now(tz=timezone.utc).isoformat(),
            "type": event_type,
            "payload": dict(payload),
        }
        with self.path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(rec, ensure_ascii=False) + "\n")

    def record_events(self, events: Iterable[Mapping[str, object]]) -> int:
        """Append the run-level engine events; returns how many were written."""
        written = 0
        for ev in events:
            ev_type = ev.get("type")
            if not isinstance(ev_type, str) or ev_type not in RECORDED_EVENTS:
                continue
            self.log(ev_type, {k: v for k, v in ev.items() if k != "type"})
            written += 1
        return written
