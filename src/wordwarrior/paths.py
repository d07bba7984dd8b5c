from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class Paths:
    repo_root: Path
    data_dir: Path
    schema_dir: Path
    userdata_dir: Path

    @property
    def stats_path(self) -> Path:
        return self.userdata_dir / "question_stats.json"

    @property
    def telemetry_path(self) -> Path:
        return self.userdata_dir / "telemetry.jsonl"


def get_paths() -> Paths:
    # src/wordwarrior/paths.py -> parents: [wordwarrior, src, repo_root]
    package_dir = Path(__file__).resolve().parent
    repo_root = package_dir.parents[1]
    data_dir = package_dir / "data"
    schema_dir = data_dir / "schemas"
    userdata_dir = repo_root / "userdata"
    return Paths(
        repo_root=repo_root,
        data_dir=data_dir,
        schema_dir=schema_dir,
        userdata_dir=userdata_dir,
    )
