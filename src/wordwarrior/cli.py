from __future__ import annotations

import argparse
import sys
from pathlib import Path

from loguru import logger

from wordwarrior.engine.ai import AISpec, autoplay
from wordwarrior.engine.game import GameSession
from wordwarrior.engine.selector import calculate_weight
from wordwarrior.paths import get_paths
from wordwarrior.services.content import ContentError, ContentService
from wordwarrior.services.stats_store import JsonFileStatsStore
from wordwarrior.services.telemetry import TelemetryService


def _configure_logging(verbose: int) -> None:
    level = "WARNING"
    if verbose == 1:
        level = "INFO"
    elif verbose >= 2:
        level = "DEBUG"
    logger.remove()
    logger.add(sys.stderr, level=level, format="<level>{level: <8}</level> {message}")


def _cmd_validate(content: ContentService) -> int:
    content.validate_all()
    print("Content OK.")
    return 0


def _cmd_simulate(args: argparse.Namespace, content: ContentService, stats_path: Path) -> int:
    cards = content.load_cards_db()
    catalog = content.load_quiz_catalog()
    stats = JsonFileStatsStore(stats_path)
    session = GameSession(cards, catalog, stats, seed=args.seed)

    autoplay(
        session,
        AISpec(accuracy=args.accuracy, slip_rate=args.slip_rate),
        max_floor=args.floors,
        max_actions=args.max_actions,
    )

    if not args.no_telemetry:
        telemetry = TelemetryService(get_paths().telemetry_path)
        telemetry.record_events(session.event_log)

    st = session.state
    floor = session.map_state.floor if session.map_state is not None else 0
    outcome = "defeated" if st.status == "GAMEOVER" else "alive"
    print(f"seed={args.seed} outcome={outcome} floor={floor} level={st.level} score={st.score}")
    print(f"hero hp {session.hero.current_hp}/{session.hero.max_hp}, shield {session.hero.block}")
    return 0 if st.status != "GAMEOVER" else 1


def _cmd_stats(args: argparse.Namespace, content: ContentService, stats_path: Path) -> int:
    catalog = content.load_quiz_catalog()
    stats = JsonFileStatsStore(stats_path)
    if args.reset:
        stats.clear()
        logger.info("cleared question stats in {}", stats_path)
    for sentence in catalog.all():
        rec = stats.get(sentence.id)
        attempts = rec.total_attempts if rec else 0
        correct = rec.total_correct if rec else 0
        weight = calculate_weight(sentence.id, stats)
        print(f"{sentence.id:<14} {sentence.difficulty:<3} {correct:>3}/{attempts:<3} weight={weight:.2f}  {sentence.text}")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="wordwarrior")
    parser.add_argument("-v", "--verbose", action="count", default=0)
    parser.add_argument("--stats-file", type=Path, default=None)
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("validate", help="validate bundled content against its schemas")

    sim = sub.add_parser("simulate", help="play a seeded run with the built-in autoplayer")
    sim.add_argument("--seed", type=int, default=1)
    sim.add_argument("--accuracy", type=float, default=0.85)
    sim.add_argument("--slip-rate", type=float, default=0.05)
    sim.add_argument("--floors", type=int, default=1)
    sim.add_argument("--max-actions", type=int, default=20_000)
    sim.add_argument("--no-telemetry", action="store_true")

    stats_cmd = sub.add_parser("stats", help="show per-question history and selection weights")
    stats_cmd.add_argument("--reset", action="store_true", help="forget all question history first")

    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    paths = get_paths()
    content = ContentService(paths.data_dir, paths.schema_dir)
    stats_path = args.stats_file or paths.stats_path

    try:
        if args.command == "validate":
            return _cmd_validate(content)
        if args.command == "simulate":
            return _cmd_simulate(args, content, stats_path)
        return _cmd_stats(args, content, stats_path)
    except ContentError as e:
        logger.error("{}", e)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
