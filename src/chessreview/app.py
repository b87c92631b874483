"""Command-line entry point."""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging
import sys
from collections import Counter
from pathlib import Path

from chessreview.analysis import serialization
from chessreview.analysis.cache import DirectoryReportStore, ReportCache
from chessreview.analysis.models import AnalysisSnapshot, FullReport, MoveClass
from chessreview.analysis.service import ReviewService
from chessreview.config import AnalysisSettings, EngineConfig, EngineMode
from chessreview.engine import create_oracle
from chessreview.errors import ChessReviewError

_LOGGER = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    defaults = AnalysisSettings()
    parser = argparse.ArgumentParser(
        prog="chessreview",
        description="Review a chess game with an engine.",
    )
    parser.add_argument("pgn", type=Path, help="PGN file to review")
    backend = parser.add_mutually_exclusive_group()
    backend.add_argument("--engine", help="UCI engine executable")
    backend.add_argument("--server", help="Base URL of an evaluation server")
    parser.add_argument("--depth", type=int, default=defaults.depth)
    parser.add_argument("--multipv", type=int, default=defaults.multipv)
    parser.add_argument(
        "--cache-dir", type=Path, help="Directory for cached reports"
    )
    parser.add_argument("--json", type=Path, help="Write the report as JSON")
    parser.add_argument(
        "--black", action="store_true", help="Review from Black's side"
    )
    parser.add_argument("-v", "--verbose", action="count", default=0)
    return parser


def _engine_config(args: argparse.Namespace) -> EngineConfig:
    config = EngineConfig.from_env()
    if args.server:
        return dataclasses.replace(config, mode=EngineMode.SERVER, server_url=args.server)
    if args.engine:
        return dataclasses.replace(config, mode=EngineMode.LOCAL, engine_path=args.engine)
    return config


def _print_progress(snapshot: AnalysisSnapshot) -> None:
    done = f"{snapshot.ply}/{snapshot.total - 1}"
    print(f"\r{snapshot.percent:5.1f}% ({done})", end="", file=sys.stderr)


def format_summary(report: FullReport) -> str:
    header = report.header
    lines = [
        f"{header.white or 'White'} vs {header.black or 'Black'}"
        + (f"  {header.result}" if header.result else ""),
    ]
    if header.opening:
        lines.append(f"Opening: {header.opening}")
    for label, side, acpl, elo in (
        ("White", report.accuracy.white, report.acpl.white, report.estimated_elo.white),
        ("Black", report.accuracy.black, report.acpl.black, report.estimated_elo.black),
    ):
        lines.append(
            f"{label}: accuracy {side.combined:.1f}% "
            f"(weighted {side.weighted:.1f}, harmonic {side.harmonic:.1f}), "
            f"ACPL {acpl}, estimated rating {elo}"
        )
    counts = Counter(move.classification for move in report.moves)
    for move_class in MoveClass:
        if counts[move_class]:
            lines.append(f"  {move_class.value.title():<11} {counts[move_class]}")
    return "\n".join(lines)


async def _review(args: argparse.Namespace) -> FullReport:
    oracle = create_oracle(_engine_config(args))
    store = DirectoryReportStore(args.cache_dir) if args.cache_dir else None
    service = ReviewService(oracle, cache=ReportCache(store))
    try:
        return await service.review_pgn(
            args.pgn.read_text(encoding="utf-8"),
            depth=args.depth,
            multipv=args.multipv,
            view_side="black" if args.black else "white",
            on_progress=None if args.verbose else _print_progress,
        )
    finally:
        await oracle.aclose()


def main(argv: list[str] | None = None) -> int:
    """Review a PGN file and print a summary."""
    args = _build_parser().parse_args(argv)
    level = logging.WARNING
    if args.verbose == 1:
        level = logging.INFO
    elif args.verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        report = asyncio.run(_review(args))
    except (ChessReviewError, OSError, ValueError) as exc:
        _LOGGER.error("Review failed: %s", exc)
        return 1
    except KeyboardInterrupt:
        return 130
    if not args.verbose:
        print(file=sys.stderr)

    print(format_summary(report))
    if args.json is not None:
        args.json.write_text(serialization.dumps(report, indent=2), encoding="utf-8")
    return 0


if __name__ == "__main__":
    sys.exit(main())
