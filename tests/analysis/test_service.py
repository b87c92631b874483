"""Tests for the full-game review service."""

from __future__ import annotations

import asyncio

import chess
import pytest

from chessreview.analysis.models import AnalysisSnapshot, MoveClass
from chessreview.analysis.service import GameAnalyzer, ReviewService
from chessreview.engine.oracle import LineBatch, LineInfo
from chessreview.errors import MalformedPgnError, OracleError
from chessreview.game.record import parse_pgn

PGN = """[Event "Club night"]
[White "Alice"]
[Black "Bob"]
[WhiteElo "1800"]
[BlackElo "1700"]
[Result "1-0"]

1. e4 {[%clk 0:05:00]} e5 {[%clk 0:04:58]} 2. Nf3 {[%clk 0:04:55.5]}
Nc6 {[%clk 0:04:50]} 3. Bb5 a6 1-0
"""

AFTER_E4 = "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq - 0 1"


class _StubOracle:
    """Scores every position +10 for the side to move.

    Lines are the legal moves in sorted UCI order.
    """

    name = "stub"

    def __init__(self, fail_fens: tuple[str, ...] = ()) -> None:
        self.calls: list[tuple[str, int, int]] = []
        self.fail_fens = fail_fens

    async def evaluate(self, fen: str, depth: int, multipv: int):
        self.calls.append((fen, depth, multipv))
        await asyncio.sleep(0)
        if fen in self.fail_fens:
            raise OracleError("engine crashed")
        board = chess.Board(fen)
        moves = sorted(move.uci() for move in board.legal_moves)
        if not moves:
            lines = (LineInfo(pv=(), mate=0, depth=depth),)
        else:
            lines = tuple(
                LineInfo(pv=(uci,), cp=10 - index, depth=depth, multipv=index + 1)
                for index, uci in enumerate(moves[:multipv])
            )
        yield LineBatch(fen=fen, depth=depth, lines=lines)

    async def aclose(self) -> None:
        return None


@pytest.mark.asyncio
async def test_review_builds_consistent_report() -> None:
    oracle = _StubOracle()
    service = ReviewService(oracle)

    report = await service.review_pgn(PGN, depth=18, multipv=2)

    assert len(report.positions) == len(report.moves) + 1 == 7
    assert [move.san for move in report.moves] == ["e4", "e5", "Nf3", "Nc6", "Bb5", "a6"]
    assert [position.ply for position in report.positions] == list(range(7))
    assert all(position.depth == 18 for position in report.positions)
    assert report.positions[1].lines[0].cp == -10
    assert report.settings.depth == 18
    assert report.settings.multipv == 2
    assert report.settings.engine == "stub"
    assert report.header.white == "Alice"
    assert report.header.white_elo == 1800
    assert report.header.result == "1-0"
    assert report.header.opening == "Ruy Lopez"
    assert isinstance(report.estimated_elo.white, int)


@pytest.mark.asyncio
async def test_book_moves_are_tagged_until_the_game_leaves_theory() -> None:
    report = await ReviewService(_StubOracle()).review_pgn(PGN, depth=4)

    classes = [move.classification for move in report.moves]
    assert classes[:5] == [MoveClass.OPENING] * 5
    assert classes[5] is MoveClass.EXCELLENT
    assert report.moves[4].opening == "Ruy Lopez"
    assert report.moves[5].opening is None


@pytest.mark.asyncio
async def test_clock_annotations_are_collected() -> None:
    report = await ReviewService(_StubOracle()).review_pgn(PGN, depth=2)
    assert report.clocks.white == (30000, 29550)
    assert report.clocks.black == (29800, 29000)


@pytest.mark.asyncio
async def test_second_review_at_same_depth_makes_no_oracle_calls() -> None:
    oracle = _StubOracle()
    service = ReviewService(oracle)

    first = await service.review_pgn(PGN, depth=18)
    calls_after_first = len(oracle.calls)
    second = await service.review_pgn(PGN, depth=18)

    assert calls_after_first == 7
    assert len(oracle.calls) == calls_after_first
    assert second == first


@pytest.mark.asyncio
async def test_shallower_request_reuses_deeper_report() -> None:
    oracle = _StubOracle()
    service = ReviewService(oracle)
    await service.review_pgn(PGN, depth=18, multipv=3)
    calls = len(oracle.calls)

    report = await service.review_pgn(PGN, depth=12, multipv=1)

    assert len(oracle.calls) == calls
    assert report.settings.depth == 18


@pytest.mark.asyncio
async def test_deeper_request_rebuilds_the_report() -> None:
    oracle = _StubOracle()
    service = ReviewService(oracle)
    await service.review_pgn(PGN, depth=10)

    report = await service.review_pgn(PGN, depth=12)

    assert report.settings.depth == 12
    assert [depth for _fen, depth, _mpv in oracle.calls[7:]] == [12] * 7


@pytest.mark.asyncio
async def test_wider_request_fetches_missing_lines() -> None:
    oracle = _StubOracle()
    service = ReviewService(oracle)
    await service.review_pgn(PGN, depth=18, multipv=1)
    oracle.calls.clear()

    report = await service.review_pgn(PGN, depth=18, multipv=3)

    assert len(oracle.calls) == 7
    assert all(call[1:] == (18, 3) for call in oracle.calls)
    assert [len(position.lines) for position in report.positions] == [3] * 7
    assert report.settings.multipv == 3


@pytest.mark.asyncio
async def test_concurrent_reviews_of_one_game_run_once() -> None:
    oracle = _StubOracle()
    service = ReviewService(oracle)

    first, second = await asyncio.gather(
        service.review_pgn(PGN, depth=8),
        service.review_pgn(PGN, depth=8),
    )

    assert len(oracle.calls) == 7
    assert first == second


@pytest.mark.asyncio
async def test_malformed_pgn_fails_before_any_oracle_call() -> None:
    oracle = _StubOracle()
    with pytest.raises(MalformedPgnError):
        await ReviewService(oracle).review_pgn("1. e4 e5 2. Ke3 Nf6", depth=8)
    assert oracle.calls == []


@pytest.mark.asyncio
async def test_failed_ply_leaves_empty_position_and_continues() -> None:
    oracle = _StubOracle(fail_fens=(AFTER_E4,))
    record = parse_pgn(PGN)

    report = await GameAnalyzer(oracle).analyze(record, depth=6)

    assert report.positions[1].lines == ()
    assert report.positions[2].lines
    assert len(report.moves) == 6


@pytest.mark.asyncio
async def test_progress_snapshots_cover_every_position() -> None:
    snapshots: list[AnalysisSnapshot] = []
    record = parse_pgn(PGN)

    await GameAnalyzer(_StubOracle()).analyze(
        record, depth=3, on_progress=snapshots.append
    )

    assert [snapshot.ply for snapshot in snapshots] == list(range(7))
    assert snapshots[0].last_uci is None
    assert snapshots[0].last_class is None
    assert snapshots[1].last_uci == "e2e4"
    assert snapshots[1].last_class is MoveClass.OPENING
    assert snapshots[-1].percent == pytest.approx(100.0)
    assert all(snapshot.total == 7 for snapshot in snapshots)
    assert snapshots[-1].eval is not None


@pytest.mark.asyncio
async def test_view_side_is_applied_to_cached_reports() -> None:
    service = ReviewService(_StubOracle())
    await service.review_pgn(PGN, depth=4)

    report = await service.review_pgn(PGN, depth=4, view_side="black")

    assert report.header.view_side == "black"


@pytest.mark.asyncio
async def test_invalid_depth_is_rejected() -> None:
    with pytest.raises(ValueError):
        await GameAnalyzer(_StubOracle()).analyze(parse_pgn(PGN), depth=0)
