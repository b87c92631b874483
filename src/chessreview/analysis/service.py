"""Full-game review: per-ply evaluation, classification and aggregates."""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Callable

from chessreview.analysis.accuracy import (
    compute_accuracy,
    compute_acpl,
    estimate_elo,
    move_accuracy,
)
from chessreview.analysis.cache import ReportCache
from chessreview.analysis.classifier import MoveContext, classify_move
from chessreview.analysis.models import (
    AnalysisSnapshot,
    FullReport,
    MoveClass,
    MoveReport,
    PositionEval,
    ReportSettings,
)
from chessreview.analysis.openings import OpeningBook, OpeningInfo
from chessreview.analysis.win_percentage import position_win_percentage
from chessreview.engine.depth import DepthAnalyzer
from chessreview.engine.oracle import Oracle
from chessreview.errors import OracleError
from chessreview.game.clock import clock_data_from_comments
from chessreview.game.record import (
    GameRecord,
    game_key,
    header_from_record,
    parse_pgn,
)

_LOGGER = logging.getLogger(__name__)

ProgressCallback = Callable[[AnalysisSnapshot], None]


class GameAnalyzer:
    """Evaluates every position of a game and builds a :class:`FullReport`."""

    __slots__ = ("_oracle", "_book")

    def __init__(self, oracle: Oracle, book: OpeningBook | None = None) -> None:
        self._oracle = oracle
        self._book = book if book is not None else OpeningBook()

    @property
    def oracle(self) -> Oracle:
        return self._oracle

    async def analyze(
        self,
        record: GameRecord,
        *,
        depth: int,
        multipv: int = 1,
        on_progress: ProgressCallback | None = None,
        view_side: str = "white",
        previous: FullReport | None = None,
    ) -> FullReport:
        """Analyze *record* at *depth*.

        Positions already evaluated in *previous* seed the search, so only
        the missing depths are requested. Cancelling the calling task
        aborts the analysis.
        """
        if depth < 1:
            raise ValueError("Depth must be >= 1")
        if multipv < 1:
            raise ValueError("MultiPV must be >= 1")

        total = len(record.fens)
        _LOGGER.info(
            "Analyzing %d plies at depth %d (multipv %d) with %s",
            record.ply_count,
            depth,
            multipv,
            self._oracle.name,
        )

        positions: list[PositionEval] = []
        moves: list[MoveReport] = []
        in_book = True
        opening_name: str | None = None

        for ply, fen in enumerate(record.fens):
            seed = _seed_for(previous, ply, fen)
            evaluation = await self._evaluate(fen, ply, depth, multipv, seed)
            positions.append(evaluation)

            last_class: MoveClass | None = None
            if ply > 0:
                index = ply - 1
                opening = self._book.lookup(fen) if in_book else None
                in_book = opening is not None
                if opening is not None:
                    opening_name = opening.name
                report = self._move_report(record, index, positions, opening)
                moves.append(report)
                last_class = report.classification

            if on_progress is not None:
                on_progress(
                    AnalysisSnapshot(
                        ply=ply,
                        total=total,
                        percent=(ply + 1) * 100.0 / total,
                        fen=fen,
                        last_uci=record.ucis[ply - 1] if ply > 0 else None,
                        last_class=last_class,
                        eval=evaluation.best_line,
                    )
                )

        header = header_from_record(record, view_side=view_side)
        if header.opening is None and opening_name is not None:
            header = dataclasses.replace(header, opening=opening_name)

        accuracy = compute_accuracy(positions)
        report = FullReport(
            header=header,
            positions=tuple(positions),
            moves=tuple(moves),
            accuracy=accuracy,
            acpl=compute_acpl(positions),
            estimated_elo=estimate_elo(
                positions,
                accuracy,
                result=header.result,
                white_elo=header.white_elo,
                black_elo=header.black_elo,
            ),
            clocks=clock_data_from_comments(
                record.comments, white_first=record.white_starts
            ),
            settings=ReportSettings(
                engine=self._oracle.name, depth=depth, multipv=multipv
            ),
        )
        _LOGGER.info(
            "Analysis finished: white %.1f%%, black %.1f%%",
            accuracy.white.combined,
            accuracy.black.combined,
        )
        return report

    async def _evaluate(
        self,
        fen: str,
        ply: int,
        depth: int,
        multipv: int,
        seed: PositionEval | None,
    ) -> PositionEval:
        analyzer = DepthAnalyzer(
            self._oracle,
            fen,
            target_depth=depth,
            start_depth=depth,
            multipv=multipv,
            cached=seed,
            ply=ply,
        )
        try:
            result = await analyzer.run()
        except OracleError as exc:
            _LOGGER.warning("Evaluation failed at ply %d: %s", ply, exc)
            result = analyzer.latest
        return result if result is not None else PositionEval(fen=fen, ply=ply)

    def _move_report(
        self,
        record: GameRecord,
        index: int,
        positions: list[PositionEval],
        opening: OpeningInfo | None,
    ) -> MoveReport:
        before = positions[index]
        after = positions[index + 1]
        fen_before = record.fens[index]
        uci = record.ucis[index]
        context = MoveContext(
            fen_before=fen_before,
            uci=uci,
            before=before,
            after=after,
            in_book=opening is not None,
            fen_two_back=record.fens[index - 1] if index > 0 else None,
            previous_uci=record.ucis[index - 1] if index > 0 else None,
        )
        win_before = position_win_percentage(before)
        win_after = position_win_percentage(after)
        return MoveReport(
            ply=index + 1,
            san=record.sans[index],
            uci=uci,
            fen_before=fen_before,
            fen_after=record.fens[index + 1],
            win_before=win_before,
            win_after=win_after,
            accuracy=move_accuracy(win_before, win_after, before.white_to_move),
            classification=classify_move(context),
            best_move=before.best_move,
            opening=opening.name if opening is not None else None,
        )


def _seed_for(previous: FullReport | None, ply: int, fen: str) -> PositionEval | None:
    if previous is None:
        return None
    position = previous.position_at(ply)
    if position is None or position.fen != fen:
        return None
    return position


class ReviewService:
    """PGN in, cached :class:`FullReport` out.

    The report for a game is built at most once at a time; a stored report
    is reused whenever it is at least as deep and wide as requested.
    """

    __slots__ = ("_analyzer", "_cache")

    def __init__(
        self,
        oracle: Oracle,
        *,
        cache: ReportCache | None = None,
        book: OpeningBook | None = None,
    ) -> None:
        self._analyzer = GameAnalyzer(oracle, book)
        self._cache = cache if cache is not None else ReportCache()

    @property
    def cache(self) -> ReportCache:
        return self._cache

    async def review_pgn(
        self,
        pgn: str,
        *,
        depth: int,
        multipv: int = 1,
        on_progress: ProgressCallback | None = None,
        view_side: str = "white",
    ) -> FullReport:
        record = parse_pgn(pgn)
        return await self.review(
            record,
            depth=depth,
            multipv=multipv,
            on_progress=on_progress,
            view_side=view_side,
        )

    async def review(
        self,
        record: GameRecord,
        *,
        depth: int,
        multipv: int = 1,
        on_progress: ProgressCallback | None = None,
        view_side: str = "white",
    ) -> FullReport:
        key = game_key(record)
        previous = self._cache.get(key)

        async def _compute() -> FullReport:
            return await self._analyzer.analyze(
                record,
                depth=depth,
                multipv=multipv,
                on_progress=on_progress,
                view_side=view_side,
                previous=previous,
            )

        report = await self._cache.get_or_compute(
            key,
            _compute,
            accept=lambda candidate: candidate.satisfies(depth, multipv),
        )
        if report.header.view_side != view_side:
            report = dataclasses.replace(
                report,
                header=dataclasses.replace(report.header, view_side=view_side),
            )
        return report
