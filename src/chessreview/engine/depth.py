"""Incremental-depth position analysis and single-focus task ownership."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from enum import StrEnum

import chess

from chessreview.analysis.models import PositionEval
from chessreview.engine.oracle import Oracle
from chessreview.engine.pov import normalize_batch, white_to_move
from chessreview.engine.ranking import rank_lines
from chessreview.errors import OracleError

_LOGGER = logging.getLogger(__name__)

EvalCallback = Callable[[PositionEval], None]


class AnalyzerState(StrEnum):
    IDLE = "idle"
    REQUESTING = "requesting"
    EMITTING = "emitting"
    DONE = "done"
    CANCELLED = "cancelled"
    FAILED = "failed"


class DepthAnalyzer:
    """Evaluates one position at increasing depth, one oracle call per depth.

    Subscribers receive a fresh :class:`PositionEval` after every batch that
    deepens the search. A cached evaluation that already reaches the target
    depth is emitted as-is without touching the oracle.
    """

    __slots__ = (
        "_oracle",
        "_fen",
        "_ply",
        "_target_depth",
        "_start_depth",
        "_multipv",
        "_cached",
        "_white_to_move",
        "_expected_lines",
        "_subscribers",
        "_state",
        "_latest",
        "_task",
    )

    def __init__(
        self,
        oracle: Oracle,
        fen: str,
        *,
        target_depth: int,
        multipv: int = 1,
        start_depth: int = 1,
        cached: PositionEval | None = None,
        ply: int = 0,
    ) -> None:
        if target_depth < 1:
            raise ValueError("Target depth must be >= 1")
        if multipv < 1:
            raise ValueError("MultiPV must be >= 1")
        self._oracle = oracle
        self._fen = fen
        self._ply = ply
        self._target_depth = target_depth
        self._start_depth = max(1, min(start_depth, target_depth))
        self._multipv = multipv
        self._cached = cached if cached is not None and cached.lines else None
        self._white_to_move = white_to_move(fen)
        self._expected_lines = _expected_line_count(fen, multipv)
        self._subscribers: list[EvalCallback] = []
        self._state = AnalyzerState.IDLE
        self._latest: PositionEval | None = None
        self._task: asyncio.Task[object] | None = None

    @property
    def state(self) -> AnalyzerState:
        return self._state

    @property
    def latest(self) -> PositionEval | None:
        """Last emitted evaluation; kept after cancellation or failure."""
        return self._latest

    @property
    def depth_reached(self) -> int:
        return self._latest.depth if self._latest is not None else 0

    @property
    def fen(self) -> str:
        return self._fen

    def subscribe(self, callback: EvalCallback) -> Callable[[], None]:
        """Register *callback* for updates and return an unsubscribe function."""
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            with contextlib.suppress(ValueError):
                self._subscribers.remove(callback)

        return _unsubscribe

    def cancel(self) -> None:
        """Stop emitting and cancel the running search, if any."""
        if self._state in (AnalyzerState.DONE, AnalyzerState.FAILED):
            return
        self._state = AnalyzerState.CANCELLED
        task = self._task
        if task is not None and task is not asyncio.current_task():
            task.cancel()

    async def run(self) -> PositionEval | None:
        """Drive the analysis to the target depth and return the final value."""
        if self._state is AnalyzerState.CANCELLED:
            raise asyncio.CancelledError
        if self._state is not AnalyzerState.IDLE:
            raise RuntimeError(f"Analyzer already used (state={self._state})")
        self._task = asyncio.current_task()

        cached = self._cached
        if cached is not None and self._cache_satisfies(cached):
            _LOGGER.debug(
                "Cached eval for %s already at depth %d", self._fen, cached.depth
            )
            self._emit(self._truncate(cached))
            self._state = AnalyzerState.DONE
            return self._latest

        depth = self._start_depth
        if cached is not None:
            self._emit(self._truncate(cached))
            if len(cached.lines) >= self._expected_lines:
                depth = max(depth, cached.depth + 1)

        try:
            while depth <= self._target_depth:
                if self._state is AnalyzerState.CANCELLED:
                    raise asyncio.CancelledError
                self._state = AnalyzerState.REQUESTING
                await self._request(depth)
                depth += 1
        except asyncio.CancelledError:
            self._state = AnalyzerState.CANCELLED
            _LOGGER.debug(
                "Analysis of %s cancelled at depth %d", self._fen, self.depth_reached
            )
            raise
        except OracleError:
            self._state = AnalyzerState.FAILED
            raise
        finally:
            self._task = None

        self._state = AnalyzerState.DONE
        return self._latest

    async def _request(self, depth: int) -> None:
        stream = self._oracle.evaluate(self._fen, depth, self._multipv)
        async with contextlib.aclosing(stream) as batches:
            async for batch in batches:
                if self._state is AnalyzerState.CANCELLED:
                    raise asyncio.CancelledError
                lines = rank_lines(normalize_batch(batch, self._fen), self._white_to_move)
                lines = lines[: self._multipv]
                update = PositionEval(fen=self._fen, ply=self._ply, lines=lines)
                if self._accepts(update):
                    self._state = AnalyzerState.EMITTING
                    self._emit(update)
                    if self._state is AnalyzerState.EMITTING:
                        self._state = AnalyzerState.REQUESTING

    def _accepts(self, update: PositionEval) -> bool:
        """Skip shallower or thinner results so the shown lines never regress."""
        latest = self._latest
        if not update.lines:
            return False
        if latest is None:
            return True
        if update.depth < latest.depth:
            # Only a wider set may replace a deeper but thinner one.
            return len(latest.lines) < len(update.lines) <= self._expected_lines
        return len(update.lines) >= min(len(latest.lines), self._expected_lines)

    def _cache_satisfies(self, cached: PositionEval) -> bool:
        return (
            cached.depth >= self._target_depth
            and len(cached.lines) >= self._expected_lines
        )

    def _truncate(self, cached: PositionEval) -> PositionEval:
        lines = rank_lines(cached.lines, self._white_to_move)[: self._multipv]
        return PositionEval(fen=self._fen, ply=self._ply, lines=lines)

    def _emit(self, update: PositionEval) -> None:
        if self._state is AnalyzerState.CANCELLED:
            return
        self._latest = update
        for callback in list(self._subscribers):
            callback(update)


def _expected_line_count(fen: str, multipv: int) -> int:
    """Lines a complete answer carries: capped by the legal move count."""
    try:
        legal = chess.Board(fen).legal_moves.count()
    except ValueError:
        return multipv
    return max(1, min(multipv, legal))


class FocusRunner:
    """Keeps at most one :class:`DepthAnalyzer` running for the current focus.

    Moving the focus cancels the previous analyzer first, and a generation
    counter drops any update that belongs to a superseded analyzer.
    """

    __slots__ = (
        "_oracle",
        "_target_depth",
        "_start_depth",
        "_multipv",
        "_generation",
        "_analyzer",
        "_task",
        "_current",
        "_subscribers",
    )

    def __init__(
        self,
        oracle: Oracle,
        *,
        target_depth: int,
        start_depth: int = 1,
        multipv: int = 1,
    ) -> None:
        self._oracle = oracle
        self._target_depth = target_depth
        self._start_depth = start_depth
        self._multipv = multipv
        self._generation = 0
        self._analyzer: DepthAnalyzer | None = None
        self._task: asyncio.Task[PositionEval | None] | None = None
        self._current: PositionEval | None = None
        self._subscribers: list[EvalCallback] = []

    @property
    def current(self) -> PositionEval | None:
        """Most recent evaluation of the focused position."""
        return self._current

    @property
    def analyzer(self) -> DepthAnalyzer | None:
        return self._analyzer

    @property
    def task(self) -> asyncio.Task[PositionEval | None] | None:
        return self._task

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def subscribe(self, callback: EvalCallback) -> Callable[[], None]:
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            with contextlib.suppress(ValueError):
                self._subscribers.remove(callback)

        return _unsubscribe

    def focus(
        self,
        fen: str,
        *,
        ply: int = 0,
        cached: PositionEval | None = None,
        target_depth: int | None = None,
        multipv: int | None = None,
    ) -> asyncio.Task[PositionEval | None]:
        """Cancel the current analysis and start analysing *fen*."""
        self.cancel()
        generation = self._generation
        analyzer = DepthAnalyzer(
            self._oracle,
            fen,
            target_depth=target_depth or self._target_depth,
            start_depth=self._start_depth,
            multipv=multipv or self._multipv,
            cached=cached,
            ply=ply,
        )
        analyzer.subscribe(lambda update: self._apply(generation, update))
        self._analyzer = analyzer
        # Cached lines stay visible until the first deeper batch replaces them.
        self._current = cached if cached is not None and cached.fen == fen else None
        task = asyncio.create_task(analyzer.run(), name=f"focus-{generation}")
        task.add_done_callback(self._log_outcome)
        self._task = task
        return task

    def cancel(self) -> None:
        """Cancel the running analysis; its pending updates are discarded."""
        self._generation += 1
        if self._analyzer is not None:
            self._analyzer.cancel()
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def aclose(self) -> None:
        task = self._task
        self.cancel()
        self._analyzer = None
        self._task = None
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError, OracleError):
                await task

    def _apply(self, generation: int, update: PositionEval) -> None:
        if generation != self._generation:
            return
        self._current = update
        for callback in list(self._subscribers):
            callback(update)

    @staticmethod
    def _log_outcome(task: asyncio.Task[PositionEval | None]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            _LOGGER.warning("Live analysis failed: %s", exc)
