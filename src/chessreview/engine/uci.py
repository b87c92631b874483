"""Oracle backend driving a local UCI engine through python-chess."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator
from typing import Any

import chess
import chess.engine

from chessreview.config import EngineConfig
from chessreview.engine.oracle import LineBatch, LineInfo
from chessreview.errors import OracleError

_LOGGER = logging.getLogger(__name__)


class UciOracle:
    """Streams multi-PV analysis from a UCI engine subprocess.

    The engine is started lazily on the first request. Searches are
    serialised with a lock because one process can only search one
    position at a time.
    """

    __slots__ = ("name", "_config", "_engine", "_transport", "_lock")

    def __init__(self, config: EngineConfig) -> None:
        self.name = config.engine_path
        self._config = config
        self._engine: chess.engine.UciProtocol | None = None
        self._transport: asyncio.SubprocessTransport | None = None
        self._lock = asyncio.Lock()

    async def _ensure_engine(self) -> chess.engine.UciProtocol:
        if self._engine is not None and not self._engine.returncode.done():
            return self._engine
        try:
            self._transport, self._engine = await chess.engine.popen_uci(
                self._config.engine_path
            )
            await self._engine.configure(
                {"Threads": self._config.threads, "Hash": self._config.hash_mb}
            )
        except (OSError, chess.engine.EngineError) as exc:
            engine, self._engine = self._engine, None
            if engine is not None:
                with contextlib.suppress(chess.engine.EngineError, OSError):
                    await engine.quit()
            raise OracleError(f"Failed to start engine: {exc}") from exc
        engine_name = self._engine.id.get("name")
        if engine_name:
            self.name = engine_name
        _LOGGER.info("Started UCI engine %s", self.name)
        return self._engine

    async def evaluate(
        self, fen: str, depth: int, multipv: int
    ) -> AsyncIterator[LineBatch]:
        try:
            board = chess.Board(fen)
        except ValueError as exc:
            raise OracleError(f"Invalid FEN for evaluation: {fen!r}") from exc

        terminal = _terminal_batch(board, fen, depth)
        if terminal is not None:
            yield terminal
            return

        expected = min(multipv, board.legal_moves.count())
        async with self._lock:
            engine = await self._ensure_engine()
            try:
                with await engine.analysis(
                    board, chess.engine.Limit(depth=depth), multipv=multipv
                ) as analysis:
                    pending: dict[int, LineInfo] = {}
                    last_depth = 0
                    async for info in analysis:
                        line = _line_from_info(info)
                        if line is None:
                            continue
                        pending[line.multipv] = line
                        batch_depth = _complete_depth(pending, expected)
                        if batch_depth is not None and batch_depth > last_depth:
                            last_depth = batch_depth
                            yield _batch(fen, batch_depth, pending.values())

                    final = [
                        line
                        for line in (_line_from_info(i) for i in analysis.multipv)
                        if line is not None
                    ]
            except chess.engine.EngineTerminatedError as exc:
                self._engine = None
                raise OracleError(f"Engine terminated: {exc}") from exc
            except chess.engine.EngineError as exc:
                raise OracleError(f"Engine error: {exc}") from exc

        if not final:
            raise OracleError(f"Engine returned no lines for {fen}")
        final_depth = max(line.depth for line in final)
        if final_depth >= last_depth:
            yield _batch(fen, final_depth, final)

    async def aclose(self) -> None:
        engine, self._engine = self._engine, None
        if engine is None:
            return
        try:
            await engine.quit()
        except chess.engine.EngineError:
            _LOGGER.debug("Engine already gone while quitting", exc_info=True)


def _terminal_batch(board: chess.Board, fen: str, depth: int) -> LineBatch | None:
    """Checkmated positions report mate 0, other finished games a draw score."""
    if board.is_checkmate():
        line = LineInfo(pv=(), mate=0, depth=depth)
        return LineBatch(fen=fen, depth=depth, lines=(line,))
    if board.is_stalemate() or board.is_insufficient_material():
        line = LineInfo(pv=(), cp=0, depth=depth)
        return LineBatch(fen=fen, depth=depth, lines=(line,))
    return None


def _line_from_info(info: dict[str, Any]) -> LineInfo | None:
    score = info.get("score")
    pv = info.get("pv")
    if score is None or not pv:
        return None
    relative = score.relative
    mate = relative.mate()
    cp = None if mate is not None else relative.score()
    if mate is None and cp is None:
        return None
    return LineInfo(
        pv=tuple(move.uci() for move in pv),
        cp=cp,
        mate=mate,
        depth=int(info.get("depth", 0)),
        multipv=int(info.get("multipv", 1)),
    )


def _complete_depth(pending: dict[int, LineInfo], expected: int) -> int | None:
    """Return the shared depth once lines 1..expected all reached it."""
    if any(index not in pending for index in range(1, expected + 1)):
        return None
    depths = {pending[index].depth for index in range(1, expected + 1)}
    if len(depths) != 1:
        return None
    return depths.pop()


def _batch(fen: str, depth: int, lines: Any) -> LineBatch:
    ordered = sorted(lines, key=lambda line: line.multipv)
    return LineBatch(fen=fen, depth=depth, lines=tuple(ordered))
