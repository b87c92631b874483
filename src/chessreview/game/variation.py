"""Exploring side lines that branch off the main line of a game."""

from __future__ import annotations

import asyncio
import contextlib
import dataclasses
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass

import chess

from chessreview.analysis.classifier import MoveContext, classify_move
from chessreview.analysis.models import MoveClass, PositionEval
from chessreview.analysis.openings import OpeningBook
from chessreview.engine.depth import DepthAnalyzer
from chessreview.engine.oracle import Oracle
from chessreview.errors import IllegalMoveError, MalformedFenError, OracleError

_LOGGER = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class MainLine:
    """The session follows the recorded game."""


@dataclass(slots=True, frozen=True)
class InVariation:
    """The session sits on a branch that left the main line after ``base_ply``."""

    base_ply: int
    fen: str
    last_move: str | None = None
    evaluation: PositionEval | None = None
    classification: MoveClass | None = None
    pending: bool = False


VariationState = MainLine | InVariation

MAIN_LINE = MainLine()

StateCallback = Callable[[VariationState], None]


@dataclass(slots=True, frozen=True)
class VariationResult:
    fen_after: str
    evaluation: PositionEval | None
    classification: MoveClass
    san: str = ""


def _board(fen: str) -> chess.Board:
    try:
        return chess.Board(fen)
    except ValueError as exc:
        raise MalformedFenError(f"Invalid FEN: {fen!r}") from exc


def _parse_move(board: chess.Board, text: str) -> chess.Move:
    """Accept UCI or SAN; raise :class:`IllegalMoveError` otherwise."""
    try:
        move = chess.Move.from_uci(text)
    except ValueError:
        try:
            return board.parse_san(text)
        except ValueError as exc:
            raise IllegalMoveError(f"Illegal move {text!r} in {board.fen()}") from exc
    if not board.is_legal(move):
        raise IllegalMoveError(f"Illegal move {text!r} in {board.fen()}")
    return move


def replay_line(base_fen: str, line: Sequence[str], upto_index: int) -> str:
    """FEN after playing the first *upto_index* moves of *line* from *base_fen*."""
    if not 0 <= upto_index <= len(line):
        raise IndexError(f"Line index {upto_index} out of range (0..{len(line)})")
    board = _board(base_fen)
    for text in line[:upto_index]:
        board.push(_parse_move(board, text))
    return board.fen()


class VariationExplorer:
    """Plays moves off the main line and evaluates the positions reached.

    Only the newest request may change :attr:`state`; starting a new move
    or calling :meth:`exit` cancels the evaluation still in progress.
    """

    __slots__ = (
        "_oracle",
        "_depth",
        "_start_depth",
        "_multipv",
        "_book",
        "_state",
        "_token",
        "_task",
        "_subscribers",
    )

    def __init__(
        self,
        oracle: Oracle,
        *,
        depth: int,
        multipv: int = 1,
        start_depth: int | None = None,
        book: OpeningBook | None = None,
    ) -> None:
        self._oracle = oracle
        self._depth = depth
        self._start_depth = start_depth if start_depth is not None else depth
        self._multipv = multipv
        self._book = book
        self._state: VariationState = MAIN_LINE
        self._token = 0
        self._task: asyncio.Task[tuple[PositionEval, PositionEval]] | None = None
        self._subscribers: list[StateCallback] = []

    @property
    def state(self) -> VariationState:
        return self._state

    @property
    def in_variation(self) -> bool:
        return isinstance(self._state, InVariation)

    def subscribe(self, callback: StateCallback) -> Callable[[], None]:
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            with contextlib.suppress(ValueError):
                self._subscribers.remove(callback)

        return _unsubscribe

    def _set_state(self, state: VariationState) -> None:
        self._state = state
        for callback in list(self._subscribers):
            callback(state)

    def _cancel_pending(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()

    async def play_move(
        self,
        from_fen: str,
        move: str,
        *,
        base_ply: int,
        before: PositionEval | None = None,
    ) -> VariationResult:
        """Play *move* on *from_fen*, evaluate and classify it.

        *before* is the known evaluation of *from_fen*; without one the
        position is evaluated first.
        """
        board = _board(from_fen)
        parsed = _parse_move(board, move)
        uci = parsed.uci()
        san = board.san(parsed)
        board.push(parsed)
        fen_after = board.fen()

        self._cancel_pending()
        self._token += 1
        token = self._token
        self._set_state(
            InVariation(base_ply=base_ply, fen=fen_after, last_move=uci, pending=True)
        )

        task = asyncio.create_task(
            self._evaluate_pair(token, from_fen, fen_after, base_ply, before),
            name=f"variation-{token}",
        )
        self._task = task
        try:
            before_eval, after_eval = await task
        except OracleError:
            if token == self._token:
                self._set_state(
                    InVariation(
                        base_ply=base_ply,
                        fen=fen_after,
                        last_move=uci,
                        evaluation=None,
                        classification=MoveClass.OKAY,
                        pending=False,
                    )
                )
            raise
        finally:
            if self._task is task:
                self._task = None

        classification = classify_move(
            MoveContext(
                fen_before=from_fen,
                uci=uci,
                before=before_eval,
                after=after_eval,
                in_book=self._book is not None and self._book.contains(fen_after),
            )
        )
        evaluation = after_eval if after_eval.lines else None
        if token == self._token:
            self._set_state(
                InVariation(
                    base_ply=base_ply,
                    fen=fen_after,
                    last_move=uci,
                    evaluation=evaluation,
                    classification=classification,
                    pending=False,
                )
            )
        _LOGGER.debug("Variation move %s classified %s", uci, classification)
        return VariationResult(
            fen_after=fen_after,
            evaluation=evaluation,
            classification=classification,
            san=san,
        )

    async def _evaluate_pair(
        self,
        token: int,
        from_fen: str,
        fen_after: str,
        base_ply: int,
        before: PositionEval | None,
    ) -> tuple[PositionEval, PositionEval]:
        if before is None or not before.lines or before.fen != from_fen:
            before = await self._analyze(from_fen, base_ply)

        def _live(update: PositionEval) -> None:
            state = self._state
            if token == self._token and isinstance(state, InVariation):
                self._set_state(dataclasses.replace(state, evaluation=update))

        after = await self._analyze(fen_after, base_ply + 1, _live)
        return before, after

    async def _analyze(
        self,
        fen: str,
        ply: int,
        on_update: Callable[[PositionEval], None] | None = None,
    ) -> PositionEval:
        analyzer = DepthAnalyzer(
            self._oracle,
            fen,
            target_depth=self._depth,
            start_depth=self._start_depth,
            multipv=self._multipv,
            ply=ply,
        )
        if on_update is not None:
            analyzer.subscribe(on_update)
        result = await analyzer.run()
        return result if result is not None else PositionEval(fen=fen, ply=ply)

    def replay_line(self, base_fen: str, line: Sequence[str], upto_index: int) -> str:
        return replay_line(base_fen, line, upto_index)

    async def play_line_move(
        self,
        base_fen: str,
        line: Sequence[str],
        index: int,
        *,
        base_ply: int,
    ) -> VariationResult:
        """Jump into *line*: replay moves before *index*, then play ``line[index]``."""
        if not 0 <= index < len(line):
            raise IndexError(f"Line index {index} out of range (0..{len(line) - 1})")
        fen = replay_line(base_fen, line, index)
        return await self.play_move(fen, line[index], base_ply=base_ply + index)

    def exit(self) -> None:
        """Return to the main line, dropping the branch and its evaluation."""
        self._cancel_pending()
        self._token += 1
        if not isinstance(self._state, MainLine):
            self._set_state(MAIN_LINE)

    async def aclose(self) -> None:
        task = self._task
        self.exit()
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError, OracleError):
                await task
