"""Conversion of side-to-move engine scores to White-relative scores."""

from __future__ import annotations

from chessreview.analysis.models import LineEval
from chessreview.engine.oracle import LineBatch, LineInfo
from chessreview.errors import MalformedFenError


def white_to_move(fen: str) -> bool:
    """Read the active colour field of *fen*."""
    parts = fen.split()
    if len(parts) < 2 or parts[1] not in ("w", "b"):
        raise MalformedFenError(f"FEN has no valid active colour: {fen!r}")
    return parts[1] == "w"


def normalize_line(info: LineInfo, white_to_move: bool) -> LineEval:
    """Return *info* as a White-relative :class:`LineEval`.

    ``mate 0`` means the side to move is already mated, so it becomes a
    loss in one for that side before the sign flip.
    """
    sign = 1 if white_to_move else -1
    cp = info.cp * sign if info.cp is not None else None
    mate = None
    if info.mate is not None:
        relative_mate = info.mate if info.mate != 0 else -1
        mate = relative_mate * sign
    return LineEval(
        pv=info.pv, cp=cp, mate=mate, depth=info.depth, multipv=info.multipv
    )


def normalize_batch(batch: LineBatch, fen: str | None = None) -> tuple[LineEval, ...]:
    """Normalize every line of *batch* using the side to move of *fen*."""
    is_white = white_to_move(fen if fen is not None else batch.fen)
    return tuple(normalize_line(info, is_white) for info in batch.lines)


def to_side_relative(line: LineEval, white_to_move: bool) -> LineInfo:
    """Inverse of :func:`normalize_line` for lines that are not ``mate 0``."""
    sign = 1 if white_to_move else -1
    return LineInfo(
        pv=line.pv,
        cp=line.cp * sign if line.cp is not None else None,
        mate=line.mate * sign if line.mate is not None else None,
        depth=line.depth,
        multipv=line.multipv,
    )
