"""Clock annotations (``[%clk ...]``) embedded in PGN comments."""

from __future__ import annotations

import re
from collections.abc import Iterable

from chessreview.analysis.models import ClockData

# Accepts H:MM:SS and MM:SS, each with optional fractional seconds.
_CLOCK_PATTERN = re.compile(
    r"\[%clk\s+(\d+):(\d+(?:\.\d+)?)(?::(\d+(?:\.\d+)?))?\s*\]"
)


def clock_to_centiseconds(text: str) -> int | None:
    """Convert a ``[%clk ...]`` annotation or bare clock value to centiseconds."""
    match = _CLOCK_PATTERN.search(text if "%clk" in text else f"[%clk {text}]")
    if match is None:
        return None
    return _centiseconds(match)


def _centiseconds(match: re.Match[str]) -> int:
    first, second, third = match.groups()
    if third is None:
        seconds = int(first) * 60 + float(second)
    else:
        seconds = int(first) * 3600 + int(float(second)) * 60 + float(third)
    return round(seconds * 100)


def parse_clock_data(pgn: str, *, white_first: bool = True) -> ClockData:
    """Collect every clock annotation of *pgn*, alternating sides by order."""
    white: list[int] = []
    black: list[int] = []
    for index, match in enumerate(_CLOCK_PATTERN.finditer(pgn)):
        is_white = (index % 2 == 0) == white_first
        (white if is_white else black).append(_centiseconds(match))
    return ClockData(white=tuple(white), black=tuple(black))


def clock_data_from_comments(
    comments: Iterable[str], *, white_first: bool = True
) -> ClockData:
    """Per-ply comments to clock data; plies without an annotation are skipped."""
    white: list[int] = []
    black: list[int] = []
    for ply, comment in enumerate(comments):
        match = _CLOCK_PATTERN.search(comment or "")
        if match is None:
            continue
        is_white = (ply % 2 == 0) == white_first
        (white if is_white else black).append(_centiseconds(match))
    return ClockData(white=tuple(white), black=tuple(black))
