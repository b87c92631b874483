"""Evaluation oracle contract shared by all engine backends."""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Protocol


@dataclass(slots=True, frozen=True)
class LineInfo:
    """One engine line as reported, scored from the side to move."""

    pv: tuple[str, ...]
    cp: int | None = None
    mate: int | None = None
    depth: int = 0
    multipv: int = 1


@dataclass(slots=True, frozen=True)
class LineBatch:
    """Complete best-known line set for a position at the depth reached."""

    fen: str
    depth: int
    lines: tuple[LineInfo, ...]


class Oracle(Protocol):
    """Protocol for position evaluation backends.

    ``evaluate`` streams batches until the requested depth is complete.
    Failures surface as :class:`~chessreview.errors.OracleError`; callers
    cancel by cancelling the task that iterates the stream.
    """

    name: str

    def evaluate(
        self, fen: str, depth: int, multipv: int
    ) -> AsyncIterator[LineBatch]: ...

    async def aclose(self) -> None: ...
