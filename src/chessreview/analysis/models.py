"""Data models produced by game analysis."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum


class MoveClass(StrEnum):
    """Move quality tiers, best first.

    ``OPENING`` and ``FORCED`` are context tags rather than loss buckets.
    """

    SPLENDID = "SPLENDID"
    PERFECT = "PERFECT"
    BEST = "BEST"
    EXCELLENT = "EXCELLENT"
    OKAY = "OKAY"
    OPENING = "OPENING"
    FORCED = "FORCED"
    INACCURACY = "INACCURACY"
    MISTAKE = "MISTAKE"
    BLUNDER = "BLUNDER"

    @property
    def rank(self) -> int:
        """Position in the best-to-worst ordering (0 is best)."""
        return _CLASS_ORDER.index(self)

    @property
    def nag(self) -> str:
        """Chess NAG annotation symbol."""
        return _CLASS_NAG[self]


_CLASS_ORDER: tuple[MoveClass, ...] = tuple(MoveClass)

_CLASS_NAG: dict[MoveClass, str] = {
    MoveClass.SPLENDID: "!!",
    MoveClass.PERFECT: "!",
    MoveClass.BEST: "",
    MoveClass.EXCELLENT: "",
    MoveClass.OKAY: "",
    MoveClass.OPENING: "",
    MoveClass.FORCED: "",
    MoveClass.INACCURACY: "?!",
    MoveClass.MISTAKE: "?",
    MoveClass.BLUNDER: "??",
}


@dataclass(slots=True, frozen=True)
class LineEval:
    """One candidate continuation with a White-relative score."""

    pv: tuple[str, ...]
    cp: int | None = None
    mate: int | None = None
    depth: int = 0
    multipv: int = 1

    def __post_init__(self) -> None:
        if (self.cp is None) == (self.mate is None):
            raise ValueError("LineEval needs exactly one of cp or mate")

    @property
    def best_move(self) -> str | None:
        return self.pv[0] if self.pv else None


@dataclass(slots=True, frozen=True)
class PositionEval:
    """Ranked engine lines for one position of the game."""

    fen: str
    ply: int
    lines: tuple[LineEval, ...] = ()

    @property
    def depth(self) -> int:
        """Deepest search depth among the lines (0 when unevaluated)."""
        return max((line.depth for line in self.lines), default=0)

    @property
    def best_line(self) -> LineEval | None:
        return self.lines[0] if self.lines else None

    @property
    def best_move(self) -> str | None:
        best = self.best_line
        return best.best_move if best is not None else None

    @property
    def white_to_move(self) -> bool:
        parts = self.fen.split()
        return len(parts) < 2 or parts[1] != "b"


@dataclass(slots=True, frozen=True)
class MoveReport:
    """Review of a single played ply."""

    ply: int
    san: str
    uci: str
    fen_before: str
    fen_after: str
    win_before: float
    win_after: float
    accuracy: float
    classification: MoveClass
    best_move: str | None = None
    opening: str | None = None

    @property
    def is_white_move(self) -> bool:
        parts = self.fen_before.split()
        return len(parts) < 2 or parts[1] != "b"


@dataclass(slots=True, frozen=True)
class SideAccuracy:
    """Accuracy aggregates for one side (0-100)."""

    weighted: float = 0.0
    harmonic: float = 0.0

    @property
    def combined(self) -> float:
        return (self.weighted + self.harmonic) / 2


@dataclass(slots=True, frozen=True)
class AccuracySummary:
    white: SideAccuracy = field(default_factory=SideAccuracy)
    black: SideAccuracy = field(default_factory=SideAccuracy)


@dataclass(slots=True, frozen=True)
class Acpl:
    """Average centipawn loss per side."""

    white: int = 0
    black: int = 0


@dataclass(slots=True, frozen=True)
class EstimatedElo:
    white: int = 1500
    black: int = 1500


@dataclass(slots=True, frozen=True)
class ClockData:
    """Remaining time after each move, in centiseconds, per side."""

    white: tuple[int, ...] = ()
    black: tuple[int, ...] = ()


@dataclass(slots=True, frozen=True)
class GameHeader:
    """Game metadata carried alongside the analysis."""

    white: str | None = None
    black: str | None = None
    white_elo: int | None = None
    black_elo: int | None = None
    result: str | None = None
    date: str | None = None
    eco: str | None = None
    opening: str | None = None
    site: str | None = None
    pgn: str | None = None
    view_side: str = "white"


@dataclass(slots=True, frozen=True)
class ReportSettings:
    """Engine parameters a report was produced with."""

    engine: str = ""
    depth: int = 0
    multipv: int = 1


@dataclass(slots=True, frozen=True)
class FullReport:
    """Complete review of one game.

    ``positions[0]`` is the starting position, and ``moves[i]`` leads from
    ``positions[i]`` to ``positions[i + 1]``.
    """

    header: GameHeader
    positions: tuple[PositionEval, ...]
    moves: tuple[MoveReport, ...]
    accuracy: AccuracySummary = field(default_factory=AccuracySummary)
    acpl: Acpl = field(default_factory=Acpl)
    estimated_elo: EstimatedElo = field(default_factory=EstimatedElo)
    clocks: ClockData = field(default_factory=ClockData)
    settings: ReportSettings = field(default_factory=ReportSettings)

    def __post_init__(self) -> None:
        if len(self.positions) != len(self.moves) + 1:
            raise ValueError(
                "FullReport needs exactly one more position than moves "
                f"(got {len(self.positions)} positions, {len(self.moves)} moves)"
            )

    def position_at(self, ply: int) -> PositionEval | None:
        """Return the evaluated position at *ply*, or ``None`` if out of range."""
        if 0 <= ply < len(self.positions):
            return self.positions[ply]
        return None

    def satisfies(self, depth: int, multipv: int) -> bool:
        """Whether this report was built at least as deep and wide as requested."""
        return self.settings.depth >= depth and self.settings.multipv >= multipv


@dataclass(slots=True, frozen=True)
class AnalysisSnapshot:
    """Progress event emitted while a full-game analysis runs."""

    ply: int
    total: int
    percent: float
    fen: str
    last_uci: str | None = None
    last_class: MoveClass | None = None
    eval: LineEval | None = None
