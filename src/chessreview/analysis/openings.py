"""Opening book used to tag theory moves."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

import chess

_LOGGER = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class OpeningInfo:
    eco: str
    name: str
    uci: tuple[str, ...]


_BUILTIN: tuple[OpeningInfo, ...] = (
    OpeningInfo("B00", "King's Pawn Opening", ("e2e4",)),
    OpeningInfo("D00", "Queen's Pawn Game", ("d2d4",)),
    OpeningInfo("A04", "Reti Opening", ("g1f3",)),
    OpeningInfo("A10", "English Opening", ("c2c4",)),
    OpeningInfo("C20", "King's Pawn Game", ("e2e4", "e7e5")),
    OpeningInfo("C40", "King's Knight Opening", ("e2e4", "e7e5", "g1f3")),
    OpeningInfo("C44", "King's Pawn Game: Nc6", ("e2e4", "e7e5", "g1f3", "b8c6")),
    OpeningInfo("C50", "Italian Game", ("e2e4", "e7e5", "g1f3", "b8c6", "f1c4")),
    OpeningInfo("C60", "Ruy Lopez", ("e2e4", "e7e5", "g1f3", "b8c6", "f1b5")),
    OpeningInfo("C45", "Scotch Game", ("e2e4", "e7e5", "g1f3", "b8c6", "d2d4")),
    OpeningInfo("C42", "Petrov's Defense", ("e2e4", "e7e5", "g1f3", "g8f6")),
    OpeningInfo("C23", "Bishop's Opening", ("e2e4", "e7e5", "f1c4")),
    OpeningInfo("C25", "Vienna Game", ("e2e4", "e7e5", "b1c3")),
    OpeningInfo("C30", "King's Gambit", ("e2e4", "e7e5", "f2f4")),
    OpeningInfo("B20", "Sicilian Defense", ("e2e4", "c7c5")),
    OpeningInfo("B50", "Sicilian Defense", ("e2e4", "c7c5", "g1f3", "d7d6")),
    OpeningInfo("C00", "French Defense", ("e2e4", "e7e6")),
    OpeningInfo("B10", "Caro-Kann Defense", ("e2e4", "c7c6")),
    OpeningInfo("B01", "Scandinavian Defense", ("e2e4", "d7d5")),
    OpeningInfo("B07", "Pirc Defense", ("e2e4", "d7d6", "d2d4", "g8f6")),
    OpeningInfo("D06", "Queen's Gambit", ("d2d4", "d7d5", "c2c4")),
    OpeningInfo("D30", "Queen's Gambit Declined", ("d2d4", "d7d5", "c2c4", "e7e6")),
    OpeningInfo("D20", "Queen's Gambit Accepted", ("d2d4", "d7d5", "c2c4", "d5c4")),
    OpeningInfo("D10", "Slav Defense", ("d2d4", "d7d5", "c2c4", "c7c6")),
    OpeningInfo(
        "D02", "London System", ("d2d4", "d7d5", "g1f3", "g8f6", "c1f4")
    ),
    OpeningInfo("A45", "Indian Defense", ("d2d4", "g8f6")),
    OpeningInfo("A45", "Trompowsky Attack", ("d2d4", "g8f6", "c1g5")),
    OpeningInfo("E60", "King's Indian Defense", ("d2d4", "g8f6", "c2c4", "g7g6")),
    OpeningInfo(
        "E20",
        "Nimzo-Indian Defense",
        ("d2d4", "g8f6", "c2c4", "e7e6", "b1c3", "f8b4"),
    ),
    OpeningInfo("A80", "Dutch Defense", ("d2d4", "f7f5")),
)


def _placement(fen: str) -> str:
    return fen.split(" ", 1)[0]


class OpeningBook:
    """Maps board placements reached by known opening lines to their names.

    Matching ignores side to move, castling and en-passant fields.
    """

    __slots__ = ("_by_placement",)

    def __init__(self, openings: Iterable[OpeningInfo] = _BUILTIN) -> None:
        self._by_placement: dict[str, OpeningInfo] = {}
        prefixes: dict[str, OpeningInfo] = {}
        for opening in openings:
            board = chess.Board()
            for index, uci in enumerate(opening.uci):
                try:
                    move = chess.Move.from_uci(uci)
                except ValueError:
                    _LOGGER.warning("Bad move %r in opening %s", uci, opening.name)
                    break
                if move not in board.legal_moves:
                    _LOGGER.warning("Illegal move %r in opening %s", uci, opening.name)
                    break
                board.push(move)
                placement = board.board_fen()
                if index == len(opening.uci) - 1:
                    self._by_placement[placement] = opening
                else:
                    prefixes.setdefault(placement, opening)
        for placement, opening in prefixes.items():
            self._by_placement.setdefault(placement, opening)

    @classmethod
    def from_json(cls, path: Path) -> OpeningBook:
        """Load ``[{"eco": ..., "name": ..., "uci": "e2e4 e7e5"}, ...]``."""
        raw = json.loads(path.read_text(encoding="utf-8"))
        openings = [
            OpeningInfo(
                eco=str(item.get("eco", "")),
                name=str(item["name"]),
                uci=tuple(str(item["uci"]).split()),
            )
            for item in raw
        ]
        return cls(openings)

    def __len__(self) -> int:
        return len(self._by_placement)

    def lookup(self, fen: str) -> OpeningInfo | None:
        return self._by_placement.get(_placement(fen))

    def contains(self, fen: str) -> bool:
        return _placement(fen) in self._by_placement
