"""Tests for the opening book."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import chess
import pytest

from chessreview.analysis.openings import OpeningBook, OpeningInfo


def _fen_after(*moves: str) -> str:
    board = chess.Board()
    for uci in moves:
        board.push_uci(uci)
    return board.fen()


def test_builtin_book_names_final_positions() -> None:
    book = OpeningBook()
    opening = book.lookup(_fen_after("e2e4", "e7e5", "g1f3", "b8c6", "f1b5"))
    assert opening is not None
    assert opening.name == "Ruy Lopez"
    assert opening.eco == "C60"


def test_intermediate_positions_are_in_book() -> None:
    book = OpeningBook([OpeningInfo("C50", "Italian Game", ("e2e4", "e7e5", "g1f3"))])
    assert book.contains(_fen_after("e2e4"))
    assert book.contains(_fen_after("e2e4", "e7e5"))
    assert not book.contains(_fen_after("d2d4"))
    assert not book.contains(chess.STARTING_FEN)


def test_lookup_ignores_move_counters() -> None:
    book = OpeningBook()
    fen = _fen_after("d2d4", "f7f5")
    placement, side, *_rest = fen.split()
    assert book.lookup(f"{placement} {side} - - 7 40") == book.lookup(fen)


def test_from_json_loads_custom_lines(tmp_path: Path) -> None:
    path = tmp_path / "book.json"
    path.write_text(
        json.dumps([{"eco": "A00", "name": "Grob Attack", "uci": "g2g4"}]),
        encoding="utf-8",
    )
    book = OpeningBook.from_json(path)
    assert len(book) == 1
    opening = book.lookup(_fen_after("g2g4"))
    assert opening is not None and opening.name == "Grob Attack"


def test_illegal_opening_lines_are_truncated(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING):
        book = OpeningBook([OpeningInfo("X00", "Broken", ("e2e4", "e2e4"))])
    assert "Illegal move" in caplog.text
    assert book.contains(_fen_after("e2e4"))
    assert len(book) == 1
