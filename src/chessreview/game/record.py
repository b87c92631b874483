"""PGN parsing, canonical form and content hashing of a game."""

from __future__ import annotations

import hashlib
import io
import logging
from dataclasses import dataclass, field

import chess
import chess.pgn

from chessreview.analysis.models import GameHeader
from chessreview.errors import MalformedPgnError

_LOGGER = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class GameRecord:
    """Main line of a parsed game.

    ``fens[0]`` is the starting position and ``fens[i + 1]`` follows
    ``ucis[i]``. ``comments[i]`` is the comment after ply ``i + 1``.
    """

    headers: dict[str, str]
    start_fen: str
    ucis: tuple[str, ...]
    sans: tuple[str, ...]
    fens: tuple[str, ...]
    comments: tuple[str, ...] = ()
    pgn: str = field(default="", compare=False)

    @property
    def ply_count(self) -> int:
        return len(self.ucis)

    @property
    def white_starts(self) -> bool:
        return chess.Board(self.start_fen).turn == chess.WHITE


def parse_pgn(text: str) -> GameRecord:
    """Parse the first game in *text*; raise :class:`MalformedPgnError` on bad input."""
    if not text or not text.strip():
        raise MalformedPgnError("PGN is empty")
    try:
        game = chess.pgn.read_game(io.StringIO(text))
    except ValueError as exc:
        raise MalformedPgnError(f"Cannot read PGN: {exc}") from exc
    if game is None:
        raise MalformedPgnError("PGN contains no game")
    if game.errors:
        raise MalformedPgnError(f"Invalid PGN: {game.errors[0]}")

    try:
        board = game.board()
    except ValueError as exc:
        raise MalformedPgnError(f"Invalid FEN header: {exc}") from exc

    start_fen = board.fen()
    ucis: list[str] = []
    sans: list[str] = []
    fens: list[str] = [start_fen]
    comments: list[str] = []
    for node in game.mainline():
        move = node.move
        if not board.is_legal(move):
            raise MalformedPgnError(f"Illegal move {move.uci()} at ply {len(ucis) + 1}")
        sans.append(board.san(move))
        ucis.append(move.uci())
        board.push(move)
        fens.append(board.fen())
        comments.append(node.comment)

    if not ucis and not _has_real_headers(game.headers):
        raise MalformedPgnError("PGN contains no moves")

    _LOGGER.debug("Parsed PGN with %d plies", len(ucis))
    return GameRecord(
        headers=dict(game.headers),
        start_fen=start_fen,
        ucis=tuple(ucis),
        sans=tuple(sans),
        fens=tuple(fens),
        comments=tuple(comments),
        pgn=text,
    )


def _has_real_headers(headers: chess.pgn.Headers) -> bool:
    return any(value not in ("", "?", "????.??.??", "*") for value in headers.values())


def canonical_pgn(record: GameRecord) -> str:
    """Tags sorted by name, then the bare main line with its result.

    Comments, variations, tag order and line wrapping do not affect the output.
    """
    game = chess.pgn.Game()
    board = chess.Board(record.start_fen)
    if record.start_fen != chess.STARTING_FEN:
        game.setup(board)
    node: chess.pgn.GameNode = game
    for uci in record.ucis:
        node = node.add_variation(chess.Move.from_uci(uci))
    game.headers["Result"] = record.headers.get("Result", "*")

    exporter = chess.pgn.StringExporter(
        headers=False, variations=False, comments=False, columns=None
    )
    movetext = game.accept(exporter)

    tags = "\n".join(
        f'[{name} "{value}"]' for name, value in sorted(record.headers.items())
    )
    return f"{tags}\n\n{movetext}\n"


def game_key(record: GameRecord) -> str:
    """Content hash identifying a game for the report cache."""
    digest = hashlib.sha256(
        canonical_pgn(record).encode("utf-8"), usedforsecurity=False
    )
    return digest.hexdigest()


def _parse_elo(value: str | None) -> int | None:
    if not value:
        return None
    try:
        elo = int(value.strip())
    except ValueError:
        return None
    return elo if elo > 0 else None


def _tag(headers: dict[str, str], name: str) -> str | None:
    value = headers.get(name)
    if value is None or value in ("", "?"):
        return None
    return value


def header_from_record(record: GameRecord, *, view_side: str = "white") -> GameHeader:
    if view_side not in ("white", "black"):
        raise ValueError(f"view_side must be 'white' or 'black', not {view_side!r}")
    headers = record.headers
    return GameHeader(
        white=_tag(headers, "White"),
        black=_tag(headers, "Black"),
        white_elo=_parse_elo(headers.get("WhiteElo")),
        black_elo=_parse_elo(headers.get("BlackElo")),
        result=_tag(headers, "Result"),
        date=_tag(headers, "Date"),
        eco=_tag(headers, "ECO"),
        opening=_tag(headers, "Opening"),
        site=_tag(headers, "Site"),
        pgn=record.pgn or None,
        view_side=view_side,
    )
