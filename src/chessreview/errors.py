"""Exceptions raised by the review pipeline."""

from __future__ import annotations


class ChessReviewError(Exception):
    """Base class for all pipeline errors."""


class OracleError(ChessReviewError):
    """The evaluation backend failed or returned an unusable response."""


class MalformedPgnError(ChessReviewError, ValueError):
    """The game record could not be parsed into a legal move sequence."""


class MalformedFenError(ChessReviewError, ValueError):
    """A FEN string is missing fields or has an invalid active colour."""


class IllegalMoveError(ChessReviewError, ValueError):
    """A move is not legal in the position it was played from."""
