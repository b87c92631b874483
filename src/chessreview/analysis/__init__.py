"""Game analysis APIs.

The full-game pipeline lives in :mod:`chessreview.analysis.service`.
"""

from chessreview.analysis.accuracy import compute_accuracy, compute_acpl, estimate_elo
from chessreview.analysis.cache import (
    DirectoryReportStore,
    MemoryReportStore,
    ReportCache,
)
from chessreview.analysis.classifier import MoveContext, classify_move
from chessreview.analysis.models import (
    AnalysisSnapshot,
    FullReport,
    LineEval,
    MoveClass,
    MoveReport,
    PositionEval,
)
from chessreview.analysis.openings import OpeningBook

__all__ = [
    "AnalysisSnapshot",
    "DirectoryReportStore",
    "FullReport",
    "LineEval",
    "MemoryReportStore",
    "MoveClass",
    "MoveContext",
    "MoveReport",
    "OpeningBook",
    "PositionEval",
    "ReportCache",
    "classify_move",
    "compute_accuracy",
    "compute_acpl",
    "estimate_elo",
]
