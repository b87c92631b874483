"""JSON encoding of :class:`FullReport` values."""

from __future__ import annotations

from pydantic import TypeAdapter

from chessreview.analysis.models import FullReport

_REPORT_ADAPTER: TypeAdapter[FullReport] = TypeAdapter(FullReport)


def dumps(report: FullReport, *, indent: int | None = None) -> str:
    return _REPORT_ADAPTER.dump_json(report, indent=indent).decode("utf-8")


def loads(data: str | bytes) -> FullReport:
    """Decode a report; raises :class:`pydantic.ValidationError` (a ``ValueError``)."""
    return _REPORT_ADAPTER.validate_json(data)


def to_dict(report: FullReport) -> dict[str, object]:
    return _REPORT_ADAPTER.dump_python(report, mode="json")
