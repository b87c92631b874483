"""Report cache with single-flight builds per key."""

from __future__ import annotations

import asyncio
import logging
import os
import re
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Protocol

from chessreview.analysis import serialization
from chessreview.analysis.models import FullReport

_LOGGER = logging.getLogger(__name__)

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")

ReportFactory = Callable[[], Awaitable[FullReport]]
ReportFilter = Callable[[FullReport], bool]


class ReportStore(Protocol):
    """Key/value persistence for finished reports."""

    def get(self, key: str) -> FullReport | None: ...

    def put(self, key: str, report: FullReport) -> None: ...


class MemoryReportStore:
    __slots__ = ("_reports",)

    def __init__(self) -> None:
        self._reports: dict[str, FullReport] = {}

    def __len__(self) -> int:
        return len(self._reports)

    def get(self, key: str) -> FullReport | None:
        return self._reports.get(key)

    def put(self, key: str, report: FullReport) -> None:
        self._reports[key] = report


class DirectoryReportStore:
    """One JSON file per key inside *root*.

    Unreadable or corrupt files count as a miss.
    """

    __slots__ = ("_root",)

    def __init__(self, root: Path) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def _path(self, key: str) -> Path:
        if not _KEY_PATTERN.match(key):
            raise ValueError(f"Invalid cache key: {key!r}")
        return self._root / f"{key}.json"

    def get(self, key: str) -> FullReport | None:
        path = self._path(key)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            _LOGGER.warning("Cannot read cached report %s: %s", path, exc)
            return None
        try:
            return serialization.loads(raw)
        except ValueError as exc:
            _LOGGER.warning("Ignoring corrupt cached report %s: %s", path, exc)
            return None

    def put(self, key: str, report: FullReport) -> None:
        path = self._path(key)
        self._root.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(serialization.dumps(report), encoding="utf-8")
        os.replace(tmp, path)


class ReportCache:
    """Caches finished reports and shares in-flight builds.

    Concurrent :meth:`get_or_compute` calls for the same key await one
    shared task. The task is shielded, so a cancelled waiter does not
    abort the build for the others. Failed builds are never stored.
    """

    __slots__ = ("_store", "_inflight")

    def __init__(self, store: ReportStore | None = None) -> None:
        self._store: ReportStore = store if store is not None else MemoryReportStore()
        self._inflight: dict[str, asyncio.Task[FullReport]] = {}

    @property
    def store(self) -> ReportStore:
        return self._store

    def get(self, key: str) -> FullReport | None:
        return self._store.get(key)

    def put(self, key: str, report: FullReport) -> None:
        self._store.put(key, report)

    def in_flight(self, key: str) -> bool:
        task = self._inflight.get(key)
        return task is not None and not task.done()

    async def get_or_compute(
        self,
        key: str,
        compute: ReportFactory,
        accept: ReportFilter | None = None,
    ) -> FullReport:
        """Return the cached report for *key*, building it at most once.

        *accept* decides whether a stored report is good enough; when it
        rejects one, a fresh build replaces it.
        """
        cached = self._store.get(key)
        if cached is not None and (accept is None or accept(cached)):
            _LOGGER.info("Report cache hit for %s", key)
            return cached

        # Rejected shared builds are awaited again; only an idle key starts one.
        while (task := self._inflight.get(key)) is not None:
            report = await asyncio.shield(task)
            if accept is None or accept(report):
                return report

        return await asyncio.shield(self._start(key, compute))

    def _start(self, key: str, compute: ReportFactory) -> asyncio.Task[FullReport]:
        _LOGGER.info("Building report for %s", key)
        task = asyncio.create_task(self._build(key, compute), name=f"report-{key[:12]}")
        self._inflight[key] = task

        def _forget(done: asyncio.Task[FullReport]) -> None:
            if self._inflight.get(key) is done:
                del self._inflight[key]
            if not done.cancelled() and done.exception() is not None:
                _LOGGER.debug("Report build for %s failed", key)

        task.add_done_callback(_forget)
        return task

    async def _build(self, key: str, compute: ReportFactory) -> FullReport:
        report = await compute()
        self._store.put(key, report)
        return report

    async def aclose(self) -> None:
        """Cancel every in-flight build."""
        tasks = list(self._inflight.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._inflight.clear()
