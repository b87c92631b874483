"""Background game review orchestration for the UI thread."""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Callable

from PyQt6.QtCore import QObject, QThread, pyqtSignal, pyqtSlot

from chessreview.analysis.cache import ReportCache
from chessreview.analysis.models import AnalysisSnapshot, FullReport
from chessreview.analysis.openings import OpeningBook
from chessreview.analysis.service import ReviewService
from chessreview.engine.oracle import Oracle

OracleFactory = Callable[[], Oracle]


class _AnalysisCommandBus(QObject):
    analyze_requested = pyqtSignal(int, str, int, int, str)


class _AnalysisWorker(QObject):
    progress = pyqtSignal(int, object)  # request_id, AnalysisSnapshot
    finished = pyqtSignal(int, object)  # request_id, FullReport
    cancelled = pyqtSignal(int)  # request_id
    failed = pyqtSignal(int, str)  # request_id, message

    __slots__ = (
        "_oracle_factory",
        "_cache",
        "_book",
        "_lock",
        "_cancelled_through",
        "_loop",
        "_task",
    )

    def __init__(
        self,
        oracle_factory: OracleFactory,
        cache: ReportCache,
        book: OpeningBook | None = None,
    ) -> None:
        super().__init__()
        self._oracle_factory = oracle_factory
        self._cache = cache
        self._book = book
        self._lock = threading.Lock()
        self._cancelled_through = 0
        self._loop: asyncio.AbstractEventLoop | None = None
        self._task: asyncio.Task[object] | None = None

    @pyqtSlot(int, str, int, int, str)
    def analyze(
        self,
        request_id: int,
        pgn: str,
        depth: int,
        multipv: int,
        view_side: str,
    ) -> None:
        if depth <= 0:
            self.failed.emit(request_id, "Analysis depth must be >= 1")
            return
        if self._is_cancelled(request_id):
            self.cancelled.emit(request_id)
            return

        try:
            report = asyncio.run(
                self._review(request_id, pgn, depth, multipv, view_side)
            )
        except asyncio.CancelledError:
            self.cancelled.emit(request_id)
            return
        except Exception as exc:
            self.failed.emit(request_id, str(exc))
            return

        if self._is_cancelled(request_id):
            self.cancelled.emit(request_id)
            return
        self.finished.emit(request_id, report)

    async def _review(
        self,
        request_id: int,
        pgn: str,
        depth: int,
        multipv: int,
        view_side: str,
    ) -> FullReport:
        with self._lock:
            self._loop = asyncio.get_running_loop()
            self._task = asyncio.current_task()
            if request_id <= self._cancelled_through:
                raise asyncio.CancelledError
        oracle = self._oracle_factory()
        service = ReviewService(oracle, cache=self._cache, book=self._book)
        try:
            return await service.review_pgn(
                pgn,
                depth=depth,
                multipv=multipv,
                view_side=view_side,
                on_progress=lambda snapshot: self.progress.emit(request_id, snapshot),
            )
        except asyncio.CancelledError:
            # The shared build is shielded from waiters; stop it explicitly.
            await self._cache.aclose()
            raise
        finally:
            with self._lock:
                self._loop = None
                self._task = None
            await oracle.aclose()

    def _is_cancelled(self, request_id: int) -> bool:
        with self._lock:
            return request_id <= self._cancelled_through

    def cancel(self, through_request_id: int) -> None:
        """Cancel requests up to *through_request_id*; safe from any thread.

        The worker thread is blocked inside its event loop while a review
        runs, so cancellation is posted to that loop directly.
        """
        with self._lock:
            self._cancelled_through = max(self._cancelled_through, through_request_id)
            loop, task = self._loop, self._task
        if loop is not None and task is not None:
            loop.call_soon_threadsafe(task.cancel)


class AnalysisSession:
    """Owns worker-thread lifecycle for game review requests."""

    __slots__ = (
        "__weakref__",
        "_on_progress",
        "_on_finished",
        "_on_failed",
        "_on_cancelled",
        "_command_bus",
        "_thread",
        "_worker",
        "_is_started",
        "_is_shutting_down",
        "_pending_request_id",
        "_next_request_id",
    )

    def __init__(
        self,
        *,
        oracle_factory: OracleFactory,
        on_progress: Callable[[AnalysisSnapshot], None],
        on_finished: Callable[[FullReport], None],
        on_failed: Callable[[str], None],
        on_cancelled: Callable[[], None],
        cache: ReportCache | None = None,
        book: OpeningBook | None = None,
        parent: QObject | None = None,
    ) -> None:
        self._on_progress = on_progress
        self._on_finished = on_finished
        self._on_failed = on_failed
        self._on_cancelled = on_cancelled

        self._command_bus = _AnalysisCommandBus(parent)
        self._thread = QThread(parent)
        self._worker = _AnalysisWorker(
            oracle_factory, cache if cache is not None else ReportCache(), book
        )
        self._is_started = False
        self._is_shutting_down = False
        self._pending_request_id: int | None = None
        self._next_request_id = 0

    @property
    def is_busy(self) -> bool:
        return self._pending_request_id is not None

    def setup(self) -> None:
        """Start worker thread and connect cross-thread signals."""
        if self._is_started:
            return
        self._is_shutting_down = False
        self._worker.moveToThread(self._thread)
        self._command_bus.analyze_requested.connect(self._worker.analyze)
        self._worker.progress.connect(self._on_worker_progress)
        self._worker.finished.connect(self._on_worker_finished)
        self._worker.failed.connect(self._on_worker_failed)
        self._worker.cancelled.connect(self._on_worker_cancelled)
        self._thread.start()
        self._is_started = True

    def shutdown(self) -> None:
        """Cancel active work and stop worker thread."""
        if not self._is_started:
            return
        self._is_shutting_down = True
        self.cancel_analysis()
        self._thread.quit()
        self._thread.wait(5000)
        self._is_started = False

    def start_analysis(
        self,
        *,
        pgn: str,
        depth: int,
        multipv: int = 1,
        view_side: str = "white",
    ) -> bool:
        """Start (or restart) a background review of *pgn*."""
        if not pgn.strip():
            return False
        if not self._is_started:
            self.setup()
        if self._is_shutting_down:
            return False

        self.cancel_analysis()
        self._next_request_id += 1
        request_id = self._next_request_id
        self._pending_request_id = request_id
        self._command_bus.analyze_requested.emit(
            request_id, pgn, depth, multipv, view_side
        )
        return True

    def cancel_analysis(self) -> None:
        """Cancel any active review request."""
        self._pending_request_id = None
        self._worker.cancel(self._next_request_id)

    def _on_worker_progress(self, request_id: int, snapshot: object) -> None:
        if request_id != self._pending_request_id:
            return
        if isinstance(snapshot, AnalysisSnapshot):
            self._on_progress(snapshot)

    def _on_worker_finished(self, request_id: int, report_obj: object) -> None:
        if self._is_shutting_down:
            return
        if request_id != self._pending_request_id:
            return
        self._pending_request_id = None
        if not isinstance(report_obj, FullReport):
            self._on_failed("Analysis worker produced invalid report")
            return
        self._on_finished(report_obj)

    def _on_worker_failed(self, request_id: int, message: str) -> None:
        if self._is_shutting_down:
            return
        if request_id != self._pending_request_id:
            return
        self._pending_request_id = None
        self._on_failed(message)

    def _on_worker_cancelled(self, request_id: int) -> None:
        if self._is_shutting_down:
            return
        if request_id != self._pending_request_id:
            return
        self._pending_request_id = None
        self._on_cancelled()
