"""
Lifecycle controller for the background usage-reporting service.

This module owns the only long-lived state of the engine: the baseline loaded
once at start, the per-process upload counter, and the worker thread that
sequences Build -> Merge -> (Persist | Upload).

State machine
-------------
``IDLE -> AWAITING_GRACE -> RUNNING -> STOPPING -> STOPPED``

- **IDLE**: constructed, not started.
- **AWAITING_GRACE**: `start()` loaded the baseline; the worker waits for the
  grace period. A stop request here skips reporting entirely.
- **RUNNING**: one upload right away, then two recurring deadlines (upload,
  snapshot) raced against the stop signal. Events are handled one at a time
  and each cycle runs to completion; ticks missed while a cycle was busy are
  dropped rather than replayed.
- **STOPPING**: exactly one final build -> merge -> persist.
- **STOPPED**: completion signal set; `stop()` returns.

Every merge is computed against the same baseline. The baseline is never
replaced by a merged result, so cycles do not compound.

Threading
---------
All cycles run on the single worker thread, so they never overlap and the
loop needs no locks. `stop()` is a handshake: it sets the stop event and
blocks on the completion event the worker sets after the final write.
"""

from __future__ import annotations

import math
import threading
import time
from collections.abc import Callable
from enum import Enum
from types import TracebackType

from .builder import SnapshotBuilder
from .contracts.snapshot import Snapshot
from .merger import merge
from .reporter import Reporter
from .settings import get_logger, load_settings
from .stats import StatsProvider
from .storage import Storage

logger = get_logger(__name__)


class ServiceState(str, Enum):
    """Lifecycle states of `AnalyticsService`."""

    IDLE = "idle"
    AWAITING_GRACE = "awaiting_grace"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


def _next_tick(previous: float, period: float, now: float) -> float:
    """Return the first tick of the `previous + k * period` grid strictly after `now`."""
    nxt = previous + period
    if nxt > now:
        return nxt
    missed = math.floor((now - previous) / period)
    return previous + (missed + 1) * period


class AnalyticsService:
    """Background service periodically persisting and uploading usage snapshots.

    Parameters
    ----------
    storage:
        Persistence collaborator (baseline read, snapshot write, identity, disk usage).
    provider:
        Stats provider feeding the activity counters.
    reporter:
        Uploader; a default `Reporter` is built from settings when omitted.
    builder:
        Snapshot builder; one over `storage` and `provider` is built when omitted.
    grace_period, snapshot_frequency, upload_frequency:
        Timings in seconds; default to the values in settings (1s, 5s, 10s).
    clock:
        Monotonic clock used to schedule ticks.
    """

    def __init__(
        self,
        storage: Storage,
        provider: StatsProvider,
        reporter: Reporter | None = None,
        *,
        builder: SnapshotBuilder | None = None,
        grace_period: float | None = None,
        snapshot_frequency: float | None = None,
        upload_frequency: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        cfg = load_settings()
        self.storage = storage
        self.reporter = reporter if reporter is not None else Reporter()
        self.builder = builder if builder is not None else SnapshotBuilder(storage, provider)

        self.grace_period = cfg.grace_period if grace_period is None else grace_period
        self.snapshot_frequency = (
            cfg.snapshot_frequency if snapshot_frequency is None else snapshot_frequency
        )
        self.upload_frequency = cfg.upload_frequency if upload_frequency is None else upload_frequency
        if self.snapshot_frequency <= 0 or self.upload_frequency <= 0:
            raise ValueError("snapshot and upload frequencies must be positive")
        self._clock = clock

        self._state = ServiceState.IDLE
        self._transition = threading.Lock()
        self._stop = threading.Event()
        self._done = threading.Event()
        self._thread: threading.Thread | None = None

        self._baseline: Snapshot | None = None
        self._uploads = 0

    # ------------------------------- Introspection --------------------------

    @property
    def state(self) -> ServiceState:
        return self._state

    @property
    def uploads(self) -> int:
        """Number of upload cycles attempted by this process."""
        return self._uploads

    @property
    def baseline(self) -> Snapshot | None:
        """Snapshot loaded at start, or None before `start()`."""
        return self._baseline

    # ------------------------------- Lifecycle ------------------------------

    def start(self) -> None:
        """Load the baseline and launch the worker thread.

        Raises
        ------
        RuntimeError
            If the service was already started or stopped.
        """
        with self._transition:
            if self._state is not ServiceState.IDLE:
                raise RuntimeError(f"AnalyticsService cannot start from state {self._state.value}")
            self._baseline = self._load_baseline()
            self._state = ServiceState.AWAITING_GRACE
            self._thread = threading.Thread(
                target=self._run,
                name="usagestats-analytics",
                daemon=True,
            )
            self._thread.start()

    def stop(self, timeout: float | None = None) -> bool:
        """Request shutdown and wait for the final snapshot to be persisted.

        Parameters
        ----------
        timeout:
            Optional bound on the wait, in seconds.

        Returns
        -------
        bool
            True once the service is STOPPED; False if `timeout` elapsed first.
        """
        with self._transition:
            if self._state is ServiceState.IDLE:
                # Never started: no baseline, nothing to persist.
                self._state = ServiceState.STOPPED
                self._done.set()
                return True
        self._stop.set()
        return self._done.wait(timeout)

    def __enter__(self) -> AnalyticsService:
        self.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.stop()

    # ------------------------------- Worker ---------------------------------

    def _run(self) -> None:
        try:
            if self._stop.wait(self.grace_period):
                logger.debug("Analytics stopped during grace period; nothing uploaded")
            else:
                self._state = ServiceState.RUNNING
                self._loop()
            self._state = ServiceState.STOPPING
            self._guarded("final snapshot", self._persist_cycle)
        finally:
            self._state = ServiceState.STOPPED
            self._done.set()

    def _loop(self) -> None:
        self._guarded("upload", self._upload_cycle)

        start = self._clock()
        next_upload = start + self.upload_frequency
        next_snapshot = start + self.snapshot_frequency

        while True:
            delay = min(next_upload, next_snapshot) - self._clock()
            if self._stop.wait(max(delay, 0.0)):
                return

            now = self._clock()
            if now >= next_upload:
                self._guarded("upload", self._upload_cycle)
                next_upload = _next_tick(next_upload, self.upload_frequency, self._clock())
            elif now >= next_snapshot:
                self._guarded("snapshot", self._persist_cycle)
                next_snapshot = _next_tick(next_snapshot, self.snapshot_frequency, self._clock())

    # ------------------------------- Cycles ---------------------------------

    def _reconciled(self) -> Snapshot:
        baseline = self._baseline if self._baseline is not None else Snapshot.zero()
        return merge(baseline, self.builder.build(upload_index=self._uploads))

    def _upload_cycle(self) -> None:
        try:
            self.reporter.report(self._reconciled())
        finally:
            self._uploads += 1

    def _persist_cycle(self) -> None:
        self.storage.write(self._reconciled())

    def _guarded(self, label: str, cycle: Callable[[], None]) -> None:
        """Run one cycle; a collaborator failure is logged, never fatal."""
        try:
            cycle()
        except Exception:
            logger.exception("Analytics %s cycle failed", label)

    def _load_baseline(self) -> Snapshot:
        try:
            baseline = self.storage.read()
        except Exception as exc:
            logger.warning("Could not load analytics baseline, starting from zero: %s", exc)
            return Snapshot.zero()
        if not isinstance(baseline, Snapshot):
            logger.warning("Storage returned no analytics baseline, starting from zero")
            return Snapshot.zero()
        return baseline


__all__ = ["AnalyticsService", "ServiceState"]
