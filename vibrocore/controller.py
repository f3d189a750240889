"""Engine controller: drives the per-frame tick and owns the worker thread.

One tick is always, in this order: window push, vibro computation,
statistics accumulation, alert evaluation.  ``ingest`` runs a tick on the
caller's thread; ``submit`` hands a frame to the bounded drop-oldest queue
drained by the daemon worker started with ``start``.

Everything a tick touches is guarded by ``_tick_lock``.  Calibration swaps
are only staged by ``swap_calibration`` and applied at the start of the next
tick, so a single tick never mixes two profiles.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from threading import Event, Lock, RLock, Thread
from typing import Any

from .alerts import AlertEvaluator, AlertEvent
from .calibration import CalibrationProfile
from .config import AppConfig
from .constants import (
    DEFAULT_DROP_LOG_INTERVAL_S,
    DEFAULT_QUEUE_CAPACITY,
    DEFAULT_STOP_TIMEOUT_S,
    WORKER_POLL_INTERVAL_S,
)
from .errors import DimensionMismatchError, OutOfOrderFrameError, VibroError
from .frames import Frame
from .input_queue import DropOldestQueue
from .metrics import EngineCounters, FrameDropped
from .processing import FrameWindow, VibroComputer
from .statistics import PixelStatistic, StatisticsEngine, StatisticsSnapshot

LOGGER = logging.getLogger(__name__)

AlertSink = Callable[[list[AlertEvent]], None]
DropListener = Callable[[FrameDropped], None]


class EngineController:
    def __init__(
        self,
        calibration: CalibrationProfile | None = None,
        *,
        alert_sink: AlertSink | None = None,
        drop_listener: DropListener | None = None,
        queue_capacity: int = DEFAULT_QUEUE_CAPACITY,
        reestablish_shape_after: int = 0,
        drop_log_interval_s: float = DEFAULT_DROP_LOG_INTERVAL_S,
    ) -> None:
        self._calibration = calibration or CalibrationProfile()
        self._pending_calibration: CalibrationProfile | None = None
        self._swap_lock = Lock()
        self._tick_lock = RLock()

        self._window = FrameWindow(self._calibration.window_size)
        self._computer = VibroComputer()
        self._stats = StatisticsEngine(self._calibration)
        self._evaluator = AlertEvaluator()

        self._queue: DropOldestQueue[Frame] = DropOldestQueue(queue_capacity)
        self._alert_sink = alert_sink
        self._drop_listener = drop_listener
        self._counters = EngineCounters()

        self._worker: Thread | None = None
        self._stop_event = Event()

        self._reestablish_shape_after = max(0, int(reestablish_shape_after))
        self._candidate_shape: tuple[int, int, int] | None = None
        self._candidate_shape_frames = 0

        self._log_interval_s = max(0.0, float(drop_log_interval_s))
        self._last_drop_log_ts = float("-inf")
        self._suppressed_drop_warnings = 0
        self._last_reject_log_ts = float("-inf")
        self._suppressed_reject_warnings = 0

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        *,
        alert_sink: AlertSink | None = None,
        drop_listener: DropListener | None = None,
    ) -> EngineController:
        return cls(
            config.calibration,
            alert_sink=alert_sink,
            drop_listener=drop_listener,
            queue_capacity=config.engine.queue_capacity,
            reestablish_shape_after=config.engine.reestablish_shape_after,
            drop_log_interval_s=config.engine.drop_log_interval_s,
        )

    # -- properties -------------------------------------------------------------

    @property
    def calibration(self) -> CalibrationProfile:
        """Profile used by the most recent tick."""
        return self._calibration

    @property
    def window(self) -> FrameWindow:
        return self._window

    @property
    def is_running(self) -> bool:
        worker = self._worker
        return worker is not None and worker.is_alive()

    # -- tick -------------------------------------------------------------------

    def ingest(self, frame: Frame) -> list[AlertEvent]:
        """Run one tick for *frame* and return the alerts it raised.

        Frames that are out of order or of the wrong shape are logged,
        counted as rejected and produce no alerts.
        """
        with self._tick_lock:
            self._apply_pending_calibration()
            started = time.perf_counter()
            if not self._push(frame):
                return []
            if len(self._window) < 2:
                return []

            cal = self._calibration
            vibro = self._computer.compute(self._window.snapshot(), cal)
            self._stats.accumulate(vibro, frame.sequence)
            snapshot = self._stats.snapshot_all()
            assert snapshot is not None
            events = self._evaluator.evaluate(snapshot, cal)

            duration_s = time.perf_counter() - started
            self._counters.note_tick(duration_s, len(events))
            if events:
                LOGGER.info(
                    "Frame %d raised %d alert(s); first region=%s %s=%.3f",
                    frame.sequence,
                    len(events),
                    events[0].region_id,
                    events[0].metric.value,
                    events[0].metric_value,
                )
            return events

    def _push(self, frame: Frame) -> bool:
        try:
            self._window.push(frame)
        except OutOfOrderFrameError as exc:
            self._reject(exc)
            return False
        except DimensionMismatchError as exc:
            if not self._reestablish_shape(frame):
                self._reject(exc)
                return False
            self._window.push(frame)
        self._candidate_shape = None
        self._candidate_shape_frames = 0
        self._counters.add("frames_ingested")
        return True

    def _reestablish_shape(self, frame: Frame) -> bool:
        """Track a persistent new frame shape; reset the pipeline once confirmed."""
        if self._reestablish_shape_after <= 0:
            return False
        if frame.shape == self._candidate_shape:
            self._candidate_shape_frames += 1
        else:
            self._candidate_shape = frame.shape
            self._candidate_shape_frames = 1
        if self._candidate_shape_frames < self._reestablish_shape_after:
            return False
        LOGGER.warning(
            "Frame shape changed from %s to %s for %d consecutive frames; resetting pipeline",
            self._window.shape,
            frame.shape,
            self._candidate_shape_frames,
        )
        self._window.clear()
        self._stats.reset()
        self._evaluator.reset()
        self._computer.reset()
        return True

    def _reject(self, exc: VibroError) -> None:
        self._counters.add("frames_rejected")
        now = time.monotonic()
        if (now - self._last_reject_log_ts) >= self._log_interval_s:
            suppressed = self._suppressed_reject_warnings
            self._suppressed_reject_warnings = 0
            self._last_reject_log_ts = now
            if suppressed > 0:
                LOGGER.warning(
                    "Rejected frame: %s; suppressed %d additional reject warnings",
                    exc,
                    suppressed,
                )
            else:
                LOGGER.warning("Rejected frame: %s", exc)
        else:
            self._suppressed_reject_warnings += 1

    # -- calibration ------------------------------------------------------------

    def swap_calibration(self, profile: CalibrationProfile) -> None:
        """Stage *profile*; it takes effect at the start of the next tick."""
        with self._swap_lock:
            self._pending_calibration = profile
        LOGGER.debug("Calibration swap staged")

    def _apply_pending_calibration(self) -> None:
        with self._swap_lock:
            profile = self._pending_calibration
            self._pending_calibration = None
        if profile is None:
            return
        previous = self._calibration
        self._calibration = profile
        if profile.window_size != previous.window_size:
            self._window.resize(profile.window_size)
        if profile.statistics_key() != previous.statistics_key():
            self._stats.release()
            self._stats = StatisticsEngine(profile)
            self._evaluator.reset()
        else:
            self._stats.recalibrate(profile)
            if profile.alert_metric != previous.alert_metric:
                self._evaluator.reset()
        self._counters.add("calibration_swaps")
        LOGGER.info(
            "Applied calibration swap (window=%d, neighbor_threshold=%.3f, stat_window=%d, "
            "alert_threshold=%.3f, region_size=%d)",
            profile.window_size,
            profile.neighbor_threshold,
            profile.stat_window,
            profile.alert_threshold,
            profile.region_size,
        )

    # -- producer side ----------------------------------------------------------

    def submit(self, frame: Frame) -> bool:
        """Queue *frame* for the worker without blocking.

        Returns ``False`` when the queue was full and its oldest frame was
        dropped to make room, or when the engine has been stopped and *frame*
        itself was discarded.
        """
        self._counters.add("frames_submitted")
        dropped = self._queue.put(frame)
        if dropped is None:
            return True
        if dropped is frame:
            self._counters.add("frames_discarded")
            LOGGER.debug("Engine stopped; discarded submitted frame %d", frame.sequence)
            return False
        total = self._counters.add("frames_dropped")
        event = FrameDropped(sequence=dropped.sequence, timestamp=dropped.timestamp, total_dropped=total)
        self._log_drop(event)
        if self._drop_listener is not None:
            try:
                self._drop_listener(event)
            except Exception:
                LOGGER.warning("Drop listener failed for frame %d", event.sequence, exc_info=True)
        return False

    def _log_drop(self, event: FrameDropped) -> None:
        now = time.monotonic()
        if (now - self._last_drop_log_ts) >= self._log_interval_s:
            suppressed = self._suppressed_drop_warnings
            self._suppressed_drop_warnings = 0
            self._last_drop_log_ts = now
            if suppressed > 0:
                LOGGER.warning(
                    "Input queue full; dropped frame %d (total dropped=%d); "
                    "suppressed %d additional drop warnings",
                    event.sequence,
                    event.total_dropped,
                    suppressed,
                )
            else:
                LOGGER.warning(
                    "Input queue full; dropped frame %d (total dropped=%d)",
                    event.sequence,
                    event.total_dropped,
                )
        else:
            self._suppressed_drop_warnings += 1

    def process_pending(self) -> list[AlertEvent]:
        """Drain the input queue on the calling thread; return all alerts raised."""
        events: list[AlertEvent] = []
        while True:
            frame = self._queue.get(timeout=0)
            if frame is None:
                return events
            events.extend(self.ingest(frame))

    # -- worker lifecycle -------------------------------------------------------

    def start(self) -> None:
        if self.is_running:
            return
        self._stop_event.clear()
        self._queue.reopen()
        self._worker = Thread(target=self._run, name="vibrocore-engine", daemon=True)
        self._worker.start()
        LOGGER.info(
            "Engine worker started (queue capacity=%d, window=%d)",
            self._queue.capacity,
            self._calibration.window_size,
        )

    def _run(self) -> None:
        while not self._stop_event.is_set():
            frame = self._queue.get(timeout=WORKER_POLL_INTERVAL_S)
            if frame is None:
                continue
            try:
                events = self.ingest(frame)
            except Exception:
                LOGGER.exception("Engine tick failed for frame %d", frame.sequence)
                continue
            if events and self._alert_sink is not None:
                try:
                    self._alert_sink(events)
                except Exception:
                    LOGGER.warning(
                        "Alert sink failed; %d event(s) from frame %d not delivered",
                        len(events),
                        frame.sequence,
                        exc_info=True,
                    )

    def stop(self, timeout_s: float = DEFAULT_STOP_TIMEOUT_S) -> None:
        """Stop the worker, discard queued frames and release frame buffers."""
        self._stop_event.set()
        self._queue.close()
        discarded = self._queue.clear()
        worker = self._worker
        if worker is not None:
            worker.join(timeout=max(0.0, float(timeout_s)))
            if worker.is_alive():
                LOGGER.warning("Engine worker did not stop within %.1fs", timeout_s)
            self._worker = None
        with self._tick_lock:
            self._window.clear()
            self._stats.release()
            self._evaluator.reset()
            self._computer.reset()
            self._candidate_shape = None
            self._candidate_shape_frames = 0
        LOGGER.info("Engine stopped (%d queued frame(s) discarded)", discarded)

    def __enter__(self) -> EngineController:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    # -- inspection -------------------------------------------------------------

    def counters(self) -> dict[str, Any]:
        out = self._counters.as_dict()
        out["queue_depth"] = len(self._queue)
        return out

    def statistics_snapshot(
        self, region_id: tuple[int, int] | int | None = None
    ) -> StatisticsSnapshot | PixelStatistic | None:
        """Whole-grid snapshot, or one region's statistic when *region_id* is given."""
        stats = self._stats
        if region_id is None:
            return stats.snapshot_all()
        return stats.snapshot(region_id)

    def dispersion(self) -> tuple[float, ...] | None:
        return self._stats.dispersion()
