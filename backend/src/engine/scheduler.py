"""Sort scheduler — change detection and parallel row dispatch.

apply_sort() is the single entry point the host calls once per update tick.
It recomputes only when the settings snapshot differs from the last applied
one, always starting from the untouched source buffer, and fans the row
pipeline out over a thread pool (one row per task). Results are published to
the destination only after every row has finished, so a failed run leaves
the destination as it was.

SortScheduler is the host-side holder of the last snapshot: it serialises
runs, keeps rolling timing stats, and reports failures to Sentry.
"""

import logging
import os
import threading
import time
from collections import deque
from concurrent.futures import Executor, ThreadPoolExecutor
from itertools import repeat

import numpy as np
import sentry_sdk

from sorting.row import process_row
from sorting.settings import Settings

logger = logging.getLogger(__name__)

# Runs slower than this are logged at warning level (milliseconds)
SORT_WARN_MS = 100

# Rolling window of timing samples kept per scheduler
TIMING_WINDOW = 100


def default_workers() -> int:
    """Thread pool size from PIXELSORT_WORKERS, falling back to the CPU count."""
    raw = os.environ.get("PIXELSORT_WORKERS", "").strip()
    if raw:
        try:
            return max(1, int(raw))
        except ValueError:
            logger.warning("Ignoring invalid PIXELSORT_WORKERS=%r", raw)
    return os.cpu_count() or 1


def _check_buffers(source: np.ndarray, destination: np.ndarray):
    if source.ndim != 3 or source.shape[2] != 4:
        raise ValueError(f"Expected (H, W, 4) source buffer, got {source.shape}")
    if destination.shape != source.shape:
        raise ValueError(
            f"Destination shape {destination.shape} does not match source {source.shape}"
        )
    if source.dtype != np.uint8 or destination.dtype != np.uint8:
        raise ValueError(
            f"Buffers must be uint8, got {source.dtype} and {destination.dtype}"
        )


def _run_rows(work: np.ndarray, settings: Settings, executor: Executor):
    # Draining the iterator re-raises the first worker exception here.
    for _ in executor.map(process_row, work, repeat(settings)):
        pass


def apply_sort(
    source: np.ndarray,
    destination: np.ndarray,
    settings: Settings,
    last_settings: Settings | None,
    executor: Executor | None = None,
) -> bool:
    """Pixel-sort ``source`` into ``destination`` if the settings changed.

    Args:
        source:        Reference RGBA frame (H, W, 4) uint8. Never modified.
        destination:   Output buffer of the same shape, overwritten in place.
        settings:      Snapshot to apply.
        last_settings: Snapshot applied by the previous call (None = never).
        executor:      Pool to fan rows out on. A temporary thread pool sized
                       by default_workers() is used when omitted.

    Returns:
        True if the image was recomputed, False for an unchanged snapshot.

    Raises:
        ValueError: If the buffers are not matching (H, W, 4) uint8 arrays.
    """
    if settings == last_settings:
        return False

    _check_buffers(source, destination)

    work = source.copy()
    if executor is None:
        with ThreadPoolExecutor(max_workers=default_workers()) as pool:
            _run_rows(work, settings, pool)
    else:
        _run_rows(work, settings, executor)

    np.copyto(destination, work)
    return True


class SortScheduler:
    """Holds the last applied snapshot and the row thread pool for one canvas."""

    def __init__(self, max_workers: int | None = None):
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers or default_workers(),
            thread_name_prefix="pixelsort-row",
        )
        self._lock = threading.Lock()
        self._last_settings: Settings | None = None
        self._timing: deque = deque(maxlen=TIMING_WINDOW)
        self.last_sort_ms = 0.0

    @property
    def last_settings(self) -> Settings | None:
        return self._last_settings

    def invalidate(self):
        """Forget the last snapshot so the next update always recomputes."""
        with self._lock:
            self._last_settings = None

    def update(
        self, source: np.ndarray, destination: np.ndarray, settings: Settings
    ) -> bool:
        """Apply ``settings`` if they changed since the last successful run.

        On failure the exception is reported and re-raised; the stored
        snapshot is left as it was.
        """
        with self._lock:
            t0 = time.monotonic()
            try:
                recomputed = apply_sort(
                    source,
                    destination,
                    settings,
                    self._last_settings,
                    executor=self._executor,
                )
            except Exception as e:
                _capture_with_context(e, source, settings)
                logger.error(
                    "Sort failed on %s buffer: %s", source.shape, type(e).__name__
                )
                raise

            if not recomputed:
                return False

            self._last_settings = settings
            elapsed_ms = (time.monotonic() - t0) * 1000
            self._timing.append(elapsed_ms)
            self.last_sort_ms = round(elapsed_ms, 2)

        height, width = source.shape[:2]
        if elapsed_ms > SORT_WARN_MS:
            logger.warning(
                "Sort took %.0fms (>%dms warn threshold) on %dx%d image",
                elapsed_ms,
                SORT_WARN_MS,
                width,
                height,
            )
        else:
            logger.debug("Sort took %.1fms on %dx%d image", elapsed_ms, width, height)
        return True

    def get_stats(self) -> dict:
        """Return p50/p95/max over the recent run durations."""
        s = sorted(self._timing)
        return {
            "p50": s[len(s) // 2] if s else 0,
            "p95": s[int(len(s) * 0.95)] if len(s) >= 20 else None,
            "max": max(s) if s else 0,
            "slow_rate": sum(1 for t in s if t > SORT_WARN_MS) / len(s) if s else 0,
            "samples": len(s),
        }

    def close(self):
        self._executor.shutdown(wait=True)


def _capture_with_context(e: Exception, source: np.ndarray, settings: Settings):
    """Capture a sort failure to Sentry with image and rule context."""
    with sentry_sdk.new_scope() as scope:
        scope.set_tag("component", "sort")
        scope.fingerprint = ["sort-crash", type(e).__name__]
        scope.set_context(
            "sort",
            {
                "shape": list(source.shape),
                "threshold": type(settings.threshold).__name__,
                "ordering": type(settings.ordering).__name__,
                "extend": [settings.extend_left, settings.extend_right],
                "merge_limit": settings.merge_limit,
            },
        )
        sentry_sdk.capture_exception(e, scope=scope)
