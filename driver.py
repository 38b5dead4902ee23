from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

from raster import Raster, clamp_u8
from registry import REGISTRY, BaseTransform, TransformKind

# Registration happens at import time
import point_ops  # noqa: F401
import filters  # noqa: F401
import morphology  # noqa: F401
import levels  # noqa: F401

log = logging.getLogger("pixelfx.driver")

ProgressSink = Callable[[int], None]
Stage = Tuple[Union[str, TransformKind], Dict[str, Any]]


# =============== Cancellation ===============
class CancellationToken:
    """Cooperative cancel flag; the driver polls it once per row."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


# =============== Single pass ===============
def process(
    source: Raster,
    transform: BaseTransform,
    progress: Optional[ProgressSink] = None,
    cancel: Optional[CancellationToken] = None,
    *,
    reverse: bool = False,
) -> Optional[Raster]:
    """Run `transform` over every pixel of `source` into a new raster.

    Rows are visited top to bottom (bottom to top with `reverse`); each row
    is computed from the untouched source, so the order never changes the
    result. Returns None if `cancel` fires, discarding the partial buffer.
    """
    if not isinstance(source, Raster):
        raise TypeError(f"process() expects a Raster, got {type(source).__name__}")

    w, h = source.size
    name = type(transform).__name__
    if source.is_empty:
        log.debug("%s: empty %dx%d raster, nothing to do", name, w, h)
        if progress is not None:
            progress(100)
        return Raster.blank(w, h, channels=source.channels)

    t0 = time.perf_counter()
    stats = transform.prepare(source)
    if stats is not None:
        log.debug("%s: pre-pass statistic %s", name, stats)

    out = np.empty((h, w, source.channels), np.uint8)
    if source.has_alpha:
        out[..., 3] = source.pixels[..., 3]

    rows = range(h - 1, -1, -1) if reverse else range(h)
    for i, y in enumerate(rows):
        if progress is not None:
            progress(i * 100 // h)
        if cancel is not None and cancel.cancelled:
            log.info("%s: cancelled at row %d/%d", name, i, h)
            return None
        out[y, :, :3] = clamp_u8(transform.compute_row(source, y, stats))

    if progress is not None:
        progress(100)
    out.setflags(write=False)
    log.debug("%s: %dx%d in %.2f ms", name, w, h, (time.perf_counter() - t0) * 1000)
    return Raster(out)


def apply(
    kind: Union[str, TransformKind],
    source: Raster,
    progress: Optional[ProgressSink] = None,
    cancel: Optional[CancellationToken] = None,
    *,
    reverse: bool = False,
    **params,
) -> Optional[Raster]:
    """Apply the transform registered for `kind`, with optional parameter overrides."""
    transform = REGISTRY.create(kind, **params)
    return process(source, transform, progress, cancel, reverse=reverse)


# =============== Pipelines ===============
def run_pipeline(
    source: Raster,
    stages: Sequence[Stage],
    progress: Optional[ProgressSink] = None,
    cancel: Optional[CancellationToken] = None,
    *,
    reverse: bool = False,
) -> Optional[Raster]:
    """Chain passes: every stage consumes the previous stage's result.

    Progress is reported over the whole pipeline. Any cancelled stage
    cancels the pipeline.
    """
    # Build every stage first so a bad name or parameter fails before any work is done
    transforms: List[BaseTransform] = [REGISTRY.create(kind, **dict(params)) for kind, params in stages]
    n = len(transforms)
    out = source
    for i, transform in enumerate(transforms):
        log.info("Stage %d/%d: %s params=%s", i + 1, n, type(transform).__name__, transform.params())

        def stage_progress(pct: int, _i: int = i) -> None:
            if progress is not None:
                progress((_i * 100 + pct) // n)

        out = process(out, transform, stage_progress, cancel, reverse=reverse)
        if out is None:
            return None
    if progress is not None and n == 0:
        progress(100)
    return out


# =============== Background worker ===============
class BackgroundPass:
    """Run one pipeline on a worker thread, keeping the caller's thread free.

    `progress` holds the latest percentage; `wait()` returns the result raster
    (None when cancelled) and re-raises anything the worker raised.
    """

    def __init__(
        self,
        source: Raster,
        stages: Sequence[Stage],
        *,
        on_progress: Optional[ProgressSink] = None,
        reverse: bool = False,
    ) -> None:
        self.source = source
        self.stages = list(stages)
        self.reverse = reverse
        self.progress = 0
        self.result: Optional[Raster] = None
        self.error: Optional[BaseException] = None
        self._on_progress = on_progress
        self._token = CancellationToken()
        self._t = threading.Thread(target=self._run, name="pixelfx-pass", daemon=True)

    @classmethod
    def for_kind(
        cls,
        kind: Union[str, TransformKind],
        source: Raster,
        *,
        on_progress: Optional[ProgressSink] = None,
        reverse: bool = False,
        **params,
    ) -> "BackgroundPass":
        return cls(source, [(kind, params)], on_progress=on_progress, reverse=reverse)

    def start(self) -> "BackgroundPass":
        self._t.start()
        return self

    def _report(self, pct: int) -> None:
        self.progress = pct
        if self._on_progress is not None:
            self._on_progress(pct)

    def _run(self) -> None:
        try:
            self.result = run_pipeline(self.source, self.stages, self._report, self._token, reverse=self.reverse)
        except Exception as e:
            log.exception("Background pass failed: %s", e)
            self.error = e

    def cancel(self) -> None:
        self._token.cancel()

    @property
    def cancelled(self) -> bool:
        return self._token.cancelled

    @property
    def running(self) -> bool:
        return self._t.is_alive()

    def wait(self, timeout: Optional[float] = None) -> Optional[Raster]:
        self._t.join(timeout)
        if self._t.is_alive():
            raise TimeoutError(f"Background pass still running after {timeout}s")
        if self.error is not None:
            raise self.error
        return self.result
