"""Run sorter — reorders pixels along scan lines.

Per scan line:
  1. Gather pixels at the line's coordinates from the read-only snapshot.
  2. Score them with the configured heuristic.
  3. Mark selected pixels (value range XOR invert, minus masked alpha).
  4. Give each contiguous run of selected pixels a segment id and build a
     composite key = segment_id * 256 + key, so one stable argsort sorts
     every run at once without mixing runs.
  5. Scatter the reordered pixels into the target at the same coordinates.

Unselected pixels never move. Reads always come from the snapshot, so
writes from earlier lines cannot leak into later ones.
"""

import logging
import time
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from itertools import islice

import numpy as np
import sentry_sdk

from engine.config import SortConfig
from engine.heuristic import key_values
from engine.paths import generate, scan_line_count
from engine.shapes import EllipseShape, LinearShape, format_shape

logger = logging.getLogger(__name__)

# Passes slower than this get a warning in the log
SLOW_PASS_MS = 5000

# Scan lines handed to the worker pool per batch
PARALLEL_BATCH = 256

ProgressFn = Callable[[int, int, str], None]


def selection_mask(keys: np.ndarray, alpha: np.ndarray, config: SortConfig) -> np.ndarray:
    """Which pixels may be sorted. Bounds are inclusive.

    With mask_alpha, fully transparent pixels are never selected,
    whatever invert says.
    """
    in_range = (keys >= config.minimum) & (keys <= config.maximum)
    selected = in_range != config.invert
    if config.mask_alpha:
        selected &= alpha != 0
    return selected


def sort_scan_line(pixels: np.ndarray, config: SortConfig) -> np.ndarray:
    """Sort every run of selected pixels in an (N, 4) array.

    Ascending by key, or descending with config.reverse. Equal keys keep
    their input order in both directions. Returns a new array.
    """
    if len(pixels) == 0:
        return pixels.copy()

    keys = key_values(config.function, pixels)
    selected = selection_mask(keys, pixels[:, 3], config)
    if not selected.any():
        return pixels.copy()

    # A new segment starts wherever selection flips from False to True
    starts = np.diff(selected.astype(np.int8), prepend=np.int8(0)) == 1
    segment_ids = np.cumsum(starts)

    indices = np.flatnonzero(selected)
    run_keys = keys[indices].astype(np.int64)
    if config.reverse:
        run_keys = 255 - run_keys
    composite = segment_ids[indices].astype(np.int64) * 256 + run_keys

    order = np.argsort(composite, kind="stable")
    output = pixels.copy()
    output[indices] = pixels[indices[order]]
    return output


def _commit(target: np.ndarray, line: np.ndarray, values: np.ndarray):
    """Write values at line coordinates. A repeated coordinate keeps its last write."""
    xs, ys = line[:, 0], line[:, 1]
    flat = ys * target.shape[1] + xs
    _, first_from_end = np.unique(flat[::-1], return_index=True)
    if len(first_from_end) != len(flat):
        last = len(flat) - 1 - first_from_end
        xs, ys, values = xs[last], ys[last], values[last]
    target[ys, xs] = values


def progress_label(config: SortConfig) -> str:
    """Human-readable phase label for progress displays."""
    if isinstance(config.path, EllipseShape):
        return "Sorting rings"
    if isinstance(config.path, LinearShape) and config.angle == 0.0 and config.vertical:
        return "Sorting columns"
    return "Sorting rows"


def _check_frame(frame: np.ndarray):
    if not isinstance(frame, np.ndarray):
        raise TypeError(f"Expected ndarray, got {type(frame).__name__}")
    if frame.ndim != 3 or frame.shape[2] != 4:
        raise ValueError(f"Expected RGBA frame (H, W, 4), got shape {frame.shape}")
    if frame.dtype != np.uint8:
        raise ValueError(f"Expected uint8 frame, got {frame.dtype}")


def _batches(lines: Iterable[np.ndarray], size: int):
    it = iter(lines)
    while batch := list(islice(it, size)):
        yield batch


def apply(
    config: SortConfig,
    frame: np.ndarray,
    progress: ProgressFn | None = None,
    workers: int = 1,
) -> np.ndarray:
    """Run one sort pass and return a new frame of the same shape.

    Args:
        config:   Sort configuration.
        frame:    Input RGBA frame (H, W, 4) uint8. Never modified.
        progress: Optional observer called as progress(done, total, label)
                  once per scan line.
        workers:  Threads used to sort scan lines. Results are committed
                  in generation order, so output does not depend on it.

    Returns:
        The sorted frame.

    Raises:
        TypeError / ValueError: If frame is not an RGBA uint8 array.
    """
    _check_frame(frame)

    # Vertical mode: rotate 90 degrees clockwise, sort rows, rotate back
    snapshot = np.ascontiguousarray(np.rot90(frame, k=-1) if config.vertical else frame)
    if snapshot is frame:
        snapshot = frame.copy()
    target = snapshot.copy()
    height, width = snapshot.shape[:2]

    total = scan_line_count(width, height, config.path, config.angle)
    label = progress_label(config)
    lines = generate(width, height, config.path, config.angle)

    sentry_sdk.add_breadcrumb(
        category="sort",
        message=f"Sorting {width}x{height} by {config.function.value}",
        data={"path": format_shape(config.path), "scan_lines": total},
        level="info",
    )
    t0 = time.monotonic()

    def _sorted(line: np.ndarray) -> np.ndarray:
        return sort_scan_line(snapshot[line[:, 1], line[:, 0]], config)

    done = 0
    if workers > 1:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            for batch in _batches(lines, PARALLEL_BATCH):
                for line, values in zip(batch, pool.map(_sorted, batch)):
                    _commit(target, line, values)
                    done += 1
                    if progress is not None:
                        progress(done, total, label)
    else:
        for line in lines:
            _commit(target, line, _sorted(line))
            done += 1
            if progress is not None:
                progress(done, total, label)

    if config.vertical:
        target = np.ascontiguousarray(np.rot90(target, k=1))

    elapsed_ms = (time.monotonic() - t0) * 1000
    logger.info(
        "Sorted %dx%d along %s by %s: %d scan lines in %.0fms",
        width,
        height,
        format_shape(config.path),
        config.function.value,
        done,
        elapsed_ms,
    )
    if elapsed_ms > SLOW_PASS_MS:
        logger.warning(
            "Sort pass took %.0fms (>%dms); consider --workers", elapsed_ms, SLOW_PASS_MS
        )

    return target
