"""Tests for engine.sorter — run segmentation, ordering, rotation, progress."""

import time

import numpy as np
import pytest

from engine.config import SortConfig
from engine.heuristic import HeuristicKind, key_values
from engine.paths import scan_line_count
from engine.shapes import EllipseShape, SineShape
from engine.sorter import _commit, apply, selection_mask, sort_scan_line

pytestmark = pytest.mark.smoke

RED = HeuristicKind.RED


def _row(keys, alpha=None):
    """1-row frame whose red channel carries the keys."""
    frame = np.zeros((1, len(keys), 4), dtype=np.uint8)
    frame[0, :, 0] = keys
    frame[0, :, 3] = 255 if alpha is None else alpha
    return frame


def _sorted_keys(keys, **kwargs):
    config = SortConfig(function=RED, **kwargs)
    return apply(config, _row(keys))[0, :, 0].tolist()


# --- Run segmentation ---


def test_run_outside_range_untouched():
    keys = [10, 200, 50, 60, 5, 210]
    assert _sorted_keys(keys, minimum=40, maximum=100) == keys


def test_run_reverse():
    keys = [10, 200, 50, 60, 5, 210]
    assert _sorted_keys(keys, minimum=40, maximum=100, reverse=True) == [
        10, 200, 60, 50, 5, 210,
    ]


def test_full_range_sort():
    assert _sorted_keys([5, 3, 9, 1]) == [1, 3, 5, 9]
    assert _sorted_keys([5, 3, 9, 1], reverse=True) == [9, 5, 3, 1]


def test_runs_never_mix():
    keys = [50, 40, 200, 90, 60, 70]
    assert _sorted_keys(keys, minimum=40, maximum=100) == [40, 50, 200, 60, 70, 90]


def test_invert_sorts_outside_range():
    keys = [50, 40, 200, 250, 60]
    assert _sorted_keys(keys, minimum=40, maximum=100, invert=True) == keys
    assert _sorted_keys(keys, minimum=40, maximum=100, invert=True, reverse=True) == [
        50, 40, 250, 200, 60,
    ]


def test_min_above_max_selects_nothing():
    keys = [9, 3, 7]
    assert _sorted_keys(keys, minimum=200, maximum=100) == keys


# --- Selection predicate ---


def test_bounds_are_inclusive():
    keys = np.array([40, 100, 39, 101], dtype=np.uint8)
    alpha = np.full(4, 255, dtype=np.uint8)
    config = SortConfig(minimum=40, maximum=100)
    assert selection_mask(keys, alpha, config).tolist() == [True, True, False, False]


@pytest.mark.parametrize("invert", [False, True])
@pytest.mark.parametrize("bounds", [(0, 255), (0, 0), (100, 200)])
def test_transparent_never_selected_when_masked(invert, bounds):
    keys = np.array([0, 150, 255], dtype=np.uint8)
    alpha = np.zeros(3, dtype=np.uint8)
    config = SortConfig(minimum=bounds[0], maximum=bounds[1], invert=invert, mask_alpha=True)
    assert not selection_mask(keys, alpha, config).any()


def test_transparent_selected_without_mask():
    keys = np.array([10], dtype=np.uint8)
    alpha = np.zeros(1, dtype=np.uint8)
    assert selection_mask(keys, alpha, SortConfig()).all()


def test_mask_alpha_splits_runs():
    frame = _row([9, 8, 7, 6, 5], alpha=[255, 255, 0, 255, 255])
    out = apply(SortConfig(function=RED, mask_alpha=True), frame)
    assert out[0, :, 0].tolist() == [8, 9, 7, 5, 6]
    # the transparent pixel keeps its place and its alpha
    assert out[0, 2, 3] == 0


# --- Ordering ---


def test_equal_keys_keep_input_order():
    pixels = np.array(
        [[5, 1, 0, 255], [5, 2, 0, 255], [3, 0, 0, 255]], dtype=np.uint8
    )
    config = SortConfig(function=RED)
    out = sort_scan_line(pixels, config)
    assert out[:, 1].tolist() == [0, 1, 2]
    out = sort_scan_line(pixels, SortConfig(function=RED, reverse=True))
    assert out[:, 1].tolist() == [1, 2, 0]


def test_scan_line_is_permuted(noise_frame):
    pixels = noise_frame.reshape(-1, 4)[:300]
    for config in (
        SortConfig(),
        SortConfig(function=HeuristicKind.HUE, minimum=30, maximum=180, reverse=True),
        SortConfig(function=HeuristicKind.SATURATION, invert=True, mask_alpha=True),
    ):
        out = sort_scan_line(pixels, config)
        assert sorted(map(tuple, out.tolist())) == sorted(map(tuple, pixels.tolist()))


def test_empty_scan_line():
    out = sort_scan_line(np.empty((0, 4), dtype=np.uint8), SortConfig())
    assert out.shape == (0, 4)


def test_whole_run_sorted_by_key(noise_frame):
    config = SortConfig(function=HeuristicKind.BRIGHTNESS)
    out = apply(config, noise_frame)
    keys = key_values(HeuristicKind.BRIGHTNESS, out)
    assert (np.diff(keys.astype(int), axis=1) >= 0).all()


# --- Whole-frame properties ---


def _histogram(frame):
    values, counts = np.unique(frame.reshape(-1, 4), axis=0, return_counts=True)
    return values.tolist(), counts.tolist()


@pytest.mark.parametrize(
    "config",
    [
        SortConfig(),
        SortConfig(minimum=60, maximum=190, reverse=True),
        SortConfig(function=HeuristicKind.HUE, invert=True, minimum=50, maximum=120),
        SortConfig(vertical=True, mask_alpha=True),
        SortConfig(angle=25.0),
        SortConfig(angle=-70.0, function=HeuristicKind.CHROMA),
    ],
)
def test_histogram_invariant(noise_frame, config):
    out = apply(config, noise_frame)
    assert _histogram(out) == _histogram(noise_frame)


def test_row_sorted_image_is_fixed_point(noise_frame):
    keys = key_values(HeuristicKind.LUMA, noise_frame)
    order = np.argsort(keys, axis=1, kind="stable")
    presorted = np.take_along_axis(noise_frame, order[:, :, np.newaxis], axis=1)
    out = apply(SortConfig(), presorted)
    np.testing.assert_array_equal(out, presorted)


@pytest.mark.parametrize(
    "config",
    [
        SortConfig(vertical=True),
        SortConfig(vertical=True, function=HeuristicKind.HUE, reverse=True),
        SortConfig(vertical=True, path=SineShape(4.0, 9.0, 0.0), angle=10.0),
    ],
)
def test_vertical_equals_manual_rotation(noise_frame, config):
    horizontal = SortConfig.from_dict({**config.to_dict(), "vertical": False})
    rotated = np.ascontiguousarray(np.rot90(noise_frame, k=-1))
    expected = np.rot90(apply(horizontal, rotated), k=1)
    np.testing.assert_array_equal(apply(config, noise_frame), expected)


def test_vertical_sorts_columns_bottom_up():
    frame = np.zeros((3, 1, 4), dtype=np.uint8)
    frame[:, 0, 0] = [1, 3, 2]
    frame[:, :, 3] = 255
    out = apply(SortConfig(function=RED, vertical=True), frame)
    assert out.shape == frame.shape
    assert out[:, 0, 0].tolist() == [3, 2, 1]


def test_input_not_mutated(noise_frame):
    before = noise_frame.copy()
    apply(SortConfig(path=EllipseShape(0.3)), noise_frame)
    np.testing.assert_array_equal(noise_frame, before)


@pytest.mark.parametrize(
    "config",
    [
        SortConfig(path=SineShape(6.0, 11.0, 0.5), angle=30.0),
        SortConfig(path=EllipseShape(0.4, (0.3, 0.7)), angle=-20.0, reverse=True),
        SortConfig(path=SineShape(0.0, 50.0, 0.0)),
    ],
)
def test_curved_paths_shape_and_determinism(noise_frame, config):
    a = apply(config, noise_frame)
    b = apply(config, noise_frame)
    assert a.shape == noise_frame.shape
    assert a.dtype == np.uint8
    np.testing.assert_array_equal(a, b)


@pytest.mark.parametrize(
    "config",
    [
        SortConfig(),
        SortConfig(path=SineShape(6.0, 11.0, 0.5), angle=30.0),
        SortConfig(path=EllipseShape(0.4, (0.3, 0.7)), vertical=True),
    ],
)
def test_workers_match_sequential(noise_frame, config):
    np.testing.assert_array_equal(
        apply(config, noise_frame, workers=4), apply(config, noise_frame)
    )


def test_tiny_frame():
    frame = np.array([[[128, 64, 32, 255]]], dtype=np.uint8)
    for config in (SortConfig(), SortConfig(path=EllipseShape()), SortConfig(path=SineShape())):
        np.testing.assert_array_equal(apply(config, frame), frame)


# --- Buffer validation ---


def test_rejects_rgb_frame():
    with pytest.raises(ValueError, match="RGBA"):
        apply(SortConfig(), np.zeros((4, 4, 3), dtype=np.uint8))


def test_rejects_float_frame():
    with pytest.raises(ValueError, match="uint8"):
        apply(SortConfig(), np.zeros((4, 4, 4), dtype=np.float32))


def test_rejects_non_array():
    with pytest.raises(TypeError):
        apply(SortConfig(), [[0, 0, 0, 0]])


# --- Commit ---


def test_commit_last_write_wins():
    target = np.zeros((1, 3, 4), dtype=np.uint8)
    line = np.array([[0, 0], [1, 0], [0, 0]])
    values = np.array([[1, 1, 1, 1], [2, 2, 2, 2], [3, 3, 3, 3]], dtype=np.uint8)
    _commit(target, line, values)
    assert target[0, :, 0].tolist() == [3, 2, 0]


# --- Progress ---


def test_progress_called_once_per_line(noise_frame):
    calls = []
    config = SortConfig(angle=15.0)
    apply(config, noise_frame, progress=lambda done, total, label: calls.append((done, total, label)))
    total = scan_line_count(48, 32, config.path, 15.0)
    assert [c[0] for c in calls] == list(range(1, total + 1))
    assert {c[1] for c in calls} == {total}
    assert {c[2] for c in calls} == {"Sorting rows"}


@pytest.mark.parametrize(
    "config, label",
    [
        (SortConfig(vertical=True), "Sorting columns"),
        (SortConfig(path=EllipseShape()), "Sorting rings"),
        (SortConfig(path=SineShape()), "Sorting rows"),
    ],
)
def test_progress_labels(config, label):
    labels = set()
    frame = np.zeros((6, 5, 4), dtype=np.uint8)
    apply(config, frame, progress=lambda done, total, lbl: labels.add(lbl))
    assert labels == {label}


def test_progress_does_not_change_result(noise_frame):
    config = SortConfig(path=EllipseShape(0.2))
    with_progress = apply(config, noise_frame, progress=lambda *a: None)
    np.testing.assert_array_equal(with_progress, apply(config, noise_frame))


@pytest.mark.perf
def test_performance_linear():
    rng = np.random.default_rng(3)
    frame = rng.integers(0, 256, (512, 512, 4), dtype=np.uint8)
    t0 = time.monotonic()
    out = apply(SortConfig(minimum=60, maximum=200), frame)
    elapsed = time.monotonic() - t0
    assert out.shape == frame.shape
    assert elapsed < 10.0, f"linear sort of 512x512 took {elapsed:.1f}s"
