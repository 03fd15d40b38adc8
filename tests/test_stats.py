"""Test aggregation, ordering and derived statistics.

Tests for rasterdrift.stats:
    - sort leaves magnitudes non-increasing and keeps every record
    - nonzero sum and count, average independent of order
    - median estimate indexes the full sorted sequence at count_nonzero // 2
    - top-N clamps to the pixel count and keeps trailing zero-diff pixels
    - RunStats percent / ppm conversions

Run:
    pytest tests/test_stats.py -v
"""
import numpy as np
import pytest

from rasterdrift.diff import SAMPLE_DTYPE, compute_differences
from rasterdrift.stats import RunStats, aggregate, median_estimate, sort_by_magnitude, top_n


def _samples(rel_values):
    samples = np.zeros(len(rel_values), dtype=SAMPLE_DTYPE)
    samples["x"] = np.arange(len(rel_values))
    samples["rel_diff"] = rel_values
    return samples


def test_sort_is_non_increasing_in_magnitude():
    rng = np.random.default_rng(5)
    rel = rng.normal(scale=1e-3, size=5000)
    rel[rng.random(rel.size) < 0.3] = 0
    samples = _samples(rel)

    sort_by_magnitude(samples)

    magnitude = np.abs(samples["rel_diff"].astype(np.float64))
    assert (np.diff(magnitude) <= 0).all()


def test_sort_is_in_place_and_keeps_records():
    samples = _samples([0.0, -0.5, 0.25, 0.0, 1.0])
    before = sorted(samples["x"].tolist())

    out = sort_by_magnitude(samples)

    assert out is samples
    assert sorted(samples["x"].tolist()) == before
    assert samples["rel_diff"][:3].tolist() == [1.0, -0.5, 0.25]


def test_sort_puts_nan_last():
    samples = _samples([0.1, np.nan, 0.0, 0.3])

    sort_by_magnitude(samples)

    assert np.isnan(samples["rel_diff"][-1])
    assert samples["rel_diff"][0] == pytest.approx(0.3)


def test_aggregate_counts_nonzero_only():
    samples = _samples([0.5, -0.25, 0.0, 0.0])

    stats = aggregate(samples, bad_pixel_count=1)

    assert stats.count_nonzero == 2
    assert stats.total_pixels == 4
    assert stats.bad_pixel_count == 1
    assert stats.sum_abs_rel_diff_nonzero == pytest.approx(0.75)
    assert stats.average == pytest.approx(0.375)


def test_average_independent_of_order():
    rng = np.random.default_rng(9)
    samples = _samples(rng.normal(scale=1e-4, size=2000))
    first = aggregate(samples, 0)

    rng.shuffle(samples)
    second = aggregate(samples, 0)
    sort_by_magnitude(samples)
    third = aggregate(samples, 0)

    assert second.average == pytest.approx(first.average, rel=1e-12)
    assert third.average == pytest.approx(first.average, rel=1e-12)
    assert first.count_nonzero == second.count_nonzero == third.count_nonzero


def test_median_estimate_uses_count_nonzero_index():
    samples = _samples([0.0, 0.2, 0.0, 0.4, 0.0, 0.3])
    sort_by_magnitude(samples)
    stats = aggregate(samples, 0)

    # index 3 // 2 = 1 of [0.4, 0.3, 0.2, 0, 0, 0]
    assert median_estimate(samples, stats.count_nonzero) == pytest.approx(3e5, rel=1e-6)


def test_median_estimate_with_single_nonzero():
    samples = sort_by_magnitude(_samples([0.0, 0.0, 0.5, 0.0]))

    assert median_estimate(samples, 1) == pytest.approx(5e5)


def test_median_estimate_when_every_pixel_differs():
    samples = sort_by_magnitude(_samples([0.2, 0.4]))

    assert median_estimate(samples, 2) == pytest.approx(2e5, rel=1e-6)


def test_median_estimate_none_without_differences():
    assert median_estimate(_samples([0.0, 0.0]), 0) is None


def test_top_n_clamps_to_pixel_count():
    samples = sort_by_magnitude(_samples([0.1, 0.3, 0.2]))

    top = top_n(samples, 10)

    assert len(top) == 3
    assert [t.rel_diff for t in top] == pytest.approx([0.3, 0.2, 0.1])


def test_top_n_keeps_trailing_zero_pixels():
    samples = sort_by_magnitude(_samples([0.0, 0.1, 0.0, -0.3, 0.0]))

    top = top_n(samples, 5)

    assert len(top) == 5
    assert [t.magnitude for t in top[:2]] == pytest.approx([0.3, 0.1])
    assert all(t.rel_diff == 0 for t in top[2:])


def test_scenario_c_no_differences():
    result = compute_differences([0.0, 0.0, 0.0], [0.0, 0.0, 0.0], width=3)
    samples = sort_by_magnitude(result.samples)

    stats = aggregate(samples, result.bad_pixel_count)

    assert stats.bad_pixel_count == 0
    assert stats.count_nonzero == 0
    assert not stats.has_differences
    assert stats.average is None
    assert stats.avg_ppm is None
    assert median_estimate(samples, stats.count_nonzero) is None


def test_run_stats_conversions():
    stats = RunStats(bad_pixel_count=1, total_pixels=4, sum_abs_rel_diff_nonzero=0.003, count_nonzero=2)

    assert stats.bad_pct == pytest.approx(25.0)
    assert stats.bad_ppm == pytest.approx(250000.0)
    assert stats.nonzero_pct == pytest.approx(50.0)
    assert stats.average == pytest.approx(0.0015)
    assert stats.avg_pct == pytest.approx(0.15)
    assert stats.avg_ppm == pytest.approx(1500.0)


def test_run_stats_empty_raster():
    stats = RunStats(bad_pixel_count=0, total_pixels=0)

    assert stats.bad_pct == 0.0
    assert stats.nonzero_pct == 0.0
    assert stats.average is None


def test_run_stats_to_dict():
    d = RunStats(1, 2, 0.5, 1).to_dict()

    assert d["bad_pixel_count"] == 1
    assert d["bad_pct"] == pytest.approx(50.0)
    assert d["avg_ppm"] == pytest.approx(5e5)
