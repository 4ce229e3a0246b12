import pytest

from unified_report.stats import ResponseStats, calculate_statistics, percentile, round_half_up


def test_empty_input_gives_zero_stats():
    assert calculate_statistics([]) == ResponseStats(0, 0, 0, 0, 0, 0)


def test_single_value():
    stats = calculate_statistics([500])
    assert stats.to_dict() == {"min": 500, "max": 500, "avg": 500, "p90": 500, "p95": 500, "p99": 500}


def test_nearest_rank_percentiles():
    stats = calculate_statistics(list(range(10, 0, -1)))
    assert stats.min == 1
    assert stats.max == 10
    assert stats.p90 == 9
    assert stats.p95 == 10
    assert stats.p99 == 10
    # 5.5 rounds half up
    assert stats.avg == 6


def test_values_are_native_python_numbers():
    stats = calculate_statistics([3, 1, 2])
    for value in stats.to_dict().values():
        assert type(value) is int


def test_percentile_index_is_clamped():
    assert percentile([7, 8, 9], 0) == 7
    assert percentile([], 90) == 0


@pytest.mark.parametrize(("value", "expected"), [(2.5, 3), (2.49, 2), (0.5, 1), (3.0, 3)])
def test_round_half_up(value, expected):
    assert round_half_up(value) == expected


@pytest.mark.parametrize(
    "values",
    [
        [100],
        [1, 1000],
        [250, 260, 270, 5000, 12, 13, 14, 900],
        list(range(1, 201)),
    ],
)
def test_ordering_invariants(values):
    s = calculate_statistics(values)
    assert s.min <= s.avg <= s.max
    assert s.p90 <= s.p95 <= s.p99 <= s.max
