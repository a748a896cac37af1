import math

from practice_api import metrics


def test_accuracy_zero_attempts_is_zero():
    assert metrics.accuracy_percentage(0, 0) == 0
    assert metrics.accuracy_percentage(5, 0) == 0


def test_accuracy_percentage():
    assert metrics.accuracy_percentage(3, 4) == 75
    assert metrics.accuracy_percentage(1, 3) == 1 / 3 * 100
    for correct in range(0, 11):
        value = metrics.accuracy_percentage(correct, 10)
        assert 0 <= value <= 100


def test_completion_percentage():
    assert metrics.completion_percentage(0, 0) == 0
    assert metrics.completion_percentage(2, 8) == 25
    assert metrics.completion_percentage(8, 8) == 100


def test_estimated_time_remaining_rounds_up():
    assert metrics.estimated_time_remaining(100, 40, 20) == 3
    assert metrics.estimated_time_remaining(100, 41, 20) == 3
    assert metrics.estimated_time_remaining(100, 39, 20) == 4


def test_estimated_time_remaining_without_speed():
    assert metrics.estimated_time_remaining(100, 40, None) == 0
    assert metrics.estimated_time_remaining(100, 40, 0) == 0
    assert metrics.estimated_time_remaining(0, 0, 120) == 0


def test_learning_rate_is_a_ratio():
    assert metrics.learning_rate(5, 10) == 0.5
    assert metrics.learning_rate(0, 0) == 0
    assert metrics.learning_rate(0, 4) == 0


def test_reading_speed():
    assert metrics.reading_speed_wpm(40, 120) == 20
    assert metrics.reading_speed_wpm(100, 45) == 133.33
    assert metrics.reading_speed_wpm(0, 60) is None
    assert metrics.reading_speed_wpm(50, 0) is None


def test_average():
    assert metrics.average([]) is None
    assert metrics.average([10, 20]) == 15
    assert metrics.average(x for x in (1.5, 2.5)) == 2


def test_no_nan_or_infinity():
    values = [
        metrics.accuracy_percentage(0, 0),
        metrics.completion_percentage(3, 0),
        metrics.learning_rate(2, 0),
        metrics.estimated_time_remaining(10, 0, 0),
    ]
    assert all(math.isfinite(v) for v in values)
