"""
Unit tests for threshold classification and alarm debouncing.

Timelines are driven explicitly with millisecond timestamps so the sustain
durations can be checked to the exact update that crosses them.
"""
from __future__ import annotations

import math

import pytest

from core.alarms import AlarmClassifier, classify_rate, rate_deviation
from shared.models import Status
from shared.settings import FETAL_PROFILE, MATERNAL_PROFILE, DebounceSettings, ThresholdProfile


def drive(classifier: AlarmClassifier, rate: float, start_ms: int, stop_ms: int, step_ms: int = 100):
    """Feed a constant rate over [start_ms, stop_ms) and return (t, status) pairs."""
    return [(t, classifier.update(rate, t)) for t in range(start_ms, stop_ms, step_ms)]


class TestClassifyRate:
    @pytest.mark.parametrize(
        "rate, expected",
        [
            (99.0, Status.CRITICAL),
            (100.0, Status.WARNING),
            (109.9, Status.WARNING),
            (110.0, Status.NORMAL),
            (120.0, Status.NORMAL),
            (140.0, Status.NORMAL),
            (170.0, Status.NORMAL),
            (170.1, Status.WARNING),
            (180.0, Status.WARNING),
            (180.5, Status.CRITICAL),
        ],
    )
    def test_fetal_bands(self, rate, expected):
        assert classify_rate(rate, FETAL_PROFILE) is expected

    @pytest.mark.parametrize(
        "rate, expected",
        [
            (39.0, Status.CRITICAL),
            (40.0, Status.WARNING),
            (50.0, Status.NORMAL),
            (75.0, Status.NORMAL),
            (120.0, Status.NORMAL),
            (140.0, Status.WARNING),
            (141.0, Status.CRITICAL),
        ],
    )
    def test_maternal_bands(self, rate, expected):
        assert classify_rate(rate, MATERNAL_PROFILE) is expected

    def test_deviation(self):
        assert rate_deviation(115.0, FETAL_PROFILE) == "low"
        assert rate_deviation(165.0, FETAL_PROFILE) == "high"
        assert rate_deviation(140.0, FETAL_PROFILE) is None


class TestThresholdProfile:
    def test_misordered_bounds_rejected(self):
        with pytest.raises(ValueError):
            ThresholdProfile("bad", 100, 90, 120, 160, 170, 180)

    def test_equal_strict_bounds_rejected(self):
        with pytest.raises(ValueError):
            ThresholdProfile("bad", 100, 110, 120, 160, 180, 180)

    def test_collapsed_normal_band_allowed(self):
        profile = ThresholdProfile("narrow", 100, 110, 140, 140, 170, 180)
        assert classify_rate(140, profile) is Status.NORMAL

    def test_classifier_requires_profile(self):
        with pytest.raises(TypeError):
            AlarmClassifier((100, 110, 120, 160, 170, 180))


class TestCriticalDebounce:
    def test_critical_after_five_seconds_from_fresh_start(self):
        classifier = AlarmClassifier(FETAL_PROFILE)
        timeline = drive(classifier, 190.0, 0, 6000)

        assert all(s is Status.WARNING for t, s in timeline if t < 5000)
        assert all(s is Status.CRITICAL for t, s in timeline if t >= 5000)

    def test_critical_measured_from_last_non_critical_reading(self):
        classifier = AlarmClassifier(FETAL_PROFILE)
        drive(classifier, 140.0, 0, 2100)
        timeline = drive(classifier, 190.0, 2100, 8000)

        assert all(s is Status.WARNING for t, s in timeline if t < 7000)
        assert all(s is Status.CRITICAL for t, s in timeline if t >= 7000)

    def test_two_second_burst_never_escalates(self):
        classifier = AlarmClassifier(FETAL_PROFILE)
        drive(classifier, 140.0, 0, 1000)
        burst = drive(classifier, 190.0, 1000, 3000)
        after = drive(classifier, 140.0, 3000, 5000)

        assert all(s is Status.WARNING for _, s in burst)
        assert all(s is Status.NORMAL for _, s in after)

    def test_critical_persists_past_retention(self):
        classifier = AlarmClassifier(FETAL_PROFILE)
        timeline = drive(classifier, 190.0, 0, 30000)
        assert all(s is Status.CRITICAL for t, s in timeline if t >= 5000)

    def test_oscillation_never_reaches_critical(self):
        classifier = AlarmClassifier(FETAL_PROFILE)
        pattern = [135.0, 135.0, 185.0, 185.0]
        for second in range(20):
            rate = pattern[second % 4]
            status = classifier.update(rate, second * 1000)
            assert status is not Status.CRITICAL
            # 185 readings report WARNING: the critical run never reaches 5 s
            if rate == 135.0:
                assert status is Status.NORMAL

    def test_no_jump_from_normal_to_critical_on_sparse_updates(self):
        classifier = AlarmClassifier(FETAL_PROFILE)
        assert classifier.update(140.0, 0) is Status.NORMAL
        assert classifier.update(190.0, 6000) is Status.WARNING
        assert classifier.update(190.0, 7000) is Status.CRITICAL


class TestWarningDebounce:
    def test_warning_after_three_seconds_from_fresh_start(self):
        classifier = AlarmClassifier(FETAL_PROFILE)
        timeline = drive(classifier, 175.0, 0, 4000)

        assert all(s is Status.NORMAL for t, s in timeline if t < 3000)
        assert all(s is Status.WARNING for t, s in timeline if t >= 3000)

    def test_warning_measured_from_last_normal_reading(self):
        classifier = AlarmClassifier(MATERNAL_PROFILE)
        drive(classifier, 80.0, 0, 1000)
        timeline = drive(classifier, 130.0, 1000, 5000)

        assert all(s is Status.NORMAL for t, s in timeline if t < 3900)
        assert all(s is Status.WARNING for t, s in timeline if t >= 3900)

    def test_oscillating_warning_stays_normal(self):
        classifier = AlarmClassifier(FETAL_PROFILE)
        pattern = [135.0, 135.0, 175.0, 175.0]
        statuses = [classifier.update(pattern[s % 4], s * 1000) for s in range(20)]
        assert all(s is Status.NORMAL for s in statuses)

    def test_critical_readings_hold_off_warning_timer_reset(self):
        classifier = AlarmClassifier(FETAL_PROFILE)
        drive(classifier, 190.0, 0, 6000)
        # Critical readings are not NORMAL, so a warning reading stays WARNING
        assert classifier.update(175.0, 6000) is Status.WARNING


class TestClassifierState:
    def test_status_before_first_update(self):
        classifier = AlarmClassifier(FETAL_PROFILE)
        assert classifier.status is Status.NORMAL
        assert classifier.last_decision is None

    def test_last_decision(self):
        classifier = AlarmClassifier(FETAL_PROFILE)
        classifier.update(115.0, 250)
        decision = classifier.last_decision

        assert decision.rate_bpm == 115.0
        assert decision.timestamp_ms == 250
        assert decision.instantaneous is Status.NORMAL
        assert decision.status is Status.NORMAL
        assert decision.deviation == "low"

    def test_history_bounded_by_retention(self):
        classifier = AlarmClassifier(FETAL_PROFILE)
        drive(classifier, 140.0, 0, 60000)
        history = classifier.history()

        assert len(history) <= 101
        assert history[-1].timestamp_ms - history[0].timestamp_ms <= 10000

    def test_reset_forgets_history(self):
        classifier = AlarmClassifier(FETAL_PROFILE)
        drive(classifier, 190.0, 0, 6000)
        assert classifier.status is Status.CRITICAL

        classifier.reset()

        assert classifier.history() == []
        assert classifier.update(190.0, 6000) is Status.WARNING

    def test_out_of_order_timestamp_rejected(self):
        classifier = AlarmClassifier(FETAL_PROFILE)
        classifier.update(140.0, 1000)
        with pytest.raises(ValueError):
            classifier.update(140.0, 999)

    @pytest.mark.parametrize("rate", [math.nan, math.inf])
    def test_non_finite_rate_rejected(self, rate):
        with pytest.raises(ValueError):
            AlarmClassifier(FETAL_PROFILE).update(rate, 0)

    def test_custom_debounce(self):
        classifier = AlarmClassifier(FETAL_PROFILE, DebounceSettings(critical_sustain_ms=1000, warning_sustain_ms=500))
        timeline = drive(classifier, 190.0, 0, 1500)
        assert all(s is Status.CRITICAL for t, s in timeline if t >= 1000)

    def test_invalid_debounce(self):
        with pytest.raises(ValueError):
            AlarmClassifier(FETAL_PROFILE, DebounceSettings(critical_sustain_ms=20000))
