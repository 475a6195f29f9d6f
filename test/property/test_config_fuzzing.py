"""
Property-based configuration fuzzing tests.

These tests use Hypothesis to generate random, potentially invalid
configuration values and verify the system handles them gracefully:
1. Invalid values are rejected with ValueError (not crashes)
2. Valid edge-case values work correctly
3. No silent acceptance of clearly wrong values

High-ROI fuzzing targets:
- Sample rate (zero, negative, NaN, infinite)
- Filter cutoffs (above Nyquist, negative, inverted band)
- Threshold profiles (misordered or non-finite boundaries)
- Settings documents (unknown keys, mistyped values)
"""
from __future__ import annotations

import math

import pytest
from hypothesis import assume, given, settings, strategies as st

from core.conditioning import FilterChain
from shared.settings import (
    EstimatorSettings,
    FilterSettings,
    MonitorSettings,
    ThresholdProfile,
)

weird_floats = st.sampled_from([0.0, -0.0, float("nan"), float("inf"), float("-inf"), -1.0])
bound_floats = st.floats(min_value=-50.0, max_value=300.0, allow_nan=False)


class TestSampleRateValidation:
    @given(sample_rate=weird_floats)
    @settings(max_examples=20, deadline=None)
    def test_invalid_sample_rate_rejected(self, sample_rate):
        with pytest.raises(ValueError):
            FilterChain(sample_rate)

    @given(sample_rate=st.floats(min_value=250.0, max_value=10_000.0))
    @settings(max_examples=30, deadline=None)
    def test_default_filters_accept_common_rates(self, sample_rate):
        chain = FilterChain(sample_rate)
        assert chain.sample_rate == sample_rate


class TestFilterCutoffValidation:
    @given(cutoff=st.one_of(weird_floats, st.floats(min_value=125.0, max_value=1e6)))
    @settings(max_examples=40, deadline=None)
    def test_lowpass_outside_band_rejected(self, cutoff):
        with pytest.raises(ValueError):
            FilterSettings(lowpass_hz=cutoff).validate(250.0)

    @given(
        highpass=st.floats(min_value=0.01, max_value=120.0),
        lowpass=st.floats(min_value=0.01, max_value=120.0),
    )
    @settings(max_examples=60, deadline=None)
    def test_band_must_not_be_inverted(self, highpass, lowpass):
        settings_ = FilterSettings(highpass_hz=highpass, lowpass_hz=lowpass)
        if highpass >= lowpass:
            with pytest.raises(ValueError):
                settings_.validate(250.0)
        else:
            settings_.validate(250.0)

    @given(length=st.integers(min_value=-10, max_value=50))
    @settings(max_examples=40, deadline=None)
    def test_median_length_must_be_positive_odd(self, length):
        settings_ = FilterSettings(median_length=length)
        if length > 0 and length % 2 == 1:
            settings_.validate(250.0)
        else:
            with pytest.raises(ValueError):
                settings_.validate(250.0)


class TestThresholdProfileValidation:
    @given(values=st.lists(bound_floats, min_size=6, max_size=6))
    @settings(max_examples=200, deadline=None)
    def test_construction_succeeds_only_when_ordered(self, values):
        ordered = (
            values[0] < values[1] < values[2]
            and values[2] <= values[3]
            and values[3] < values[4] < values[5]
        )
        if ordered:
            ThresholdProfile("fuzz", *values)
        else:
            with pytest.raises(ValueError):
                ThresholdProfile("fuzz", *values)

    @given(position=st.integers(min_value=0, max_value=5), bad=st.sampled_from([math.nan, math.inf, -math.inf]))
    @settings(max_examples=30, deadline=None)
    def test_non_finite_bound_rejected(self, position, bad):
        values = [100.0, 110.0, 120.0, 160.0, 170.0, 180.0]
        values[position] = bad
        with pytest.raises(ValueError):
            ThresholdProfile("fuzz", *values)


class TestEstimatorValidation:
    @given(fraction=st.floats(allow_nan=False))
    @settings(max_examples=60, deadline=None)
    def test_threshold_fraction_range(self, fraction):
        settings_ = EstimatorSettings(threshold_fraction=fraction)
        if 0 < fraction < 1:
            settings_.validate()
        else:
            with pytest.raises(ValueError):
                settings_.validate()

    @given(
        low=st.floats(min_value=-1.0, max_value=3.0),
        high=st.floats(min_value=-1.0, max_value=3.0),
    )
    @settings(max_examples=60, deadline=None)
    def test_interval_bounds(self, low, high):
        assume(not (0 < low < high))
        with pytest.raises(ValueError):
            EstimatorSettings(min_interval_sec=low, max_interval_sec=high).validate()


class TestSettingsDocuments:
    @given(key=st.text(min_size=1, max_size=20))
    @settings(max_examples=50, deadline=None)
    def test_unknown_top_level_keys_rejected(self, key):
        assume(key not in {"sample_rate", "filters", "estimator", "debounce", "maternal", "fetal"})
        with pytest.raises(ValueError):
            MonitorSettings.from_dict({key: 1})

    @given(
        section=st.sampled_from(["filters", "estimator", "debounce", "fetal"]),
        value=st.one_of(st.text(max_size=5), st.booleans(), st.lists(st.integers(), max_size=2)),
    )
    @settings(max_examples=60, deadline=None)
    def test_non_numeric_values_rejected(self, section, value):
        key = {"filters": "lowpass_hz", "estimator": "neighborhood", "debounce": "retention_ms", "fetal": "normal_high"}[section]
        with pytest.raises(ValueError, match=key):
            MonitorSettings.from_dict({section: {key: value}})
