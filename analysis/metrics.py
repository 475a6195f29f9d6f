"""Interval and rate kernels shared by the rate estimator and diagnostics.

- beat_intervals: spacing between consecutive beat markers, in seconds
- plausible_intervals: drop intervals outside a physiological range
- mean_interval_bpm: convert a set of intervals to beats per minute
- interval_jitter: coefficient of variation of the intervals
"""
from typing import Optional

import numpy as np


def beat_intervals(peaks: np.ndarray, sample_rate: float) -> np.ndarray:
    if sample_rate <= 0:
        raise ValueError("sample_rate must be positive")
    idx = np.asarray(peaks, dtype=np.float64)
    if idx.size < 2:
        return np.zeros(0, dtype=np.float64)
    return np.diff(idx) / float(sample_rate)


def plausible_intervals(intervals: np.ndarray, min_sec: float = 0.2, max_sec: float = 2.0) -> np.ndarray:
    arr = np.asarray(intervals, dtype=np.float64)
    return arr[(arr >= min_sec) & (arr <= max_sec)]


def mean_interval_bpm(intervals: np.ndarray) -> Optional[float]:
    arr = np.asarray(intervals, dtype=np.float64)
    if arr.size == 0:
        return None
    mean_sec = float(np.mean(arr))
    if mean_sec <= 0:
        return None
    return 60.0 / mean_sec


def interval_jitter(intervals: np.ndarray) -> float:
    # std/mean; 0 for a perfectly regular rhythm
    arr = np.asarray(intervals, dtype=np.float64)
    if arr.size < 2:
        return 0.0
    mean = float(np.mean(arr))
    if mean <= 0:
        return 0.0
    return float(np.std(arr) / mean)
