import logging
from typing import Optional

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from analysis.metrics import beat_intervals, mean_interval_bpm, plausible_intervals
from shared.models import RateEstimate
from shared.settings import EstimatorSettings
from .base import register_estimator

logger = logging.getLogger(__name__)


@register_estimator
class PeakRateEstimator:
    """Adaptive-threshold peak picker that re-estimates from scratch per call.

    No peak-tracking state is kept between calls; the result depends only on
    the window handed in.
    """

    name = "adaptive_peak"
    display_name = "Adaptive Peak Threshold"

    def __init__(self, settings: Optional[EstimatorSettings] = None):
        self._settings = settings or EstimatorSettings()
        self._settings.validate()

    @property
    def settings(self) -> EstimatorSettings:
        return self._settings

    def find_peaks(self, window: np.ndarray) -> np.ndarray:
        """Indices of beat peaks in `window`.

        A peak exceeds ``threshold_fraction * max(window)`` and is the
        maximum of the symmetric ``±neighborhood`` span around it. A flat top
        (which the median stage produces on sharp beats) is reported once, at
        its first sample. Indices closer than `neighborhood` to either edge
        are never reported.
        """
        data = np.asarray(window, dtype=np.float64)
        if data.ndim != 1:
            raise ValueError(f"window must be 1D, got {data.ndim}D")
        k = self._settings.neighborhood
        if data.size < 2 * k + 1 or not np.all(np.isfinite(data)):
            return np.zeros(0, dtype=np.intp)

        peak_value = float(np.max(data))
        if peak_value <= 0:
            return np.zeros(0, dtype=np.intp)
        threshold = peak_value * self._settings.threshold_fraction

        # spans[m] covers data[m : m + 2k + 1], centred on index m + k
        spans = sliding_window_view(data, 2 * k + 1)
        centre = data[k:-k]
        candidates = (
            (centre > threshold)
            & (centre >= spans.max(axis=1))
            & (centre > data[k - 1:-k - 1])
        )
        # the last centre sits at n-k-1; keep the scan inside [k, n-k)
        return np.flatnonzero(candidates).astype(np.intp) + k

    def estimate(self, window: np.ndarray, sample_rate: float) -> RateEstimate:
        if sample_rate <= 0:
            raise ValueError("sample_rate must be positive")
        data = np.asarray(window, dtype=np.float64)
        if data.size < self._settings.min_samples:
            logger.debug("Window too short for estimation (%d samples)", data.size)
            return RateEstimate.none(f"window has {data.size} samples, need {self._settings.min_samples}")

        peaks = self.find_peaks(data)
        intervals = plausible_intervals(
            beat_intervals(peaks, sample_rate),
            self._settings.min_interval_sec,
            self._settings.max_interval_sec,
        )
        if intervals.size < self._settings.min_intervals:
            logger.debug("Only %d plausible intervals from %d peaks", intervals.size, peaks.size)
            return RateEstimate.none(
                f"{intervals.size} plausible intervals, need {self._settings.min_intervals}",
                peaks=peaks,
            )

        bpm = mean_interval_bpm(intervals)
        return RateEstimate(bpm=bpm, peaks=peaks, intervals_sec=intervals)
