"""Scaling helpers for callers converting acquisition units before filtering."""
from __future__ import annotations

import numpy as np

DEFAULT_ADC_MAX = 1023
DEFAULT_REF_VOLTAGE = 5.0


def normalize_adc(value: float, adc_max: int = DEFAULT_ADC_MAX) -> float:
    """Clamp a raw ADC count to ``[0, adc_max]`` and scale it to ``[0, 1]``."""
    if adc_max <= 0:
        raise ValueError("adc_max must be positive")
    clamped = min(max(float(value), 0.0), float(adc_max))
    return clamped / adc_max


def adc_to_voltage(value: float, adc_max: int = DEFAULT_ADC_MAX, ref_voltage: float = DEFAULT_REF_VOLTAGE) -> float:
    if ref_voltage <= 0:
        raise ValueError("ref_voltage must be positive")
    return normalize_adc(value, adc_max) * ref_voltage


def normalize_signal_array(samples: np.ndarray, headroom: float = 1.5) -> np.ndarray:
    """Remove the mean and scale so the largest excursion is ``1 / headroom``.

    Relative amplitudes are preserved. A flat signal comes back centred but
    unscaled.
    """
    if headroom <= 0:
        raise ValueError("headroom must be positive")
    arr = np.asarray(samples, dtype=np.float64)
    if arr.size == 0:
        return arr.copy()
    centred = arr - np.mean(arr)
    peak = float(np.max(np.abs(centred)))
    if peak == 0:
        return centred
    return centred / (peak * headroom)


__all__ = ["normalize_adc", "adc_to_voltage", "normalize_signal_array"]
