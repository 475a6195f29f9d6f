from __future__ import annotations

import logging
import math
from typing import Dict, List, Optional, Sequence

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view
from scipy import signal

from shared.settings import DEFAULT_SAMPLE_RATE, FilterSettings

logger = logging.getLogger(__name__)


class _BaseFilter:
    """Interface for stateful single-signal filter stages."""

    def apply(self, samples: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    def reset(self) -> None:
        raise NotImplementedError


class _BiquadFilter(_BaseFilter):
    """Two-pole/two-zero recursive stage carrying its delay line between calls."""

    def __init__(self, b: Sequence[float], a: Sequence[float]) -> None:
        b = np.asarray(b, dtype=np.float64)
        a = np.asarray(a, dtype=np.float64)
        if b.shape != (3,) or a.shape != (3,):
            raise ValueError("biquad coefficients must have exactly three taps")
        if a[0] == 0:
            raise ValueError("a[0] must be non-zero")
        self._b = b / a[0]
        self._a = a / a[0]
        self._zi = np.zeros(2, dtype=np.float64)

    @property
    def coefficients(self) -> tuple[np.ndarray, np.ndarray]:
        return self._b.copy(), self._a.copy()

    def apply(self, samples: np.ndarray) -> np.ndarray:
        filtered, zf = signal.lfilter(self._b, self._a, samples, zi=self._zi)
        self._zi = zf
        return filtered

    def reset(self) -> None:
        self._zi = np.zeros(2, dtype=np.float64)


class _NotchFilter(_BiquadFilter):
    """Zeros on the unit circle at `freq_hz`, poles at radius `radius`.

    The numerator is scaled for unity gain at DC.
    """

    def __init__(self, sample_rate: float, freq_hz: float, radius: float) -> None:
        w0 = 2.0 * math.pi * freq_hz / sample_rate
        cos_w0 = math.cos(w0)
        b = np.array([1.0, -2.0 * cos_w0, 1.0])
        a = np.array([1.0, -2.0 * radius * cos_w0, radius * radius])
        b *= a.sum() / b.sum()
        super().__init__(b, a)


class _ButterworthFilter(_BiquadFilter):
    def __init__(self, sample_rate: float, cutoff_hz: float, *, btype: str) -> None:
        b, a = signal.butter(2, cutoff_hz, btype=btype, fs=sample_rate)
        super().__init__(b, a)


class _MedianFilter(_BaseFilter):
    """Running median over the last `length` inputs.

    Until `length` samples have been seen, inputs pass through unchanged.
    """

    def __init__(self, length: int) -> None:
        if length <= 0 or length % 2 == 0:
            raise ValueError("length must be a positive odd integer")
        self._length = int(length)
        self._history = np.zeros(0, dtype=np.float64)

    def apply(self, samples: np.ndarray) -> np.ndarray:
        out = np.array(samples, dtype=np.float64, copy=True)
        if self._length == 1 or out.size == 0:
            return out

        n_hist = self._history.size
        buf = np.concatenate((self._history, out))
        if buf.size >= self._length:
            medians = np.median(sliding_window_view(buf, self._length), axis=1)
            first = max(self._length - 1, n_hist)
            out[first - n_hist:] = medians[first - self._length + 1:]
        self._history = buf[-(self._length - 1):].copy()
        return out

    def reset(self) -> None:
        self._history = np.zeros(0, dtype=np.float64)


class FilterChain:
    """
    Notch, low-pass, high-pass and median stages applied in that order to one
    signal, with state carried across calls.

    Each logical signal owns its own chain. Non-finite input, or input beyond
    ``settings.max_abs_input``, never reaches the delay lines: the previous
    valid output is returned in its place and the rejection is counted.
    """

    def __init__(
        self,
        sample_rate: float = DEFAULT_SAMPLE_RATE,
        settings: Optional[FilterSettings] = None,
    ) -> None:
        self._settings = settings or FilterSettings()
        self._settings.validate(sample_rate)
        self._sample_rate = float(sample_rate)
        self._notch = _NotchFilter(sample_rate, self._settings.notch_freq_hz, self._settings.notch_radius)
        self._lowpass = _ButterworthFilter(sample_rate, self._settings.lowpass_hz, btype="lowpass")
        self._highpass = _ButterworthFilter(sample_rate, self._settings.highpass_hz, btype="highpass")
        self._median = _MedianFilter(self._settings.median_length)
        self._stages: List[_BaseFilter] = [self._notch, self._lowpass, self._highpass, self._median]
        self._last_output = 0.0
        self._rejected_samples = 0
        self._last_sample_rejected = False

    @property
    def settings(self) -> FilterSettings:
        return self._settings

    @property
    def sample_rate(self) -> float:
        return self._sample_rate

    @property
    def rejected_samples(self) -> int:
        """Count of samples substituted since construction or the last reset."""
        return self._rejected_samples

    @property
    def last_sample_rejected(self) -> bool:
        return self._last_sample_rejected

    def describe(self) -> Dict[str, object]:
        info: Dict[str, object] = dict(self._settings.to_dict())
        info["sample_rate"] = self._sample_rate
        return info

    def linear_response(self, freqs_hz: Sequence[float]) -> np.ndarray:
        """Complex response of the three recursive stages at `freqs_hz`."""
        freqs = np.asarray(freqs_hz, dtype=np.float64)
        response = np.ones(freqs.shape, dtype=np.complex128)
        for stage in (self._notch, self._lowpass, self._highpass):
            b, a = stage.coefficients
            _, h = signal.freqz(b, a, worN=freqs, fs=self._sample_rate)
            response *= h
        return response

    def _accepts(self, values: np.ndarray) -> np.ndarray:
        ok = np.isfinite(values)
        limit = self._settings.max_abs_input
        if limit is not None:
            ok &= np.abs(np.where(ok, values, 0.0)) <= limit
        return ok

    def _run(self, samples: np.ndarray) -> np.ndarray:
        out = samples
        for stage in self._stages:
            out = stage.apply(out)
        self._last_output = float(out[-1])
        return out

    def _reject(self, count: int, value: float) -> None:
        if not self._last_sample_rejected:
            logger.warning("Rejected invalid sample %r; holding last output %.6g", value, self._last_output)
        self._rejected_samples += count
        self._last_sample_rejected = True

    def process_sample(self, x: float) -> float:
        """Filter one sample and return the filtered value."""
        value = float(x)
        if not self._accepts(np.array([value]))[0]:
            self._reject(1, value)
            return self._last_output
        self._last_sample_rejected = False
        return float(self._run(np.array([value], dtype=np.float64))[0])

    def process(self, samples: np.ndarray) -> np.ndarray:
        """Filter a block of consecutive samples.

        Equivalent to calling `process_sample` on each element in order.
        """
        arr = np.asarray(samples, dtype=np.float64)
        if arr.ndim != 1:
            raise ValueError(f"samples must be 1D, got {arr.ndim}D")
        if arr.size == 0:
            return np.zeros(0, dtype=np.float64)

        ok = self._accepts(arr)
        if ok.all():
            self._last_sample_rejected = False
            return self._run(arr)

        out = np.empty_like(arr)
        bounds = np.concatenate(([0], np.flatnonzero(np.diff(ok.astype(np.int8))) + 1, [arr.size]))
        for start, end in zip(bounds[:-1], bounds[1:]):
            if ok[start]:
                self._last_sample_rejected = False
                out[start:end] = self._run(arr[start:end])
            else:
                self._reject(int(end - start), float(arr[start]))
                out[start:end] = self._last_output
        return out

    def reset(self) -> None:
        """Zero all retained history. Call at the start of a session."""
        for stage in self._stages:
            stage.reset()
        self._last_output = 0.0
        self._rejected_samples = 0
        self._last_sample_rejected = False


__all__ = ["FilterChain"]
