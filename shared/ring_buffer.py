from __future__ import annotations

import numpy as np


class SampleWindow:
    """
    Bounded window of the most recent samples for one signal, backed by a
    preallocated NumPy array.

    Appends overwrite the oldest sample once the window is full. Reads return
    samples oldest-first. Instances are single-writer; hosts that share one
    across threads must serialise access themselves.
    """

    def __init__(self, capacity: int, dtype: np.dtype | str = np.float64) -> None:
        capacity = int(capacity)
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._capacity = capacity
        self._data = np.zeros(capacity, dtype=dtype)
        self._write_pos = 0
        self._size = 0
        self._total_written = 0

    @classmethod
    def for_duration(cls, sample_rate: float, seconds: float, dtype: np.dtype | str = np.float64) -> "SampleWindow":
        if sample_rate <= 0 or seconds <= 0:
            raise ValueError("sample_rate and seconds must be positive")
        return cls(int(round(sample_rate * seconds)), dtype=dtype)

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def dtype(self) -> np.dtype:
        return self._data.dtype

    @property
    def total_written(self) -> int:
        """Number of samples appended since construction or the last clear."""
        return self._total_written

    @property
    def is_full(self) -> bool:
        return self._size == self._capacity

    def __len__(self) -> int:
        return self._size

    def append(self, sample: float) -> None:
        self._data[self._write_pos] = sample
        self._write_pos = (self._write_pos + 1) % self._capacity
        self._size = min(self._size + 1, self._capacity)
        self._total_written += 1

    def extend(self, samples: np.ndarray) -> None:
        """Append a block of samples, handling wrap-around."""
        arr = np.asarray(samples, dtype=self._data.dtype)
        if arr.ndim != 1:
            raise ValueError(f"samples must be 1D, got {arr.ndim}D")
        length = arr.shape[0]
        if length == 0:
            return
        self._total_written += length
        if length >= self._capacity:
            # Only the newest `capacity` samples survive.
            self._data[:] = arr[-self._capacity:]
            self._write_pos = 0
            self._size = self._capacity
            return

        start = self._write_pos
        end = start + length
        if end <= self._capacity:
            self._data[start:end] = arr
        else:
            first = self._capacity - start
            self._data[start:] = arr[:first]
            self._data[: end - self._capacity] = arr[first:]
        self._write_pos = end % self._capacity
        self._size = min(self._size + length, self._capacity)

    def snapshot(self) -> np.ndarray:
        """Return a time-ordered copy of the buffered samples (oldest first)."""
        if self._size < self._capacity:
            return self._data[: self._size].copy()
        if self._write_pos == 0:
            return self._data.copy()
        return np.concatenate((self._data[self._write_pos:], self._data[: self._write_pos]))

    def clear(self) -> None:
        self._data.fill(0)
        self._write_pos = 0
        self._size = 0
        self._total_written = 0


__all__ = ["SampleWindow"]
