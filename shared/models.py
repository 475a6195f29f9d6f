from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

import numpy as np


def _freeze_array(array: np.ndarray, *, dtype=None, ndim: int | None = None) -> np.ndarray:
    """Return a read-only, C-contiguous copy of `array`, validating dimensions."""
    arr = np.array(array, dtype=dtype, copy=True, order="C")
    if ndim is not None and arr.ndim != ndim:
        raise ValueError(f"array must be {ndim}D, got {arr.ndim}D")
    arr.setflags(write=False)
    return arr


class Status(str, Enum):
    """Clinical status reported for one signal. Ordered by severity."""

    NORMAL = "normal"
    WARNING = "warning"
    CRITICAL = "critical"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]


_SEVERITY = {Status.NORMAL: 0, Status.WARNING: 1, Status.CRITICAL: 2}


# ----------------------------
# Rate estimation
# ----------------------------

@dataclass(frozen=True)
class RateEstimate:
    """Result of one rate estimation pass over a sample window.

    ``bpm`` is ``None`` when no estimate could be made; callers must treat
    that as "cannot determine", which is distinct from a very low rate.
    """

    bpm: Optional[float]
    peaks: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.intp), repr=False)
    intervals_sec: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.float64), repr=False)
    reason: Optional[str] = None

    def __post_init__(self) -> None:
        if self.bpm is not None:
            if not np.isfinite(self.bpm) or self.bpm <= 0:
                raise ValueError("bpm must be a positive finite value or None")
            object.__setattr__(self, "bpm", float(self.bpm))
        object.__setattr__(self, "peaks", _freeze_array(self.peaks, dtype=np.intp, ndim=1))
        object.__setattr__(self, "intervals_sec", _freeze_array(self.intervals_sec, dtype=np.float64, ndim=1))

    @classmethod
    def none(cls, reason: str, *, peaks: Optional[np.ndarray] = None) -> "RateEstimate":
        if peaks is None:
            return cls(bpm=None, reason=reason)
        return cls(bpm=None, peaks=peaks, reason=reason)

    @property
    def valid(self) -> bool:
        return self.bpm is not None

    @property
    def rounded_bpm(self) -> Optional[int]:
        if self.bpm is None:
            return None
        return int(round(self.bpm))


# ----------------------------
# Classification
# ----------------------------

@dataclass(frozen=True)
class HistoryEntry:
    """One instantaneous classification kept in the rolling history."""

    status: Status
    timestamp_ms: float


@dataclass(frozen=True)
class AlarmDecision:
    """Outcome of one classifier update.

    Attributes:
        rate_bpm: Rate that was classified.
        timestamp_ms: Time of the update.
        instantaneous: Status from the thresholds alone.
        status: Debounced status reported to collaborators.
        deviation: "low" or "high" when the rate is outside the normal band.
    """

    rate_bpm: float
    timestamp_ms: float
    instantaneous: Status
    status: Status
    deviation: Optional[str] = None


# ----------------------------
# Monitor output
# ----------------------------

@dataclass(frozen=True)
class MonitorUpdate:
    """What a signal monitor hands to presentation/alerting code."""

    signal: str
    rate_bpm: Optional[float]
    status: Optional[Status]
    timestamp_ms: float
    estimate: RateEstimate = field(repr=False, default_factory=lambda: RateEstimate.none("not evaluated"))
    decision: Optional[AlarmDecision] = field(default=None, repr=False)

    @property
    def rounded_bpm(self) -> Optional[int]:
        return self.estimate.rounded_bpm

    def as_tuple(self) -> Tuple[Optional[float], Optional[Status]]:
        return self.rate_bpm, self.status


__all__ = [
    "Status",
    "RateEstimate",
    "HistoryEntry",
    "AlarmDecision",
    "MonitorUpdate",
]
