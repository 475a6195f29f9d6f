from __future__ import annotations

import json
import logging
import math
import threading
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_RATE = 250.0


@dataclass(frozen=True)
class FilterSettings:
    """Cutoffs and limits for the per-signal filter chain."""

    notch_freq_hz: float = 60.0
    notch_radius: float = 0.99
    lowpass_hz: float = 40.0
    highpass_hz: float = 0.5
    median_length: int = 5
    max_abs_input: Optional[float] = None

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)

    def validate(self, sample_rate: float) -> None:
        if not math.isfinite(sample_rate) or sample_rate <= 0:
            raise ValueError("sample_rate must be positive and finite")
        nyquist = sample_rate / 2.0
        if not (0 < self.notch_freq_hz < nyquist):
            raise ValueError("notch_freq_hz must be between 0 and Nyquist")
        if not (0 < self.notch_radius < 1):
            raise ValueError("notch_radius must be inside the unit circle")
        if not (0 < self.lowpass_hz < nyquist):
            raise ValueError("lowpass_hz must be between 0 and Nyquist")
        if not (0 < self.highpass_hz < nyquist):
            raise ValueError("highpass_hz must be between 0 and Nyquist")
        if self.highpass_hz >= self.lowpass_hz:
            raise ValueError("highpass_hz must be below lowpass_hz")
        if self.median_length <= 0 or self.median_length % 2 == 0:
            raise ValueError("median_length must be a positive odd integer")
        if self.max_abs_input is not None and self.max_abs_input <= 0:
            raise ValueError("max_abs_input must be positive when set")


@dataclass(frozen=True)
class EstimatorSettings:
    """Peak-detection parameters for rate estimation."""

    window_sec: float = 5.0
    min_samples: int = 100
    threshold_fraction: float = 0.5
    neighborhood: int = 10
    min_interval_sec: float = 0.2
    max_interval_sec: float = 2.0
    min_intervals: int = 2

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)

    def window_samples(self, sample_rate: float) -> int:
        return int(round(self.window_sec * sample_rate))

    def validate(self) -> None:
        if self.window_sec <= 0:
            raise ValueError("window_sec must be positive")
        if self.min_samples <= 2 * self.neighborhood:
            raise ValueError("min_samples must exceed twice the neighborhood")
        if not (0 < self.threshold_fraction < 1):
            raise ValueError("threshold_fraction must be between 0 and 1")
        if self.neighborhood <= 0:
            raise ValueError("neighborhood must be positive")
        if not (0 < self.min_interval_sec < self.max_interval_sec):
            raise ValueError("interval bounds must satisfy 0 < min < max")
        if self.min_intervals <= 0:
            raise ValueError("min_intervals must be positive")


@dataclass(frozen=True)
class DebounceSettings:
    """How long an abnormal reading must persist before it is reported."""

    critical_sustain_ms: float = 5000.0
    warning_sustain_ms: float = 3000.0
    retention_ms: float = 10000.0

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)

    def validate(self) -> None:
        if self.critical_sustain_ms <= 0 or self.warning_sustain_ms <= 0:
            raise ValueError("sustain durations must be positive")
        if self.retention_ms <= 0:
            raise ValueError("retention_ms must be positive")
        if max(self.critical_sustain_ms, self.warning_sustain_ms) > self.retention_ms:
            raise ValueError("sustain durations must not exceed retention_ms")


@dataclass(frozen=True)
class ThresholdProfile:
    """Six ordered heart-rate boundaries (BPM) for one signal type.

    Rates equal to a boundary fall on the less alarming side, e.g. a rate of
    exactly ``warning_low`` is not a warning.
    """

    name: str
    critical_low: float
    warning_low: float
    normal_low: float
    normal_high: float
    warning_high: float
    critical_high: float

    def __post_init__(self) -> None:
        bounds = (
            ("critical_low", self.critical_low),
            ("warning_low", self.warning_low),
            ("normal_low", self.normal_low),
            ("normal_high", self.normal_high),
            ("warning_high", self.warning_high),
            ("critical_high", self.critical_high),
        )
        for bound_name, value in bounds:
            if not math.isfinite(value):
                raise ValueError(f"{self.name}: {bound_name} must be finite")
        for (lo_name, lo), (hi_name, hi) in zip(bounds, bounds[1:]):
            if lo_name == "normal_low":
                if lo > hi:
                    raise ValueError(f"{self.name}: {lo_name} ({lo}) must not exceed {hi_name} ({hi})")
            elif lo >= hi:
                raise ValueError(f"{self.name}: {lo_name} ({lo}) must be below {hi_name} ({hi})")

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)


MATERNAL_PROFILE = ThresholdProfile(
    name="maternal",
    critical_low=40,
    warning_low=50,
    normal_low=60,
    normal_high=100,
    warning_high=120,
    critical_high=140,
)

FETAL_PROFILE = ThresholdProfile(
    name="fetal",
    critical_low=100,
    warning_low=110,
    normal_low=120,
    normal_high=160,
    warning_high=170,
    critical_high=180,
)


@dataclass(frozen=True)
class MonitorSettings:
    """Everything a monitoring session needs, grouped per concern."""

    sample_rate: float = DEFAULT_SAMPLE_RATE
    filters: FilterSettings = field(default_factory=FilterSettings)
    estimator: EstimatorSettings = field(default_factory=EstimatorSettings)
    debounce: DebounceSettings = field(default_factory=DebounceSettings)
    maternal: ThresholdProfile = MATERNAL_PROFILE
    fetal: ThresholdProfile = FETAL_PROFILE

    def validate(self) -> None:
        self.filters.validate(self.sample_rate)
        self.estimator.validate()
        self.debounce.validate()
        if self.estimator.window_samples(self.sample_rate) < self.estimator.min_samples:
            raise ValueError("estimator window is shorter than min_samples")

    def as_dict(self) -> Dict[str, object]:
        return {
            "sample_rate": self.sample_rate,
            "filters": self.filters.to_dict(),
            "estimator": self.estimator.to_dict(),
            "debounce": self.debounce.to_dict(),
            "maternal": self.maternal.to_dict(),
            "fetal": self.fetal.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MonitorSettings":
        unknown = set(data) - {f.name for f in fields(cls)}
        if unknown:
            raise ValueError(f"unknown settings keys: {sorted(unknown)}")
        defaults = cls()
        return cls(
            sample_rate=_coerce(cls.__name__, "sample_rate", "float", data.get("sample_rate", defaults.sample_rate)),
            filters=_section(FilterSettings, data.get("filters"), defaults.filters),
            estimator=_section(EstimatorSettings, data.get("estimator"), defaults.estimator),
            debounce=_section(DebounceSettings, data.get("debounce"), defaults.debounce),
            maternal=_section(ThresholdProfile, data.get("maternal"), defaults.maternal),
            fetal=_section(ThresholdProfile, data.get("fetal"), defaults.fetal),
        )


def _section(cls, payload: Optional[Mapping[str, Any]], default):
    if payload is None:
        return default
    if not isinstance(payload, Mapping):
        raise ValueError(f"{cls.__name__} section must be a mapping")
    known = {f.name for f in fields(cls)}
    unknown = set(payload) - known
    if unknown:
        raise ValueError(f"unknown {cls.__name__} keys: {sorted(unknown)}")
    kinds = {f.name: f.type for f in fields(cls)}
    values = {name: _coerce(cls.__name__, name, kinds[name], value) for name, value in payload.items()}
    return replace(default, **values)


def _coerce(owner: str, name: str, kind: str, value: Any) -> Any:
    """Check one decoded JSON value against the annotated field type."""
    if kind == "str":
        if not isinstance(value, str):
            raise ValueError(f"{owner}.{name} must be a string, got {value!r}")
        return value
    if value is None and kind.startswith("Optional"):
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{owner}.{name} must be a number, got {value!r}")
    if kind == "int":
        if isinstance(value, float) and not value.is_integer():
            raise ValueError(f"{owner}.{name} must be an integer, got {value!r}")
        return int(value)
    return float(value)


def load_settings(path: Path | str) -> MonitorSettings:
    """Read settings from a JSON file and validate them."""
    path = Path(path)
    data = json.loads(path.read_text())
    if not isinstance(data, Mapping):
        raise ValueError(f"{path}: settings file must contain a JSON object")
    settings = MonitorSettings.from_dict(data)
    settings.validate()
    logger.info("Loaded monitor settings from %s", path)
    return settings


def save_settings(settings: MonitorSettings, path: Path | str) -> Path:
    path = Path(path)
    if path.suffix.lower() != ".json":
        path = path.with_suffix(".json")
    path.write_text(json.dumps(settings.as_dict(), indent=2))
    return path


class MonitorSettingsStore:
    """
    Thread-safe settings container that lets a host swap configuration while
    sessions observe changes through subscriptions.
    """

    def __init__(self, initial: Optional[MonitorSettings] = None) -> None:
        self._settings = initial or MonitorSettings()
        self._settings.validate()
        self._lock = threading.Lock()
        self._subscribers: Dict[int, Callable[[MonitorSettings], None]] = {}
        self._next_token = 0

    def get(self) -> MonitorSettings:
        with self._lock:
            return self._settings

    def update(self, **kwargs) -> MonitorSettings:
        with self._lock:
            new_settings = replace(self._settings, **kwargs)
            new_settings.validate()
            self._settings = new_settings
            callbacks = list(self._subscribers.values())
        for callback in callbacks:
            try:
                callback(new_settings)
            except Exception as exc:
                logger.debug("Settings subscriber callback failed: %s", exc)
                continue
        return new_settings

    def subscribe(self, callback: Callable[[MonitorSettings], None], *, replay: bool = True) -> Callable[[], None]:
        with self._lock:
            token = self._next_token
            self._next_token += 1
            self._subscribers[token] = callback
            snapshot = self._settings
        if replay:
            callback(snapshot)

        def unsubscribe() -> None:
            with self._lock:
                self._subscribers.pop(token, None)

        return unsubscribe


__all__ = [
    "DEFAULT_SAMPLE_RATE",
    "FilterSettings",
    "EstimatorSettings",
    "DebounceSettings",
    "ThresholdProfile",
    "MATERNAL_PROFILE",
    "FETAL_PROFILE",
    "MonitorSettings",
    "MonitorSettingsStore",
    "load_settings",
    "save_settings",
]
