from __future__ import annotations

import logging
from typing import Callable, Dict, Iterator, Optional

import numpy as np

from analysis.response import AlarmMetrics, AlarmResponseTracker
from shared.models import MonitorUpdate, RateEstimate, Status
from shared.ring_buffer import SampleWindow
from shared.settings import MonitorSettings, MonitorSettingsStore, ThresholdProfile

from .alarms import AlarmClassifier
from .conditioning import FilterChain
from .detection import PeakRateEstimator, RateEstimator

logger = logging.getLogger(__name__)

UpdateListener = Callable[[MonitorUpdate], None]


class SignalMonitor:
    """
    Filter, window, estimator and (optionally) alarm classifier for one
    logical signal.

    Samples go in through `push_sample`/`push_samples`; `evaluate` can run at
    a slower cadence than the sample clock. Nothing here is shared with other
    monitors.
    """

    def __init__(
        self,
        name: str,
        settings: Optional[MonitorSettings] = None,
        *,
        profile: Optional[ThresholdProfile] = None,
        estimator: Optional[RateEstimator] = None,
    ) -> None:
        if not name:
            raise ValueError("name must be a non-empty string")
        self.name = name
        self._settings = settings or MonitorSettings()
        self._settings.validate()
        self._sample_rate = float(self._settings.sample_rate)
        self.filter_chain = FilterChain(self._sample_rate, self._settings.filters)
        self.window = SampleWindow.for_duration(self._sample_rate, self._settings.estimator.window_sec)
        self.estimator: RateEstimator = estimator or PeakRateEstimator(self._settings.estimator)
        self.classifier: Optional[AlarmClassifier] = (
            AlarmClassifier(profile, self._settings.debounce) if profile is not None else None
        )
        self._response = AlarmResponseTracker()
        self._samples_seen = 0
        self._last_update: Optional[MonitorUpdate] = None

    @property
    def sample_rate(self) -> float:
        return self._sample_rate

    @property
    def samples_seen(self) -> int:
        return self._samples_seen

    @property
    def clock_ms(self) -> float:
        """Elapsed time on the sample clock."""
        return self._samples_seen / self._sample_rate * 1000.0

    @property
    def last_update(self) -> Optional[MonitorUpdate]:
        return self._last_update

    @property
    def alarm_metrics(self) -> AlarmMetrics:
        return self._response.metrics

    def push_sample(self, x: float) -> float:
        y = self.filter_chain.process_sample(x)
        self.window.append(y)
        self._samples_seen += 1
        return y

    def push_samples(self, samples: np.ndarray) -> np.ndarray:
        filtered = self.filter_chain.process(samples)
        self.window.extend(filtered)
        self._samples_seen += filtered.size
        return filtered

    def evaluate(self, now_ms: Optional[float] = None) -> MonitorUpdate:
        """Estimate the rate from the current window and classify it.

        When no estimate is available the classifier is left untouched and
        the last reported status is repeated.
        """
        now = self.clock_ms if now_ms is None else float(now_ms)
        estimate: RateEstimate = self.estimator.estimate(self.window.snapshot(), self._sample_rate)

        status: Optional[Status] = None
        decision = None
        if self.classifier is not None:
            if estimate.valid:
                previous = self.classifier.status
                status = self.classifier.update(estimate.bpm, now)
                decision = self.classifier.last_decision
                if status is not previous:
                    level = logging.WARNING if status.severity > previous.severity else logging.INFO
                    logger.log(
                        level, "%s: %s -> %s (%.0f BPM)", self.name, previous.value, status.value, estimate.bpm
                    )
                if self._response.observe(status, now):
                    logger.info("%s: critical alarm raised at %.0f ms", self.name, now)
            else:
                status = self.classifier.status

        update = MonitorUpdate(
            signal=self.name,
            rate_bpm=estimate.bpm,
            status=status,
            timestamp_ms=now,
            estimate=estimate,
            decision=decision,
        )
        self._last_update = update
        return update

    def reset(self) -> None:
        self.filter_chain.reset()
        self.window.clear()
        if self.classifier is not None:
            self.classifier.reset()
        self._response.reset()
        self._samples_seen = 0
        self._last_update = None


class MonitoringSession:
    """
    Independent maternal, fetal and combined monitors driven by one host.

    The combined signal is filtered and rate-estimated but not classified.
    Listeners receive every `MonitorUpdate` produced by `evaluate`.
    """

    SIGNALS = ("maternal", "fetal", "combined")

    def __init__(self, settings: Optional[MonitorSettings] = None) -> None:
        self._listeners: Dict[int, UpdateListener] = {}
        self._next_token = 0
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._monitors: Dict[str, SignalMonitor] = {}
        self.apply_settings(settings or MonitorSettings())

    @classmethod
    def from_store(cls, store: MonitorSettingsStore) -> "MonitoringSession":
        """Create a session that rebuilds its monitors when `store` changes."""
        session = cls(store.get())
        session._unsubscribe = store.subscribe(session.apply_settings, replay=False)
        return session

    @property
    def settings(self) -> MonitorSettings:
        return self._settings

    @property
    def maternal(self) -> SignalMonitor:
        return self._monitors["maternal"]

    @property
    def fetal(self) -> SignalMonitor:
        return self._monitors["fetal"]

    @property
    def combined(self) -> SignalMonitor:
        return self._monitors["combined"]

    def __getitem__(self, name: str) -> SignalMonitor:
        return self._monitors[name]

    def __iter__(self) -> Iterator[SignalMonitor]:
        return iter(self._monitors.values())

    def apply_settings(self, settings: MonitorSettings) -> None:
        """Rebuild every monitor from `settings`, discarding retained state."""
        settings.validate()
        self._settings = settings
        self._monitors = {
            "maternal": SignalMonitor("maternal", settings, profile=settings.maternal),
            "fetal": SignalMonitor("fetal", settings, profile=settings.fetal),
            "combined": SignalMonitor("combined", settings),
        }
        logger.info("Monitoring session configured (sr=%s)", settings.sample_rate)

    def push(
        self,
        maternal: Optional[float] = None,
        fetal: Optional[float] = None,
        combined: Optional[float] = None,
    ) -> Dict[str, float]:
        """Feed one sample per provided signal; returns the filtered values."""
        out: Dict[str, float] = {}
        for name, value in (("maternal", maternal), ("fetal", fetal), ("combined", combined)):
            if value is not None:
                out[name] = self._monitors[name].push_sample(value)
        return out

    def push_block(self, **blocks: np.ndarray) -> Dict[str, np.ndarray]:
        unknown = set(blocks) - set(self.SIGNALS)
        if unknown:
            raise ValueError(f"unknown signals: {sorted(unknown)}")
        return {name: self._monitors[name].push_samples(samples) for name, samples in blocks.items()}

    def add_listener(self, callback: UpdateListener) -> Callable[[], None]:
        token = self._next_token
        self._next_token += 1
        self._listeners[token] = callback

        def remove() -> None:
            self._listeners.pop(token, None)

        return remove

    def evaluate(self, now_ms: Optional[float] = None) -> Dict[str, MonitorUpdate]:
        updates: Dict[str, MonitorUpdate] = {}
        for name, monitor in self._monitors.items():
            if monitor.samples_seen == 0:
                continue
            updates[name] = monitor.evaluate(now_ms)
        for update in updates.values():
            for callback in list(self._listeners.values()):
                try:
                    callback(update)
                except Exception as exc:
                    logger.warning("Monitor listener failed for %s: %s", update.signal, exc)
        return updates

    def reset(self) -> None:
        """Clear filter memory, windows and alarm history for a new recording."""
        for monitor in self._monitors.values():
            monitor.reset()
        logger.info("Monitoring session reset")

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._listeners.clear()


__all__ = ["SignalMonitor", "MonitoringSession", "UpdateListener"]
