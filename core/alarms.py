"""
Debounced heart-rate alarm classification.

Each reading is first classified from the threshold profile alone (the
instantaneous status). The reported status only escalates once the abnormal
condition has persisted:

- an instantaneous CRITICAL is reported as CRITICAL once the most recent
  non-critical reading (or the start of the retained history) is at least
  ``critical_sustain_ms`` old, and as WARNING until then;
- an instantaneous WARNING is reported as WARNING once the most recent NORMAL
  reading (or the start of the retained history) is at least
  ``warning_sustain_ms`` old, and as NORMAL until then.

A reported status never steps from NORMAL straight to CRITICAL.
"""
from __future__ import annotations

import math
from typing import List, Optional

from shared.history import ClassificationHistory
from shared.models import AlarmDecision, HistoryEntry, Status
from shared.settings import DebounceSettings, ThresholdProfile


def classify_rate(rate_bpm: float, profile: ThresholdProfile) -> Status:
    """Instantaneous status of `rate_bpm` under `profile`."""
    if rate_bpm < profile.critical_low or rate_bpm > profile.critical_high:
        return Status.CRITICAL
    if rate_bpm < profile.warning_low or rate_bpm > profile.warning_high:
        return Status.WARNING
    return Status.NORMAL


def rate_deviation(rate_bpm: float, profile: ThresholdProfile) -> Optional[str]:
    if rate_bpm < profile.normal_low:
        return "low"
    if rate_bpm > profile.normal_high:
        return "high"
    return None


class AlarmClassifier:
    """Per-signal debouncing state machine over instantaneous classifications."""

    def __init__(self, profile: ThresholdProfile, debounce: Optional[DebounceSettings] = None) -> None:
        if not isinstance(profile, ThresholdProfile):
            raise TypeError("profile must be a ThresholdProfile")
        self._profile = profile
        self._debounce = debounce or DebounceSettings()
        self._debounce.validate()
        self._history = ClassificationHistory(self._debounce.retention_ms)
        self._last_decision: Optional[AlarmDecision] = None

    @property
    def profile(self) -> ThresholdProfile:
        return self._profile

    @property
    def debounce(self) -> DebounceSettings:
        return self._debounce

    @property
    def status(self) -> Status:
        """Last reported status; NORMAL before the first update."""
        if self._last_decision is None:
            return Status.NORMAL
        return self._last_decision.status

    @property
    def last_decision(self) -> Optional[AlarmDecision]:
        return self._last_decision

    def history(self) -> List[HistoryEntry]:
        return self._history.entries()

    def _sustained_since(self, reference: Optional[HistoryEntry]) -> float:
        if reference is None:
            reference = self._history.oldest
        return reference.timestamp_ms

    def update(self, rate_bpm: float, now_ms: float) -> Status:
        """Classify `rate_bpm` observed at `now_ms` and return the reported status."""
        rate = float(rate_bpm)
        if not math.isfinite(rate):
            raise ValueError(f"rate_bpm must be finite, got {rate_bpm!r}")
        now = float(now_ms)

        instantaneous = classify_rate(rate, self._profile)
        self._history.append(instantaneous, now)

        if instantaneous is Status.CRITICAL:
            since = self._sustained_since(self._history.most_recent(lambda e: e.status is not Status.CRITICAL))
            status = Status.CRITICAL if now - since >= self._debounce.critical_sustain_ms else Status.WARNING
        elif instantaneous is Status.WARNING:
            since = self._sustained_since(self._history.most_recent(lambda e: e.status is Status.NORMAL))
            status = Status.WARNING if now - since >= self._debounce.warning_sustain_ms else Status.NORMAL
        else:
            status = Status.NORMAL

        if status is Status.CRITICAL and self.status is Status.NORMAL:
            # Sparse updates can leave no intermediate WARNING; show one first.
            status = Status.WARNING

        decision = AlarmDecision(
            rate_bpm=rate,
            timestamp_ms=now,
            instantaneous=instantaneous,
            status=status,
            deviation=rate_deviation(rate, self._profile),
        )
        self._last_decision = decision
        return status

    def reset(self) -> None:
        """Forget all history, e.g. when a monitoring session restarts."""
        self._history.clear()
        self._last_decision = None


__all__ = ["AlarmClassifier", "classify_rate", "rate_deviation"]
