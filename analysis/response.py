from __future__ import annotations

from dataclasses import dataclass, replace
from typing import List, Optional

from shared.models import Status


@dataclass(frozen=True)
class AlarmMetrics:
    """Alarm bookkeeping for one signal.

    Response time is measured from the first abnormal report of a run to the
    moment that run is escalated to CRITICAL.
    """

    alarm_count: int = 0
    last_alarm_ms: Optional[float] = None
    response_time_ms: Optional[float] = None
    avg_response_time_ms: float = 0.0


class AlarmResponseTracker:
    """Follows reported statuses and records each escalation to CRITICAL."""

    def __init__(self) -> None:
        self._metrics = AlarmMetrics()
        self._response_times: List[float] = []
        self._onset_ms: Optional[float] = None
        self._previous = Status.NORMAL

    @property
    def metrics(self) -> AlarmMetrics:
        return self._metrics

    @property
    def onset_ms(self) -> Optional[float]:
        return self._onset_ms

    def observe(self, status: Status, timestamp_ms: float) -> bool:
        """Record a reported status. Returns True when an alarm was raised."""
        status = Status(status)
        raised = False
        if status is Status.NORMAL:
            self._onset_ms = None
        else:
            if self._onset_ms is None:
                self._onset_ms = float(timestamp_ms)
            if status is Status.CRITICAL and self._previous is not Status.CRITICAL:
                response = float(timestamp_ms) - self._onset_ms
                self._response_times.append(response)
                self._metrics = replace(
                    self._metrics,
                    alarm_count=self._metrics.alarm_count + 1,
                    last_alarm_ms=float(timestamp_ms),
                    response_time_ms=response,
                    avg_response_time_ms=sum(self._response_times) / len(self._response_times),
                )
                raised = True
        self._previous = status
        return raised

    def reset(self) -> None:
        self._metrics = AlarmMetrics()
        self._response_times.clear()
        self._onset_ms = None
        self._previous = Status.NORMAL


__all__ = ["AlarmMetrics", "AlarmResponseTracker"]
