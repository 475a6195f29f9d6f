"""
Shared data structures used by the signal core, the analysis helpers and the
command-line entry point.
"""

from .history import ClassificationHistory
from .models import AlarmDecision, HistoryEntry, MonitorUpdate, RateEstimate, Status
from .ring_buffer import SampleWindow
from .settings import (
    FETAL_PROFILE,
    MATERNAL_PROFILE,
    DebounceSettings,
    EstimatorSettings,
    FilterSettings,
    MonitorSettings,
    MonitorSettingsStore,
    ThresholdProfile,
)

__all__ = [
    "AlarmDecision",
    "ClassificationHistory",
    "DebounceSettings",
    "EstimatorSettings",
    "FETAL_PROFILE",
    "FilterSettings",
    "HistoryEntry",
    "MATERNAL_PROFILE",
    "MonitorSettings",
    "MonitorSettingsStore",
    "MonitorUpdate",
    "RateEstimate",
    "SampleWindow",
    "Status",
    "ThresholdProfile",
]
