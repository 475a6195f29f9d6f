"""Signal core: filtering, rate estimation and alarm classification."""

from .alarms import AlarmClassifier, classify_rate
from .conditioning import FilterChain
from .detection import ESTIMATOR_REGISTRY, PeakRateEstimator
from .monitor import MonitoringSession, SignalMonitor
from shared.models import AlarmDecision, MonitorUpdate, RateEstimate, Status

__all__ = [
    "AlarmClassifier",
    "AlarmDecision",
    "classify_rate",
    "ESTIMATOR_REGISTRY",
    "FilterChain",
    "MonitorUpdate",
    "MonitoringSession",
    "PeakRateEstimator",
    "RateEstimate",
    "SignalMonitor",
    "Status",
]
