from .base import (
    ESTIMATOR_REGISTRY,
    RateEstimator,
    create_estimator,
    register_estimator,
)
from .peaks import PeakRateEstimator

__all__ = [
    "RateEstimator",
    "ESTIMATOR_REGISTRY",
    "create_estimator",
    "register_estimator",
    "PeakRateEstimator",
]
