from __future__ import annotations

from typing import Dict, Protocol, Type

import numpy as np

from shared.models import RateEstimate


class RateEstimator(Protocol):
    name: str
    display_name: str

    def estimate(self, window: np.ndarray, sample_rate: float) -> RateEstimate:
        """Return a rate estimate for `window`, or an explicit no-estimate."""
        ...


ESTIMATOR_REGISTRY: Dict[str, Type[RateEstimator]] = {}


def register_estimator(cls: Type[RateEstimator]) -> Type[RateEstimator]:
    if not hasattr(cls, "name"):
        raise ValueError(f"Estimator {cls} must have a 'name' attribute")
    ESTIMATOR_REGISTRY[cls.name] = cls
    return cls


def create_estimator(name: str, **kwargs) -> RateEstimator:
    try:
        cls = ESTIMATOR_REGISTRY[name]
    except KeyError:
        raise ValueError(f"unknown estimator {name!r}; known: {sorted(ESTIMATOR_REGISTRY)}") from None
    return cls(**kwargs)
