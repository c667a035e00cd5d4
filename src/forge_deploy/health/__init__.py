"""Target health aggregation."""

from .aggregator import CHECK_LABELS, CHECK_ORDER, HealthAggregator
from .models import HealthCheckResult, HealthReport

__all__ = [
    "HealthAggregator",
    "HealthCheckResult",
    "HealthReport",
    "CHECK_ORDER",
    "CHECK_LABELS",
]
