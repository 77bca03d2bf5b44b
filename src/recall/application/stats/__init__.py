# Application Stats Package
from .metrics_calculator import ForecastDay, MasteryThreshold, MetricsCalculator, RetentionPoint
from .service import StatsService, StudyStats

__all__ = [
    "ForecastDay",
    "MasteryThreshold",
    "MetricsCalculator",
    "RetentionPoint",
    "StatsService",
    "StudyStats",
]
