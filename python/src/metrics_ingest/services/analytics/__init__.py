"""
Metric aggregation.
"""

from .aggregator import MetricAggregator, RatioField

__all__ = ["MetricAggregator", "RatioField"]
