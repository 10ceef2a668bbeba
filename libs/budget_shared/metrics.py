# libs/budget_shared/metrics.py
"""
Log-based metrics collection utilities.
"""

import time
from contextlib import contextmanager
from typing import Dict, Iterator, Optional

from .logging import get_logger

logger = get_logger(__name__)


def _labels(labels: Optional[Dict[str, str]]) -> str:
    return ", ".join(f"{k}={v}" for k, v in (labels or {}).items())


class Metrics:
    """
    Simple metrics collection class.
    Metrics are emitted as debug log lines; a scraper can pick them up.
    """

    @staticmethod
    def counter(name: str, labels: Dict[str, str] = None):
        """
        Record a counter metric.

        Args:
            name: Metric name
            labels: Optional labels dictionary
        """
        logger.debug(f"METRIC: counter {name} {_labels(labels)}")

    @staticmethod
    def histogram(name: str, value: float, labels: Dict[str, str] = None):
        """
        Record a histogram metric.

        Args:
            name: Metric name
            value: Metric value
            labels: Optional labels dictionary
        """
        logger.debug(f"METRIC: histogram {name}={value:.2f} {_labels(labels)}")

    @staticmethod
    @contextmanager
    def timer(name: str, labels: Dict[str, str] = None) -> Iterator[None]:
        """Record the wall-clock duration of the block, in milliseconds."""
        start = time.perf_counter()
        try:
            yield
        finally:
            Metrics.histogram(name, (time.perf_counter() - start) * 1000, labels)
