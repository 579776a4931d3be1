"""
Module for collecting and logging metrics of a navigation session.
"""

import collections
import logging
from dataclasses import dataclass, field
from typing import Counter

logger = logging.getLogger(__name__)


@dataclass
class SessionMetrics:
    """Counters updated by a navigation session as it runs."""

    position_updates: int = 0
    step_advances: int = 0
    reroutes: Counter[str] = field(default_factory=collections.Counter)
    fallback_routes: int = 0
    stale_responses: int = 0
    heatmap_samples: int = 0
    searches: int = 0

    @property
    def total_reroutes(self) -> int:
        return sum(self.reroutes.values())


def log_metrics(metrics: SessionMetrics, enabled: bool = True) -> None:
    """
    Log session metrics as a delimited block.

    Args:
        metrics: Counters to log
        enabled: Whether metrics output was requested
    """
    if not enabled:
        return

    logger.debug("=== NAVCOPILOT_METRICS ===")
    logger.debug(f"position_updates={metrics.position_updates}")
    logger.debug(f"step_advances={metrics.step_advances}")
    logger.debug(f"total_reroutes={metrics.total_reroutes}")
    for reason, count in sorted(metrics.reroutes.items()):
        logger.debug(f"reroutes[{reason}]={count}")
    logger.debug(f"fallback_routes={metrics.fallback_routes}")
    logger.debug(f"stale_responses_discarded={metrics.stale_responses}")
    logger.debug(f"heatmap_samples={metrics.heatmap_samples}")
    logger.debug(f"searches={metrics.searches}")
    logger.debug("=== END_NAVCOPILOT_METRICS ===")
