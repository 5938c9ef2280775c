# logguard/services/metrics.py
"""
Pipeline metrics: upload, analysis view, AI analysis and detection
success rates over a time window, cached per window
"""

import logging
from typing import List, Tuple

from ..core.cache import QueryCache, metrics_key
from ..core.models import MetricCounts, MetricsSummary, MetricsTimeRange
from ..client.api import LogGuardClient

logger = logging.getLogger(__name__)

TIME_RANGE_LABELS = {
    MetricsTimeRange.LAST_HOUR: "Last hour",
    MetricsTimeRange.LAST_24H: "Last 24 hours",
    MetricsTimeRange.LAST_7D: "Last 7 days",
    MetricsTimeRange.LAST_30D: "Last 30 days",
}


def format_rate(counts: MetricCounts) -> str:
    """'95.0% (19/20)', or 'no data' for an empty window"""
    if counts.total == 0:
        return "no data"
    return f"{counts.success_rate:.1f}% ({counts.success}/{counts.total})"


def provider_rows(summary: MetricsSummary) -> List[Tuple[str, MetricCounts]]:
    """AI success per provider, busiest first"""
    return sorted(summary.ai_analysis.by_provider.items(), key=lambda item: -item[1].total)


class MetricsService:
    """
    Usage:
        metrics = MetricsService(client, cache)
        summary = await metrics.summary(MetricsTimeRange.LAST_7D)
        print(summary.overall_success_rate, summary.upload_health)
    """

    def __init__(self, client: LogGuardClient, cache: QueryCache):
        self.client = client
        self.cache = cache

    async def summary(self, time_range: MetricsTimeRange = MetricsTimeRange.LAST_24H) -> MetricsSummary:
        time_range = MetricsTimeRange(time_range)
        return await self.cache.get(
            metrics_key(time_range.value),
            lambda: self.client.get_metrics(time_range)
        )

    async def refresh(self, time_range: MetricsTimeRange = MetricsTimeRange.LAST_24H) -> MetricsSummary:
        time_range = MetricsTimeRange(time_range)
        self.cache.invalidate(metrics_key(time_range.value))
        logger.debug(f"Refreshing metrics for {time_range.value}")
        return await self.summary(time_range)
