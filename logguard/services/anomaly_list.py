# logguard/services/anomaly_list.py
"""
The anomaly review table: cached list, client-side filters, visible rows

Every refresh or filter change recomputes the visible rows and hands their
ids to the SelectionManager, which prunes anything that disappeared.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Dict, List, Optional

from ..core.cache import QueryCache, ANOMALIES
from ..core.classification import DetectionCategory, Severity
from ..core.models import Anomaly, AnomalyStatus
from ..client.api import LogGuardClient
from .bulk_update import utc_now
from .export import CsvExport, export_anomalies
from .selection import SelectionManager

logger = logging.getLogger(__name__)


class TimeRange(str, Enum):
    LAST_24H = "24h"
    LAST_7D = "7d"
    LAST_30D = "30d"
    ALL = "all"


TIME_RANGE_WINDOWS: Dict[TimeRange, timedelta] = {
    TimeRange.LAST_24H: timedelta(hours=24),
    TimeRange.LAST_7D: timedelta(days=7),
    TimeRange.LAST_30D: timedelta(days=30),
}


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass
class AnomalyFilter:
    """Filter bar state; None means 'all'"""
    risk_level: Optional[Severity] = None
    status: Optional[AnomalyStatus] = None
    category: Optional[DetectionCategory] = None
    time_range: TimeRange = TimeRange.ALL
    search: str = ""
    log_file_id: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return any([
            self.risk_level, self.status, self.category,
            self.time_range != TimeRange.ALL, self.search.strip(), self.log_file_id,
        ])

    def matches(self, anomaly: Anomaly, now: datetime) -> bool:
        if self.risk_level and anomaly.severity != self.risk_level:
            return False
        if self.status and anomaly.status != self.status:
            return False
        if self.category and anomaly.category != self.category:
            return False
        if self.log_file_id and anomaly.log_file_id != self.log_file_id:
            return False

        window = TIME_RANGE_WINDOWS.get(self.time_range)
        if window is not None and _as_utc(anomaly.timestamp) < _as_utc(now) - window:
            return False

        needle = self.search.strip().lower()
        if needle:
            haystack = f"{anomaly.anomaly_type} {anomaly.type_label} {anomaly.description}".lower()
            if needle not in haystack:
                return False

        return True

    def apply(self, anomalies: List[Anomaly], now: Optional[datetime] = None) -> List[Anomaly]:
        """Filtered copy; input order is kept"""
        now = now or utc_now()
        return [a for a in anomalies if self.matches(a, now)]


def severity_counts(anomalies: List[Anomaly]) -> Dict[Severity, int]:
    counts = Counter(a.severity for a in anomalies)
    return {severity: counts.get(severity, 0) for severity in Severity}


def category_counts(anomalies: List[Anomaly]) -> Dict[DetectionCategory, int]:
    counts = Counter(a.category for a in anomalies)
    return {category: counts.get(category, 0) for category in DetectionCategory}


class AnomalyListView:
    """
    Usage:
        view = AnomalyListView(client, cache)
        await view.refresh()
        view.set_filter(AnomalyFilter(status=AnomalyStatus.PENDING))
        view.selection.select_all()
    """

    def __init__(
        self,
        client: LogGuardClient,
        cache: QueryCache,
        selection: Optional[SelectionManager] = None,
        filters: Optional[AnomalyFilter] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.client = client
        self.cache = cache
        self.selection = selection or SelectionManager()
        self.filters = filters or AnomalyFilter()
        self.clock = clock

        self.anomalies: List[Anomaly] = []
        self.visible: List[Anomaly] = []
        self.is_stale = True
        self._closed = False
        self._unsubscribe = cache.subscribe(ANOMALIES, self._on_invalidated)

    def _on_invalidated(self, prefix):
        self.is_stale = True

    async def refresh(self) -> List[Anomaly]:
        """Load the list (from cache when fresh) and recompute visible rows"""
        anomalies = await self.cache.get(ANOMALIES, self.client.list_anomalies)
        if self._closed:
            logger.debug("List view closed; ignoring refreshed anomalies")
            return anomalies

        self.anomalies = list(anomalies)
        self.is_stale = not self.cache.is_fresh(ANOMALIES)
        self._apply()
        return self.visible

    def set_filter(self, filters: AnomalyFilter) -> List[Anomaly]:
        self.filters = filters
        self._apply()
        return self.visible

    def _apply(self):
        self.visible = self.filters.apply(self.anomalies, self.clock())
        pruned = self.selection.set_visible([a.id for a in self.visible])
        if pruned:
            logger.debug(f"Filter/refresh hid {len(pruned)} selected anomalies")

    def get(self, anomaly_id: str) -> Optional[Anomaly]:
        for anomaly in self.anomalies:
            if anomaly.id == anomaly_id:
                return anomaly
        return None

    @property
    def selected_anomalies(self) -> List[Anomaly]:
        return [a for a in self.visible if self.selection.is_selected(a.id)]

    @property
    def can_export(self) -> bool:
        return bool(self.visible)

    def export(self, today: Optional[date] = None) -> Optional[CsvExport]:
        """CSV of every visible row, whatever is selected"""
        return export_anomalies(self.visible, today)

    def close(self):
        self._closed = True
        self._unsubscribe()
