# logguard/services/bulk_update.py
"""
Bulk status updates for the selected anomalies

One request per action: PATCH /api/anomalies/bulk-update with
{anomalyIds, updates: {status, reviewedAt}}. The batch is treated as
all-or-nothing; on failure the selection is kept so the analyst can retry.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from ..core.cache import QueryCache, ANOMALIES, STATS
from ..core.models import AnomalyStatus
from ..client.api import LogGuardClient
from ..client.errors import LogGuardError
from .guard import OperationGuard
from .notifications import Notifier
from .selection import SelectionManager

logger = logging.getLogger(__name__)


# Bulk action menu: label -> target status
BULK_ACTIONS: Dict[str, AnomalyStatus] = {
    "Mark as Confirmed": AnomalyStatus.CONFIRMED,
    "Mark as False Positive": AnomalyStatus.FALSE_POSITIVE,
    "Mark as Under Review": AnomalyStatus.UNDER_REVIEW,
    "Dismiss": AnomalyStatus.DISMISSED,
    "Reset to Pending": AnomalyStatus.PENDING,
}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class BulkUpdateResult:
    """Outcome of one bulk action"""
    status: AnomalyStatus
    anomaly_ids: List[str]
    success: bool
    updated_count: Optional[int] = None  # As reported by the backend, when it does
    error: Optional[LogGuardError] = None
    response: Dict = field(default_factory=dict)

    @property
    def requested_count(self) -> int:
        return len(self.anomaly_ids)


class BulkStatusUpdateCoordinator:
    """
    Applies one status to every selected anomaly

    Usage:
        coordinator = BulkStatusUpdateCoordinator(client, cache, selection, notifier)
        result = await coordinator.apply_status(AnomalyStatus.CONFIRMED)
    """

    def __init__(
        self,
        client: LogGuardClient,
        cache: QueryCache,
        selection: SelectionManager,
        notifier: Notifier,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.client = client
        self.cache = cache
        self.selection = selection
        self.notifier = notifier
        self.clock = clock
        self.guard = OperationGuard("bulk-update")

    @property
    def is_pending(self) -> bool:
        return self.guard.is_running

    @property
    def can_submit(self) -> bool:
        return not self.selection.is_empty and not self.is_pending

    async def apply_action(self, label: str) -> Optional[BulkUpdateResult]:
        """Apply a BULK_ACTIONS entry by its menu label"""
        return await self.apply_status(BULK_ACTIONS[label])

    async def apply_status(self, status: AnomalyStatus) -> Optional[BulkUpdateResult]:
        """
        Send one batched status update for the current selection

        Args:
            status: Target status for every selected anomaly

        Returns:
            BulkUpdateResult, or None when nothing was selected (no request is made)

        Raises:
            OperationInProgressError: If a bulk update is already in flight
        """
        status = AnomalyStatus(status)
        anomaly_ids = self.selection.selected_ids
        if not anomaly_ids:
            logger.debug("Bulk update skipped: empty selection")
            return None

        async with self.guard.running():
            updates = {
                "status": status.value,
                "reviewedAt": self.clock().isoformat(),
            }
            logger.info(f"Bulk updating {len(anomaly_ids)} anomalies to {status.value}")

            try:
                response = await self.client.bulk_update_anomalies(anomaly_ids, updates)
            except LogGuardError as e:
                logger.error(f"Bulk update of {len(anomaly_ids)} anomalies failed: {e}")
                self.notifier.error("Bulk update failed", e.message or "Failed to update anomalies")
                return BulkUpdateResult(status, anomaly_ids, success=False, error=e)

        updated_count = self._reported_count(response)
        if updated_count is not None and updated_count < len(anomaly_ids):
            logger.warning(
                f"Backend reported {updated_count} of {len(anomaly_ids)} anomalies updated"
            )

        self.selection.clear_all()
        self.cache.invalidate(ANOMALIES)
        self.cache.invalidate(STATS)

        count = updated_count if updated_count is not None else len(anomaly_ids)
        description = f"{count} anomalies marked as {status.value.replace('_', ' ')}"
        if updated_count is not None and updated_count < len(anomaly_ids):
            description = (
                f"{updated_count} of {len(anomaly_ids)} anomalies marked as "
                f"{status.value.replace('_', ' ')}"
            )
        self.notifier.success("Anomalies updated", description)

        return BulkUpdateResult(
            status,
            anomaly_ids,
            success=True,
            updated_count=updated_count,
            response=response,
        )

    @staticmethod
    def _reported_count(response: Dict) -> Optional[int]:
        for key in ("updatedCount", "updated", "count"):
            value = response.get(key)
            if isinstance(value, int) and not isinstance(value, bool):
                return value
        return None
