# logguard/services/review.py
"""
Single-anomaly review: fetch the full record, edit status/priority/notes,
submit a partial update

The form starts empty. A status must be chosen before submitting; priority
and notes are sent only when they differ from the stored record. Every
submission carries reviewedAt.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from ..core.cache import QueryCache, ANOMALIES, STATS, anomaly_key
from ..core.models import Anomaly, AnomalyStatus, Priority
from ..client.api import LogGuardClient
from ..client.errors import LogGuardError
from .bulk_update import utc_now
from .guard import OperationGuard
from .notifications import Notifier

logger = logging.getLogger(__name__)


@dataclass
class ReviewForm:
    """What the analyst has entered so far"""
    status: Optional[AnomalyStatus] = None
    priority: Optional[Priority] = None
    analyst_notes: str = ""


class AnomalyReviewSession:
    """
    One open detail view

    Usage:
        session = AnomalyReviewSession(client, cache, notifier, "a1")
        await session.load()
        session.set_status("confirmed")
        session.set_notes("Known scanner, blocked at the edge")
        await session.submit()
    """

    def __init__(
        self,
        client: LogGuardClient,
        cache: QueryCache,
        notifier: Notifier,
        anomaly_id: str,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.client = client
        self.cache = cache
        self.notifier = notifier
        self.anomaly_id = anomaly_id
        self.clock = clock

        self.guard = OperationGuard(f"review of {anomaly_id}")
        self.form = ReviewForm()
        self.anomaly: Optional[Anomaly] = None
        self.load_error: Optional[LogGuardError] = None
        self.submit_error: Optional[LogGuardError] = None
        self.is_open = True

    # ===== LOADING =====

    async def load(self) -> Optional[Anomaly]:
        """Fetch the full record (cached per anomaly id)"""
        try:
            anomaly = await self.cache.get(
                anomaly_key(self.anomaly_id),
                lambda: self.client.get_anomaly(self.anomaly_id)
            )
        except LogGuardError as e:
            logger.error(f"Failed to load anomaly {self.anomaly_id}: {e}")
            if self.is_open:
                self.load_error = e
            return None

        if not self.is_open:
            logger.debug(f"Review of {self.anomaly_id} closed before load finished")
            return anomaly

        self.anomaly = anomaly
        self.load_error = None
        return anomaly

    # ===== FORM =====

    def set_status(self, status: AnomalyStatus):
        self.form.status = AnomalyStatus(status)

    def set_priority(self, priority: Optional[Priority]):
        self.form.priority = Priority(priority) if priority else None

    def set_notes(self, notes: str):
        self.form.analyst_notes = notes or ""

    @property
    def is_pending(self) -> bool:
        return self.guard.is_running

    @property
    def can_submit(self) -> bool:
        return self.is_open and self.form.status is not None and not self.is_pending

    def changed_fields(self) -> Dict[str, Any]:
        """
        Fields that go into the PATCH body, without reviewedAt

        The chosen status is always included.
        """
        if self.form.status is None:
            return {}

        updates: Dict[str, Any] = {"status": self.form.status.value}
        current = self.anomaly

        if self.form.priority is not None:
            if current is None or current.priority != self.form.priority:
                updates["priority"] = self.form.priority.value

        notes = self.form.analyst_notes
        if notes:
            if current is None or (current.analyst_notes or "") != notes:
                updates["analystNotes"] = notes

        return updates

    # ===== SUBMIT =====

    async def submit(self) -> Optional[Anomaly]:
        """
        Send the partial update

        Returns:
            The updated anomaly when the backend returns one, otherwise the
            loaded record; None when nothing was sent or the update failed

        Raises:
            OperationInProgressError: If a submission is already in flight
        """
        if not self.is_open or self.form.status is None:
            logger.debug(f"Review submit of {self.anomaly_id} skipped: no status chosen")
            return None

        async with self.guard.running():
            updates = self.changed_fields()
            updates["reviewedAt"] = self.clock().isoformat()

            try:
                updated = await self.client.update_anomaly(self.anomaly_id, updates)
            except LogGuardError as e:
                # Form and notes stay as entered so the analyst can resubmit
                logger.error(f"Failed to update anomaly {self.anomaly_id}: {e}")
                if self.is_open:
                    self.submit_error = e
                self.notifier.error(
                    "Failed to update anomaly",
                    e.message or "Unknown error occurred"
                )
                return None

        self.cache.invalidate(ANOMALIES)
        self.cache.invalidate(STATS)
        self.notifier.success("Anomaly updated successfully")

        if self.is_open:
            self.submit_error = None
            if updated is not None:
                self.anomaly = updated
            self.close()

        return updated or self.anomaly

    def close(self):
        """Close the view; responses that arrive later are not applied"""
        self.is_open = False
