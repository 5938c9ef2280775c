# logguard/services/guard.py
"""
Re-entrancy guard for user-triggered operations

Each invocation site (a bulk action, one analysis button for one log file,
one detail form) owns a guard. The Idle -> Running transition is checked
in logic, so a second submission is rejected even if the UI failed to
disable its control.
"""

import logging
from contextlib import asynccontextmanager
from enum import Enum

from ..client.errors import OperationInProgressError

logger = logging.getLogger(__name__)


class OperationState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


class OperationGuard:
    """
    Usage:
        guard = OperationGuard("bulk-update")
        async with guard.running():
            await client.bulk_update_anomalies(...)
    """

    def __init__(self, name: str):
        self.name = name
        self.state = OperationState.IDLE

    @property
    def is_running(self) -> bool:
        return self.state == OperationState.RUNNING

    @asynccontextmanager
    async def running(self):
        # No await between the check and the transition, so this is atomic on the event loop
        if self.state == OperationState.RUNNING:
            logger.warning(f"Rejected second submission of {self.name}")
            raise OperationInProgressError(self.name)

        self.state = OperationState.RUNNING
        try:
            yield self
        finally:
            self.state = OperationState.IDLE

    def __repr__(self) -> str:
        return f"<OperationGuard({self.name}, {self.state.value})>"
