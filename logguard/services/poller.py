# logguard/services/poller.py
"""
Watches a log file until background processing finishes

AI analysis and retries only return an acknowledgement. The list view owns
a ProcessingPoller that re-reads /api/log-files until the file leaves the
pending/processing states, then invalidates the anomaly caches so the next
read picks up the new rows.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from ..core.cache import QueryCache, ANOMALIES, LOG_FILES, STATS
from ..core.config import settings
from ..core.models import LogFile, LogFileStatus
from ..client.api import LogGuardClient
from ..client.errors import LogGuardError

logger = logging.getLogger(__name__)

UNFINISHED_STATES = (LogFileStatus.PENDING, LogFileStatus.PROCESSING)


@dataclass
class PollResult:
    log_file_id: str
    log_file: Optional[LogFile]
    polls: int
    timed_out: bool = False
    stopped: bool = False

    @property
    def finished(self) -> bool:
        return (
            self.log_file is not None
            and self.log_file.status not in UNFINISHED_STATES
        )

    @property
    def succeeded(self) -> bool:
        return self.finished and self.log_file.status == LogFileStatus.COMPLETED


class ProcessingPoller:
    """
    Usage:
        poller = ProcessingPoller(client, cache)
        result = await poller.wait_for(log_file_id)
        if result.succeeded:
            await view.refresh()
    """

    def __init__(
        self,
        client: LogGuardClient,
        cache: QueryCache,
        interval: Optional[float] = None,
        timeout: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.client = client
        self.cache = cache
        self.interval = interval if interval is not None else settings.poll_interval
        self.timeout = timeout if timeout is not None else settings.poll_timeout
        self._sleep = sleep
        self._clock = clock
        self._stopped = False

    async def poll_once(self, log_file_id: str) -> Optional[LogFile]:
        """Refetch the log-file list and return the watched file"""
        self.cache.invalidate(LOG_FILES)
        log_files = await self.cache.get(LOG_FILES, self.client.list_log_files)
        for log_file in log_files:
            if log_file.id == log_file_id:
                return log_file
        return None

    async def wait_for(self, log_file_id: str) -> PollResult:
        """
        Poll until the file finishes, disappears, times out or stop() is called

        Retriable errors (network, rate limit) are logged and polling goes on;
        anything else is raised.
        """
        self._stopped = False
        started = self._clock()
        polls = 0
        log_file: Optional[LogFile] = None

        while True:
            try:
                log_file = await self.poll_once(log_file_id)
            except LogGuardError as e:
                if not e.retriable:
                    raise
                logger.warning(f"Poll of {log_file_id} failed, will retry: {e}")
            else:
                polls += 1
                if log_file is None:
                    logger.warning(f"Log file {log_file_id} no longer listed")
                    return PollResult(log_file_id, None, polls)

                if log_file.status not in UNFINISHED_STATES:
                    logger.info(f"Log file {log_file_id} finished with status {log_file.status.value}")
                    self.cache.invalidate(ANOMALIES)
                    self.cache.invalidate(STATS)
                    return PollResult(log_file_id, log_file, polls)

            if self._stopped:
                return PollResult(log_file_id, log_file, polls, stopped=True)

            if self._clock() - started >= self.timeout:
                logger.warning(f"Gave up waiting for {log_file_id} after {self.timeout:.0f}s")
                return PollResult(log_file_id, log_file, polls, timed_out=True)

            await self._sleep(self.interval)

    def stop(self):
        self._stopped = True
