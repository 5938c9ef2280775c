# logguard/services/log_files.py
"""
Log file upload, retry and history display

Uploads are checked locally (extension, size) before anything is sent.
A failed file can be reprocessed; the retry goes through the AI processing
endpoint with retry=true and, like any AI run, only returns an
acknowledgement.
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

from ..core.cache import QueryCache, ANOMALIES, LOG_FILES, METRICS, PROCESSING_JOBS, STATS
from ..core.config import settings
from ..core.models import AIConfig, LogFile, LogFileStatus, ProcessingJob, UploadResult
from ..client.api import LogGuardClient
from ..client.errors import LogGuardError, UploadValidationError
from .dispatch import default_ai_config
from .guard import OperationGuard
from .notifications import Notifier

logger = logging.getLogger(__name__)

TIMEOUT_MARKERS = ("timeout", "Processing timed out")

STATUS_TEXT = {
    LogFileStatus.COMPLETED: "Completed successfully",
    LogFileStatus.PROCESSING: "Processing...",
    LogFileStatus.FAILED: "Failed - see details",
    LogFileStatus.PENDING: "Queued for processing",
}


# ===== DISPLAY HELPERS =====

def format_file_size(num_bytes: Optional[int]) -> str:
    """Size in megabytes with two decimals, e.g. '1.50 MB'"""
    mb = (num_bytes or 0) / (1024 * 1024)
    return f"{mb:.2f} MB"


def format_time_ago(timestamp: Optional[datetime], now: Optional[datetime] = None) -> str:
    """Whole days or hours since timestamp: '3d ago', '2h ago', '< 1h ago'"""
    if timestamp is None:
        return "never"

    now = now or datetime.now(timezone.utc)
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    hours = int((now - timestamp).total_seconds() // 3600)
    days = hours // 24
    if days > 0:
        return f"{days}d ago"
    if hours > 0:
        return f"{hours}h ago"
    return "< 1h ago"


def is_timeout_error(error_message: Optional[str]) -> bool:
    return bool(error_message) and any(marker in error_message for marker in TIMEOUT_MARKERS)


def status_text(status: LogFileStatus, error_message: Optional[str] = None) -> str:
    if status == LogFileStatus.FAILED and is_timeout_error(error_message):
        return "Processing timed out - retry recommended"
    return STATUS_TEXT.get(status, "Unknown status")


def format_duration(milliseconds: Optional[int]) -> str:
    """Analysis time: "850 ms", "12.4 s" or "3m 05s"; "-" when unknown"""
    if milliseconds is None:
        return "-"
    if milliseconds < 1000:
        return f"{milliseconds} ms"
    seconds = milliseconds / 1000
    if seconds < 60:
        return f"{seconds:.1f} s"
    minutes, rest = divmod(int(seconds), 60)
    return f"{minutes}m {rest:02d}s"


def job_progress_text(job: ProcessingJob) -> str:
    if job.error_message:
        return f"{job.status} ({job.error_message})"
    if job.status in ("completed", "failed"):
        return job.status
    return f"{job.status} {job.progress}%"


def validate_upload(file_path: Path) -> Path:
    """
    Check a file before uploading it

    Raises:
        UploadValidationError: Missing file, wrong extension, empty or too large
    """
    file_path = Path(file_path).expanduser()

    if not file_path.is_file():
        raise UploadValidationError(f"File not found: {file_path}", {"path": str(file_path)})

    if not settings.is_allowed_upload(file_path):
        allowed = ", ".join(settings.allowed_upload_extensions)
        raise UploadValidationError(
            f"Invalid file type. Only {allowed} files are allowed.",
            {"path": str(file_path), "extension": file_path.suffix}
        )

    size = file_path.stat().st_size
    if size == 0:
        raise UploadValidationError(f"{file_path.name} is empty", {"path": str(file_path)})

    if size > settings.max_upload_size_bytes:
        raise UploadValidationError(
            f"{file_path.name} is {format_file_size(size)}; "
            f"the limit is {settings.max_upload_size_mb} MB",
            {"path": str(file_path), "size": size}
        )

    return file_path


# ===== SERVICE =====

class LogFileService:
    """
    Usage:
        files = LogFileService(client, cache, notifier)
        result = await files.upload(Path("zscaler.log"))
        await files.retry(failed_file)
    """

    def __init__(
        self,
        client: LogGuardClient,
        cache: QueryCache,
        notifier: Notifier,
    ):
        self.client = client
        self.cache = cache
        self.notifier = notifier
        self.upload_guard = OperationGuard("upload")
        self._retry_guards: Dict[str, OperationGuard] = {}

    async def list_files(self) -> List[LogFile]:
        return await self.cache.get(LOG_FILES, self.client.list_log_files)

    async def get(self, log_file_id: str) -> Optional[LogFile]:
        for log_file in await self.list_files():
            if log_file.id == log_file_id:
                return log_file
        return None

    async def processing_jobs(self, log_file_id: Optional[str] = None) -> List[ProcessingJob]:
        """Processing runs, newest first as the backend orders them"""
        jobs = await self.cache.get(PROCESSING_JOBS, self.client.list_processing_jobs)
        if log_file_id:
            return [job for job in jobs if job.log_file_id == log_file_id]
        return jobs

    async def upload(self, file_path: Path) -> Optional[UploadResult]:
        """
        Validate and upload one log file

        Returns:
            UploadResult, or None on failure (a notification is raised)
        """
        try:
            file_path = validate_upload(file_path)
        except UploadValidationError as e:
            logger.warning(f"Upload refused: {e.message}")
            self.notifier.error("Upload failed", e.message)
            return None

        async with self.upload_guard.running():
            try:
                result = await self.client.upload_log_file(file_path)
            except LogGuardError as e:
                logger.error(f"Upload of {file_path.name} failed: {e}")
                self.notifier.error("Upload failed", e.message or "Failed to upload file")
                return None

        self.cache.invalidate(LOG_FILES)
        self.cache.invalidate(PROCESSING_JOBS)
        self.cache.invalidate(STATS)
        self.cache.invalidate(METRICS)

        entries = result.total_entries if result.total_entries is not None else result.log_file.total_entries
        description = f"{result.log_file.display_name} uploaded"
        if entries is not None:
            description += f" ({entries} log entries)"
        self.notifier.success("Upload successful", description)
        return result

    async def retry(self, log_file: LogFile, ai_config: Optional[AIConfig] = None) -> bool:
        """
        Reprocess a failed log file

        Returns:
            True when the backend accepted the retry
        """
        if not log_file.can_retry:
            logger.warning(f"Retry refused: {log_file.id} is {log_file.status.value}")
            self.notifier.error(
                "Retry failed",
                f"Only failed files can be retried ({log_file.display_name} is {log_file.status.value})"
            )
            return False

        guard = self._retry_guards.setdefault(log_file.id, OperationGuard(f"retry of {log_file.id}"))
        async with guard.running():
            try:
                await self.client.process_logs(log_file.id, ai_config or default_ai_config(), retry=True)
            except LogGuardError as e:
                logger.error(f"Retry of {log_file.id} failed: {e}")
                self.notifier.failure(e, "Retry failed", title="Retry failed")
                return False

        self.cache.invalidate(LOG_FILES)
        self.cache.invalidate(STATS)
        self.cache.invalidate(ANOMALIES)
        self.cache.invalidate(PROCESSING_JOBS)
        self.cache.invalidate(METRICS)

        if is_timeout_error(log_file.error_message):
            description = (
                f"{log_file.display_name} is being retried after timeout. "
                "Processing will be monitored for timeouts."
            )
        else:
            description = f"{log_file.display_name} is being reprocessed. Please wait for completion."
        self.notifier.success("File reprocessing started", description)
        return True
