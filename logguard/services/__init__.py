# logguard/services/__init__.py
"""
Review workflow services

Each service takes the client, the QueryCache and a Notifier, so the CLI,
the dashboard and the tests all drive the same objects.
"""

from .notifications import Notification, NotificationVariant, Notifier, describe_error
from .guard import OperationGuard, OperationState
from .selection import SelectionManager
from .bulk_update import BULK_ACTIONS, BulkStatusUpdateCoordinator, BulkUpdateResult
from .export import CsvExport, encode_csv, export_anomalies, write_export
from .dispatch import (
    AnalysisStrategy,
    AnalysisSummary,
    AnalysisDispatchGateway,
    TraditionalResult,
    AdvancedMlResult,
    AiDispatchAck,
    normalize,
)
from .review import AnomalyReviewSession, ReviewForm
from .anomaly_list import AnomalyFilter, AnomalyListView, TimeRange
from .poller import ProcessingPoller, PollResult
from .log_files import (
    LogFileService,
    format_duration,
    format_file_size,
    format_time_ago,
    job_progress_text,
    status_text,
)
from .api_keys import ApiKeyService
from .webhooks import WebhookService
from .metrics import MetricsService, TIME_RANGE_LABELS, format_rate, provider_rows

__all__ = [
    "Notification",
    "NotificationVariant",
    "Notifier",
    "describe_error",
    "OperationGuard",
    "OperationState",
    "SelectionManager",
    "BULK_ACTIONS",
    "BulkStatusUpdateCoordinator",
    "BulkUpdateResult",
    "CsvExport",
    "encode_csv",
    "export_anomalies",
    "write_export",
    "AnalysisStrategy",
    "AnalysisSummary",
    "AnalysisDispatchGateway",
    "TraditionalResult",
    "AdvancedMlResult",
    "AiDispatchAck",
    "normalize",
    "AnomalyReviewSession",
    "ReviewForm",
    "AnomalyListView",
    "AnomalyFilter",
    "TimeRange",
    "ProcessingPoller",
    "PollResult",
    "LogFileService",
    "format_file_size",
    "format_time_ago",
    "status_text",
    "format_duration",
    "job_progress_text",
    "ApiKeyService",
    "WebhookService",
    "MetricsService",
    "TIME_RANGE_LABELS",
    "format_rate",
    "provider_rows",
]
