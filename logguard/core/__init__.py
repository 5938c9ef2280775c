# logguard/core/__init__.py
"""
Core modules for LogGuard
"""

from .models import (
    AnomalyStatus,
    Priority,
    LogFileStatus,
    AIProvider,
    AITier,
    Anomaly,
    LogFile,
    ProcessingJob,
    UploadResult,
    DashboardStats,
    ProviderKeyStatus,
    ApiKeyStatus,
    AIProvidersInfo,
    AIConfig,
)

from .classification import (
    DetectionCategory,
    Severity,
    classify_detection_method,
    severity_for,
    risk_badge,
    status_label,
    format_anomaly_type,
)

from .cache import QueryCache

from .config import settings, Settings, get_settings, reload_settings

__all__ = [
    # Models
    "AnomalyStatus",
    "Priority",
    "LogFileStatus",
    "AIProvider",
    "AITier",
    "Anomaly",
    "LogFile",
    "ProcessingJob",
    "UploadResult",
    "DashboardStats",
    "ProviderKeyStatus",
    "ApiKeyStatus",
    "AIProvidersInfo",
    "AIConfig",
    # Classification
    "DetectionCategory",
    "Severity",
    "classify_detection_method",
    "severity_for",
    "risk_badge",
    "status_label",
    "format_anomaly_type",
    # Cache
    "QueryCache",
    # Config
    "settings",
    "Settings",
    "get_settings",
    "reload_settings",
]
