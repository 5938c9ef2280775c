# logguard/core/models.py
"""
Core data models for LogGuard
These mirror the backend's JSON shapes (camelCase on the wire, snake_case in Python)
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, ConfigDict, Field, AliasChoices, HttpUrl, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .classification import (
    DetectionCategory,
    Severity,
    classify_detection_method,
    clamp_risk_score,
    format_anomaly_type,
    parse_risk_score,
    risk_badge,
    severity_for,
    status_label,
)

logger = logging.getLogger(__name__)


class AnomalyStatus(str, Enum):
    """Review state of an anomaly"""
    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    CONFIRMED = "confirmed"
    FALSE_POSITIVE = "false_positive"
    DISMISSED = "dismissed"


class Priority(str, Enum):
    """Analyst-assigned priority"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class LogFileStatus(str, Enum):
    """Lifecycle of an uploaded log file"""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class AIProvider(str, Enum):
    OPENAI = "openai"
    GEMINI = "gemini"


class AITier(str, Enum):
    STANDARD = "standard"
    PREMIUM = "premium"


class CamelModel(BaseModel):
    """Base model that reads and writes the backend's camelCase keys"""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_wire(self) -> Dict[str, Any]:
        """Serialize with backend key names"""
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


class Anomaly(CamelModel):
    """
    One detected suspicious event
    Created by a detection run, mutated only through the review workflow
    """
    id: str
    log_file_id: Optional[str] = None
    timestamp: datetime
    anomaly_type: str
    description: str = ""
    risk_score: float = 0.0  # Always finite, clamped to [0, 10]
    detection_method: str = "traditional"
    status: AnomalyStatus = AnomalyStatus.PENDING
    source_data: Dict[str, Any] = Field(default_factory=dict)
    raw_log_entry: Optional[str] = None
    log_line_number: Optional[int] = None
    ai_analysis: Optional[Dict[str, Any]] = None
    priority: Optional[Priority] = None
    analyst_notes: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    raw_risk_score: Optional[Any] = Field(default=None, exclude=True)  # As sent, e.g. "9.0"

    @model_validator(mode="before")
    @classmethod
    def keep_raw_risk_score(cls, data):
        if isinstance(data, dict) and "rawRiskScore" not in data and "raw_risk_score" not in data:
            raw = data.get("riskScore", data.get("risk_score"))
            if raw is not None:
                data = {**data, "rawRiskScore": raw}
        return data

    @field_validator("risk_score", mode="before")
    @classmethod
    def coerce_risk_score(cls, v):
        """Backend sends a decimal string; anything unusable becomes 0.0"""
        parsed = parse_risk_score(v)
        if parsed is None:
            logger.warning(f"Unusable risk score {v!r}, treating as 0.0")
            return 0.0
        return clamp_risk_score(parsed)

    @field_validator("status", mode="before")
    @classmethod
    def map_legacy_status(cls, v):
        # Older backends used a single "reviewed" state
        if v == "reviewed":
            return AnomalyStatus.UNDER_REVIEW.value
        return v

    @field_validator("source_data", mode="before")
    @classmethod
    def default_source_data(cls, v):
        return v if isinstance(v, dict) else {}

    @property
    def category(self) -> DetectionCategory:
        return classify_detection_method(self.detection_method)

    @property
    def severity(self) -> Severity:
        return severity_for(self.risk_score)

    @property
    def risk_badge(self) -> str:
        return risk_badge(self.risk_score)

    @property
    def status_label(self) -> str:
        return status_label(self.status)

    @property
    def type_label(self) -> str:
        return format_anomaly_type(self.anomaly_type)

    @property
    def wire_risk_score(self) -> Any:
        """The backend's own score text when it is usable as is, otherwise the coerced score"""
        raw = self.raw_risk_score.strip() if isinstance(self.raw_risk_score, str) else self.raw_risk_score
        if parse_risk_score(raw) == self.risk_score:
            return raw
        return self.risk_score

    def source_value(self, key: str, default: str = "N/A") -> Any:
        """Look up a source_data field, falling back for missing or empty values"""
        return self.source_data.get(key) or default


class LogFile(CamelModel):
    """An uploaded log file and its processing state"""
    id: str
    filename: str
    original_name: Optional[str] = None
    file_size: int = 0
    mime_type: Optional[str] = None
    status: LogFileStatus = LogFileStatus.PENDING
    uploaded_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None
    total_entries: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices("totalEntries", "totalLogs", "total_entries"),
    )
    error_message: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.original_name or self.filename

    @property
    def is_processing(self) -> bool:
        return self.status == LogFileStatus.PROCESSING

    @property
    def can_retry(self) -> bool:
        """Only failed files may be reprocessed"""
        return self.status == LogFileStatus.FAILED


class ProcessingJob(CamelModel):
    """Backend bookkeeping for one processing run"""
    id: str
    log_file_id: str
    status: str = "queued"
    progress: int = 0
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    analysis_time_ms: Optional[int] = None
    detection_method: Optional[str] = None
    anomalies_found: Optional[int] = None
    log_entries_processed: Optional[int] = None
    error_message: Optional[str] = None


class UploadResult(CamelModel):
    """Response of POST /api/upload"""
    log_file: LogFile
    processing_job: Optional[ProcessingJob] = None
    total_entries: Optional[int] = None


class DashboardStats(CamelModel):
    """Response of GET /api/stats"""
    total_logs: int = 0
    anomalies_detected: int = 0
    average_risk_score: float = 0.0
    recent_anomalies: List[Anomaly] = Field(default_factory=list)
    high_risk_anomalies: List[Anomaly] = Field(default_factory=list)

    @field_validator("average_risk_score", mode="before")
    @classmethod
    def coerce_average(cls, v):
        parsed = parse_risk_score(v)
        return parsed if parsed is not None else 0.0


class ProviderKeyStatus(CamelModel):
    """Key status for one AI provider"""
    configured: bool = False
    working: bool = False
    error: Optional[str] = None


class ApiKeyStatus(CamelModel):
    """Response of GET /api/user-api-keys/status"""
    openai: ProviderKeyStatus = Field(default_factory=ProviderKeyStatus)
    gemini: ProviderKeyStatus = Field(default_factory=ProviderKeyStatus)

    def for_provider(self, provider: AIProvider) -> ProviderKeyStatus:
        return self.openai if provider == AIProvider.OPENAI else self.gemini

    def is_configured(self, provider: AIProvider) -> bool:
        return self.for_provider(provider).configured

    @property
    def any_configured(self) -> bool:
        return self.openai.configured or self.gemini.configured


# Availability keys the backend has used for each provider
AVAILABILITY_KEYS = {
    AIProvider.OPENAI: ("openai",),
    AIProvider.GEMINI: ("gcp_gemini", "gemini", "gcp"),
}


class AIProvidersInfo(CamelModel):
    """Response of GET /api/ai-providers"""
    availability: Dict[str, bool] = Field(default_factory=dict)
    models: Any = None
    default_config: Optional[Dict[str, Any]] = None

    def is_available(self, provider: AIProvider) -> bool:
        return any(self.availability.get(key) for key in AVAILABILITY_KEYS[provider])


class AIConfig(CamelModel):
    """Provider settings sent with an AI analysis request"""
    provider: AIProvider = AIProvider.OPENAI
    tier: AITier = AITier.STANDARD
    temperature: float = Field(default=0.1, ge=0, le=2)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "provider": "openai",
                "tier": "standard",
                "temperature": 0.1
            }
        }
    )


# ===== WEBHOOKS =====

class WebhookProvider(str, Enum):
    ZAPIER = "zapier"
    MAKE = "make"
    CUSTOM = "custom"


class TriggerConditions(CamelModel):
    """When the backend fires a webhook for a new anomaly; empty lists match everything"""
    min_risk_score: Optional[float] = Field(default=None, ge=0, le=10)
    anomaly_types: List[str] = Field(default_factory=list)
    priorities: List[Priority] = Field(default_factory=list)
    keywords: List[str] = Field(default_factory=list)

    def describe(self) -> str:
        parts = []
        if self.min_risk_score:
            parts.append(f"risk >= {self.min_risk_score:g}")
        if self.anomaly_types:
            parts.append("types: " + ", ".join(self.anomaly_types))
        if self.priorities:
            parts.append("priority: " + ", ".join(p.value for p in self.priorities))
        if self.keywords:
            parts.append("keywords: " + ", ".join(self.keywords))
        return "; ".join(parts) or "every anomaly"


class Webhook(CamelModel):
    """A webhook integration owned by the signed-in user"""
    id: str
    name: str
    provider: WebhookProvider = WebhookProvider.ZAPIER
    webhook_url: str
    is_active: bool = True
    trigger_conditions: TriggerConditions = Field(default_factory=TriggerConditions)
    payload_template: Optional[Dict[str, Any]] = None
    last_triggered: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @field_validator("trigger_conditions", mode="before")
    @classmethod
    def default_conditions(cls, v):
        return v if v is not None else {}


class WebhookDraft(CamelModel):
    """Body of POST /api/webhooks"""
    name: str = Field(min_length=1)
    provider: WebhookProvider = WebhookProvider.ZAPIER
    webhook_url: HttpUrl
    is_active: bool = True
    trigger_conditions: TriggerConditions = Field(
        default_factory=lambda: TriggerConditions(
            min_risk_score=5, priorities=[Priority.HIGH, Priority.CRITICAL]
        )
    )

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v


class WebhookTestResult(CamelModel):
    success: bool = False
    message: str = ""


# ===== METRICS =====

class MetricsTimeRange(str, Enum):
    LAST_HOUR = "1h"
    LAST_24H = "24h"
    LAST_7D = "7d"
    LAST_30D = "30d"


class MetricCounts(CamelModel):
    """Success/failure counts for one kind of event"""
    total: int = 0
    success: int = 0
    failure: int = 0
    success_rate: float = 0.0  # Percent, 0-100


class AIMetricCounts(MetricCounts):
    by_provider: Dict[str, MetricCounts] = Field(default_factory=dict)


class DetectionMetricCounts(MetricCounts):
    avg_anomalies: float = 0.0

    @field_validator("avg_anomalies", mode="before")
    @classmethod
    def coerce_average(cls, v):
        parsed = parse_risk_score(v)
        return parsed if parsed is not None else 0.0


# Success rates below these mark a pipeline as degraded
UPLOAD_HEALTH_THRESHOLD = 90.0
AI_HEALTH_THRESHOLD = 85.0


class MetricsSummary(CamelModel):
    """Response of GET /api/metrics?timeRange="""
    file_uploads: MetricCounts = Field(default_factory=MetricCounts)
    analysis_views: MetricCounts = Field(default_factory=MetricCounts)
    ai_analysis: AIMetricCounts = Field(default_factory=AIMetricCounts)
    anomaly_detection: DetectionMetricCounts = Field(default_factory=DetectionMetricCounts)

    @property
    def overall_total(self) -> int:
        return self.file_uploads.total + self.analysis_views.total + self.ai_analysis.total

    @property
    def overall_success_rate(self) -> float:
        success = self.file_uploads.success + self.analysis_views.success + self.ai_analysis.success
        return success / max(1, self.overall_total) * 100

    @property
    def upload_health(self) -> str:
        return "Healthy" if self.file_uploads.success_rate >= UPLOAD_HEALTH_THRESHOLD else "Degraded"

    @property
    def ai_health(self) -> str:
        return "Healthy" if self.ai_analysis.success_rate >= AI_HEALTH_THRESHOLD else "Degraded"
