# logguard/services/dispatch.py
"""
Analysis Dispatch Gateway

Runs one of three detection strategies against an uploaded log file and
turns the three response shapes into a single AnalysisSummary:

- traditional:  POST /api/analyze-traditional/:id   -> finished run
- advanced_ml:  POST /api/analyze-advanced-ml/:id   -> finished run + modelsUsed
- ai:           POST /api/process-logs/:id          -> acknowledgement only

AI runs complete in the background. The gateway only reports that the run
started; the anomaly list picks up results through ProcessingPoller.

Each (strategy, log file) pair is its own invocation site with its own
Idle/Running guard. Different strategies may run concurrently on the same
file.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import Field, TypeAdapter, ValidationError, field_validator

from ..core.cache import QueryCache, ANOMALIES, LOG_FILES, METRICS, STATS, API_KEY_STATUS, AI_PROVIDERS
from ..core.classification import clamp_risk_score, parse_risk_score
from ..core.config import settings
from ..core.models import AIConfig, AIProvider, AITier, CamelModel
from ..client.api import LogGuardClient
from ..client.errors import APIError, ConfigurationError, LogGuardError
from .guard import OperationGuard, OperationState
from .notifications import Notifier

logger = logging.getLogger(__name__)


class AnalysisStrategy(str, Enum):
    """Detection backends the dashboard can dispatch to"""
    TRADITIONAL = "traditional"
    ADVANCED_ML = "advanced_ml"
    AI = "ai"


FALLBACK_ERRORS: Dict[AnalysisStrategy, str] = {
    AnalysisStrategy.TRADITIONAL: "Traditional analysis failed",
    AnalysisStrategy.ADVANCED_ML: "Advanced ML analysis failed",
    AnalysisStrategy.AI: "AI analysis failed",
}


# ===== RESPONSE VARIANTS =====

class DetectedAnomaly(CamelModel):
    """One anomaly as reported in a finished run's response"""
    anomaly_type: str = "unknown"
    description: str = ""
    risk_score: float = 0.0
    confidence: Optional[float] = None  # Advanced ML only, in [0, 1]

    @field_validator("risk_score", mode="before")
    @classmethod
    def coerce_risk_score(cls, v):
        parsed = parse_risk_score(v)
        return clamp_risk_score(parsed) if parsed is not None else 0.0

    @field_validator("confidence", mode="before")
    @classmethod
    def coerce_confidence(cls, v):
        if v is None:
            return None
        parsed = parse_risk_score(v)
        return max(0.0, min(1.0, parsed)) if parsed is not None else None


class TraditionalResult(CamelModel):
    kind: Literal["traditional"] = "traditional"
    method: str = "traditional_ml"
    anomalies_found: int = 0
    log_entries_analyzed: int = 0
    anomalies: List[DetectedAnomaly] = Field(default_factory=list)


class AdvancedMlResult(CamelModel):
    kind: Literal["advanced_ml"] = "advanced_ml"
    method: str = "advanced_ml"
    anomalies_found: int = 0
    log_entries_analyzed: int = 0
    anomalies: List[DetectedAnomaly] = Field(default_factory=list)
    models_used: List[str] = Field(default_factory=list)


class AiDispatchAck(CamelModel):
    kind: Literal["ai"] = "ai"
    message: str = "Processing started"
    log_file_id: Optional[str] = None
    ai_config: Optional[AIConfig] = None


AnalysisOutcome = Annotated[
    Union[TraditionalResult, AdvancedMlResult, AiDispatchAck],
    Field(discriminator="kind"),
]

_outcome_adapter = TypeAdapter(AnalysisOutcome)


def parse_outcome(strategy: AnalysisStrategy, payload: Any) -> AnalysisOutcome:
    """Tag a raw backend payload with its strategy and validate it"""
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise APIError(
            "Unexpected analysis response from backend",
            details={"strategy": strategy.value, "got": type(payload).__name__}
        )
    data = dict(payload)
    data["kind"] = strategy.value
    return _outcome_adapter.validate_python(data)


# ===== DISPLAY MODEL =====

@dataclass
class AnalysisSummary:
    """What the dashboard shows after a dispatch"""
    strategy: AnalysisStrategy
    log_file_id: str
    completed: bool  # False for AI runs, which only start here
    title: str
    description: str
    method: Optional[str] = None
    anomalies_found: Optional[int] = None
    log_entries_analyzed: Optional[int] = None
    models_used: List[str] = field(default_factory=list)
    average_confidence: Optional[float] = None
    top_anomalies: List[DetectedAnomaly] = field(default_factory=list)
    provider: Optional[AIProvider] = None


def normalize(outcome: AnalysisOutcome, log_file_id: str) -> AnalysisSummary:
    """Collapse any strategy's response into an AnalysisSummary"""
    if isinstance(outcome, AiDispatchAck):
        provider = outcome.ai_config.provider if outcome.ai_config else None
        provider_name = provider.value if provider else "default"
        return AnalysisSummary(
            strategy=AnalysisStrategy.AI,
            log_file_id=outcome.log_file_id or log_file_id,
            completed=False,
            title="AI Analysis Started",
            description=(
                f"Log file is being analyzed with {provider_name} AI. "
                "This may take a few minutes."
            ),
            provider=provider,
        )

    if isinstance(outcome, AdvancedMlResult):
        confidences = [a.confidence for a in outcome.anomalies if a.confidence is not None]
        return AnalysisSummary(
            strategy=AnalysisStrategy.ADVANCED_ML,
            log_file_id=log_file_id,
            completed=True,
            title="Advanced ML Analysis Complete",
            description=f"Found {outcome.anomalies_found} anomalies using multi-model ensemble",
            method=outcome.method,
            anomalies_found=outcome.anomalies_found,
            log_entries_analyzed=outcome.log_entries_analyzed,
            models_used=list(outcome.models_used),
            average_confidence=sum(confidences) / len(confidences) if confidences else None,
            top_anomalies=outcome.anomalies[:3],
        )

    return AnalysisSummary(
        strategy=AnalysisStrategy.TRADITIONAL,
        log_file_id=log_file_id,
        completed=True,
        title="Traditional Analysis Complete",
        description=f"Found {outcome.anomalies_found} anomalies using rule-based detection",
        method=outcome.method,
        anomalies_found=outcome.anomalies_found,
        log_entries_analyzed=outcome.log_entries_analyzed,
        top_anomalies=outcome.anomalies[:3],
    )


def default_ai_config() -> AIConfig:
    return AIConfig(
        provider=AIProvider(settings.default_ai_provider),
        tier=AITier(settings.default_ai_tier),
        temperature=settings.ai_temperature,
    )


# ===== GATEWAY =====

@dataclass
class DispatchSite:
    """One analysis button: a strategy applied to one log file"""
    strategy: AnalysisStrategy
    log_file_id: str
    guard: OperationGuard
    last_summary: Optional[AnalysisSummary] = None
    last_error: Optional[LogGuardError] = None

    @property
    def state(self) -> OperationState:
        return self.guard.state

    @property
    def is_running(self) -> bool:
        return self.guard.is_running


class AnalysisDispatchGateway:
    """
    Usage:
        gateway = AnalysisDispatchGateway(client, cache, notifier)
        summary = await gateway.run_traditional(log_file.id)
        summary = await gateway.start_ai_analysis(log_file.id, AIConfig(provider="gemini"))
    """

    def __init__(self, client: LogGuardClient, cache: QueryCache, notifier: Notifier):
        self.client = client
        self.cache = cache
        self.notifier = notifier
        self._sites: Dict[Tuple[AnalysisStrategy, str], DispatchSite] = {}
        self._closed = False

    def site(self, strategy: AnalysisStrategy, log_file_id: str) -> DispatchSite:
        strategy = AnalysisStrategy(strategy)
        key = (strategy, log_file_id)
        if key not in self._sites:
            self._sites[key] = DispatchSite(
                strategy=strategy,
                log_file_id=log_file_id,
                guard=OperationGuard(f"{strategy.value} analysis of {log_file_id}"),
            )
        return self._sites[key]

    def is_running(self, strategy: AnalysisStrategy, log_file_id: str) -> bool:
        return self.site(strategy, log_file_id).is_running

    async def run_traditional(self, log_file_id: str) -> Optional[AnalysisSummary]:
        return await self.dispatch(AnalysisStrategy.TRADITIONAL, log_file_id)

    async def run_advanced_ml(self, log_file_id: str) -> Optional[AnalysisSummary]:
        return await self.dispatch(AnalysisStrategy.ADVANCED_ML, log_file_id)

    async def start_ai_analysis(
        self,
        log_file_id: str,
        ai_config: Optional[AIConfig] = None
    ) -> Optional[AnalysisSummary]:
        """Start a background AI run; returns once the backend acknowledged it"""
        return await self.dispatch(AnalysisStrategy.AI, log_file_id, ai_config)

    async def check_ai_capability(self, provider: AIProvider):
        """
        Refuse AI dispatch unless keys are configured and the provider is available

        Raises:
            ConfigurationError: If either check fails
        """
        key_status = await self.cache.get(API_KEY_STATUS, self.client.get_api_key_status)
        if not key_status.any_configured:
            raise ConfigurationError(
                "Please configure your OpenAI or Gemini API keys in Settings first.",
                {"title": "API Keys Required"}
            )

        providers = await self.cache.get(AI_PROVIDERS, self.client.get_ai_providers)
        if not providers.is_available(provider):
            raise ConfigurationError(
                f"The {provider.value} provider is not available right now. "
                "Choose another provider or check its configuration.",
                {"title": "AI Provider Unavailable"}
            )

    async def _call_backend(
        self,
        strategy: AnalysisStrategy,
        log_file_id: str,
        ai_config: Optional[AIConfig]
    ) -> AnalysisOutcome:
        if strategy == AnalysisStrategy.AI:
            config = ai_config or default_ai_config()
            await self.check_ai_capability(config.provider)
            ack = await self.client.process_logs(log_file_id, config)
            return AiDispatchAck(
                message=ack.get("message", "Processing started") if isinstance(ack, dict) else "Processing started",
                log_file_id=log_file_id,
                ai_config=config,
            )

        if strategy == AnalysisStrategy.TRADITIONAL:
            payload = await self.client.analyze_traditional(log_file_id)
        else:
            payload = await self.client.analyze_advanced_ml(log_file_id)

        try:
            return parse_outcome(strategy, payload)
        except ValidationError as e:
            raise APIError(
                "Unexpected analysis response from backend",
                details={"errors": e.errors(include_url=False)}
            )

    async def dispatch(
        self,
        strategy: AnalysisStrategy,
        log_file_id: str,
        ai_config: Optional[AIConfig] = None
    ) -> Optional[AnalysisSummary]:
        """
        Run one strategy against one log file

        Returns:
            AnalysisSummary on success, None on failure (a notification is raised)

        Raises:
            OperationInProgressError: If this strategy is already running for this file
        """
        site = self.site(strategy, log_file_id)

        async with site.guard.running():
            logger.info(f"Dispatching {site.strategy.value} analysis for log file {log_file_id}")
            try:
                outcome = await self._call_backend(site.strategy, log_file_id, ai_config)
            except ConfigurationError as e:
                logger.warning(f"AI analysis refused for {log_file_id}: {e.message}")
                if not self._closed:
                    site.last_summary = None
                    site.last_error = e
                self.notifier.error(e.details.get("title", "AI Provider Unavailable"), e.message)
                return None
            except LogGuardError as e:
                logger.error(f"{site.strategy.value} analysis failed for {log_file_id}: {e}")
                if not self._closed:
                    site.last_summary = None
                    site.last_error = e
                self.notifier.failure(e, FALLBACK_ERRORS[site.strategy])
                return None

        summary = normalize(outcome, log_file_id)

        # Newly created anomalies, and the file's status change, live on the server
        self.cache.invalidate(ANOMALIES)
        self.cache.invalidate(LOG_FILES)
        self.cache.invalidate(STATS)
        self.cache.invalidate(METRICS)

        if self._closed:
            logger.debug(f"Gateway closed; dropping result of {site.strategy.value} for {log_file_id}")
        else:
            site.last_summary = summary
            site.last_error = None

        self.notifier.success(summary.title, summary.description)
        return summary

    def close(self):
        """Stop recording results; responses that arrive later are ignored"""
        self._closed = True
