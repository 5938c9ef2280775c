# logguard/client/api.py
"""
HTTP client for the LogGuard backend.

Authentication:
- Session cookie issued by the backend's sign-in flow (connect.sid by default)
- Optional bearer token for deployments that front the backend with one

Endpoints used:
- GET   /api/anomalies, /api/anomalies/:id
- PATCH /api/anomalies/:id, /api/anomalies/bulk-update
- GET   /api/log-files, /api/stats, /api/processing-jobs
- POST  /api/upload
- POST  /api/analyze-traditional/:id, /api/analyze-advanced-ml/:id, /api/process-logs/:id
- GET   /api/user-api-keys/status, /api/ai-providers
- POST  /api/user-api-keys, /api/user-api-keys/:provider/test
- GET   /api/webhooks, /api/metrics
- POST  /api/webhooks, /api/webhooks/:id/test
- PUT   /api/webhooks/:id
- DELETE /api/webhooks/:id
"""

import logging
from pathlib import Path
from typing import List, Optional, Dict, Any, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from ..core.config import settings
from ..core.models import (
    AIConfig,
    AIProvider,
    AIProvidersInfo,
    Anomaly,
    ApiKeyStatus,
    DashboardStats,
    LogFile,
    MetricsSummary,
    MetricsTimeRange,
    ProcessingJob,
    UploadResult,
    Webhook,
    WebhookDraft,
    WebhookTestResult,
)
from .errors import (
    APIError,
    AuthenticationError,
    BadRequestError,
    NetworkError,
    NotFoundError,
    ProcessingLimitError,
    RateLimitError,
    PROCESSING_LIMIT_MARKER,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class LogGuardClient:
    """
    Async client for the LogGuard REST API.

    Usage:
        >>> client = LogGuardClient("https://logguard.example.com", session_cookie="s%3A...")
        >>> anomalies = await client.list_anomalies()
        >>> await client.bulk_update_anomalies([a.id for a in anomalies], {"status": "confirmed"})
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        session_cookie: Optional[str] = None,
        api_token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: Backend root URL (defaults to settings.api_base_url)
            session_cookie: Session cookie value (defaults to settings.session_cookie)
            api_token: Bearer token (defaults to settings.api_token)
            timeout: Seconds per request (defaults to settings.request_timeout)
            transport: Custom httpx transport, e.g. httpx.ASGITransport in tests
        """
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self.session_cookie = session_cookie if session_cookie is not None else settings.session_cookie
        self.api_token = api_token if api_token is not None else settings.api_token
        self.timeout = timeout if timeout is not None else settings.request_timeout
        self._transport = transport

    def _get_headers(self) -> Dict[str, str]:
        """Get HTTP headers for API requests."""
        headers = {"Accept": "application/json"}
        if self.api_token:
            headers["Authorization"] = f"Bearer {self.api_token}"
        return headers

    def _get_cookies(self) -> Dict[str, str]:
        if self.session_cookie:
            return {settings.session_cookie_name: self.session_cookie}
        return {}

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        """Pull the backend's message out of an error response."""
        try:
            data = response.json()
        except ValueError:
            text = response.text.strip()
            return text or f"API error: {response.status_code}"

        if isinstance(data, dict):
            message = data.get("message") or data.get("error") or data.get("detail")
            if isinstance(message, str) and message:
                return message
        return f"API error: {response.status_code}"

    def _raise_for_status(self, response: httpx.Response, endpoint: str) -> None:
        """Map an error response onto the error taxonomy."""
        status = response.status_code
        if status < 400:
            return

        message = self._error_message(response)
        details = {"endpoint": endpoint, "status": status}

        # Capacity errors are recognized by message, whatever the status code
        if PROCESSING_LIMIT_MARKER in message:
            raise ProcessingLimitError(message, status, details)

        if status in (401, 403):
            raise AuthenticationError(status, details)

        if status == 429:
            retry_after = response.headers.get("retry-after")
            try:
                seconds = int(retry_after) if retry_after else None
            except ValueError:
                seconds = 60  # Default
            raise RateLimitError(retry_after=seconds, details=details)

        if status == 404:
            raise NotFoundError(message, status, details)

        if status in (400, 413, 422):
            raise BadRequestError(message, status, details)

        raise APIError(message, status, details)

    async def _make_request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict] = None,
        json_data: Optional[Dict] = None,
        files: Optional[Dict] = None,
    ) -> Any:
        """Make an HTTP request to the backend and return the decoded JSON body."""
        url = f"{self.base_url}{endpoint}"
        logger.debug(f"{method} {endpoint}")

        async with httpx.AsyncClient(
            timeout=self.timeout,
            cookies=self._get_cookies(),
            verify=settings.verify_ssl,
            transport=self._transport,
        ) as client:
            try:
                response = await client.request(
                    method,
                    url,
                    headers=self._get_headers(),
                    params=params,
                    json=json_data,
                    files=files,
                )
            except httpx.TimeoutException:
                raise NetworkError(
                    "Request timed out",
                    details={"endpoint": endpoint}
                )
            except httpx.RequestError as e:
                raise NetworkError(
                    f"Request failed: {str(e)}",
                    details={"endpoint": endpoint}
                )

        self._raise_for_status(response, endpoint)

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            raise APIError(
                "Backend returned a non-JSON response",
                response.status_code,
                details={"endpoint": endpoint}
            )

    def _validate(self, model: Type[ModelT], data: Any, endpoint: str) -> ModelT:
        """Parse one JSON object into a model, raising APIError on a malformed body."""
        if not isinstance(data, dict):
            raise APIError(
                "Unexpected response from backend",
                details={"endpoint": endpoint, "expected": "object", "got": type(data).__name__}
            )
        try:
            return model.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Malformed {model.__name__} from {endpoint}: {e.error_count()} error(s)")
            raise APIError(
                "Unexpected response from backend",
                details={"endpoint": endpoint, "errors": e.errors(include_url=False)}
            )

    def _validate_list(self, model: Type[ModelT], data: Any, endpoint: str) -> List[ModelT]:
        if data is None:
            return []
        if not isinstance(data, list):
            raise APIError(
                "Unexpected response from backend",
                details={"endpoint": endpoint, "expected": "array", "got": type(data).__name__}
            )
        return [self._validate(model, item, endpoint) for item in data]

    @staticmethod
    def _expect_object(data: Any, endpoint: str) -> Dict[str, Any]:
        if not isinstance(data, dict):
            raise APIError(
                "Unexpected response from backend",
                details={"endpoint": endpoint, "expected": "object", "got": type(data).__name__}
            )
        return data

    # ===== ANOMALIES =====

    async def list_anomalies(
        self,
        log_file_id: Optional[str] = None,
        limit: Optional[int] = None
    ) -> List[Anomaly]:
        """
        List anomalies for the signed-in user.

        Args:
            log_file_id: Only anomalies detected in this log file
            limit: Maximum number of anomalies
        """
        params = {}
        if log_file_id:
            params["logFileId"] = log_file_id
        if limit:
            params["limit"] = limit

        data = await self._make_request("GET", "/api/anomalies", params=params or None)
        return self._validate_list(Anomaly, data, "/api/anomalies")

    async def get_anomaly(self, anomaly_id: str) -> Anomaly:
        endpoint = f"/api/anomalies/{anomaly_id}"
        return self._validate(Anomaly, await self._make_request("GET", endpoint), endpoint)

    async def update_anomaly(self, anomaly_id: str, updates: Dict[str, Any]) -> Optional[Anomaly]:
        """
        Partially update one anomaly.

        Returns:
            The updated anomaly, or None when the backend only acknowledges
        """
        endpoint = f"/api/anomalies/{anomaly_id}"
        data = await self._make_request("PATCH", endpoint, json_data=updates)
        if isinstance(data, dict) and "id" in data and "timestamp" in data:
            return self._validate(Anomaly, data, endpoint)
        return None

    async def bulk_update_anomalies(self, anomaly_ids: List[str], updates: Dict[str, Any]) -> Dict[str, Any]:
        """Apply the same updates to several anomalies in one request."""
        data = await self._make_request(
            "PATCH",
            "/api/anomalies/bulk-update",
            json_data={"anomalyIds": list(anomaly_ids), "updates": updates},
        )
        return data if isinstance(data, dict) else {}

    # ===== LOG FILES =====

    async def list_log_files(self) -> List[LogFile]:
        data = await self._make_request("GET", "/api/log-files")
        return self._validate_list(LogFile, data, "/api/log-files")

    async def upload_log_file(self, file_path: Path) -> UploadResult:
        """Upload a log file as multipart form field 'logFile'."""
        file_path = Path(file_path)
        with open(file_path, "rb") as fh:
            content = fh.read()

        data = await self._make_request(
            "POST",
            "/api/upload",
            files={"logFile": (file_path.name, content, "text/plain")},
        )
        logger.info(f"Uploaded {file_path.name} ({len(content)} bytes)")
        return self._validate(UploadResult, data, "/api/upload")

    async def list_processing_jobs(self) -> List[ProcessingJob]:
        data = await self._make_request("GET", "/api/processing-jobs")
        return self._validate_list(ProcessingJob, data, "/api/processing-jobs")

    async def get_stats(self) -> DashboardStats:
        data = await self._make_request("GET", "/api/stats")
        return self._validate(DashboardStats, data or {}, "/api/stats")

    # ===== ANALYSIS =====

    async def analyze_traditional(self, log_file_id: str) -> Any:
        """Run rule-based detection; returns when the run has finished."""
        return await self._make_request("POST", f"/api/analyze-traditional/{log_file_id}")

    async def analyze_advanced_ml(self, log_file_id: str) -> Any:
        """Run the multi-model ensemble; returns when the run has finished."""
        return await self._make_request("POST", f"/api/analyze-advanced-ml/{log_file_id}")

    async def process_logs(
        self,
        log_file_id: str,
        ai_config: Optional[AIConfig] = None,
        retry: bool = False
    ) -> Any:
        """
        Start AI processing of a log file.

        The backend answers with an acknowledgement straight away; anomalies
        show up in /api/anomalies once processing completes.
        """
        body: Dict[str, Any] = {}
        if ai_config is not None:
            body["aiConfig"] = ai_config.to_wire()
        if retry:
            body["retry"] = True
        return await self._make_request("POST", f"/api/process-logs/{log_file_id}", json_data=body)

    # ===== AI PROVIDER CAPABILITIES =====

    async def get_api_key_status(self) -> ApiKeyStatus:
        data = await self._make_request("GET", "/api/user-api-keys/status")
        return self._validate(ApiKeyStatus, data or {}, "/api/user-api-keys/status")

    async def get_ai_providers(self) -> AIProvidersInfo:
        data = await self._make_request("GET", "/api/ai-providers")
        return self._validate(AIProvidersInfo, data or {}, "/api/ai-providers")

    async def save_api_key(self, provider: AIProvider, api_key: str) -> Dict[str, Any]:
        data = await self._make_request(
            "POST",
            "/api/user-api-keys",
            json_data={"provider": provider.value, "apiKey": api_key},
        )
        return self._expect_object(data, "/api/user-api-keys")

    async def test_api_key(self, provider: AIProvider) -> Dict[str, Any]:
        endpoint = f"/api/user-api-keys/{provider.value}/test"
        return self._expect_object(await self._make_request("POST", endpoint), endpoint)

    # ===== WEBHOOKS =====

    async def list_webhooks(self) -> List[Webhook]:
        data = await self._make_request("GET", "/api/webhooks")
        return self._validate_list(Webhook, data, "/api/webhooks")

    async def create_webhook(self, draft: WebhookDraft) -> Webhook:
        data = await self._make_request("POST", "/api/webhooks", json_data=draft.to_wire())
        return self._validate(Webhook, data, "/api/webhooks")

    async def update_webhook(self, webhook_id: str, updates: Dict[str, Any]) -> Webhook:
        """Partially update a webhook; updates use backend key names."""
        endpoint = f"/api/webhooks/{webhook_id}"
        data = await self._make_request("PUT", endpoint, json_data=updates)
        return self._validate(Webhook, data, endpoint)

    async def delete_webhook(self, webhook_id: str) -> None:
        await self._make_request("DELETE", f"/api/webhooks/{webhook_id}")

    async def test_webhook(self, webhook_id: str) -> WebhookTestResult:
        """Ask the backend to send a sample payload to the webhook URL."""
        endpoint = f"/api/webhooks/{webhook_id}/test"
        return self._validate(WebhookTestResult, await self._make_request("POST", endpoint), endpoint)

    # ===== METRICS =====

    async def get_metrics(self, time_range: MetricsTimeRange = MetricsTimeRange.LAST_24H) -> MetricsSummary:
        data = await self._make_request("GET", "/api/metrics", params={"timeRange": time_range.value})
        return self._validate(MetricsSummary, data or {}, "/api/metrics")

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(base_url={self.base_url})>"
