# test_client.py
"""
Test LogGuardClient against the fake backend
Endpoints, wire format and error mapping
"""

import httpx
import pytest

from logguard.client.api import LogGuardClient
from logguard.client.errors import (
    APIError,
    AuthenticationError,
    BadRequestError,
    NetworkError,
    NotFoundError,
    ProcessingLimitError,
    RateLimitError,
)
from logguard.core.models import AIConfig, AIProvider, LogFileStatus


@pytest.mark.asyncio
async def test_list_anomalies(backend, client):
    anomalies = await client.list_anomalies()

    assert [a.id for a in anomalies] == ["a1", "a2", "a3"]
    assert anomalies[0].risk_score == 9.4


@pytest.mark.asyncio
async def test_list_anomalies_params(backend, client):
    await client.list_anomalies(log_file_id="lf1", limit=2)

    assert backend.calls("GET", "/api/anomalies")[0].params == {"logFileId": "lf1", "limit": "2"}


@pytest.mark.asyncio
async def test_bulk_update_body(backend, client):
    await client.bulk_update_anomalies(["a1", "a2"], {"status": "dismissed"})

    body = backend.calls("PATCH", "/api/anomalies/bulk-update")[0].body
    assert body == {"anomalyIds": ["a1", "a2"], "updates": {"status": "dismissed"}}


@pytest.mark.asyncio
async def test_update_anomaly_returns_record(client):
    updated = await client.update_anomaly("a1", {"status": "confirmed"})
    assert updated.status.value == "confirmed"


@pytest.mark.asyncio
async def test_process_logs_retry_body(backend, client):
    await client.process_logs("lf1", AIConfig(provider=AIProvider.GEMINI), retry=True)

    body = backend.calls("POST", "/api/process-logs/lf1")[0].body
    assert body == {
        "aiConfig": {"provider": "gemini", "tier": "standard", "temperature": 0.1},
        "retry": True,
    }


@pytest.mark.asyncio
async def test_upload_log_file(tmp_path, backend, client):
    log_path = tmp_path / "firewall.log"
    log_path.write_text("line one\nline two\nline three\n", encoding="utf-8")

    result = await client.upload_log_file(log_path)

    assert result.log_file.filename == "firewall.log"
    assert result.log_file.status == LogFileStatus.PENDING
    assert result.total_entries == 3
    assert result.processing_job is not None


@pytest.mark.asyncio
async def test_session_cookie_is_sent(backend):
    seen = {}

    def handler(request: httpx.Request):
        seen["cookie"] = request.headers.get("cookie")
        seen["auth"] = request.headers.get("authorization")
        return httpx.Response(200, json=[])

    client = LogGuardClient(
        base_url="http://testserver",
        session_cookie="s%3Aabc",
        api_token="tok",
        transport=httpx.MockTransport(handler),
    )
    await client.list_log_files()

    assert seen["cookie"] == "connect.sid=s%3Aabc"
    assert seen["auth"] == "Bearer tok"


# ===== ERROR MAPPING =====

@pytest.mark.parametrize("status, message, error_type", [
    (400, "Invalid file type", BadRequestError),
    (401, "Unauthorized", AuthenticationError),
    (403, "Forbidden", AuthenticationError),
    (404, "Anomaly not found", NotFoundError),
    (413, "File too large", BadRequestError),
    (429, "Too many requests", RateLimitError),
    (500, "Internal server error", APIError),
    (429, "Processing limit reached. Please wait.", ProcessingLimitError),
    (500, "Processing limit reached", ProcessingLimitError),
])
@pytest.mark.asyncio
async def test_error_mapping(backend, client, status, message, error_type):
    backend.fail("GET", "/api/log-files", status, message)

    with pytest.raises(error_type) as exc_info:
        await client.list_log_files()

    assert type(exc_info.value) is error_type
    assert exc_info.value.status_code == status


@pytest.mark.asyncio
async def test_error_message_comes_from_body(backend, client):
    backend.fail("GET", "/api/log-files", 500, "Database unavailable")

    with pytest.raises(APIError) as exc_info:
        await client.list_log_files()

    assert exc_info.value.message == "Database unavailable"
    assert str(exc_info.value) == "500: Database unavailable"


@pytest.mark.asyncio
async def test_retriable_flags(backend, client):
    backend.fail("GET", "/api/log-files", 500, "Processing limit reached")
    with pytest.raises(ProcessingLimitError) as exc_info:
        await client.list_log_files()
    assert exc_info.value.retriable

    backend.fail("GET", "/api/log-files", 400, "bad")
    with pytest.raises(BadRequestError) as exc_info:
        await client.list_log_files()
    assert not exc_info.value.retriable


@pytest.mark.asyncio
async def test_transport_failure_is_network_error():
    def handler(request: httpx.Request):
        raise httpx.ConnectError("connection refused", request=request)

    client = LogGuardClient(base_url="http://testserver", transport=httpx.MockTransport(handler))

    with pytest.raises(NetworkError) as exc_info:
        await client.list_anomalies()
    assert exc_info.value.retriable


@pytest.mark.asyncio
async def test_non_json_success_body():
    client = LogGuardClient(
        base_url="http://testserver",
        transport=httpx.MockTransport(lambda request: httpx.Response(200, text="<html>login</html>")),
    )

    with pytest.raises(APIError):
        await client.get_stats()


@pytest.mark.asyncio
async def test_malformed_anomaly_is_an_api_error(backend, client):
    del backend.anomalies["a1"]["timestamp"]

    with pytest.raises(APIError) as exc_info:
        await client.get_anomaly("a1")

    assert exc_info.value.message == "Unexpected response from backend"
    assert exc_info.value.details["endpoint"] == "/api/anomalies/a1"
    assert exc_info.value.details["errors"], "Validation errors are kept for logging"


@pytest.mark.asyncio
async def test_wrong_json_type_is_an_api_error():
    client = LogGuardClient(
        base_url="http://testserver",
        transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"items": []})),
    )

    with pytest.raises(APIError) as exc_info:
        await client.list_log_files()
    assert exc_info.value.details["expected"] == "array"


@pytest.mark.asyncio
async def test_list_body_for_object_endpoint_is_an_api_error():
    client = LogGuardClient(
        base_url="http://testserver",
        transport=httpx.MockTransport(lambda request: httpx.Response(200, json=[{"totalLogs": 1}])),
    )

    with pytest.raises(APIError) as exc_info:
        await client.get_stats()
    assert exc_info.value.details["expected"] == "object"
