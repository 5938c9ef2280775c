# test_models.py
"""Quick test to verify the wire models parse backend payloads"""

from logguard.core.models import (
    AIConfig,
    AIProvider,
    AIProvidersInfo,
    Anomaly,
    AnomalyStatus,
    ApiKeyStatus,
    DashboardStats,
    LogFile,
    LogFileStatus,
    UploadResult,
)
from logguard.core.classification import DetectionCategory, Severity

from tests.fake_backend import make_anomaly, make_log_file


def test_anomaly_from_wire():
    print("🧪 Testing Anomaly parsing\n")

    anomaly = Anomaly.model_validate(make_anomaly("a1", riskScore="9.40"))
    print(f"✅ Parsed anomaly {anomaly.id}: {anomaly.type_label} ({anomaly.risk_badge})")

    assert anomaly.risk_score == 9.4
    assert anomaly.anomaly_type == "suspicious_access"
    assert anomaly.log_file_id == "lf1"
    assert anomaly.status == AnomalyStatus.PENDING
    assert anomaly.category == DetectionCategory.TRADITIONAL
    assert anomaly.severity == Severity.CRITICAL
    assert anomaly.source_value("sourceIP") == "10.0.0.1"
    assert anomaly.source_value("url") == "N/A"


def test_risk_score_coercion():
    """Unusable scores become 0.0, out-of-range scores are clamped"""
    cases = {
        "abc": 0.0,
        None: 0.0,
        "NaN": 0.0,
        "Infinity": 0.0,
        True: 0.0,
        "-3": 0.0,
        "42": 10.0,
        7: 7.0,
    }
    for raw, expected in cases.items():
        anomaly = Anomaly.model_validate(make_anomaly("a1", riskScore=raw))
        assert anomaly.risk_score == expected, f"{raw!r} should become {expected}"


def test_legacy_reviewed_status():
    anomaly = Anomaly.model_validate(make_anomaly("a1", status="reviewed"))
    assert anomaly.status == AnomalyStatus.UNDER_REVIEW


def test_missing_source_data():
    anomaly = Anomaly.model_validate(make_anomaly("a1", sourceData=None))
    assert anomaly.source_data == {}
    assert anomaly.source_value("user") == "N/A"


def test_empty_source_value_falls_back():
    anomaly = Anomaly.model_validate(make_anomaly("a1", sourceData={"user": "", "action": 0}))
    assert anomaly.source_value("user") == "N/A"
    assert anomaly.source_value("action") == "N/A"


def test_log_file_entry_count_aliases():
    assert LogFile.model_validate(make_log_file("lf1", totalLogs=5)).total_entries == 5

    payload = make_log_file("lf2")
    del payload["totalLogs"]
    payload["totalEntries"] = 9
    log_file = LogFile.model_validate(payload)
    assert log_file.total_entries == 9
    assert log_file.display_name == "lf2.log"


def test_log_file_retry_only_when_failed():
    for status in LogFileStatus:
        log_file = LogFile.model_validate(make_log_file("lf1", status=status.value))
        assert log_file.can_retry == (status == LogFileStatus.FAILED)


def test_upload_result():
    result = UploadResult.model_validate({
        "logFile": make_log_file("lf9", status="pending"),
        "processingJob": {"id": "job1", "logFileId": "lf9", "status": "queued"},
        "totalEntries": 120,
    })
    assert result.log_file.id == "lf9"
    assert result.processing_job.status == "queued"
    assert result.total_entries == 120


def test_raw_risk_score_is_kept_but_not_sent():
    anomaly = Anomaly.model_validate(make_anomaly("a1", riskScore="9.0"))

    assert anomaly.risk_score == 9.0
    assert anomaly.wire_risk_score == "9.0"
    assert "rawRiskScore" not in anomaly.to_wire()
    assert anomaly.to_wire()["riskScore"] == 9.0


def test_dashboard_stats_average_as_string():
    stats = DashboardStats.model_validate({"totalLogs": 10, "anomaliesDetected": 2, "averageRiskScore": "6.50"})
    assert stats.average_risk_score == 6.5
    assert stats.recent_anomalies == []


def test_api_key_status():
    status = ApiKeyStatus.model_validate({
        "openai": {"configured": True, "working": False, "error": "Invalid key"},
    })
    assert status.any_configured
    assert status.is_configured(AIProvider.OPENAI)
    assert not status.is_configured(AIProvider.GEMINI)
    assert status.for_provider(AIProvider.OPENAI).error == "Invalid key"

    assert not ApiKeyStatus.model_validate({}).any_configured


def test_provider_availability_keys():
    info = AIProvidersInfo.model_validate({"availability": {"openai": False, "gcp_gemini": True}})
    assert not info.is_available(AIProvider.OPENAI)
    assert info.is_available(AIProvider.GEMINI)

    legacy = AIProvidersInfo.model_validate({"availability": {"gemini": True}})
    assert legacy.is_available(AIProvider.GEMINI)


def test_ai_config_wire_format():
    config = AIConfig(provider="gemini", tier="premium")
    assert config.to_wire() == {"provider": "gemini", "tier": "premium", "temperature": 0.1}


if __name__ == "__main__":
    test_anomaly_from_wire()
    test_risk_score_coercion()
    print("\n🔥 All models working!")
