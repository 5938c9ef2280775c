# test_metrics.py
"""
Test pipeline metrics: parsing, derived rates and per-window caching
"""

import pytest

from logguard.core.cache import METRICS
from logguard.core.models import MetricCounts, MetricsSummary, MetricsTimeRange
from logguard.services.dispatch import AnalysisDispatchGateway
from logguard.services.metrics import MetricsService, format_rate, provider_rows


@pytest.fixture
def metrics(client, cache):
    return MetricsService(client, cache)


@pytest.mark.asyncio
async def test_summary_parses_backend_shape(backend, metrics):
    print("\n🧪 Testing metrics summary\n")
    summary = await metrics.summary()

    print(f"   Overall: {summary.overall_success_rate:.1f}%")
    assert backend.calls("GET", "/api/metrics")[0].params == {"timeRange": "24h"}
    assert summary.file_uploads.success_rate == 95
    assert summary.anomaly_detection.avg_anomalies == pytest.approx(3.4667)
    assert summary.ai_analysis.by_provider["gemini"].failure == 2
    # (19 + 40 + 8) / (20 + 40 + 10)
    assert summary.overall_success_rate == pytest.approx(67 / 70 * 100)
    assert summary.upload_health == "Healthy"
    assert summary.ai_health == "Degraded", "80% AI success is below the 85% threshold"


@pytest.mark.asyncio
async def test_each_window_is_cached_separately(backend, metrics):
    await metrics.summary(MetricsTimeRange.LAST_7D)
    await metrics.summary(MetricsTimeRange.LAST_7D)
    await metrics.summary(MetricsTimeRange.LAST_HOUR)

    ranges = [c.params["timeRange"] for c in backend.calls("GET", "/api/metrics")]
    assert ranges == ["7d", "1h"]


@pytest.mark.asyncio
async def test_refresh_refetches(backend, metrics):
    await metrics.summary("30d")
    await metrics.refresh("30d")

    assert len(backend.calls("GET", "/api/metrics")) == 2


@pytest.mark.asyncio
async def test_analysis_invalidates_metrics(backend, client, cache, notifier, metrics):
    await metrics.summary()
    await AnalysisDispatchGateway(client, cache, notifier).run_traditional("lf1")

    assert not cache.is_fresh(METRICS + ("24h",))


def test_empty_summary():
    summary = MetricsSummary.model_validate({})

    assert summary.overall_success_rate == 0
    assert summary.upload_health == "Degraded"
    assert format_rate(summary.file_uploads) == "no data"
    assert provider_rows(summary) == []


def test_format_rate_and_provider_order():
    assert format_rate(MetricCounts(total=20, success=19, failure=1, success_rate=95)) == "95.0% (19/20)"

    summary = MetricsSummary.model_validate({
        "aiAnalysis": {"byProvider": {
            "gemini": {"total": 1, "success": 1},
            "openai": {"total": 5, "success": 4},
        }},
    })
    assert [name for name, _ in provider_rows(summary)] == ["openai", "gemini"]
