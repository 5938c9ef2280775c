# test_filters.py
"""
Test the anomaly list view
Client-side filters, selection pruning and export of visible rows
"""

from datetime import date, timedelta

import pytest

from logguard.core.cache import ANOMALIES
from logguard.core.classification import DetectionCategory, Severity
from logguard.core.models import Anomaly, AnomalyStatus
from logguard.services.anomaly_list import (
    AnomalyFilter,
    AnomalyListView,
    TimeRange,
    category_counts,
    severity_counts,
)

from tests.fake_backend import FIXED_NOW, make_anomaly


def anomaly(anomaly_id: str, **overrides) -> Anomaly:
    return Anomaly.model_validate(make_anomaly(anomaly_id, **overrides))


@pytest.fixture
def view(client, cache, fixed_clock):
    view = AnomalyListView(client, cache, clock=fixed_clock)
    yield view
    view.close()


# ===== FILTER =====

def test_default_filter_shows_everything():
    anomalies = [anomaly("a1"), anomaly("a2", timestamp="2020-01-01T00:00:00Z")]
    filters = AnomalyFilter()

    assert not filters.is_active
    assert filters.apply(anomalies, FIXED_NOW) == anomalies


def test_filter_by_risk_status_and_category():
    anomalies = [
        anomaly("a1", riskScore="9.4", detectionMethod="advanced_ml"),
        anomaly("a2", riskScore="7.1", detectionMethod="openai", status="confirmed"),
        anomaly("a3", riskScore="2.0", detectionMethod="traditional_ml"),
    ]

    critical = AnomalyFilter(risk_level=Severity.CRITICAL).apply(anomalies, FIXED_NOW)
    assert [a.id for a in critical] == ["a1"]

    confirmed = AnomalyFilter(status=AnomalyStatus.CONFIRMED).apply(anomalies, FIXED_NOW)
    assert [a.id for a in confirmed] == ["a2"]

    genai = AnomalyFilter(category=DetectionCategory.GENAI).apply(anomalies, FIXED_NOW)
    assert [a.id for a in genai] == ["a2"]


def test_time_range_filter():
    recent = anomaly("recent", timestamp=(FIXED_NOW - timedelta(hours=2)).isoformat())
    last_week = anomaly("last_week", timestamp=(FIXED_NOW - timedelta(days=3)).isoformat())
    old = anomaly("old", timestamp=(FIXED_NOW - timedelta(days=60)).isoformat())
    anomalies = [recent, last_week, old]

    def ids(time_range):
        return [a.id for a in AnomalyFilter(time_range=time_range).apply(anomalies, FIXED_NOW)]

    assert ids(TimeRange.LAST_24H) == ["recent"]
    assert ids(TimeRange.LAST_7D) == ["recent", "last_week"]
    assert ids(TimeRange.LAST_30D) == ["recent", "last_week"]
    assert ids(TimeRange.ALL) == ["recent", "last_week", "old"]


def test_search_matches_type_and_description():
    anomalies = [
        anomaly("a1", anomalyType="brute_force", description="Repeated logins"),
        anomaly("a2", anomalyType="port_scan", description="Sequential ports"),
    ]

    assert [a.id for a in AnomalyFilter(search="brute force").apply(anomalies, FIXED_NOW)] == ["a1"]
    assert [a.id for a in AnomalyFilter(search="PORTS").apply(anomalies, FIXED_NOW)] == ["a2"]
    assert AnomalyFilter(search="   ").apply(anomalies, FIXED_NOW) == anomalies


def test_counts_include_every_bucket():
    anomalies = [anomaly("a1", riskScore="9.4"), anomaly("a2", riskScore="9.9", detectionMethod="gemini")]

    severities = severity_counts(anomalies)
    assert severities[Severity.CRITICAL] == 2
    assert severities[Severity.LOW] == 0
    assert len(severities) == 4

    categories = category_counts(anomalies)
    assert categories[DetectionCategory.TRADITIONAL] == 1
    assert categories[DetectionCategory.GENAI] == 1
    assert categories[DetectionCategory.UNKNOWN] == 0


# ===== LIST VIEW =====

@pytest.mark.asyncio
async def test_refresh_loads_through_cache(backend, view):
    visible = await view.refresh()
    await view.refresh()

    assert [a.id for a in visible] == ["a1", "a2", "a3"]
    assert len(backend.calls("GET", "/api/anomalies")) == 1
    assert not view.is_stale


@pytest.mark.asyncio
async def test_invalidation_marks_view_stale(backend, view, cache):
    await view.refresh()
    cache.invalidate(ANOMALIES)

    assert view.is_stale
    await view.refresh()
    assert len(backend.calls("GET", "/api/anomalies")) == 2


@pytest.mark.asyncio
async def test_filter_change_prunes_selection(view):
    """Rows hidden by a filter drop out of the selection"""
    print("\n🧪 Testing selection pruning on filter change\n")
    await view.refresh()
    view.selection.select_all()
    assert view.selection.count == 3

    view.set_filter(AnomalyFilter(status=AnomalyStatus.PENDING))

    print(f"   selected after filter: {view.selection.selected_ids}")
    assert view.selection.selected_ids == ["a1", "a3"]
    assert [a.id for a in view.selected_anomalies] == ["a1", "a3"]


@pytest.mark.asyncio
async def test_refetch_prunes_deleted_rows(backend, view, cache):
    await view.refresh()
    view.selection.select_all()

    del backend.anomalies["a2"]
    cache.invalidate(ANOMALIES)
    await view.refresh()

    assert view.selection.selected_ids == ["a1", "a3"]
    assert view.get("a2") is None


@pytest.mark.asyncio
async def test_export_uses_visible_rows(view):
    await view.refresh()
    view.set_filter(AnomalyFilter(risk_level=Severity.CRITICAL))

    export = view.export(today=date(2024, 1, 15))

    assert export.row_count == 1
    assert len(export.content.split("\n")) == 2


@pytest.mark.asyncio
async def test_export_disabled_when_nothing_visible(view):
    await view.refresh()
    view.set_filter(AnomalyFilter(search="no such anomaly"))

    assert not view.can_export
    assert view.export() is None


@pytest.mark.asyncio
async def test_closed_view_keeps_previous_rows(backend, view, cache):
    await view.refresh()
    view.close()

    backend.anomalies.clear()
    cache.invalidate(ANOMALIES)
    await view.refresh()

    assert len(view.visible) == 3
