# test_bulk_update.py
"""
Test the Bulk Status Update Coordinator against the fake backend
"""

import asyncio

import pytest

from logguard.client.errors import OperationInProgressError
from logguard.core.cache import ANOMALIES, STATS
from logguard.core.models import AnomalyStatus
from logguard.services.bulk_update import BULK_ACTIONS, BulkStatusUpdateCoordinator
from logguard.services.selection import SelectionManager

from tests.fake_backend import FIXED_NOW

BULK_PATH = "/api/anomalies/bulk-update"


def make_coordinator(client, cache, notifier, visible=("a1", "a2", "a3")):
    selection = SelectionManager(list(visible))
    coordinator = BulkStatusUpdateCoordinator(
        client, cache, selection, notifier, clock=lambda: FIXED_NOW
    )
    return coordinator, selection


@pytest.mark.asyncio
async def test_mark_three_as_confirmed(backend, client, cache, notifier):
    """One PATCH with three ids and status confirmed, then the selection is empty"""
    print("\n🧪 Testing bulk 'Mark as Confirmed'\n")

    coordinator, selection = make_coordinator(client, cache, notifier)
    selection.select_all()

    result = await coordinator.apply_action("Mark as Confirmed")

    calls = backend.calls("PATCH", BULK_PATH)
    print(f"   PATCH calls: {len(calls)}")
    print(f"   body: {calls[0].body}")

    assert len(calls) == 1, "Exactly one request per bulk action"
    assert len(calls[0].body["anomalyIds"]) == 3
    assert calls[0].body["updates"]["status"] == "confirmed"
    assert calls[0].body["updates"]["reviewedAt"] == FIXED_NOW.isoformat()

    assert result.success
    assert result.updated_count == 3
    assert selection.is_empty, "Selection clears after a successful bulk update"
    assert backend.anomalies["a1"]["status"] == "confirmed"
    assert notifier.latest.title == "Anomalies updated"
    assert not notifier.latest.is_error


@pytest.mark.asyncio
async def test_empty_selection_makes_no_request(backend, client, cache, notifier):
    coordinator, selection = make_coordinator(client, cache, notifier)

    result = await coordinator.apply_status(AnomalyStatus.DISMISSED)

    assert result is None
    assert backend.requests == [], "Empty selection must not touch the network"
    assert not coordinator.can_submit


@pytest.mark.asyncio
async def test_failure_preserves_selection(backend, client, cache, notifier):
    backend.fail("PATCH", BULK_PATH, 500, "Database unavailable")
    coordinator, selection = make_coordinator(client, cache, notifier)
    selection.toggle_row("a1")
    selection.toggle_row("a3")

    result = await coordinator.apply_status(AnomalyStatus.FALSE_POSITIVE)

    assert result is not None and not result.success
    assert result.error.status_code == 500
    assert selection.selected_ids == ["a1", "a3"], "Selection is kept so the user can retry"
    assert notifier.latest.is_error
    assert notifier.latest.title == "Bulk update failed"
    assert "Database unavailable" in notifier.latest.description
    assert not coordinator.is_pending, "Guard returns to idle after failure"


@pytest.mark.asyncio
async def test_success_invalidates_list_and_stats(client, cache, notifier):
    cache.set(ANOMALIES, ["stale"])
    cache.set(STATS, {"stale": True})
    coordinator, selection = make_coordinator(client, cache, notifier)
    selection.select_all()

    await coordinator.apply_status(AnomalyStatus.UNDER_REVIEW)

    assert not cache.is_fresh(ANOMALIES)
    assert not cache.is_fresh(STATS)


@pytest.mark.asyncio
async def test_partial_count_is_reported(backend, client, cache, notifier):
    """Backend updating fewer rows than requested shows up in the message"""
    coordinator, selection = make_coordinator(client, cache, notifier, visible=("a1", "a2", "gone"))
    selection.select_all()

    result = await coordinator.apply_status(AnomalyStatus.DISMISSED)

    assert result.success
    assert result.updated_count == 2
    assert result.requested_count == 3
    assert notifier.latest.description.startswith("2 of 3")


@pytest.mark.asyncio
async def test_second_submission_is_rejected_while_running(backend, client, cache, notifier):
    release = backend.hold("PATCH", BULK_PATH)
    coordinator, selection = make_coordinator(client, cache, notifier)
    selection.select_all()

    first = asyncio.create_task(coordinator.apply_status(AnomalyStatus.CONFIRMED))
    while not backend.calls("PATCH", BULK_PATH):
        await asyncio.sleep(0)

    assert coordinator.is_pending
    with pytest.raises(OperationInProgressError):
        await coordinator.apply_status(AnomalyStatus.DISMISSED)

    release.set()
    result = await first

    assert result.success
    assert len(backend.calls("PATCH", BULK_PATH)) == 1
    assert not coordinator.is_pending


def test_bulk_action_menu():
    assert BULK_ACTIONS["Mark as Confirmed"] == AnomalyStatus.CONFIRMED
    assert BULK_ACTIONS["Mark as False Positive"] == AnomalyStatus.FALSE_POSITIVE
    assert set(BULK_ACTIONS.values()) == set(AnomalyStatus)
