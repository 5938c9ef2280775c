# test_webhooks.py
"""
Test webhook integration management
Create, edit, enable/disable, delete and test against the fake backend
"""

import pytest

from logguard.core.cache import WEBHOOKS
from logguard.core.models import Priority, TriggerConditions, WebhookProvider
from logguard.services.webhooks import WebhookService

from tests.fake_backend import make_webhook

ZAPIER_URL = "https://hooks.zapier.com/hooks/catch/123/abcdef"


@pytest.fixture
def webhooks(backend, client, cache, notifier):
    backend.add_webhooks(make_webhook("wh1"), make_webhook("wh2", isActive=False, provider="make"))
    return WebhookService(client, cache, notifier)


@pytest.mark.asyncio
async def test_list_is_cached(backend, webhooks):
    hooks = await webhooks.list()
    await webhooks.list()

    assert [h.id for h in hooks] == ["wh1", "wh2"]
    assert hooks[1].provider == WebhookProvider.MAKE
    assert not hooks[1].is_active
    assert hooks[0].trigger_conditions.priorities == [Priority.HIGH, Priority.CRITICAL]
    assert len(backend.calls("GET", "/api/webhooks")) == 1


@pytest.mark.asyncio
async def test_create_sends_defaults(backend, webhooks, cache, notifier):
    print("\n🧪 Testing webhook creation\n")
    await webhooks.list()

    created = await webhooks.create("  SOC relay  ", ZAPIER_URL)

    body = backend.calls("POST", "/api/webhooks")[0].body
    print(f"   Sent: {body}")
    assert body["name"] == "SOC relay"
    assert body["provider"] == "zapier"
    assert body["webhookUrl"] == ZAPIER_URL
    assert body["isActive"] is True
    assert body["triggerConditions"] == {
        "minRiskScore": 5.0,
        "anomalyTypes": [],
        "priorities": ["high", "critical"],
        "keywords": [],
    }
    assert created.name == "SOC relay"
    assert not cache.is_fresh(WEBHOOKS), "Create must drop the cached list"
    assert notifier.latest.title == "Webhook created successfully"


@pytest.mark.asyncio
async def test_create_refuses_bad_input_locally(backend, webhooks, notifier):
    assert await webhooks.create("Relay", "not a url") is None
    assert "URL" in notifier.latest.description

    assert await webhooks.create("   ", ZAPIER_URL) is None
    assert await webhooks.create("Relay", ZAPIER_URL, min_risk_score=11) is None

    assert backend.calls("POST", "/api/webhooks") == [], "Invalid drafts never reach the backend"
    assert notifier.latest.title == "Failed to create webhook"


@pytest.mark.asyncio
async def test_create_failure_is_notified(backend, webhooks, notifier):
    backend.fail("POST", "/api/webhooks", 400, "Invalid webhook data")

    assert await webhooks.create("Relay", ZAPIER_URL) is None
    assert notifier.latest.is_error
    assert notifier.latest.description == "Invalid webhook data"


@pytest.mark.asyncio
async def test_update_sends_only_changed_fields(backend, webhooks, cache, notifier):
    await webhooks.list()
    conditions = TriggerConditions(min_risk_score=8, keywords=["ssh"])

    updated = await webhooks.update("wh1", name="Renamed", trigger_conditions=conditions)

    body = backend.calls("PUT", "/api/webhooks/wh1")[0].body
    assert set(body) == {"name", "triggerConditions"}
    assert body["triggerConditions"]["keywords"] == ["ssh"]
    assert updated.trigger_conditions.min_risk_score == 8
    assert not cache.is_fresh(WEBHOOKS)
    assert notifier.latest.title == "Webhook updated successfully"


@pytest.mark.asyncio
async def test_set_active_toggles(backend, webhooks):
    updated = await webhooks.set_active("wh2", True)

    assert backend.calls("PUT", "/api/webhooks/wh2")[0].body == {"isActive": True}
    assert updated.is_active


@pytest.mark.asyncio
async def test_update_missing_webhook(backend, webhooks, notifier):
    assert await webhooks.update("nope", is_active=False) is None
    assert notifier.latest.title == "Failed to update webhook"
    assert notifier.latest.description == "Webhook not found"


@pytest.mark.asyncio
async def test_update_without_changes_sends_nothing(backend, webhooks):
    webhook = await webhooks.update("wh1")

    assert webhook.id == "wh1"
    assert backend.calls("PUT") == []


@pytest.mark.asyncio
async def test_delete(backend, webhooks, notifier):
    await webhooks.list()

    assert await webhooks.delete("wh1")
    assert [h.id for h in await webhooks.list()] == ["wh2"]
    assert notifier.latest.title == "Webhook deleted successfully"


@pytest.mark.asyncio
async def test_delete_failure(backend, webhooks, notifier):
    backend.fail("DELETE", "/api/webhooks/wh1", 500, "Failed to delete webhook")

    assert not await webhooks.delete("wh1")
    assert notifier.latest.title == "Failed to delete webhook"
    assert "wh1" in backend.webhooks


@pytest.mark.asyncio
async def test_test_success_stamps_last_triggered(backend, webhooks, notifier):
    await webhooks.list()

    assert await webhooks.test("wh1")
    assert notifier.latest.title == "Webhook test successful"
    assert notifier.latest.description == "Test webhook sent successfully"
    assert (await webhooks.get("wh1")).last_triggered is not None


@pytest.mark.asyncio
async def test_test_failure_shows_receiver_status(backend, webhooks, notifier):
    backend.webhook_test_status = 410

    assert not await webhooks.test("wh1")
    assert notifier.latest.title == "Webhook test failed"
    assert notifier.latest.description == "Webhook failed with status 410"


def test_trigger_conditions_describe():
    assert TriggerConditions().describe() == "every anomaly"
    conditions = TriggerConditions(min_risk_score=7.5, priorities=["critical"], keywords=["root"])
    assert conditions.describe() == "risk >= 7.5; priority: critical; keywords: root"
