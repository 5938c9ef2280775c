# logguard/services/webhooks.py
"""
Webhook integrations (Zapier, Make or any custom URL)

The backend fires a webhook whenever a new anomaly matches its trigger
conditions. This side manages the list: create, edit, enable/disable,
delete and send a test payload. Every write drops the cached list.
"""

import logging
from typing import Any, Dict, List, Optional

from pydantic import HttpUrl, TypeAdapter, ValidationError

from ..core.cache import QueryCache, WEBHOOKS
from ..core.models import Priority, TriggerConditions, Webhook, WebhookDraft, WebhookProvider
from ..client.api import LogGuardClient
from ..client.errors import LogGuardError
from .notifications import Notifier

logger = logging.getLogger(__name__)

_url_adapter = TypeAdapter(HttpUrl)


def first_validation_message(error: ValidationError) -> str:
    """'webhook_url: Input should be a valid URL' style text for a notification"""
    errors = error.errors(include_url=False)
    if not errors:
        return "Invalid webhook data"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first['msg']}" if location else first["msg"]


class WebhookService:
    """
    Usage:
        webhooks = WebhookService(client, cache, notifier)
        hook = await webhooks.create("Slack relay", "https://hooks.zapier.com/...", min_risk_score=7)
        await webhooks.test(hook.id)
        await webhooks.set_active(hook.id, False)
    """

    def __init__(self, client: LogGuardClient, cache: QueryCache, notifier: Notifier):
        self.client = client
        self.cache = cache
        self.notifier = notifier

    async def list(self) -> List[Webhook]:
        return await self.cache.get(WEBHOOKS, self.client.list_webhooks)

    async def get(self, webhook_id: str) -> Optional[Webhook]:
        for webhook in await self.list():
            if webhook.id == webhook_id:
                return webhook
        return None

    async def create(
        self,
        name: str,
        webhook_url: str,
        provider: WebhookProvider = WebhookProvider.ZAPIER,
        min_risk_score: Optional[float] = 5,
        priorities: Optional[List[Priority]] = None,
        anomaly_types: Optional[List[str]] = None,
        keywords: Optional[List[str]] = None,
        is_active: bool = True,
    ) -> Optional[Webhook]:
        """
        Register a new webhook

        Returns:
            The created webhook, or None on failure (a notification is raised)
        """
        try:
            draft = WebhookDraft(
                name=name,
                provider=provider,
                webhook_url=webhook_url,
                is_active=is_active,
                trigger_conditions=TriggerConditions(
                    min_risk_score=min_risk_score,
                    priorities=[Priority.HIGH, Priority.CRITICAL] if priorities is None else priorities,
                    anomaly_types=anomaly_types or [],
                    keywords=keywords or [],
                ),
            )
        except ValidationError as e:
            message = first_validation_message(e)
            logger.warning(f"Webhook refused: {message}")
            self.notifier.error("Failed to create webhook", message)
            return None

        try:
            webhook = await self.client.create_webhook(draft)
        except LogGuardError as e:
            logger.error(f"Creating webhook {draft.name!r} failed: {e}")
            self.notifier.error("Failed to create webhook", e.message or "Invalid webhook data")
            return None

        self.cache.invalidate(WEBHOOKS)
        self.notifier.success("Webhook created successfully", f"{webhook.name} will receive matching anomalies.")
        return webhook

    async def update(
        self,
        webhook_id: str,
        name: Optional[str] = None,
        webhook_url: Optional[str] = None,
        is_active: Optional[bool] = None,
        trigger_conditions: Optional[TriggerConditions] = None,
    ) -> Optional[Webhook]:
        """Change only the given fields"""
        updates: Dict[str, Any] = {}
        if name is not None:
            if not name.strip():
                self.notifier.error("Failed to update webhook", "name: Webhook name is required")
                return None
            updates["name"] = name.strip()
        if webhook_url is not None:
            try:
                updates["webhookUrl"] = str(_url_adapter.validate_python(webhook_url))
            except ValidationError as e:
                self.notifier.error("Failed to update webhook", f"webhookUrl: {e.errors()[0]['msg']}")
                return None
        if is_active is not None:
            updates["isActive"] = is_active
        if trigger_conditions is not None:
            updates["triggerConditions"] = trigger_conditions.to_wire()

        if not updates:
            logger.debug(f"Nothing to update on webhook {webhook_id}")
            return await self.get(webhook_id)

        try:
            webhook = await self.client.update_webhook(webhook_id, updates)
        except LogGuardError as e:
            logger.error(f"Updating webhook {webhook_id} failed: {e}")
            self.notifier.error("Failed to update webhook", e.message or "Unknown error occurred")
            return None

        self.cache.invalidate(WEBHOOKS)
        self.notifier.success("Webhook updated successfully", webhook.name)
        return webhook

    async def set_active(self, webhook_id: str, active: bool) -> Optional[Webhook]:
        return await self.update(webhook_id, is_active=active)

    async def delete(self, webhook_id: str) -> bool:
        try:
            await self.client.delete_webhook(webhook_id)
        except LogGuardError as e:
            logger.error(f"Deleting webhook {webhook_id} failed: {e}")
            self.notifier.error("Failed to delete webhook", e.message or "Unknown error occurred")
            return False

        self.cache.invalidate(WEBHOOKS)
        self.notifier.success("Webhook deleted successfully")
        return True

    async def test(self, webhook_id: str) -> bool:
        """
        Send a sample payload through the backend

        Returns:
            True when the receiving service answered with a success status
        """
        try:
            result = await self.client.test_webhook(webhook_id)
        except LogGuardError as e:
            logger.error(f"Testing webhook {webhook_id} failed: {e}")
            self.notifier.error("Webhook test failed", e.message or "Unknown error occurred")
            return False

        # A test stamps lastTriggered on success
        self.cache.invalidate(WEBHOOKS)

        if not result.success:
            logger.warning(f"Webhook {webhook_id} test failed: {result.message}")
            self.notifier.error("Webhook test failed", result.message)
            return False

        self.notifier.success("Webhook test successful", result.message)
        return True
