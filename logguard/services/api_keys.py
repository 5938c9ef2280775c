# logguard/services/api_keys.py
"""
Per-user AI provider keys

Keys are stored by the backend; this side only submits and tests them.
Either action changes what AI dispatch is allowed to do, so both drop the
cached key status and provider availability.
"""

import logging
from typing import Optional

from ..core.cache import QueryCache, API_KEY_STATUS, AI_PROVIDERS
from ..core.models import AIProvider, AIProvidersInfo, ApiKeyStatus
from ..client.api import LogGuardClient
from ..client.errors import LogGuardError
from .notifications import Notifier

logger = logging.getLogger(__name__)

PROVIDER_NAMES = {
    AIProvider.OPENAI: "OpenAI",
    AIProvider.GEMINI: "Gemini",
}


class ApiKeyService:
    """
    Usage:
        keys = ApiKeyService(client, cache, notifier)
        status = await keys.status()
        await keys.save(AIProvider.OPENAI, "sk-...")
        await keys.test(AIProvider.OPENAI)
    """

    def __init__(self, client: LogGuardClient, cache: QueryCache, notifier: Notifier):
        self.client = client
        self.cache = cache
        self.notifier = notifier

    async def status(self) -> ApiKeyStatus:
        return await self.cache.get(API_KEY_STATUS, self.client.get_api_key_status)

    async def providers(self) -> AIProvidersInfo:
        return await self.cache.get(AI_PROVIDERS, self.client.get_ai_providers)

    def _invalidate(self):
        self.cache.invalidate(API_KEY_STATUS)
        self.cache.invalidate(AI_PROVIDERS)

    async def save(self, provider: AIProvider, api_key: Optional[str]) -> bool:
        """
        Store a key for provider

        Returns:
            True when the backend accepted the key
        """
        provider = AIProvider(provider)
        name = PROVIDER_NAMES[provider]
        api_key = (api_key or "").strip()

        if not api_key:
            logger.warning(f"Refusing to save an empty {name} key")
            self.notifier.error("API key required", f"Enter a {name} API key before saving.")
            return False

        try:
            await self.client.save_api_key(provider, api_key)
        except LogGuardError as e:
            logger.error(f"Saving {name} key failed: {e}")
            self.notifier.error(f"Failed to save {name} key", e.message or "Unknown error occurred")
            return False

        self._invalidate()
        self.notifier.success("API key saved", f"{name} key stored. Run a test to confirm it works.")
        return True

    async def test(self, provider: AIProvider) -> bool:
        """
        Ask the backend to call the provider with the stored key

        Returns:
            True when the key works
        """
        provider = AIProvider(provider)
        name = PROVIDER_NAMES[provider]

        try:
            result = await self.client.test_api_key(provider)
        except LogGuardError as e:
            logger.error(f"Testing {name} key failed: {e}")
            self._invalidate()
            self.notifier.error(f"{name} key test failed", e.message or "Unknown error occurred")
            return False

        self._invalidate()

        working = result.get("working", result.get("success", True)) if isinstance(result, dict) else True
        if not working:
            message = result.get("error") or result.get("message") or "The provider rejected the key"
            logger.warning(f"{name} key is not working: {message}")
            self.notifier.error(f"{name} key test failed", message)
            return False

        self.notifier.success(f"{name} key works", f"{name} is ready for AI analysis.")
        return True
