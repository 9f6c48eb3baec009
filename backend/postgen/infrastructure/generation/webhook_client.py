"""
Generation Webhook Client

Posts the generator form to the per-platform automation webhook and
parses its answer into a ``GeneratedPost``.
"""

import logging
from functools import lru_cache
from typing import Any, Optional

import httpx

from postgen.config.settings import Settings, get_settings
from postgen.domain.generation import GeneratedPost, Platform, parse_generation_body
from postgen.infrastructure.exceptions import ConfigurationError, GenerationError


logger = logging.getLogger(__name__)


class GenerationWebhookClient:
    """HTTP client for the content generation workflows."""

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._webhooks = settings.generation_webhooks()
        self._timeout = settings.generation_timeout_seconds
        self._transport = transport

    def webhook_url(self, platform: Platform) -> str:
        url = self._webhooks.get(platform.value)
        if not url:
            raise ConfigurationError(
                "Für diese Plattform ist kein Generator konfiguriert",
                missing_keys=[f"GENERATION_WEBHOOK_{platform.value.upper()}"],
            )
        return url

    async def generate(self, platform: Platform, payload: dict[str, Any]) -> GeneratedPost:
        """
        Request a post from the platform's workflow.

        Raises:
            ConfigurationError: no webhook configured for the platform
            GenerationError: transport failure or non-2xx response
            ParseError: response in an unrecognised shape
        """
        url = self.webhook_url(platform)
        logger.info(f"Requesting {platform.value} post generation")

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(url, json=payload)
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.warning(f"Generator for {platform.value} returned HTTP {e.response.status_code}")
            raise GenerationError(
                "Fehler beim Generieren des Posts",
                platform=platform.value,
                original_error=e,
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"Generator for {platform.value} unreachable: {e}")
            raise GenerationError(
                "Fehler beim Generieren des Posts",
                platform=platform.value,
                original_error=e,
            ) from e

        post = parse_generation_body(response.text)
        logger.info(f"Generated {platform.value} post ({post.shape.value} response)")
        return post


@lru_cache
def get_generation_client() -> GenerationWebhookClient:
    return GenerationWebhookClient(get_settings())
