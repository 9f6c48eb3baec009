"""
Unit tests for the generation webhook client.

Uses httpx.MockTransport in place of the automation endpoint.
"""

import json

import httpx
import pytest

from postgen.config.settings import Settings
from postgen.domain.generation import Platform, ResponseShape
from postgen.infrastructure.exceptions import ConfigurationError, GenerationError, ParseError
from postgen.infrastructure.generation.webhook_client import GenerationWebhookClient


def _settings(**overrides) -> Settings:
    values = {
        "supabase_url": "https://testproject.supabase.co",
        "supabase_service_role_key": "service-role",
        "stripe_secret_key": "sk_test_x",
        "stripe_webhook_secret": "whsec_x",
        "database_url": "postgresql://db/x",
        "generation_webhook_linkedin": "https://hooks.example.com/linkedin",
        "generation_webhook_instagram": None,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def _client(handler) -> GenerationWebhookClient:
    return GenerationWebhookClient(_settings(), transport=httpx.MockTransport(handler))


class TestGenerationWebhookClient:

    async def test_posts_payload_and_parses_nested_response(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json=[{"message": {"content": {"result": "Fertiger Post"}}}],
            )

        post = await _client(handler).generate(
            Platform.LINKEDIN,
            {"profilurl": "https://linkedin.com/in/anna", "postThema": "KI", "details": ""},
        )

        assert seen["url"] == "https://hooks.example.com/linkedin"
        assert seen["body"]["postThema"] == "KI"
        assert "generateImage" not in seen["body"]
        assert post.text == "Fertiger Post"
        assert post.shape is ResponseShape.NESTED

    async def test_plain_text_response(self):
        client = _client(lambda request: httpx.Response(200, text="Einfach nur Text"))

        post = await client.generate(Platform.LINKEDIN, {})

        assert post.text == "Einfach nur Text"
        assert post.shape is ResponseShape.TEXT

    async def test_non_2xx_raises_generation_error(self):
        client = _client(lambda request: httpx.Response(500, text="workflow crashed"))

        with pytest.raises(GenerationError) as exc_info:
            await client.generate(Platform.LINKEDIN, {})

        assert exc_info.value.status_code == 502
        assert exc_info.value.details["platform"] == "linkedin"

    async def test_transport_error_raises_generation_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(GenerationError):
            await _client(handler).generate(Platform.LINKEDIN, {})

    async def test_unknown_shape_raises_parse_error(self):
        client = _client(lambda request: httpx.Response(200, json={"status": "queued"}))

        with pytest.raises(ParseError):
            await client.generate(Platform.LINKEDIN, {})

    async def test_unconfigured_platform(self):
        client = _client(lambda request: httpx.Response(200, text="unused"))

        with pytest.raises(ConfigurationError) as exc_info:
            await client.generate(Platform.INSTAGRAM, {})

        assert exc_info.value.details["missing_keys"] == ["GENERATION_WEBHOOK_INSTAGRAM"]
