"""
Post Generation Domain Models

Platforms, request/response DTOs and the parser for the automation
webhook's loosely structured responses.

The webhook answers in one of three shapes:

- nested: ``[{"message": {"content": {"result": ..., "imageUrl": ...}}}]``
- flat:   ``{"postText" | "result": ..., "imageGenerated": ..., "imageUrl": ...}``
- text:   a bare string (JSON string or non-JSON body)

Each shape is recognised explicitly; anything else is a ``ParseError``.
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field

from postgen.infrastructure.exceptions import ParseError


class Platform(str, Enum):
    """Social platforms with a dedicated generation workflow."""
    LINKEDIN = "linkedin"
    INSTAGRAM = "instagram"
    X = "x"
    FACEBOOK = "facebook"


class ResponseShape(str, Enum):
    NESTED = "nested"
    FLAT = "flat"
    TEXT = "text"


@dataclass(frozen=True)
class GeneratedPost:
    """Post text plus an optional generated image."""
    text: str
    image_url: Optional[str]
    shape: ResponseShape


# =============================================================================
# Request/Response DTOs
# =============================================================================

class GeneratePostRequest(BaseModel):
    """Form payload submitted by the post generator page."""
    platform: Platform
    profilurl: str = Field(min_length=1, max_length=2048)
    post_thema: str = Field(alias="postThema", min_length=1, max_length=500)
    details: str = Field(default="", max_length=5000)
    generate_image: bool = Field(default=False, alias="generateImage")

    model_config = ConfigDict(populate_by_name=True)

    def webhook_payload(self) -> dict[str, Any]:
        """Body sent to the automation webhook; generateImage only when set."""
        payload: dict[str, Any] = {
            "profilurl": self.profilurl,
            "postThema": self.post_thema,
            "details": self.details or "",
        }
        if self.generate_image:
            payload["generateImage"] = True
        return payload


class GeneratePostResponse(BaseModel):
    post_text: str = Field(alias="postText")
    image_url: Optional[str] = Field(default=None, alias="imageUrl")
    platform: Platform
    remaining_posts: Optional[int] = Field(alias="remainingPosts")

    model_config = ConfigDict(populate_by_name=True)


# =============================================================================
# Response Parsing
# =============================================================================

def _image_url(container: dict) -> Optional[str]:
    if not container.get("imageGenerated"):
        return None
    url = container.get("imageUrl")
    return url if isinstance(url, str) and url else None


def _nested_content(raw: Any) -> Optional[dict]:
    if not isinstance(raw, list) or not raw:
        return None
    first = raw[0]
    if not isinstance(first, dict):
        return None
    message = first.get("message")
    if not isinstance(message, dict):
        return None
    content = message.get("content")
    if isinstance(content, dict) and isinstance(content.get("result"), str):
        return content
    return None


def _flat_text(raw: Any) -> Optional[str]:
    if not isinstance(raw, dict):
        return None
    for key in ("postText", "result"):
        value = raw.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def classify_response(raw: Any) -> ResponseShape:
    """Determine which known shape a decoded webhook body has."""
    if _nested_content(raw) is not None:
        return ResponseShape.NESTED
    if _flat_text(raw) is not None:
        return ResponseShape.FLAT
    if isinstance(raw, str) and raw.strip():
        return ResponseShape.TEXT
    raise ParseError(
        "Unerwartete Antwort vom Generator",
        original_error=TypeError(f"unrecognised response type {type(raw).__name__}"),
    )


def parse_generation_response(raw: Any) -> GeneratedPost:
    """Convert a decoded webhook body into a ``GeneratedPost``."""
    shape = classify_response(raw)

    if shape is ResponseShape.NESTED:
        content = _nested_content(raw)
        return GeneratedPost(content["result"], _image_url(content), shape)

    if shape is ResponseShape.FLAT:
        return GeneratedPost(_flat_text(raw), _image_url(raw), shape)

    return GeneratedPost(raw.strip(), None, shape)


def parse_generation_body(body: str) -> GeneratedPost:
    """Parse a raw HTTP body; non-JSON bodies are treated as plain text."""
    try:
        raw = json.loads(body)
    except (json.JSONDecodeError, TypeError):
        raw = body
    return parse_generation_response(raw)
