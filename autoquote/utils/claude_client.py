"""Claude API client — structured outputs with optional document input.

Output is forced through a single tool whose input_schema is the caller's
JSON schema, so a successful call always yields a dict matching it.

Two model tiers:
  - FAST: claude-haiku-4-5 for document field extraction
  - SMART: claude-sonnet-4-5 for harder documents

Usage:
    from autoquote.utils.claude_client import claude_structured, pdf_block
    result = await claude_structured(
        [pdf_block(pdf_bytes), {"type": "text", "text": PROMPT}],
        schema=VEHICLE_SCHEMA,
        system="You read Brazilian vehicle documents.",
    )
"""

import base64
import logging
from typing import Any

import httpx

from ..config import settings
from ..http_client import http

log = logging.getLogger("autoquote.claude")

API_URL = "https://api.anthropic.com/v1/messages"
API_VERSION = "2023-06-01"

MODELS = {
    "fast": "claude-haiku-4-5-20251001",
    "smart": "claude-sonnet-4-5-20250929",
}


def _headers(*, cache: bool = False) -> dict:
    """Build API headers. Enable prompt caching when static prompts are reused."""
    h = {
        "x-api-key": settings.anthropic_api_key,
        "anthropic-version": API_VERSION,
        "content-type": "application/json",
    }
    if cache:
        h["anthropic-beta"] = "prompt-caching-2024-07-31"
    return h


def pdf_block(content: bytes) -> dict:
    """Build a base64 PDF document content block."""
    return {
        "type": "document",
        "source": {
            "type": "base64",
            "media_type": "application/pdf",
            "data": base64.b64encode(content).decode("ascii"),
        },
    }


async def claude_structured(
    prompt: str | list[dict],
    schema: dict,
    *,
    system: str = "",
    model_tier: str = "fast",
    max_tokens: int = 1024,
    cache_system: bool = True,
    timeout: int = 30,
) -> dict | None:
    """Call Claude with guaranteed-valid JSON output.

    Args:
        prompt: User message content, plain text or a list of content blocks
        schema: JSON Schema that the model MUST conform to
        system: System prompt (cached if cache_system=True)
        model_tier: "fast" (Haiku) or "smart" (Sonnet)
        max_tokens: Max output tokens
        cache_system: Whether to mark the system prompt as cacheable
        timeout: Request timeout seconds

    Returns:
        Parsed dict conforming to schema, or None on failure or when no
        API key is configured
    """
    if not settings.anthropic_api_key:
        return None

    model = MODELS.get(model_tier, MODELS["fast"])

    system_blocks = []
    if system:
        block = {"type": "text", "text": system}
        if cache_system:
            block["cache_control"] = {"type": "ephemeral"}
        system_blocks.append(block)

    body: dict[str, Any] = {
        "model": model,
        "max_tokens": max_tokens,
        "messages": [{"role": "user", "content": prompt}],
        "tools": [
            {
                "name": "structured_output",
                "description": "Return structured data matching the required schema.",
                "input_schema": schema,
            }
        ],
        "tool_choice": {"type": "tool", "name": "structured_output"},
    }
    if system_blocks:
        body["system"] = system_blocks

    try:
        resp = await http.post(
            API_URL,
            headers=_headers(cache=cache_system),
            json=body,
            timeout=timeout,
        )
    except httpx.HTTPError as e:
        log.warning(f"Claude structured call failed: {e}")
        return None

    if resp.status_code != 200:
        log.warning(f"Claude API {resp.status_code}: {resp.text[:200]}")
        return None

    try:
        data = resp.json()
    except ValueError:
        log.warning("Claude API returned a non-JSON body")
        return None

    for block in data.get("content", []):
        if block.get("type") == "tool_use" and block.get("name") == "structured_output":
            return block.get("input")

    log.warning("Claude structured output: no tool_use block in response")
    return None
