from __future__ import annotations

import logging
from typing import Any, Dict

import httpx
from openai import OpenAI, OpenAIError

from ..config import Settings
from ..errors import GenerativeServiceError

logger = logging.getLogger(__name__)

RESPONSES_URL = "https://api.openai.com/v1/responses"


def call_openai_responses(
    *,
    settings: Settings,
    model: str,
    system_prompt: str,
    user_prompt: str,
    max_output_tokens: int,
    reasoning_effort: str | None = None,
) -> str:
    """Call the OpenAI Responses API and return the combined text output."""
    if not settings.openai_api_key:
        raise GenerativeServiceError("OpenAI not configured")
    client = OpenAI(
        api_key=settings.openai_api_key,
        timeout=settings.openai_request_timeout_seconds,
    )
    response_payload: Dict[str, Any] = {
        "model": model,
        "input": [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ],
        "max_output_tokens": max_output_tokens,
    }
    if reasoning_effort:
        response_payload["reasoning"] = {"effort": reasoning_effort}

    responses_client = getattr(client, "responses", None)
    if responses_client is None or not hasattr(responses_client, "create"):
        logger.warning("OpenAI client missing Responses API; falling back to HTTP call")
        return _call_openai_http(response_payload, settings)

    try:
        response = responses_client.create(**response_payload)
    except OpenAIError as exc:
        logger.error("OpenAI Responses API call failed: %s", exc)
        raise GenerativeServiceError(f"OpenAI call failed: {exc}") from exc
    if getattr(response, "status", "completed") != "completed":
        reason = getattr(getattr(response, "incomplete_details", None), "reason", "unknown")
        logger.error("OpenAI Responses API returned incomplete status: %s", reason)
        raise GenerativeServiceError(f"Model did not complete ({reason})")
    text = _extract_response_text(response)
    if not text:
        raise GenerativeServiceError("Model returned empty output")
    return text


def _call_openai_http(response_payload: Dict[str, Any], settings: Settings) -> str:
    try:
        resp = httpx.post(
            RESPONSES_URL,
            json=response_payload,
            headers={
                "Authorization": f"Bearer {settings.openai_api_key}",
                "Content-Type": "application/json",
            },
            timeout=settings.openai_request_timeout_seconds,
        )
    except httpx.TimeoutException as exc:
        logger.error("HTTP timeout calling OpenAI Responses API after %ss", settings.openai_request_timeout_seconds)
        raise GenerativeServiceError("Timed out waiting for the model") from exc
    except httpx.HTTPError as exc:  # pragma: no cover - network failure path
        logger.error("HTTP error calling OpenAI Responses API: %s", exc)
        raise GenerativeServiceError("Unable to reach OpenAI") from exc

    if resp.status_code >= 400:
        logger.error("OpenAI Responses REST API returned %s: %s", resp.status_code, resp.text)
        raise GenerativeServiceError(f"Model call returned {resp.status_code}")

    try:
        payload = resp.json()
    except ValueError as exc:
        logger.error("OpenAI Responses REST API returned unreadable body: %s", resp.text[:200])
        raise GenerativeServiceError("Model returned unreadable output") from exc
    text = _extract_response_text(payload)
    if not text:
        raise GenerativeServiceError("Model returned empty output")
    return text


def _extract_response_text(response: Any) -> str:
    text = getattr(response, "output_text", None)
    if isinstance(text, str) and text.strip():
        return text.strip()
    chunks: list[str] = []
    output = getattr(response, "output", None)
    if output is None and isinstance(response, dict):
        output = response.get("output")
    for block in output or []:
        block_content = getattr(block, "content", None)
        if block_content is None and isinstance(block, dict):
            block_content = block.get("content")
        for content in block_content or []:
            part_text = getattr(content, "text", None)
            if part_text is None and isinstance(content, dict):
                part_text = content.get("text")
            if part_text:
                chunks.append(part_text)
    return "".join(chunks).strip()
