"""Provider adapter for OpenAI-compatible chat completion APIs.

Supports a real mode (forwarding to the configured endpoint) and a stub mode
that returns a canned explanation when no API key is configured. Every
failure of the real call surfaces as ProviderError; callers never see raw
httpx exceptions.
"""

import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from hl7_explainer.config import ProviderConfig


class ProviderError(Exception):
    """Raised when the LLM call fails or returns an unusable response."""


@dataclass
class ProviderResult:
    """Result returned by the provider adapter."""

    text: str
    total_tokens: int
    provider_request_id: Optional[str] = None


_STUB_RESPONSE = (
    "This is a stub explanation from the gateway. "
    "Configure an API key to get real explanations."
)


async def call_provider(
    provider: ProviderConfig,
    system_prompt: str,
    user_text: str,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ProviderResult:
    """Ask the LLM provider to explain user_text under system_prompt.

    If the provider's API key is not set in the environment, falls back to a
    stub response so the gateway can run without real credentials.

    Args:
        provider: Provider configuration (base URL, model, output cap, timeout).
        system_prompt: The explanation style instruction.
        user_text: The raw payload submitted by the client.
        transport: Optional httpx transport, used to stub the network in tests.

    Returns:
        A ProviderResult with the explanation text and total token usage.

    Raises:
        ProviderError: On transport errors, timeouts, non-2xx responses or
            malformed response bodies.
    """
    api_key = provider.api_key

    if not api_key:
        return _stub_response(system_prompt, user_text)

    return await _real_request(provider, system_prompt, user_text, api_key, transport)


def _stub_response(system_prompt: str, user_text: str) -> ProviderResult:
    """Return a canned response for running without real API keys."""
    prompt_tokens = len(system_prompt.split()) + len(user_text.split())
    stub_tokens = len(_STUB_RESPONSE.split())
    return ProviderResult(
        text=_STUB_RESPONSE,
        total_tokens=prompt_tokens + stub_tokens,
        provider_request_id="stub-{}".format(uuid.uuid4().hex[:8]),
    )


async def _real_request(
    provider: ProviderConfig,
    system_prompt: str,
    user_text: str,
    api_key: str,
    transport: Optional[httpx.AsyncBaseTransport],
) -> ProviderResult:
    """Forward the request to an OpenAI-compatible API endpoint."""
    url = "{}/chat/completions".format(provider.base_url.rstrip("/"))
    headers = {
        "Authorization": "Bearer {}".format(api_key),
        "Content-Type": "application/json",
    }
    payload = {
        "model": provider.default_model,
        "max_tokens": provider.max_output_tokens,
        "messages": [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_text},
        ],
    }

    try:
        async with httpx.AsyncClient(
            timeout=provider.timeout_seconds, transport=transport
        ) as client:
            resp = await client.post(url, json=payload, headers=headers)
            resp.raise_for_status()
    except httpx.TimeoutException as exc:
        raise ProviderError("LLM request timed out") from exc
    except httpx.HTTPStatusError as exc:
        raise ProviderError(
            "Provider returned HTTP {}".format(exc.response.status_code)
        ) from exc
    except httpx.HTTPError as exc:
        raise ProviderError("LLM request failed: {}".format(exc)) from exc

    try:
        data: Dict[str, Any] = resp.json()
        content = data["choices"][0]["message"]["content"]
        total_tokens = data["usage"]["total_tokens"]
    except (ValueError, KeyError, IndexError, TypeError) as exc:
        raise ProviderError("Provider response was malformed") from exc

    # bool is an int subclass; a token count must be a non-negative integer
    if (
        not isinstance(total_tokens, int)
        or isinstance(total_tokens, bool)
        or total_tokens < 0
    ):
        raise ProviderError("Provider response was malformed")

    if not isinstance(content, str) or not content.strip():
        raise ProviderError("Provider response contained no explanation text")

    return ProviderResult(
        text=content,
        total_tokens=total_tokens,
        provider_request_id=data.get("id"),
    )
