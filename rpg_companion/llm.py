"""LLM client for the dedicated tracker-generation call.

The companion injects an LLM callable matching the protocol:

    async def __call__(self, stage: str, messages: list[dict[str, str]]) -> str: ...

`messages` is a chat message array (``{"role": ..., "content": ...}``).
`stage` names the caller (e.g. "tracker_update"); implementations may use it
for logging and are free to ignore it.

Two implementations are provided:

    HttpLLM   - real HTTP client, supports OpenAI-compatible chat backends and
                 KoboldCpp. Selected by provider_format.
    EchoLLM   - returns the last message back unchanged. Useful for
                 smoke-testing the wiring without a running model.
"""

from __future__ import annotations

import logging
from typing import Literal, Protocol

import httpx

logger = logging.getLogger(__name__)

Messages = list[dict[str, str]]


# ---------------------------------------------------------------------------
# Protocol - every LLM implementation must match this signature
# ---------------------------------------------------------------------------

class LLM(Protocol):
    async def __call__(self, stage: str, messages: Messages) -> str: ...


# ---------------------------------------------------------------------------
# HttpLLM - connects to a real backend
# ---------------------------------------------------------------------------

ProviderFormat = Literal["koboldcpp", "openai"]


def flatten_messages(messages: Messages) -> str:
    """Join a message array into one text-completion prompt."""
    return "\n\n".join(m["content"] for m in messages if m.get("content"))


class HttpLLM:
    """Async HTTP client for generation backends.

    Supported formats:
      "openai"     - POST /v1/chat/completions  {"model": ..., "messages": [...]}
                     Response: {"choices": [{"message": {"content": "..."}}]}
      "koboldcpp"  - POST /api/v1/generate      {"prompt": ...}
                     Response: {"results": [{"text": "..."}]}
                     The message array is flattened into a single prompt.

    Args:
        provider_url:    Base URL of the backend, e.g. "http://localhost:5001".
        api_key:         Bearer token, or empty string if not required.
        provider_format: Wire format to use. Defaults to "openai".
        model:           Model identifier, used only by the openai format.
        timeout:         HTTP timeout in seconds. Defaults to 120.
    """

    def __init__(
        self,
        provider_url: str,
        api_key: str = "",
        provider_format: ProviderFormat = "openai",
        model: str = "",
        timeout: float = 120.0,
    ) -> None:
        self._base_url = provider_url.rstrip("/")
        self._api_key = api_key
        self._format = provider_format
        self._model = model
        self._timeout = timeout

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _build_request(self, messages: Messages) -> tuple[str, dict]:
        """Return (url, body) for the configured format."""
        if self._format == "openai":
            url = f"{self._base_url}/v1/chat/completions"
            body: dict = {"messages": messages}
            if self._model:
                body["model"] = self._model
            return url, body

        url = f"{self._base_url}/api/v1/generate"
        return url, {"prompt": flatten_messages(messages)}

    def _parse_response(self, data: dict) -> str:
        """Extract the completion text from the response body."""
        if self._format == "openai":
            choices = data.get("choices")
            if not choices or "content" not in choices[0].get("message", {}):
                raise LLMError("Unexpected response format from OpenAI-compatible backend")
            return choices[0]["message"]["content"]

        results = data.get("results")
        if not results or "text" not in results[0]:
            raise LLMError("Unexpected response format from KoboldCpp backend")
        return results[0]["text"]

    async def __call__(self, stage: str, messages: Messages) -> str:
        url, body = self._build_request(messages)
        logger.debug("llm call stage=%s url=%s messages=%d", stage, url, len(messages))

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(url, json=body, headers=self._headers())
                resp.raise_for_status()
        except httpx.ConnectError as e:
            raise LLMError(f"Cannot connect to LLM backend at {self._base_url}") from e
        except httpx.HTTPStatusError as e:
            raise LLMError(
                f"LLM backend returned HTTP {e.response.status_code}"
            ) from e
        except httpx.TimeoutException as e:
            raise LLMError(f"LLM backend timed out after {self._timeout}s") from e

        text = self._parse_response(resp.json())
        logger.debug("llm response stage=%s len=%d", stage, len(text))
        return text


# ---------------------------------------------------------------------------
# EchoLLM - returns the last message unchanged
# ---------------------------------------------------------------------------

class EchoLLM:
    """Returns the content of the last message as-is. No network calls."""

    async def __call__(self, stage: str, messages: Messages) -> str:
        logger.debug("EchoLLM stage=%s messages=%d", stage, len(messages))
        return messages[-1]["content"] if messages else ""


# ---------------------------------------------------------------------------
# LLMError - raised by HttpLLM for all connection and protocol failures
# ---------------------------------------------------------------------------

class LLMError(RuntimeError):
    """Raised when the LLM backend cannot be reached or returns an error."""
