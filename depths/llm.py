"""HTTP client for the completion backend behind intent interpretation.

Anything callable as ``await llm(stage, prompt) -> str`` can serve as the
intent backend; ``stage`` only labels log lines (currently always "intent").

``HttpLLM`` speaks three wire formats, picked by ``provider_format``:

    openai_chat   POST /v1/chat/completions   reply in choices[0].message.content
    openai        POST /v1/completions        reply in choices[0].text
    koboldcpp     POST /api/v1/generate       reply in results[0].text

Every transport or protocol failure surfaces as LLMError, which the intent
service treats as "use the keyword parser".
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Literal, Protocol

import httpx

logger = logging.getLogger(__name__)

ProviderFormat = Literal["openai_chat", "openai", "koboldcpp"]


class LLM(Protocol):
    async def __call__(self, stage: str, prompt: str) -> str: ...


class LLMError(RuntimeError):
    """The backend was unreachable, failed, or answered in an unknown shape."""


@dataclass(frozen=True)
class _WireFormat:
    path: str
    reply_path: tuple[str | int, ...]
    label: str
    sampling: bool = True
    chat: bool = False


_FORMATS: dict[str, _WireFormat] = {
    "openai_chat": _WireFormat(
        "/v1/chat/completions", ("choices", 0, "message", "content"), "chat completion", chat=True
    ),
    "openai": _WireFormat("/v1/completions", ("choices", 0, "text"), "OpenAI-compatible"),
    "koboldcpp": _WireFormat("/api/v1/generate", ("results", 0, "text"), "KoboldCpp", sampling=False),
}


def _dig(data: Any, path: tuple[str | int, ...]) -> Any:
    for step in path:
        if isinstance(step, int):
            if not isinstance(data, list) or len(data) <= step:
                return None
        elif not isinstance(data, dict) or step not in data:
            return None
        data = data[step]
    return data


class HttpLLM:
    """Async completion client.

    Args:
        provider_url:    Backend base URL, e.g. "http://localhost:5001".
        api_key:         Sent as a bearer token when non-empty.
        provider_format: One of "openai_chat", "openai", "koboldcpp".
        model:           Model name for the openai formats.
        timeout:         Seconds per request.
        temperature:     Sampling temperature for the openai formats.
        max_tokens:      Reply length cap for the openai formats.
        transport:       Optional httpx transport (tests pass a MockTransport).
    """

    def __init__(
        self,
        provider_url: str,
        api_key: str = "",
        provider_format: ProviderFormat = "openai_chat",
        model: str = "",
        timeout: float = 10.0,
        temperature: float = 0.3,
        max_tokens: int = 150,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if provider_format not in _FORMATS:
            raise ValueError(f"Unknown provider format: {provider_format!r}")
        self.base_url = provider_url.rstrip("/")
        self.api_key = api_key
        self.wire = _FORMATS[provider_format]
        self.model = model
        self.timeout = timeout
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._transport = transport

    def payload(self, prompt: str) -> dict[str, Any]:
        """JSON body for one completion request."""
        if self.wire.chat:
            payload: dict[str, Any] = {"messages": [{"role": "user", "content": prompt}]}
        else:
            payload = {"prompt": prompt}
        if self.wire.sampling:
            payload["temperature"] = self.temperature
            payload["max_tokens"] = self.max_tokens
            if self.model:
                payload["model"] = self.model
        return payload

    async def __call__(self, stage: str, prompt: str) -> str:
        url = self.base_url + self.wire.path
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        logger.debug("llm call stage=%s url=%s prompt_len=%d", stage, url, len(prompt))

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(url, json=self.payload(prompt), headers=headers)
                resp.raise_for_status()
                data = resp.json()
        except httpx.ConnectError as e:
            raise LLMError(f"Cannot connect to LLM backend at {self.base_url}") from e
        except httpx.TimeoutException as e:
            raise LLMError(f"LLM backend timed out after {self.timeout}s") from e
        except httpx.HTTPStatusError as e:
            raise LLMError(f"LLM backend returned HTTP {e.response.status_code}") from e
        except httpx.TransportError as e:
            raise LLMError(f"LLM request to {self.base_url} failed: {e}") from e
        except ValueError as e:
            raise LLMError("LLM backend returned a non-JSON body") from e

        text = _dig(data, self.wire.reply_path)
        if not isinstance(text, str):
            raise LLMError(f"Unexpected response format from {self.wire.label} backend")
        logger.debug("llm response stage=%s len=%d", stage, len(text))
        return text
