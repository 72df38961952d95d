"""Tests for depths.llm: wire formats and error mapping over a mock transport."""

import json

import httpx
import pytest

from depths.llm import HttpLLM, LLMError


def _llm(handler, **kwargs) -> HttpLLM:
    kwargs.setdefault("provider_url", "https://api.test/")
    return HttpLLM(transport=httpx.MockTransport(handler), **kwargs)


def _capture(reply: dict, sent: list, status: int = 200):
    def handler(request: httpx.Request) -> httpx.Response:
        sent.append(request)
        return httpx.Response(status, json=reply)
    return handler


class TestWireFormats:
    async def test_chat_format_is_default(self) -> None:
        sent: list[httpx.Request] = []
        llm = _llm(
            _capture({"choices": [{"message": {"role": "assistant", "content": '{"intent": "attack"}'}}]}, sent),
            api_key="secret",
            model="gpt-3.5-turbo",
        )

        assert await llm("intent", "my prompt") == '{"intent": "attack"}'

        request = sent[0]
        assert str(request.url) == "https://api.test/v1/chat/completions"
        assert request.headers["Authorization"] == "Bearer secret"
        body = json.loads(request.content)
        assert body == {
            "messages": [{"role": "user", "content": "my prompt"}],
            "temperature": 0.3,
            "max_tokens": 150,
            "model": "gpt-3.5-turbo",
        }

    async def test_openai_completions(self) -> None:
        sent: list[httpx.Request] = []
        llm = _llm(_capture({"choices": [{"text": "move north"}]}, sent), provider_format="openai")

        assert await llm("intent", "go") == "move north"
        assert sent[0].url.path == "/v1/completions"
        body = json.loads(sent[0].content)
        assert body["prompt"] == "go"
        assert "model" not in body
        assert "Authorization" not in sent[0].headers

    async def test_koboldcpp_sends_bare_prompt(self) -> None:
        sent: list[httpx.Request] = []
        llm = _llm(_capture({"results": [{"text": "ok"}]}, sent), provider_format="koboldcpp", model="ignored")

        assert await llm("intent", "hello") == "ok"
        assert sent[0].url.path == "/api/v1/generate"
        assert json.loads(sent[0].content) == {"prompt": "hello"}

    def test_unknown_format_rejected(self) -> None:
        with pytest.raises(ValueError):
            HttpLLM("https://api.test", provider_format="telnet")


class TestErrors:
    @pytest.mark.parametrize("provider_format,reply", [
        ("openai_chat", {"choices": []}),
        ("openai_chat", {"choices": [{"message": {}}]}),
        ("openai", {"choices": [{}]}),
        ("koboldcpp", {"results": "nope"}),
    ])
    async def test_malformed_reply(self, provider_format, reply) -> None:
        llm = _llm(_capture(reply, []), provider_format=provider_format)
        with pytest.raises(LLMError, match="Unexpected response format"):
            await llm("intent", "prompt")

    async def test_http_status(self) -> None:
        llm = _llm(_capture({"error": "quota"}, [], status=429))
        with pytest.raises(LLMError, match="HTTP 429"):
            await llm("intent", "prompt")

    async def test_non_json_body(self) -> None:
        llm = _llm(lambda request: httpx.Response(200, text="<html>oops</html>"))
        with pytest.raises(LLMError, match="non-JSON"):
            await llm("intent", "prompt")

    async def test_connect_error(self) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(LLMError, match="Cannot connect"):
            await _llm(refuse)("intent", "prompt")

    async def test_timeout(self) -> None:
        def stall(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(LLMError, match="timed out"):
            await _llm(stall, timeout=2)("intent", "prompt")
