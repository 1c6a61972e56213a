"""Tests for prompt_enhancer module."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from config import LLMConfig
from fallback_prompts import FALLBACK_GRAMMAR
from prompt_enhancer import PromptEnhancer, clean_output


def completion(text):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=text))])


def connection_error():
    return openai.APIConnectionError(request=httpx.Request("POST", "http://localhost:11434/v1/chat/completions"))


def make_enhancer(side_effect=None, return_value=None, **config):
    client = MagicMock()
    client.chat.completions.create = AsyncMock(side_effect=side_effect, return_value=return_value)
    client.models.list = AsyncMock()
    client.close = AsyncMock()
    return PromptEnhancer(LLMConfig(**config), client=client), client


class TestCleanOutput:
    """Tests for clean_output."""

    def test_removes_think_blocks(self):
        raw = "<think>\nthe user wants a lake\n</think>\nA misty lake at dawn"
        assert clean_output(raw) == "A misty lake at dawn"

    def test_extracts_code_block(self):
        raw = "Here you go:\n```text\nA misty lake\nat dawn\n```"
        assert clean_output(raw) == "A misty lake at dawn"

    def test_strips_wrapping_quotes(self):
        assert clean_output('"A misty lake at dawn"') == "A misty lake at dawn"

    def test_none(self):
        assert clean_output(None) == ""


class TestPromptEnhancer:
    """Tests for PromptEnhancer."""

    @pytest.mark.asyncio
    async def test_enhance(self):
        enhancer, client = make_enhancer(return_value=completion('"A misty lake at dawn, soft golden light"'))

        result = await enhancer.enhance("a lake")

        assert result == "A misty lake at dawn, soft golden light"
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "llama3.2:latest"
        assert '"a lake"' in kwargs["messages"][0]["content"]

    @pytest.mark.asyncio
    async def test_enhance_too_short(self):
        enhancer, _ = make_enhancer(return_value=completion("Lake."))
        assert await enhancer.enhance("a lake") is None

    @pytest.mark.asyncio
    async def test_enhance_empty_response(self):
        enhancer, _ = make_enhancer(return_value=SimpleNamespace(choices=[]))
        assert await enhancer.enhance("a lake") is None

    @pytest.mark.asyncio
    async def test_enhance_server_down(self):
        enhancer, _ = make_enhancer(side_effect=connection_error())
        assert await enhancer.enhance("a lake") is None

    @pytest.mark.asyncio
    async def test_disabled_never_calls_server(self):
        enhancer, client = make_enhancer(return_value=completion("A misty lake at dawn"), enabled=False)

        assert await enhancer.enhance("a lake") is None
        assert await enhancer.is_available() is False
        client.chat.completions.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_extract_keywords(self):
        enhancer, client = make_enhancer(return_value=completion("lake, mist, dawn, boat, light, sky"))

        assert await enhancer.extract_keywords("a boat on a misty lake") == "lake, mist, dawn, boat, light"
        assert client.chat.completions.create.call_args.kwargs["model"] == "llama3.2:1b"

    @pytest.mark.asyncio
    async def test_extract_keywords_fallback(self):
        enhancer, _ = make_enhancer(side_effect=connection_error())

        result = await enhancer.extract_keywords("a small boat on a misty lake")

        assert result == "a small boat on a"

    @pytest.mark.asyncio
    async def test_suggest_contextual_prompt(self):
        enhancer, client = make_enhancer(return_value=completion("A foggy pier under lantern light"))

        result = await enhancer.suggest_contextual_prompt(["a lake", "a boat"])

        assert result == "A foggy pier under lantern light"
        assert "a lake, a boat" in client.chat.completions.create.call_args.kwargs["messages"][0]["content"]

    @pytest.mark.asyncio
    async def test_suggest_contextual_prompt_fallback(self):
        enhancer, _ = make_enhancer(side_effect=connection_error())

        result = await enhancer.suggest_contextual_prompt(["a lake", "a boat"])

        assert result.endswith("a boat")

    @pytest.mark.asyncio
    async def test_suggest_without_history(self):
        enhancer, client = make_enhancer(return_value=completion("unused"))

        assert await enhancer.suggest_contextual_prompt([]) in FALLBACK_GRAMMAR["scene"]
        client.chat.completions.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_is_available(self):
        enhancer, client = make_enhancer()
        assert await enhancer.is_available() is True

        client.models.list.side_effect = connection_error()
        assert await enhancer.is_available() is False

    @pytest.mark.asyncio
    async def test_aclose(self):
        enhancer, client = make_enhancer()
        await enhancer.aclose()
        client.close.assert_awaited_once()
