"""Tests for LLM module."""

from datetime import datetime
from types import MappingProxyType
from unittest.mock import AsyncMock, MagicMock

import pytest

from luna.core.config import Settings
from luna.llm.base import (
    ContextEchoResponder,
    LLMConfig,
    Responder,
    dynamic_temperature,
    render_context,
)
from luna.llm.claude import PERSONA, ClaudeResponder
from luna.memory.base import ContextType, MemoryContext, Tier
from luna.memory.context import ContextSnapshot, RecalledMemory, freeze

NOW = datetime(2024, 1, 1, 12, 0, 0)


def _snapshot(mood=None, messages=0, memories=()):
    signals = {"mood": mood, "activity": 7, "topics": ["boss", "speedrun"]} if mood else {}
    return ContextSnapshot(
        channel="x",
        participant="bob",
        query="hello",
        built_at=NOW,
        messages=tuple(
            MappingProxyType({"content": f"msg {i}", "timestamp": NOW, "role": "user"})
            for i in range(messages)
        ),
        memories=tuple(memories),
        signals=MappingProxyType(signals),
    )


def test_llm_config_defaults():
    """LLMConfig has chat-sized defaults."""
    config = LLMConfig(model="test-model")
    assert config.max_tokens == 85
    assert config.temperature == 0.7
    assert config.system_prompt is None


@pytest.mark.parametrize(
    "mood,messages,expected",
    [
        (None, 0, 0.7),
        ("hype", 0, 0.8),
        ("serious", 0, 0.6),
        (None, 5, 0.8),
        ("hype", 25, 1.0),
    ],
)
def test_dynamic_temperature(mood, messages, expected):
    assert dynamic_temperature(_snapshot(mood, messages)) == pytest.approx(expected)


def test_render_context():
    memory = RecalledMemory(
        key="k",
        tier=Tier.LONG,
        value=freeze({"message": "my cat is Pixel"}),
        context=MemoryContext(type=ContextType.CHAT, content="my cat is Pixel"),
        inserted_at=NOW,
        relevance_score=0.9,
    )
    text = render_context(_snapshot("hype", messages=1, memories=[memory]))

    assert "Channel: x" in text
    assert "Chatting with: bob" in text
    assert "Mood: hype" in text
    assert "Topics: boss, speedrun" in text
    assert "[12:00:00] bob: msg 0" in text
    assert "- (long) my cat is Pixel" in text


def test_render_context_minimal():
    assert render_context(_snapshot()) == "Channel: x\nChatting with: bob"


async def test_echo_responder():
    responder = ContextEchoResponder()
    assert isinstance(responder, Responder)
    reply = await responder.respond(_snapshot("hype", messages=2), "hi")
    assert reply == "[no LLM configured] mood=hype, 2 thread messages, 0 memories recalled"


def _mock_client(text=" hey bob! "):
    client = MagicMock()
    client.messages.create = AsyncMock(
        return_value=MagicMock(
            content=[MagicMock(text=text)],
            usage=MagicMock(input_tokens=10, output_tokens=3),
        )
    )
    return client


async def test_claude_responder_sends_context():
    client = _mock_client()
    settings = Settings(_env_file=None, anthropic_api_key="test")
    responder = ClaudeResponder(settings=settings, client=client)
    assert isinstance(responder, Responder)

    reply = await responder.respond(_snapshot("hype", messages=5), "hello luna")

    assert reply == "hey bob!"
    kwargs = client.messages.create.call_args.kwargs
    assert kwargs["model"] == settings.model
    assert kwargs["max_tokens"] == 85
    assert kwargs["temperature"] == pytest.approx(0.9)
    assert kwargs["messages"] == [{"role": "user", "content": "hello luna"}]
    assert kwargs["system"].startswith(PERSONA)
    assert "Mood: hype" in kwargs["system"]


async def test_claude_complete_reports_usage():
    responder = ClaudeResponder(
        settings=Settings(_env_file=None, anthropic_api_key="test"), client=_mock_client("ok")
    )
    response = await responder.complete([{"role": "user", "content": "hi"}], LLMConfig(model="m"))

    assert response.content == "ok"
    assert response.model == "m"
    assert response.input_tokens == 10
    assert response.output_tokens == 3


async def test_claude_errors_propagate():
    client = MagicMock()
    client.messages.create = AsyncMock(side_effect=RuntimeError("down"))
    responder = ClaudeResponder(settings=Settings(_env_file=None, anthropic_api_key="test"), client=client)

    with pytest.raises(RuntimeError):
        await responder.respond(_snapshot(), "hi")


def test_render_memory_without_content_uses_value():
    memory = RecalledMemory(
        key="k",
        tier=Tier.MEDIUM,
        value=freeze({"message": "gg", "emotes": ["Kappa"]}),
        context=MemoryContext(),
        inserted_at=NOW,
        relevance_score=0.5,
    )
    text = render_context(_snapshot(memories=[memory]))
    assert '- (medium) {"message": "gg", "emotes": ["Kappa"]}' in text
