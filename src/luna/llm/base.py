"""
Responder interface and snapshot rendering.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol, runtime_checkable

from luna.memory.context import ContextSnapshot


@dataclass
class LLMConfig:
    """Configuration for LLM call."""

    model: str
    max_tokens: int = 85
    temperature: float = 0.7
    system_prompt: str | None = None


@dataclass
class LLMResponse:
    """Response from LLM provider."""

    content: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0


@runtime_checkable
class Responder(Protocol):
    """Turns a context snapshot plus the triggering message into a reply."""

    async def respond(self, snapshot: ContextSnapshot, message: str) -> str: ...


def dynamic_temperature(snapshot: ContextSnapshot, base: float = 0.7) -> float:
    """Warmer for hype and long threads, cooler for serious channels."""
    temperature = base
    if snapshot.mood == "hype":
        temperature += 0.1
    if snapshot.mood == "serious":
        temperature -= 0.1
    temperature += min(len(snapshot.messages) * 0.02, 0.2)
    return max(0.1, min(temperature, 1.0))


def _clock_time(value: object) -> str:
    if isinstance(value, datetime):
        return value.strftime("%H:%M:%S")
    return "--:--:--"


def render_context(snapshot: ContextSnapshot) -> str:
    """Plain-text context block for a system prompt."""
    lines = [f"Channel: {snapshot.channel}", f"Chatting with: {snapshot.participant}"]

    signals = snapshot.signals
    if signals:
        lines.append(f"Mood: {snapshot.mood}")
        if "activity" in signals:
            lines.append(f"Activity: {signals['activity']} messages in the last 5 minutes")
        if signals.get("topics"):
            lines.append(f"Topics: {', '.join(signals['topics'])}")

    if snapshot.messages:
        lines.append("")
        lines.append("Conversation thread:")
        for msg in snapshot.messages:
            speaker = "you" if msg.get("role") == "assistant" else snapshot.participant
            lines.append(f"[{_clock_time(msg.get('timestamp'))}] {speaker}: {msg.get('content', '')}")

    if snapshot.memories:
        lines.append("")
        lines.append("Relevant memories:")
        for memory in snapshot.memories:
            lines.append(f"- ({memory.tier.value}) {memory.text}")

    return "\n".join(lines)


class ContextEchoResponder:
    """Offline responder that reports what it would have been given."""

    async def respond(self, snapshot: ContextSnapshot, message: str) -> str:
        return (
            f"[no LLM configured] mood={snapshot.mood}, "
            f"{len(snapshot.messages)} thread messages, "
            f"{len(snapshot.memories)} memories recalled"
        )
