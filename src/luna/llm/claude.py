"""
Claude API responder.

Renders a context snapshot into the system prompt of a single chat reply.
"""

import anthropic
from anthropic import APIConnectionError, APIError, RateLimitError

from luna.core.config import Settings, get_settings
from luna.core.logging import get_logger
from luna.llm.base import LLMConfig, LLMResponse, dynamic_temperature, render_context
from luna.memory.context import ContextSnapshot

logger = get_logger("llm.claude")

PERSONA = """You are Luna, a friendly Twitch chat bot.
Keep replies short, natural and chat-friendly. Match the channel's mood."""


class ClaudeResponder:
    """Anthropic Claude backed responder."""

    def __init__(
        self,
        api_key: str | None = None,
        settings: Settings | None = None,
        client: anthropic.AsyncAnthropic | None = None,
    ):
        settings = settings or get_settings()
        self.api_key = api_key or settings.anthropic_api_key
        self.default_model = settings.model
        self.max_tokens = settings.max_tokens
        self._client = client

    @property
    def client(self) -> anthropic.AsyncAnthropic:
        if self._client is None:
            self._client = anthropic.AsyncAnthropic(api_key=self.api_key)
        return self._client

    def config_for(self, snapshot: ContextSnapshot) -> LLMConfig:
        return LLMConfig(
            model=self.default_model,
            max_tokens=self.max_tokens,
            temperature=dynamic_temperature(snapshot),
            system_prompt=f"{PERSONA}\n\n{render_context(snapshot)}",
        )

    async def respond(self, snapshot: ContextSnapshot, message: str) -> str:
        response = await self.complete(
            [{"role": "user", "content": message}],
            self.config_for(snapshot),
        )
        return response.content.strip()

    async def complete(self, messages: list[dict[str, str]], config: LLMConfig) -> LLMResponse:
        """Generate completion using Claude API."""
        model = config.model or self.default_model
        logger.debug(
            f"Claude request: model={model}, max_tokens={config.max_tokens}, "
            f"temperature={config.temperature:.2f}"
        )

        try:
            response = await self.client.messages.create(
                model=model,
                max_tokens=config.max_tokens,
                temperature=config.temperature,
                system=config.system_prompt or "",
                messages=messages,
            )
            content = response.content[0].text if response.content else ""
            logger.debug(f"Claude response ({response.usage.output_tokens} tokens): {content[:200]}")

            return LLMResponse(
                content=content,
                model=model,
                input_tokens=response.usage.input_tokens,
                output_tokens=response.usage.output_tokens,
            )

        except RateLimitError as e:
            logger.warning(f"Rate limited: {e}")
            raise
        except APIConnectionError as e:
            logger.error(f"Connection error: {e}")
            raise
        except APIError as e:
            logger.error(f"API error: {e}")
            raise
