"""
infrastructure.llm.summarizer - Conversation digests via the fast model.

Implements SummarizerPort on top of any ModelGatewayPort. The digest call
uses the smaller model at a low temperature; every failure is raised as
SummarizationError and the continuity engine falls back to a local
summary.
"""

from __future__ import annotations

import logging
from typing import Sequence

from spot.domain.exceptions import ModelGatewayError, SummarizationError
from spot.domain.models import ChatMessage, GenerationOptions, Message, Role
from spot.domain.ports import ModelGatewayPort

logger = logging.getLogger(__name__)

SUMMARY_PROMPT = """You are a conversation summarizer. Summarize the following conversation between a user and an AI assistant (Spot).

Focus on:
- Key decisions made
- Important facts established
- Tasks completed or in progress
- Any code changes or file modifications
- Context the assistant needs to continue helping

Be concise but preserve critical details. Output only the summary, no preamble.

Conversation:
"""

TRUNCATION_MARKER = "...[truncated]"

_SPEAKERS = {
    Role.USER: "User",
    Role.ASSISTANT: "Spot",
    Role.TOOL: "Tool",
}


def format_conversation(messages: Sequence[Message], max_chars: int = 2000) -> str:
    """Render turns as 'Speaker: text' blocks; system turns are skipped."""
    blocks = []
    for message in messages:
        speaker = _SPEAKERS.get(Role(message.role))
        if speaker is None:
            continue
        content = message.content
        if len(content) > max_chars:
            content = content[:max_chars] + TRUNCATION_MARKER
        blocks.append(f"{speaker}: {content}")
    return "\n\n".join(blocks)


class OllamaSummarizer:
    """SummarizerPort backed by a (smaller) model on the same gateway."""

    def __init__(
        self,
        gateway: ModelGatewayPort,
        model: str,
        options: GenerationOptions,
        max_message_chars: int = 2000,
    ):
        self._gateway = gateway
        self._model = model
        self._options = options
        self._max_message_chars = max_message_chars

    async def summarize(self, messages: Sequence[Message]) -> str:
        """Return a digest of *messages*.

        Raises:
            SummarizationError: the backend failed or returned nothing.
        """
        prompt = SUMMARY_PROMPT + format_conversation(messages, self._max_message_chars)
        logger.info("Requesting digest of %d messages from %s", len(messages), self._model)
        try:
            digest = await self._gateway.complete(
                [ChatMessage(role=Role.USER, content=prompt)],
                self._model,
                self._options,
            )
        except ModelGatewayError as exc:
            raise SummarizationError(f"Digest request failed: {exc}") from exc
        digest = digest.strip()
        if not digest:
            raise SummarizationError("Digest request returned an empty response")
        return digest
