"""
infrastructure.llm.gateway - Ollama-backed ModelGatewayPort.

Translates domain ChatMessages into LangChain messages and streams the
reply from a local Ollama server. Backend failures of any kind (server
down, model missing, broken stream) surface as ModelGatewayError so the
layers above never see transport exceptions.

Ollama has no dedicated tool-result role on the plain chat path, so
tool-role messages go out as human turns.
"""

from __future__ import annotations

import logging
from typing import AsyncIterator, Sequence

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from spot.domain.exceptions import ModelGatewayError
from spot.domain.models import ChatMessage, GenerationOptions, ModelInfo, Role
from spot.infrastructure.llm.llm_builder import build_llm

logger = logging.getLogger(__name__)

_ROLE_TO_MESSAGE: dict[Role, type[BaseMessage]] = {
    Role.SYSTEM: SystemMessage,
    Role.USER: HumanMessage,
    Role.ASSISTANT: AIMessage,
    Role.TOOL: HumanMessage,
}


def to_langchain_messages(messages: Sequence[ChatMessage]) -> list[BaseMessage]:
    """Map domain messages onto LangChain message classes."""
    return [_ROLE_TO_MESSAGE[Role(m.role)](content=m.content) for m in messages]


def _chunk_text(chunk) -> str:
    content = getattr(chunk, "content", "")
    if isinstance(content, str):
        return content
    # Multimodal chunks carry a list of parts; only text parts matter here.
    return "".join(
        part.get("text", "") if isinstance(part, dict) else str(part)
        for part in content
    )


class OllamaModelGateway:
    """Chat access to a local Ollama server via langchain-ollama."""

    def __init__(self, base_url: str = "http://localhost:11434", client=None):
        self._base_url = base_url
        self._client = client

    @property
    def base_url(self) -> str:
        return self._base_url

    async def stream(
        self,
        messages: Sequence[ChatMessage],
        model: str,
        options: GenerationOptions,
    ) -> AsyncIterator[str]:
        """Yield incremental text fragments of the reply.

        Raises:
            ModelGatewayError: the backend could not be reached or the
                stream broke part-way through.
        """
        llm = build_llm(model=model, options=options, ollama_base_url=self._base_url)
        payload = to_langchain_messages(messages)
        logger.debug("Streaming %d messages to %s", len(payload), model)
        try:
            async for chunk in llm.astream(payload):
                text = _chunk_text(chunk)
                if text:
                    yield text
        except ModelGatewayError:
            raise
        except Exception as exc:
            logger.error("Model stream from %s failed: %s", model, exc)
            raise ModelGatewayError(
                f"Model backend at {self._base_url} failed ({model}): {exc}"
            ) from exc

    async def complete(
        self,
        messages: Sequence[ChatMessage],
        model: str,
        options: GenerationOptions,
    ) -> str:
        """Non-streaming request; returns the whole reply."""
        llm = build_llm(model=model, options=options, ollama_base_url=self._base_url)
        try:
            reply = await llm.ainvoke(to_langchain_messages(messages))
        except Exception as exc:
            logger.error("Model request to %s failed: %s", model, exc)
            raise ModelGatewayError(
                f"Model backend at {self._base_url} failed ({model}): {exc}"
            ) from exc
        return _chunk_text(reply)

    async def list_models(self) -> list[ModelInfo]:
        """Models installed on the local server."""
        try:
            response = await self._get_client().list()
        except Exception as exc:
            raise ModelGatewayError(
                f"Could not list models from {self._base_url}: {exc}"
            ) from exc
        models = [
            ModelInfo(name=m.model or "", size=m.size or 0)
            for m in response.models
        ]
        logger.debug("Backend reports %d model(s)", len(models))
        return models

    def _get_client(self):
        if self._client is None:
            from ollama import AsyncClient
            self._client = AsyncClient(host=self._base_url)
        return self._client

