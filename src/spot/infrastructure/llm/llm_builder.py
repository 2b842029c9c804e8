"""
infrastructure.llm.llm_builder - Centralized LLM construction.

Single source of truth for building chat model instances for both the
conversational agent and the summarizer. Everything runs against a local
Ollama server.
"""

from __future__ import annotations

import logging

from langchain_ollama import ChatOllama

from spot.domain.models import GenerationOptions

logger = logging.getLogger(__name__)


def build_llm(
    *,
    model: str,
    options: GenerationOptions,
    ollama_base_url: str = "http://localhost:11434",
) -> ChatOllama:
    """Build a ChatOllama instance.

    Args:
        model: Ollama model tag (e.g. "qwen2.5-coder:32b-instruct").
        options: Sampling temperature, nucleus threshold, and context window.
        ollama_base_url: Ollama server URL.

    Returns:
        A configured LangChain chat model.
    """
    logger.debug(
        "Building ChatOllama (model=%s, temperature=%s, num_ctx=%d)",
        model, options.temperature, options.num_ctx,
    )
    return ChatOllama(
        model=model,
        base_url=ollama_base_url,
        temperature=options.temperature,
        top_p=options.top_p,
        num_ctx=options.num_ctx,
    )
