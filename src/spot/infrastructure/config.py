"""
infrastructure.config - Typed, injectable configuration.

A frozen dataclass that can be constructed from the environment (plus an
optional .env file) or passed explicitly in tests. No module-level
globals.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from spot.domain.models import GenerationOptions


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


@dataclass(frozen=True)
class Settings:
    """Centralized configuration for the Spot coding agent."""

    sessions_dir: Path

    # ── Models ──────────────────────────────────────────────────
    # Primary model for coding and complex tasks.
    primary_model: str = "qwen2.5-coder:32b-instruct"
    # Smaller model used for conversation digests.
    fast_model: str = "llama3:8b-instruct-q4_K_M"

    # Connection details
    ollama_base_url: str = "http://localhost:11434"

    # ── Generation ──────────────────────────────────────────────
    context_length: int = 32768
    temperature: float = 0.7
    top_p: float = 0.9

    # ── Context continuity ──────────────────────────────────────
    # Estimated tokens (chars / 4) at which older turns get summarized.
    context_threshold: int = 24000
    keep_recent_messages: int = 10
    summary_temperature: float = 0.3
    summary_message_chars: int = 2000
    fallback_max_paths: int = 10

    # ── Persistence ─────────────────────────────────────────────
    autosave_delay: float = 2.0

    # ── Agent / tools ───────────────────────────────────────────
    max_tool_rounds: int = 25
    tool_timeout: float = 120.0
    bash_timeout_ms: int = 30000
    instructions_file: str = "SPOT.md"

    # Logging
    log_level: str = "WARNING"

    @property
    def generation_options(self) -> GenerationOptions:
        return GenerationOptions(
            temperature=self.temperature,
            top_p=self.top_p,
            num_ctx=self.context_length,
        )

    @property
    def summary_options(self) -> GenerationOptions:
        return GenerationOptions(
            temperature=self.summary_temperature,
            top_p=self.top_p,
            num_ctx=self.context_length,
        )

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None) -> Settings:
        """Build Settings from environment variables (and .env, if present)."""
        from dotenv import load_dotenv
        load_dotenv(env_file)

        sessions_dir = Path(
            os.getenv("SPOT_SESSIONS_DIR", str(Path.home() / ".spot" / "sessions"))
        ).expanduser()

        return cls(
            sessions_dir=sessions_dir,
            primary_model=os.getenv("SPOT_PRIMARY_MODEL", "qwen2.5-coder:32b-instruct"),
            fast_model=os.getenv("SPOT_FAST_MODEL", "llama3:8b-instruct-q4_K_M"),
            ollama_base_url=os.getenv("OLLAMA_BASE_URL", "http://localhost:11434"),
            context_length=_env_int("SPOT_CONTEXT_LENGTH", 32768),
            temperature=_env_float("SPOT_TEMPERATURE", 0.7),
            top_p=_env_float("SPOT_TOP_P", 0.9),
            context_threshold=_env_int("SPOT_CONTEXT_THRESHOLD", 24000),
            keep_recent_messages=_env_int("SPOT_KEEP_RECENT_MESSAGES", 10),
            autosave_delay=_env_float("SPOT_AUTOSAVE_DELAY", 2.0),
            max_tool_rounds=_env_int("SPOT_MAX_TOOL_ROUNDS", 25),
            tool_timeout=_env_float("SPOT_TOOL_TIMEOUT", 120.0),
            bash_timeout_ms=_env_int("SPOT_BASH_TIMEOUT_MS", 30000),
            log_level=os.getenv("SPOT_LOG_LEVEL", "WARNING"),
        )
