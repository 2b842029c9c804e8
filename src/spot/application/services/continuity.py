"""
application.services.continuity - Bounded context via lossy compaction.

After each completed turn the engine estimates the size of the retained
messages. Once the estimate crosses the threshold, everything except the
last ``keep_recent`` messages is replaced by a digest. The digest comes
from the summarizer (a smaller model); when that fails a deterministic
local summary is used instead, so compaction never blocks the session.
"""

from __future__ import annotations

import logging
import math
import re
from collections import Counter
from typing import Sequence

from spot.application.services.session_manager import SessionManager
from spot.domain.models import Message, Role
from spot.domain.ports import SummarizerPort

logger = logging.getLogger(__name__)

CHARS_PER_TOKEN = 4
DEFAULT_THRESHOLD = 24_000
DEFAULT_KEEP_RECENT = 10
DEFAULT_MAX_PATHS = 10

_PATH_LIKE = re.compile(r"[/\w.-]+\.\w+")


def estimate_tokens(text: str) -> int:
    """Rough token estimate: ~4 characters per token for English text."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def estimate_messages_tokens(messages: Sequence[Message]) -> int:
    return sum(estimate_tokens(m.content) for m in messages)


def fallback_summary(messages: Sequence[Message], max_paths: int = DEFAULT_MAX_PATHS) -> str:
    """Deterministic digest used when the summarizer is unavailable.

    Counts turns per role and lists up to *max_paths* distinct file-path-like
    tokens, in order of first appearance.
    """
    counts = Counter(m.role for m in messages)
    summary = (
        f"Previous conversation: {counts[Role.USER]} user messages, "
        f"{counts[Role.ASSISTANT]} assistant responses"
    )
    if counts[Role.TOOL]:
        summary += f", {counts[Role.TOOL]} tool results"
    summary += "."

    all_content = " ".join(m.content for m in messages)
    paths = list(dict.fromkeys(_PATH_LIKE.findall(all_content)))[:max_paths]
    if paths:
        summary += f" Files discussed: {', '.join(paths)}."
    return summary


class ContinuityEngine:
    """Decides when to compact a session and performs the compaction."""

    def __init__(
        self,
        summarizer: SummarizerPort,
        threshold: int = DEFAULT_THRESHOLD,
        keep_recent: int = DEFAULT_KEEP_RECENT,
        fallback_max_paths: int = DEFAULT_MAX_PATHS,
    ):
        self._summarizer = summarizer
        self._threshold = threshold
        self._keep_recent = keep_recent
        self._fallback_max_paths = fallback_max_paths

    def needs_compaction(self, messages: Sequence[Message]) -> bool:
        return estimate_messages_tokens(messages) >= self._threshold

    def split(self, messages: Sequence[Message]) -> tuple[list[Message], list[Message]]:
        """Return (to_compact, retained); retained is the last keep_recent messages."""
        index = max(0, len(messages) - self._keep_recent)
        return list(messages[:index]), list(messages[index:])

    async def maybe_compress(self, session: SessionManager) -> bool:
        """Compact *session* if it is over budget.

        Returns:
            True when a compaction happened. Running it again with no new
            messages is a no-op: only keep_recent messages remain, so there
            is nothing left to compact.
        """
        messages = session.messages
        estimate = estimate_messages_tokens(messages)
        if estimate < self._threshold:
            return False

        to_compact, retained = self.split(messages)
        if not to_compact:
            logger.debug(
                "Over budget (%d tokens) but only %d recent messages; nothing to compact",
                estimate, len(retained),
            )
            return False

        digest = await self._digest(to_compact)
        session.apply_compaction(digest, to_compact)
        logger.info(
            "Compacted %d messages (~%d tokens) into summary; %d retained",
            len(to_compact), estimate, len(retained),
        )
        return True

    async def _digest(self, messages: Sequence[Message]) -> str:
        try:
            digest = await self._summarizer.summarize(messages)
        except Exception as exc:
            logger.warning("Summarization failed, using fallback summary: %s", exc)
            return fallback_summary(messages, self._fallback_max_paths)
        if not digest.strip():
            logger.warning("Summarizer returned an empty digest, using fallback summary")
            return fallback_summary(messages, self._fallback_max_paths)
        return digest.strip()
