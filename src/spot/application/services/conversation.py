"""
application.services.conversation - One user turn, end to end.

Records the user input, builds the model context from the session, runs
the agent loop, commits the round (tool traffic plus final answer) to the
session, and then gives the continuity engine a chance to compact.

Nothing from a failed round is committed except the user input itself:
if the backend dies mid-loop, already-executed tool results stay out of
the transcript.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Optional

from spot.application.context import ToolContext
from spot.application.services.continuity import ContinuityEngine
from spot.application.services.session_manager import SessionManager
from spot.domain.models import Role

if TYPE_CHECKING:
    from spot.agent.executor import AgentExecutor, ChatCallbacks

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TurnResult:
    answer: str
    tool_messages: int
    compacted: bool


class ConversationService:
    """Glue between the REPL, the session, the agent, and the continuity engine."""

    def __init__(
        self,
        agent: AgentExecutor,
        session: SessionManager,
        continuity: ContinuityEngine,
        system_prompt: Callable[[], str],
        ctx: Optional[ToolContext] = None,
    ):
        self._agent = agent
        self._session = session
        self._continuity = continuity
        self._system_prompt = system_prompt
        self._ctx = ctx or ToolContext(session=session)

    @property
    def session(self) -> SessionManager:
        return self._session

    @property
    def ctx(self) -> ToolContext:
        return self._ctx

    async def send(
        self,
        user_input: str,
        callbacks: Optional[ChatCallbacks] = None,
    ) -> TurnResult:
        """Process one user message and return the model's final answer.

        Raises:
            ModelGatewayError: backend failure; the caller reports it.
            ToolLoopLimitError: runaway tool loop; the caller reports it.
        """
        self._ctx.new_request()
        self._session.add_message(Role.USER, user_input)

        messages = self._session.context_messages(self._system_prompt())
        committed = len(messages)
        logger.info(
            "Turn %s: %d context messages, model=%s",
            self._ctx.request_id[:8], committed, self._session.model,
        )

        answer = await self._agent.chat(
            messages, self._session.model, callbacks=callbacks, ctx=self._ctx,
        )

        round_messages = messages[committed:]
        for message in round_messages:
            self._session.add_message(message.role, message.content)
        self._session.add_message(Role.ASSISTANT, answer)

        compacted = await self._continuity.maybe_compress(self._session)
        return TurnResult(
            answer=answer,
            tool_messages=len(round_messages),
            compacted=compacted,
        )
