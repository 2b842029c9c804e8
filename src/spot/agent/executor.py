"""
agent.executor - Agent execution engine.

The single class that runs the model + tool loop. No component
construction, no persistence, no business logic.

The loop is an explicit two-state machine:

    AWAITING_MODEL --(no tool calls)--> DONE
    AWAITING_MODEL --(>=1 tool calls)--> EXECUTING --> AWAITING_MODEL

Tool calls from one response run one at a time, in textual order, because
later calls may depend on side effects of earlier ones.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from spot.application.context import ToolContext
from spot.agent.prompt import inject_tool_instructions
from spot.agent.tool_calls import parse_tool_calls
from spot.agent.tools.registry import ToolRegistry
from spot.domain.exceptions import ToolLoopLimitError
from spot.domain.models import ChatMessage, GenerationOptions, Role, ToolCall
from spot.domain.ports import ModelGatewayPort

logger = logging.getLogger(__name__)


class LoopState(str, Enum):
    AWAITING_MODEL = "awaiting_model"
    EXECUTING = "executing"
    DONE = "done"


@dataclass
class ChatCallbacks:
    """Streaming and lifecycle hooks supplied by the caller.

    on_token:        Every streamed text fragment, as it arrives.
    on_tool_call:    A tool call is about to run (name, arguments).
    on_tool_result:  A tool call finished (name, result text).
    """
    on_token: Optional[Callable[[str], None]] = None
    on_tool_call: Optional[Callable[[str, dict[str, Any]], None]] = None
    on_tool_result: Optional[Callable[[str, str], None]] = None


def format_tool_result(name: str, result: str) -> str:
    return f"Tool result for {name}:\n{result}"


class AgentExecutor:
    """Runs the model + tool selection loop.

    Constructed by factory.py with all dependencies injected. Holds no
    conversation state of its own; everything flows through the message
    list passed to chat().
    """

    def __init__(
        self,
        gateway: ModelGatewayPort,
        tools: ToolRegistry,
        options: GenerationOptions,
        max_rounds: Optional[int] = None,
    ):
        self._gateway = gateway
        self._tools = tools
        self._options = options
        self._max_rounds = max_rounds

    @property
    def tools(self) -> ToolRegistry:
        return self._tools

    async def chat(
        self,
        messages: list[ChatMessage],
        model: str,
        callbacks: Optional[ChatCallbacks] = None,
        ctx: Optional[ToolContext] = None,
    ) -> str:
        """Run rounds until the model answers without requesting tools.

        *messages* is the in-flight list and is extended in place: each tool
        round appends the raw assistant response and one user-role message
        per tool result. Callers that want to persist the tool rounds read
        them back from the tail of the list after a successful return.

        Args:
            messages:   Prior conversation, system prompt first.
            model:      Model name for this conversation.
            callbacks:  Optional streaming/lifecycle hooks.
            ctx:        Tool execution context.

        Returns:
            The final (non-tool-call) response text.

        Raises:
            ModelGatewayError: The backend failed; the round is abandoned.
            ToolLoopLimitError: max_rounds tool rounds ran back to back.
        """
        callbacks = callbacks or ChatCallbacks()
        inject_tool_instructions(messages, self._tools)

        state = LoopState.AWAITING_MODEL
        rounds = 0
        response = ""
        calls: list[ToolCall] = []

        while state is not LoopState.DONE:
            if state is LoopState.AWAITING_MODEL:
                response = await self._stream_response(messages, model, callbacks)
                calls = parse_tool_calls(response, self._tools.has)
                if not calls:
                    state = LoopState.DONE
                    continue
                rounds += 1
                if self._max_rounds and rounds > self._max_rounds:
                    raise ToolLoopLimitError(self._max_rounds)
                logger.info("Round %d: %d tool call(s)", rounds, len(calls))
                messages.append(ChatMessage(role=Role.ASSISTANT, content=response))
                state = LoopState.EXECUTING

            elif state is LoopState.EXECUTING:
                for call in calls:
                    result = await self._execute(call, ctx, callbacks)
                    messages.append(ChatMessage(
                        role=Role.USER,
                        content=format_tool_result(call.name, result),
                    ))
                state = LoopState.AWAITING_MODEL

        logger.debug("Final response after %d tool round(s): %s", rounds, response[:100])
        return response

    async def _stream_response(
        self,
        messages: list[ChatMessage],
        model: str,
        callbacks: ChatCallbacks,
    ) -> str:
        parts: list[str] = []
        async for token in self._gateway.stream(messages, model, self._options):
            parts.append(token)
            if callbacks.on_token:
                callbacks.on_token(token)
        return "".join(parts)

    async def _execute(
        self,
        call: ToolCall,
        ctx: Optional[ToolContext],
        callbacks: ChatCallbacks,
    ) -> str:
        if callbacks.on_tool_call:
            callbacks.on_tool_call(call.name, call.arguments)
        try:
            result = await self._tools.invoke(call.name, call.arguments, ctx)
        except Exception as exc:
            logger.exception("Tool '%s' failed outside the registry guard", call.name)
            result = f"Error executing {call.name}: {exc}"
        if callbacks.on_tool_result:
            callbacks.on_tool_result(call.name, result)
        return result
