"""
agent.tool_calls - Extract tool calls from raw model output.

Local models do not reliably use a native function-calling API, so the
executor asks them to emit an inline JSON object and this module finds
those objects in the streamed text. Two grammars, first match wins:

1. Primary:  {"name": "<tool>", "arguments": {...}}
   Accepted only if <tool> is registered; unknown names are dropped.
2. Fallback: <tool>({...}) for a fixed shortlist of tool names. Only tried
   when the primary grammar produced nothing.

A malformed occurrence is skipped, never fatal: the rest of the text is
still scanned. Results keep left-to-right textual order.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Callable, Iterable, Optional

from spot.domain.models import ToolCall

logger = logging.getLogger(__name__)

# Tool names recognised by the function-call style fallback.
FALLBACK_TOOL_NAMES = (
    "bash", "read_file", "write_file", "edit_file", "ls", "glob", "grep", "todo",
)

_PRIMARY_HEAD = re.compile(r'\{\s*"name"\s*:\s*"([^"\\]+)"\s*,\s*"arguments"\s*:\s*')
_OBJECT_CLOSE = re.compile(r"\s*\}")
_CALL_CLOSE = re.compile(r"\s*\)")

# strict=False lets raw newlines/tabs through inside strings, which models
# emit constantly when writing file contents.
_DECODER = json.JSONDecoder(strict=False)

# Windows paths and regexes produce backslashes that are not valid JSON
# escapes (C:\Users -> \U). Double every backslash that does not start one.
_LONE_BACKSLASH = re.compile(r'\\(?!["\\/bfnrtu])')


def _fallback_head(names: Iterable[str]) -> re.Pattern[str]:
    alternatives = "|".join(re.escape(n) for n in names)
    return re.compile(rf"\b({alternatives})\s*\(\s*(?=\{{)")


_FALLBACK_HEAD = _fallback_head(FALLBACK_TOOL_NAMES)


def _decode_object(text: str, start: int) -> Optional[tuple[dict, int]]:
    """Decode a JSON object at text[start:]; return (obj, end) or None."""
    try:
        obj, end = _DECODER.raw_decode(text, start)
    except json.JSONDecodeError:
        return None
    if not isinstance(obj, dict):
        return None
    return obj, end


def _decode_repaired(text: str, start: int) -> Optional[dict]:
    """Retry a failed decode after escaping lone backslashes."""
    fixed = _LONE_BACKSLASH.sub(r"\\\\", text[start:])
    decoded = _decode_object(fixed, 0)
    if decoded is None:
        return None
    logger.info("Tool-call extraction: repaired JSON backslash escaping")
    return decoded[0]


def _scan_primary(text: str, is_known: Callable[[str], bool]) -> list[ToolCall]:
    calls: list[ToolCall] = []
    pos = 0
    while True:
        head = _PRIMARY_HEAD.search(text, pos)
        if head is None:
            return calls
        name = head.group(1)
        decoded = _decode_object(text, head.end())

        if decoded is None:
            arguments = _decode_repaired(text, head.end())
            if arguments is None:
                logger.info("Dropping malformed tool call for '%s'", name)
            elif is_known(name):
                calls.append(ToolCall(name=name, arguments=arguments))
            # Offsets are unknown after a repair; resume just past the head.
            pos = head.end()
            continue

        arguments, end = decoded
        close = _OBJECT_CLOSE.match(text, end)
        if close is None:
            # Extra keys after "arguments" - not the two-field shape.
            logger.info("Dropping tool call for '%s': unexpected trailing fields", name)
            pos = head.end()
            continue

        if is_known(name):
            calls.append(ToolCall(name=name, arguments=arguments))
        else:
            logger.info("Dropping tool call for unregistered tool '%s'", name)
        pos = close.end()


def _scan_fallback(text: str) -> list[ToolCall]:
    calls: list[ToolCall] = []
    pos = 0
    while True:
        head = _FALLBACK_HEAD.search(text, pos)
        if head is None:
            return calls
        decoded = _decode_object(text, head.end())
        if decoded is None:
            logger.info("Dropping malformed %s(...) call", head.group(1))
            pos = head.end()
            continue
        arguments, end = decoded
        close = _CALL_CLOSE.match(text, end)
        if close is None:
            pos = head.end()
            continue
        calls.append(ToolCall(name=head.group(1), arguments=arguments))
        pos = close.end()


def parse_tool_calls(
    text: str,
    is_known: Callable[[str], bool],
) -> list[ToolCall]:
    """Return every tool call in *text*, in the order they appear.

    Args:
        text:      Full accumulated model response.
        is_known:  Predicate telling whether a tool name is registered.
                   Applied to primary-grammar matches only.

    Returns:
        Zero or more ToolCall objects. An empty list means the response is
        a final answer.
    """
    calls = _scan_primary(text, is_known)
    if calls:
        return calls
    return _scan_fallback(text)
