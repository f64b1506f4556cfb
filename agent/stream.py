"""
Decoder for the Messages API streaming event protocol.

``decode_event`` applies one stream event to the decoder state and returns the
display delta (if any) to render. The in-flight assistant message is always
the last element of ``state.conversation``.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Optional, Set, Tuple

from .errors import StreamProtocolError, TransportError
from .messages import (
    ROLE_ASSISTANT,
    Message,
    RedactedThinkingBlock,
    TextBlock,
    ThinkingBlock,
    ToolUseBlock,
)


logger = logging.getLogger(__name__)

TOOL_REQUESTED = "tool_requested"
COMPLETED = "completed"

STOP_TOOL_USE = "tool_use"

THINKING_OPEN = "`<thinking>`\n\n"
THINKING_CLOSE = "\n\n`</thinking>`\n\n"


@dataclass
class DisplayDelta:
    text: str
    thinking: bool = False


@dataclass
class DecoderState:
    conversation: List[Message]
    format_thinking: bool = False
    started: bool = False
    stop_reason: Optional[str] = None
    signal: Optional[str] = None
    # stream block index -> position in the in-flight message content
    positions: Dict[int, int] = field(default_factory=dict)
    pending_tools: Set[int] = field(default_factory=set)
    closed_thinking: Set[int] = field(default_factory=set)

    @property
    def done(self) -> bool:
        return self.signal is not None

    @property
    def message(self) -> Message:
        return self.conversation[-1]


def _as_dict(event: Any) -> Dict[str, Any]:
    if event is None:
        raise StreamProtocolError("response stream event was empty (None)")
    if isinstance(event, (bytes, bytearray, str)):
        try:
            event = json.loads(event)
        except json.JSONDecodeError as e:
            raise StreamProtocolError(f"unparsable stream event: {e}") from e
    elif hasattr(event, "model_dump"):
        event = event.model_dump()
    if not isinstance(event, dict) or not event.get("type"):
        raise StreamProtocolError(f"stream event without a type: {event!r}")
    return event


def _require_started(state: DecoderState, event_type: str) -> None:
    if not state.started or state.message.role != ROLE_ASSISTANT:
        raise StreamProtocolError(f"{event_type} received before message_start")
    if state.done:
        raise StreamProtocolError(f"{event_type} received after message_stop")


def _position(state: DecoderState, event: Dict[str, Any]) -> int:
    index = event.get("index")
    if index is None:
        return len(state.message.content) - 1
    if index not in state.positions:
        raise StreamProtocolError(f"{event['type']} for unknown content block index {index}")
    return state.positions[index]


def _parse_tool_input(state: DecoderState, position: int) -> None:
    block = state.message.content[position]
    raw = block.partial_json.strip()
    try:
        block.input = json.loads(raw) if raw else {}
    except json.JSONDecodeError as e:
        raise StreamProtocolError(f"tool input for {block.name} is not valid JSON: {e}") from e
    if not isinstance(block.input, dict):
        raise StreamProtocolError(f"tool input for {block.name} is not a JSON object")
    state.pending_tools.discard(position)


def _on_message_start(state: DecoderState, event: Dict[str, Any]) -> Optional[DisplayDelta]:
    if state.started:
        raise StreamProtocolError("message_start received twice in one stream")
    role = (event.get("message") or {}).get("role")
    if role != ROLE_ASSISTANT:
        raise StreamProtocolError(f"message_start with unexpected role {role!r}")
    state.conversation.append(Message(role=ROLE_ASSISTANT))
    state.started = True
    return None


def _on_block_start(state: DecoderState, event: Dict[str, Any]) -> Optional[DisplayDelta]:
    _require_started(state, "content_block_start")
    block = event.get("content_block") or {}
    block_type = block.get("type")
    content = state.message.content
    position = len(content)
    delta = None

    if block_type == "text":
        content.append(TextBlock(text=block.get("text", "")))
    elif block_type == "thinking":
        content.append(ThinkingBlock(thinking=block.get("thinking", ""), signature=block.get("signature", "")))
        if state.format_thinking:
            delta = DisplayDelta(THINKING_OPEN, thinking=True)
    elif block_type == "redacted_thinking":
        content.append(RedactedThinkingBlock(data=block.get("data", "")))
    elif block_type == "tool_use":
        content.append(ToolUseBlock(id=block.get("id", ""), name=block.get("name", "")))
        state.pending_tools.add(position)
        logger.debug(f"tool_use started id={block.get('id')} name={block.get('name')}")
    else:
        raise StreamProtocolError(f"unsupported content block type {block_type!r}")

    state.positions[event.get("index", position)] = position
    return delta


def _on_block_delta(state: DecoderState, event: Dict[str, Any]) -> Optional[DisplayDelta]:
    _require_started(state, "content_block_delta")
    position = _position(state, event)
    block = state.message.content[position]
    delta = event.get("delta") or {}
    delta_type = delta.get("type")

    if delta_type == "text_delta" and isinstance(block, TextBlock):
        text = delta.get("text", "")
        block.text += text
        return DisplayDelta(text) if text else None

    if delta_type == "thinking_delta" and isinstance(block, ThinkingBlock):
        thinking = delta.get("thinking", "")
        block.thinking += thinking
        return DisplayDelta(thinking, thinking=True) if thinking else None

    if delta_type == "signature_delta" and isinstance(block, ThinkingBlock):
        block.signature += delta.get("signature", "")
        if state.format_thinking and position not in state.closed_thinking:
            state.closed_thinking.add(position)
            return DisplayDelta(THINKING_CLOSE, thinking=True)
        return None

    if delta_type == "input_json_delta" and isinstance(block, ToolUseBlock):
        block.partial_json += delta.get("partial_json", "")
        return None

    raise StreamProtocolError(f"{delta_type!r} delta does not apply to a {block.type} block")


def _on_block_stop(state: DecoderState, event: Dict[str, Any]) -> Optional[DisplayDelta]:
    _require_started(state, "content_block_stop")
    position = _position(state, event)
    if position in state.pending_tools:
        _parse_tool_input(state, position)
    return None


def _on_message_delta(state: DecoderState, event: Dict[str, Any]) -> Optional[DisplayDelta]:
    _require_started(state, "message_delta")
    stop_reason = (event.get("delta") or {}).get("stop_reason")
    if stop_reason:
        state.stop_reason = stop_reason
        logger.debug(f"message_delta stop_reason={stop_reason}")
    if stop_reason == STOP_TOOL_USE:
        for position in sorted(state.pending_tools):
            _parse_tool_input(state, position)
    return None


def _on_message_stop(state: DecoderState, event: Dict[str, Any]) -> Optional[DisplayDelta]:
    _require_started(state, "message_stop")
    if state.stop_reason == STOP_TOOL_USE:
        if not state.message.tool_uses():
            raise StreamProtocolError("stop_reason is tool_use but the message has no tool_use block")
        state.signal = TOOL_REQUESTED
    else:
        state.signal = COMPLETED
    metrics = event.get("amazon-bedrock-invocationMetrics")
    if metrics:
        logger.debug(f"invocation metrics: {metrics}")
    return None


def _on_error(state: DecoderState, event: Dict[str, Any]) -> Optional[DisplayDelta]:
    error = event.get("error") or {}
    raise TransportError(f"{error.get('type', 'error')}: {error.get('message', event)}")


_HANDLERS = {
    "message_start": _on_message_start,
    "content_block_start": _on_block_start,
    "content_block_delta": _on_block_delta,
    "content_block_stop": _on_block_stop,
    "message_delta": _on_message_delta,
    "message_stop": _on_message_stop,
    "ping": lambda state, event: None,
    "error": _on_error,
}


def decode_event(state: DecoderState, event: Any) -> Tuple[DecoderState, Optional[DisplayDelta]]:
    """Apply one stream event; returns the updated state and an optional display delta."""
    event = _as_dict(event)
    handler = _HANDLERS.get(event["type"])
    if handler is None:
        logger.warning(f"ignoring stream event type '{event['type']}'")
        return state, None
    return state, handler(state, event)


def decode_stream(state: DecoderState, events: Iterable[Any]) -> Iterator[DisplayDelta]:
    """Decode events in order, yielding display deltas, until message_stop."""
    for event in events:
        state, delta = decode_event(state, event)
        if delta is not None:
            yield delta
        if state.done:
            return
    if not state.done:
        raise StreamProtocolError("response stream ended before message_stop")
