"""
Conversation data model for the Bedrock Anthropic Messages API.

Content blocks are modelled as one dataclass per block type; ``to_wire()``
produces the JSON-ready dict sent in the request body.
"""

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Optional, Union

from .errors import ParameterConflictError
from .models import requires_temperature_xor_top_p


ANTHROPIC_VERSION = "bedrock-2023-05-31"
MINIMUM_THINKING_TOKENS = 1024

ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"

EPHEMERAL = {"type": "ephemeral"}


def _wire_text(text: str) -> str:
    # the service rejects empty text blocks
    return text if text else " "


@dataclass
class TextBlock:
    type: ClassVar[str] = "text"

    text: str = ""
    cache: bool = False

    def to_wire(self) -> Dict[str, Any]:
        block = {"type": self.type, "text": _wire_text(self.text)}
        if self.cache:
            block["cache_control"] = dict(EPHEMERAL)
        return block


@dataclass
class ImageBlock:
    type: ClassVar[str] = "image"

    media_type: str
    data: str  # base64
    cache: bool = False

    def to_wire(self) -> Dict[str, Any]:
        block = {
            "type": self.type,
            "source": {"type": "base64", "media_type": self.media_type, "data": self.data},
        }
        if self.cache:
            block["cache_control"] = dict(EPHEMERAL)
        return block


@dataclass
class DocumentBlock:
    type: ClassVar[str] = "document"

    media_type: str
    data: str  # base64
    cache: bool = False

    def to_wire(self) -> Dict[str, Any]:
        block = {
            "type": self.type,
            "source": {"type": "base64", "media_type": self.media_type, "data": self.data},
        }
        if self.cache:
            block["cache_control"] = dict(EPHEMERAL)
        return block


@dataclass
class ToolUseBlock:
    type: ClassVar[str] = "tool_use"

    id: str
    name: str
    input: Dict[str, Any] = field(default_factory=dict)
    partial_json: str = ""

    def to_wire(self) -> Dict[str, Any]:
        return {"type": self.type, "id": self.id, "name": self.name, "input": self.input}


@dataclass
class ToolResultBlock:
    type: ClassVar[str] = "tool_result"

    tool_use_id: str
    content: str
    is_error: bool = False

    def to_wire(self) -> Dict[str, Any]:
        block = {"type": self.type, "tool_use_id": self.tool_use_id, "content": _wire_text(self.content)}
        if self.is_error:
            block["is_error"] = True
        return block


@dataclass
class ThinkingBlock:
    type: ClassVar[str] = "thinking"

    thinking: str = ""
    signature: str = ""

    def to_wire(self) -> Dict[str, Any]:
        return {"type": self.type, "thinking": self.thinking, "signature": self.signature}


@dataclass
class RedactedThinkingBlock:
    type: ClassVar[str] = "redacted_thinking"

    data: str = ""

    def to_wire(self) -> Dict[str, Any]:
        return {"type": self.type, "data": self.data}


ContentBlock = Union[
    TextBlock, ImageBlock, DocumentBlock, ToolUseBlock, ToolResultBlock, ThinkingBlock, RedactedThinkingBlock
]


@dataclass
class Message:
    role: str
    content: List[ContentBlock] = field(default_factory=list)

    def to_wire(self) -> Dict[str, Any]:
        return {"role": self.role, "content": [block.to_wire() for block in self.content]}

    def text(self) -> str:
        """Concatenated text of all text blocks."""
        return "".join(block.text for block in self.content if isinstance(block, TextBlock))

    def tool_uses(self) -> List[ToolUseBlock]:
        return [block for block in self.content if isinstance(block, ToolUseBlock)]


@dataclass
class ThinkingConfig:
    budget_tokens: int = MINIMUM_THINKING_TOKENS
    enabled: bool = True

    def to_wire(self) -> Dict[str, Any]:
        return {"type": "enabled" if self.enabled else "disabled", "budget_tokens": self.budget_tokens}


@dataclass
class InferenceParameters:
    max_tokens: int = 2048
    temperature: float = 1.0
    top_p: Optional[float] = None
    top_k: Optional[int] = None
    stop_sequences: List[str] = field(default_factory=list)
    system: Optional[str] = None
    thinking: Optional[ThinkingConfig] = None
    tools: Optional[List[Dict[str, Any]]] = None
    anthropic_beta: Optional[List[str]] = None
    anthropic_version: str = ANTHROPIC_VERSION

    def validate(self, model_id: str) -> None:
        """Raise ParameterConflictError for combinations the service rejects."""
        if self.thinking is not None and self.thinking.enabled:
            budget = self.thinking.budget_tokens
            if budget < MINIMUM_THINKING_TOKENS:
                raise ParameterConflictError(
                    f"{budget} is less than the minimum budget tokens size of {MINIMUM_THINKING_TOKENS} tokens",
                    reason="Invalid thinking budget.",
                )
            if self.max_tokens <= budget:
                raise ParameterConflictError(
                    f"{self.max_tokens} <= {budget}: thinking budget tokens must always be less than the max tokens",
                    reason="Invalid max tokens.",
                )
        if self.top_p is not None and requires_temperature_xor_top_p(model_id):
            raise ParameterConflictError(
                f"temperature={self.temperature} and top_p={self.top_p}: {model_id} accepts only one of them",
                reason="Conflicting temperature and top_p.",
            )

    def to_body(self, messages: List[Message]) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "anthropic_version": self.anthropic_version,
            "messages": [message.to_wire() for message in messages],
        }
        if self.system:
            body["system"] = self.system
        body["temperature"] = self.temperature
        body["max_tokens"] = self.max_tokens
        if self.top_p is not None:
            body["top_p"] = self.top_p
        if self.top_k is not None:
            body["top_k"] = self.top_k
        if self.stop_sequences:
            body["stop_sequences"] = list(self.stop_sequences)
        if self.thinking is not None:
            body["thinking"] = self.thinking.to_wire()
        if self.tools:
            body["tools"] = list(self.tools)
        if self.anthropic_beta:
            body["anthropic_beta"] = list(self.anthropic_beta)
        return body
