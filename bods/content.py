"""
Builds the first user message of a conversation.

Blocks are appended in a fixed order: system text (only for models without a
dedicated system field), attached images, the classified payload, the user
prompt, the editor environment context and the format instruction.
"""

import base64
import logging
from typing import Iterable, List, Optional

from agent.errors import InputClassificationError
from agent.media import (
    PDF_MEDIA_TYPE,
    classify_image,
    extract_pdfs,
    is_image,
    split_pdf_segments,
    validate_pdf,
)
from agent.messages import (
    ROLE_ASSISTANT,
    ROLE_USER,
    ContentBlock,
    DocumentBlock,
    ImageBlock,
    Message,
    TextBlock,
)
from agent.models import accepts_system_field, supports_prompt_caching, supports_vision


logger = logging.getLogger(__name__)

FORMAT_TEXT = "Format the response as markdown without enclosing backticks."
NO_FORMAT_TEXT = "."

# ~1024 tokens, the smallest prompt cache checkpoint
CACHE_MIN_BYTES = 5120


def should_cache(model_id: str, text: str) -> bool:
    return supports_prompt_caching(model_id) and len(text.encode("utf-8")) > CACHE_MIN_BYTES


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _decode(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


def text_block(model_id: str, text: str) -> TextBlock:
    return TextBlock(text=text, cache=should_cache(model_id, text))


def image_block(model_id: str, data: bytes) -> ImageBlock:
    """Validate image bytes and wrap them in an image block."""
    if not supports_vision(model_id):
        raise InputClassificationError(
            f"{model_id}: model does not have vision capability that allows Claude to understand and analyze images",
            reason="Model without vision capability.",
        )
    return ImageBlock(media_type=classify_image(data), data=_b64(data))


def _segment_blocks(model_id: str, data: bytes) -> List[ContentBlock]:
    """Blocks for the stretches of a payload that contains PDFs."""
    blocks: List[ContentBlock] = []
    for is_pdf, chunk in split_pdf_segments(data):
        if is_pdf:
            is_valid, reason = validate_pdf(chunk)
            if is_valid:
                blocks.append(DocumentBlock(media_type=PDF_MEDIA_TYPE, data=_b64(chunk)))
            else:
                logger.warning(f"embedded PDF is not valid ({reason}), sending it as text")
                blocks.append(text_block(model_id, _decode(chunk)))
            continue

        if is_image(chunk):
            try:
                blocks.append(image_block(model_id, chunk))
                continue
            except InputClassificationError as e:
                logger.warning(f"image between documents is not usable ({e.detail}), sending it as text")

        text = _decode(chunk).strip()
        if text:
            blocks.append(text_block(model_id, text))
    return blocks


def payload_blocks(model_id: str, data: bytes) -> List[ContentBlock]:
    """
    Classify the primary payload.

    A payload sniffing as an image becomes one image block. A payload with
    embedded PDFs becomes document blocks interleaved with the surrounding
    text. Anything else is one text block.
    """
    if not data:
        return []
    # an image payload for a model without vision fails here instead of
    # being sent as text (error kind 9b)
    if is_image(data):
        return [image_block(model_id, data)]
    pdfs, _ = extract_pdfs(data)
    if pdfs:
        return _segment_blocks(model_id, data)
    return [text_block(model_id, _decode(data))]


def build_user_message(model_id: str, payload: bytes = b"", system: Optional[str] = None,
                       user: str = "", prefix: str = "", images: Iterable[bytes] = (),
                       editor_context: Optional[str] = None, markdown: bool = True) -> Message:
    """
    Build the first user message.

    Args:
        model_id: target model, decides system placement, vision and caching
        payload: primary input (usually stdin)
        system: system prompt; only placed here for models without a system field
        user: user prompt from the template, placeholders already substituted
        prefix: free-form command line text
        images: extra image files attached ahead of the payload
        editor_context: environment description sent with the editor tool
        markdown: ask for a markdown formatted answer

    Raises:
        InputClassificationError: for an unusable image
    """
    content: List[ContentBlock] = []

    if system and not accepts_system_field(model_id):
        content.append(text_block(model_id, system))

    for data in images:
        content.append(image_block(model_id, data))

    content.extend(payload_blocks(model_id, payload))
    content.append(text_block(model_id, f"{user} {prefix}"))

    if editor_context:
        content.append(text_block(model_id, editor_context))

    content.append(TextBlock(text=FORMAT_TEXT if markdown else NO_FORMAT_TEXT))

    logger.debug(f"user message with {len(content)} blocks: {[block.type for block in content]}")
    return Message(role=ROLE_USER, content=content)


def prefill_message(assistant: str) -> Optional[Message]:
    """Assistant prefill message, or None when there is nothing to prefill."""
    text = assistant.rstrip()
    if not text:
        return None
    return Message(role=ROLE_ASSISTANT, content=[TextBlock(text=text)])
