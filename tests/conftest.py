"""Shared fixtures: media samples, stream event builders and a fake transport."""

import copy
import io
import logging
from typing import Dict, List, Optional

import pytest
from PIL import Image
from pypdf import PdfWriter

from bods.config import Config, parse_templates


# ---------------------------------------------------------------------------
# Media samples
# ---------------------------------------------------------------------------

def make_pdf(width: float = 72, height: float = 72) -> bytes:
    """One blank page written by pypdf, without the newline after %%EOF."""
    writer = PdfWriter()
    writer.add_blank_page(width=width, height=height)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue().rstrip()


def make_image(size=(4, 4), fmt: str = "PNG") -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, (200, 30, 30)).save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def pdf_bytes():
    return make_pdf()


@pytest.fixture
def png_bytes():
    return make_image()


# ---------------------------------------------------------------------------
# Stream events
# ---------------------------------------------------------------------------

def message_start():
    return {"type": "message_start", "message": {"role": "assistant", "content": []}}


def block_start(index: int, block_type: str = "text", **fields):
    return {"type": "content_block_start", "index": index, "content_block": {"type": block_type, **fields}}


def text_delta(index: int, text: str):
    return {"type": "content_block_delta", "index": index, "delta": {"type": "text_delta", "text": text}}


def thinking_delta(index: int, thinking: str):
    return {"type": "content_block_delta", "index": index, "delta": {"type": "thinking_delta", "thinking": thinking}}


def signature_delta(index: int, signature: str):
    return {"type": "content_block_delta", "index": index,
            "delta": {"type": "signature_delta", "signature": signature}}


def json_delta(index: int, partial_json: str):
    return {"type": "content_block_delta", "index": index,
            "delta": {"type": "input_json_delta", "partial_json": partial_json}}


def block_stop(index: int):
    return {"type": "content_block_stop", "index": index}


def message_delta(stop_reason: str):
    return {"type": "message_delta", "delta": {"stop_reason": stop_reason}}


def message_stop():
    return {"type": "message_stop"}


def text_stream(*chunks: str) -> List[Dict]:
    events = [message_start(), block_start(0)]
    events.extend(text_delta(0, chunk) for chunk in chunks)
    events.extend([block_stop(0), message_delta("end_turn"), message_stop()])
    return events


def tool_stream(tool_id: str, name: str, tool_input: str, text: str = "Let me edit the file.") -> List[Dict]:
    """An assistant turn with one text block followed by one tool_use block."""
    half = len(tool_input) // 2
    return [
        message_start(),
        block_start(0),
        text_delta(0, text),
        block_stop(0),
        block_start(1, "tool_use", id=tool_id, name=name, input={}),
        json_delta(1, tool_input[:half]),
        json_delta(1, tool_input[half:]),
        block_stop(1),
        message_delta("tool_use"),
        message_stop(),
    ]


# ---------------------------------------------------------------------------
# Fake transport
# ---------------------------------------------------------------------------

class FakeStream:
    def __init__(self, events, interrupt_after: Optional[int] = None):
        self.events = list(events)
        self.interrupt_after = interrupt_after
        self.closed = False

    def __iter__(self):
        for i, event in enumerate(self.events):
            if self.interrupt_after is not None and i == self.interrupt_after:
                raise KeyboardInterrupt
            yield event

    def close(self):
        self.closed = True


class FakeLLM:
    """Replays one prepared stream per invocation and records request bodies."""

    def __init__(self, *streams):
        self.streams = [s if isinstance(s, FakeStream) else FakeStream(s) for s in streams]
        self.bodies: List[Dict] = []
        self.model_ids: List[str] = []
        self.opened: List[FakeStream] = []

    def open_stream(self, model_id, body):
        self.model_ids.append(model_id)
        self.bodies.append(copy.deepcopy(body))
        stream = self.streams[min(len(self.opened), len(self.streams) - 1)]
        # a repeated last stream is replayed from the start
        stream = FakeStream(stream.events, stream.interrupt_after)
        self.opened.append(stream)
        return stream

    def iter_events(self, stream):
        return iter(stream)


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

TEST_TEMPLATES = """
prompts:
  review:
    system: template system
    user: Review this.
    model_id: anthropic.claude-3-5-sonnet-20240620-v1:0
    max_tokens: 1000
  translate:
    user: Translate to {{.LANGUAGE}}.
  repeat:
    user: "{{.A}} and {{.A}} then {{.B}}"
  commit:
    assistant: "Subject:\\n"
  editor:
    text_editor: true
    model_id: anthropic.claude-sonnet-4-20250514-v1:0
"""


def make_config(templates_text: str = TEST_TEMPLATES, **overrides) -> Config:
    values = dict(
        region="us-east-1",
        default_model_id="anthropic.claude-3-5-sonnet-20240620-v1:0",
        log_level_str="WARNING",
        timeout=600.0,
        debug=False,
        dump_prompt=False,
        completion_enabled=False,
        config_text=templates_text,
        config_source="embedded",
        templates=parse_templates(templates_text),
        cache_path="",
    )
    values.update(overrides)
    return Config(**values)


@pytest.fixture
def config():
    return make_config()


@pytest.fixture
def restore_logging():
    """Put the root logger back the way it was after a test reconfigures it."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
