"""
Output renderers for streamed display deltas.

Both renderers keep the full display text so it can be searched after the
response finished (e.g. for XML tag extraction).
"""

import sys
from typing import List, Optional, TextIO

from rich.console import Console
from rich.live import Live
from rich.markdown import Markdown

from agent.stream import DisplayDelta

from .thinking import ThinkingFilter


class RawRenderer:
    """Writes deltas to a text stream as they arrive."""

    def __init__(self, stream: Optional[TextIO] = None, colored: bool = False):
        self.stream = stream or sys.stdout
        self.filter = ThinkingFilter(show_thinking=True, colored=colored)
        self.chunks: List[str] = []

    @property
    def text(self) -> str:
        return "".join(self.chunks)

    def write(self, delta: DisplayDelta) -> None:
        self.chunks.append(delta.text)
        output = self.filter.process_delta(delta)
        if output:
            self.stream.write(output)
            self.stream.flush()

    def close(self) -> None:
        tail = self.filter.finalize()
        if tail:
            self.stream.write(tail)
        if self.chunks and not self.chunks[-1].endswith("\n"):
            self.stream.write("\n")
        self.stream.flush()


class MarkdownRenderer:
    """Renders the accumulated text as live-updating markdown on a terminal."""

    def __init__(self, console: Optional[Console] = None, refresh_per_second: int = 10):
        self.console = console or Console()
        self.chunks: List[str] = []
        self.live = Live(Markdown(""), console=self.console, refresh_per_second=refresh_per_second)
        self.started = False

    @property
    def text(self) -> str:
        return "".join(self.chunks)

    def write(self, delta: DisplayDelta) -> None:
        if not self.started:
            self.live.start()
            self.started = True
        self.chunks.append(delta.text)
        self.live.update(Markdown(self.text))

    def close(self) -> None:
        if self.started:
            self.live.update(Markdown(self.text), refresh=True)
            self.live.stop()
            self.started = False


def make_renderer(markdown: bool, is_terminal: bool):
    """Live markdown on a terminal with formatting on; raw text everywhere else."""
    if markdown and is_terminal:
        return MarkdownRenderer()
    return RawRenderer(colored=is_terminal)
