import io

from rich.console import Console

from agent.stream import DisplayDelta
from bods.console import Colors
from bods.render import MarkdownRenderer, RawRenderer, make_renderer
from bods.thinking import ThinkingFilter


def test_raw_renderer_writes_as_it_goes():
    out = io.StringIO()
    renderer = RawRenderer(stream=out)
    renderer.write(DisplayDelta("thinking...", thinking=True))
    renderer.write(DisplayDelta("Hello"))
    assert out.getvalue() == "thinking...Hello"

    renderer.close()
    assert out.getvalue() == "thinking...Hello\n"
    assert renderer.text == "thinking...Hello"


def test_raw_renderer_keeps_trailing_newline():
    out = io.StringIO()
    renderer = RawRenderer(stream=out)
    renderer.write(DisplayDelta("done\n"))
    renderer.close()
    assert out.getvalue() == "done\n"


def test_thinking_is_dimmed_on_a_terminal():
    thinking_filter = ThinkingFilter(colored=True)
    assert thinking_filter.process_delta(DisplayDelta("hmm", thinking=True)) == f"{Colors.GRAY}{Colors.DIM}hmm"
    assert thinking_filter.process_delta(DisplayDelta(" more", thinking=True)) == " more"
    assert thinking_filter.process_delta(DisplayDelta("answer")) == f"{Colors.RESET}answer"
    assert thinking_filter.finalize() == ""


def test_unfinished_thinking_is_reset():
    thinking_filter = ThinkingFilter(colored=True)
    thinking_filter.process_delta(DisplayDelta("hmm", thinking=True))
    assert thinking_filter.finalize() == Colors.RESET


def test_hidden_thinking():
    thinking_filter = ThinkingFilter(show_thinking=False, colored=True)
    assert thinking_filter.process_delta(DisplayDelta("hmm", thinking=True)) == ""
    assert thinking_filter.process_delta(DisplayDelta("answer")) == "answer"


def test_markdown_renderer():
    console = Console(file=io.StringIO(), force_terminal=True, width=80)
    renderer = MarkdownRenderer(console=console)
    renderer.write(DisplayDelta("# Title\n\n"))
    renderer.write(DisplayDelta("Some **bold** text"))
    renderer.close()

    assert renderer.text == "# Title\n\nSome **bold** text"
    assert "Title" in console.file.getvalue()


def test_make_renderer():
    assert isinstance(make_renderer(markdown=True, is_terminal=True), MarkdownRenderer)
    assert isinstance(make_renderer(markdown=True, is_terminal=False), RawRenderer)
    assert isinstance(make_renderer(markdown=False, is_terminal=True), RawRenderer)
