from agent.stream import DisplayDelta

from .console import Colors


class ThinkingFilter:
    """Format thinking vs normal display deltas for raw terminal output."""

    def __init__(self, show_thinking: bool = True, colored: bool = False):
        self.show_thinking = show_thinking
        self.colored = colored
        self.in_thinking = False

    def process_delta(self, delta: DisplayDelta) -> str:
        result = []
        if delta.thinking and not self.in_thinking:
            self.in_thinking = True
            if self.colored and self.show_thinking:
                result.append(f"{Colors.GRAY}{Colors.DIM}")
        elif not delta.thinking and self.in_thinking:
            self.in_thinking = False
            if self.colored and self.show_thinking:
                result.append(Colors.RESET)

        if not delta.thinking or self.show_thinking:
            result.append(delta.text)
        return ''.join(result)

    def finalize(self) -> str:
        if self.in_thinking and self.colored and self.show_thinking:
            self.in_thinking = False
            return Colors.RESET
        self.in_thinking = False
        return ""
