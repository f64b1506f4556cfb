import sys
from typing import Optional, TextIO


class Colors:
    BLUE = '\033[94m'
    GREEN = '\033[92m'
    YELLOW = '\033[93m'
    RED = '\033[91m'
    CYAN = '\033[96m'
    GRAY = '\033[90m'
    DIM = '\033[2m'
    RESET = '\033[0m'
    BOLD = '\033[1m'
    ERROR_HEADER = '\033[1;97;41m'


def is_input_terminal() -> bool:
    return sys.stdin.isatty()


def is_output_terminal() -> bool:
    return sys.stdout.isatty()


def print_colored(text: str, color: str = Colors.RESET, file: Optional[TextIO] = None) -> None:
    file = file or sys.stdout
    if file.isatty():
        print(f"{color}{text}{Colors.RESET}", file=file)
    else:
        print(text, file=file)


def print_error(reason: str, detail: str) -> None:
    """Write a styled error header line and a detail line to stderr."""
    if sys.stderr.isatty():
        header = f"  {Colors.ERROR_HEADER} ERROR {Colors.RESET} {reason}"
        body = f"  {Colors.GRAY}{detail}{Colors.RESET}"
    else:
        header = f"  ERROR {reason}"
        body = f"  {detail}"
    print(f"\n{header}\n{body}\n", file=sys.stderr)


def drain_stdin() -> None:
    """Consume piped stdin so the writing process does not get SIGPIPE."""
    if not is_input_terminal():
        sys.stdin.buffer.read()


def get_user_input(prompt: str) -> str:
    """
    Ask for one line of text.

    Reads from the controlling terminal when stdin is piped, so the prompt
    works in ``cat file | bods -p template``.
    """
    if is_input_terminal():
        try:
            return input(f"{Colors.GREEN}{prompt}: {Colors.RESET}")
        except EOFError:
            return ""

    try:
        with open("/dev/tty", "r+") as tty:
            tty.write(f"{prompt}: ")
            tty.flush()
            return tty.readline().rstrip("\n")
    except OSError:
        return ""
