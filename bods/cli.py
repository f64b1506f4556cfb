"""
Command line parsing and the shell-completion sub-path.
"""

import argparse
import sys
from typing import Iterable, List, Optional, Sequence

from rich.console import Console
from rich.syntax import Syntax

from agent.models import DEFAULT_MODEL_ID, KNOWN_MODEL_IDS

from .clipboard import pasteboard_supported
from .config import DEFAULT_BUDGET_TOKENS, DEFAULT_MAX_TOKENS, Config, user_config_path
from .session import Options


COMPLETION_SHELLS = ("bash", "zsh", "fish")


def build_parser(pasteboard: Optional[bool] = None) -> argparse.ArgumentParser:
    """
    Build the argument parser.

    Args:
        pasteboard: register ``-P``; defaults to whether the platform can read clipboard images
    """
    parser = argparse.ArgumentParser(
        prog="bods",
        description="Send a prompt and piped input to a Claude model on Amazon Bedrock and stream the answer.",
    )
    parser.add_argument("prefix", nargs="*", help="Free-form prompt text, joined with spaces")
    parser.add_argument("-m", "--model", help=f"The specific foundation model to use (default is {DEFAULT_MODEL_ID})")
    parser.add_argument("-s", "--system", help="The system prompt to use; if given will overwrite template system prompt")
    parser.add_argument("-a", "--assistant", help="The message for the assistant role")
    parser.add_argument("-p", "--prompt", help="The prompt name (template) to use")
    parser.add_argument("-t", "--tokens", type=int,
                        help=f"The maximum number of tokens to generate before stopping (default={DEFAULT_MAX_TOKENS})")
    parser.add_argument("-f", "--format", action=argparse.BooleanOptionalAction, default=True,
                        help="Ask for the response formatted as markdown")
    parser.add_argument("-r", "--metaprompt-mode", dest="metaprompt", action="store_true",
                        help="Treat metaprompt variables like {$CUSTOMER} as template variables and ask for their values")
    parser.add_argument("-x", "--tag-content", help="Write output content within this XML tag name to <tag name>.txt")
    parser.add_argument("-S", "--show-config", action="store_true", help="Print the bods.yaml settings")
    parser.add_argument("-v", "--variable-input",
                        help='Variable input mapping, e.g. RUBRIC="software developer",RESUME=file://input.txt')
    parser.add_argument("-i", "--images", help="Comma separated image files, e.g. file://a.png,file://b.jpg")
    parser.add_argument("-c", "--cross-region-inference", dest="cross_region",
                        action=argparse.BooleanOptionalAction, default=True,
                        help="Select a cross-region inference profile if one exists for the model")
    parser.add_argument("-k", "--think", action="store_true",
                        help="Enable thinking (ignored for models without thinking)")
    parser.add_argument("-b", "--budget", type=int,
                        help=f"Budget for the max nr of tokens the model may use for thinking (default={DEFAULT_BUDGET_TOKENS})")
    parser.add_argument("-e", "--text-editor", action="store_true",
                        help="Enable the text editor tool for the model to view and modify files")

    if pasteboard is None:
        pasteboard = pasteboard_supported()
    if pasteboard:
        parser.add_argument("-P", "--pasteboard", action="store_true", help="Get image from pasteboard (clipboard)")
    return parser


def parse_options(argv: Optional[Sequence[str]] = None, parser: Optional[argparse.ArgumentParser] = None) -> Options:
    parser = parser or build_parser()
    args = parser.parse_args(argv)
    return Options(
        prefix=" ".join(args.prefix),
        model=args.model,
        system=args.system,
        assistant=args.assistant,
        prompt=args.prompt,
        tokens=args.tokens,
        format=args.format,
        metaprompt=args.metaprompt,
        tag_content=args.tag_content,
        show_config=args.show_config,
        variable_input=args.variable_input,
        images=args.images,
        cross_region=args.cross_region,
        think=args.think,
        budget=args.budget,
        text_editor=args.text_editor,
        pasteboard=getattr(args, "pasteboard", False),
    )


def _option_strings(parser: argparse.ArgumentParser) -> List[str]:
    options = []
    for action in parser._actions:
        options.extend(action.option_strings)
    return options


def completion_script(shell: str, parser: argparse.ArgumentParser, templates: Iterable[str]) -> str:
    """Return a completion script for flags, model ids (-m) and template names (-p)."""
    flags = " ".join(_option_strings(parser))
    models = " ".join(KNOWN_MODEL_IDS)
    prompts = " ".join(sorted(templates))

    if shell == "bash":
        return (
            "_bods() {\n"
            '    local cur="${COMP_WORDS[COMP_CWORD]}" prev="${COMP_WORDS[COMP_CWORD-1]}"\n'
            '    case "$prev" in\n'
            f'        -m|--model) COMPREPLY=($(compgen -W "{models}" -- "$cur")); return ;;\n'
            f'        -p|--prompt) COMPREPLY=($(compgen -W "{prompts}" -- "$cur")); return ;;\n'
            "    esac\n"
            f'    COMPREPLY=($(compgen -W "{flags}" -- "$cur"))\n'
            "}\n"
            "complete -o default -F _bods bods\n"
        )
    if shell == "zsh":
        return (
            "#compdef bods\n"
            "_bods() {\n"
            '    case "$words[CURRENT-1]" in\n'
            f"        -m|--model) compadd -- {models}; return ;;\n"
            f"        -p|--prompt) compadd -- {prompts}; return ;;\n"
            "    esac\n"
            f"    compadd -- {flags}\n"
            "    _files\n"
            "}\n"
            'compdef _bods bods\n'
        )
    if shell == "fish":
        lines = ["complete -c bods -f"]
        for action in parser._actions:
            if not action.option_strings:
                continue
            parts = ["complete -c bods"]
            for option in action.option_strings:
                if option.startswith("--"):
                    parts.append(f"-l {option[2:]}")
                else:
                    parts.append(f"-s {option[1:]}")
            if action.dest == "model":
                parts.append(f"-x -a '{models}'")
            elif action.dest == "prompt":
                parts.append(f"-x -a '{prompts}'")
            if action.help:
                description = action.help.replace("'", "\\'")
                parts.append(f"-d '{description}'")
            lines.append(" ".join(parts))
        return "\n".join(lines) + "\n"

    raise ValueError(f"unsupported shell: {shell}")


def is_completion_request(argv: Sequence[str], config: Config) -> bool:
    return config.completion_enabled and len(argv) >= 1 and argv[0] == "completion"


def run_completion(argv: Sequence[str], config: Config) -> int:
    """Handle ``bods completion <shell>``; returns the process exit code."""
    shell = argv[1] if len(argv) > 1 else ""
    if shell not in COMPLETION_SHELLS:
        print(f"usage: bods completion {{{','.join(COMPLETION_SHELLS)}}}", file=sys.stderr)
        return 1
    sys.stdout.write(completion_script(shell, build_parser(), config.templates))
    return 0


def show_config(config: Config, is_terminal: bool) -> None:
    """Print where templates are read from and the active YAML."""
    path = user_config_path()
    if config.config_source == "embedded":
        print(f"Embedded bods.yaml will be used. Create {path} to override it.\n")
    else:
        print(f"Using {config.config_source}\n")

    if is_terminal:
        Console().print(Syntax(config.config_text, "yaml"))
    else:
        sys.stdout.write(config.config_text)
