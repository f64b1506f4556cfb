#!/usr/bin/env python3
"""
bods - Main Application
Sends a prompt and piped input to a Claude model on Amazon Bedrock and streams the answer.
"""

import json
import sys
import logging

from agent.errors import BodsError, CancellationError
from agent.llm import LLMClient
from agent.profiles import ProfileResolver
from agent.tools import FileEditor

from bods.cli import build_parser, is_completion_request, parse_options, run_completion, show_config
from bods.clipboard import read_pasteboard_image
from bods.config import load_config, setup_logging
from bods.console import drain_stdin, is_input_terminal, is_output_terminal, print_error
from bods.render import make_renderer
from bods.session import ChatSession, prepare_request


def run(argv) -> int:
    config = load_config()

    log_path = setup_logging(config.log_level_str, debug=config.debug)
    logger = logging.getLogger(__name__)
    if log_path:
        print(f"DEBUG logging to file {log_path}", file=sys.stderr)
    logger.info(f"Logging level set to: {config.log_level_str}")

    if is_completion_request(argv, config):
        return run_completion(argv, config)

    parser = build_parser()
    options = parse_options(argv, parser)

    if options.show_config:
        show_config(config, is_output_terminal())
        return 0

    stdin = b"" if is_input_terminal() else sys.stdin.buffer.read()
    if not stdin and not options.prefix:
        parser.print_usage()
        return 0

    # Initialize components
    logger.info(f"Region: {config.region}, config: {config.config_source}")
    resolver = ProfileResolver(config.region, cache_path=config.cache_path)

    request = prepare_request(
        options,
        config,
        stdin=stdin,
        resolve_profile=resolver.resolve,
        read_pasteboard=read_pasteboard_image,
    )

    if config.dump_prompt:
        print(json.dumps(request.body(), indent=2))
        return 0

    llm = LLMClient(config.region, timeout=config.timeout)
    renderer = make_renderer(options.format, is_output_terminal())

    # Run session
    session = ChatSession(llm=llm, renderer=renderer, editor=FileEditor())
    try:
        session.run(request)
    finally:
        renderer.close()
    return 0


def main():
    """Application entrypoint; reports errors on stderr and exits 1."""
    try:
        code = run(sys.argv[1:])
    except KeyboardInterrupt:
        error = CancellationError("the request was interrupted by the user")
        print_error(error.reason, error.detail)
        sys.exit(1)
    except BodsError as e:
        logging.getLogger(__name__).debug(f"exiting with {type(e).__name__}: {e.detail}")
        drain_stdin()
        print_error(e.reason, e.detail)
        sys.exit(1)
    sys.exit(code)


if __name__ == "__main__":
    main()
