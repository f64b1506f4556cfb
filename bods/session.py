"""
Invocation orchestration.

``prepare_request`` turns command line options, the selected prompt template
and the piped input into a request (model id, parameters and the initial
conversation). ``ChatSession`` then drives the request/stream/tool loop
until the model finishes.
"""

import json
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional

from agent.errors import CancellationError, ConfigError, InputClassificationError, StreamProtocolError
from agent.messages import ROLE_ASSISTANT, ROLE_USER, InferenceParameters, Message, ThinkingConfig
from agent.models import accepts_system_field, supports_thinking, supports_vision
from agent.stream import COMPLETED, DecoderState, decode_stream
from agent.tools import FileEditor, handle_tool_call

from .config import (
    DEFAULT_BUDGET_TOKENS,
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    DEFAULT_TOP_K,
    Config,
    PromptTemplate,
)
from .console import Colors, get_user_input, print_colored
from .content import build_user_message, prefill_message
from .parsing import (
    extract_xml_tag_content,
    parse_image_list,
    parse_variable_input,
    rewrite_metaprompt_variables,
    substitute_placeholders,
    template_placeholders,
)
from .tool_schemas import environment_context, get_llm_tool_schemas


logger = logging.getLogger(__name__)

MAX_TOOL_ROUNDS = 25


@dataclass
class Options:
    """Command line options of one invocation."""
    prefix: str = ""
    model: Optional[str] = None
    system: Optional[str] = None
    assistant: Optional[str] = None
    prompt: Optional[str] = None
    tokens: Optional[int] = None
    format: bool = True
    metaprompt: bool = False
    tag_content: Optional[str] = None
    show_config: bool = False
    variable_input: Optional[str] = None
    images: Optional[str] = None
    cross_region: bool = True
    think: bool = False
    budget: Optional[int] = None
    text_editor: bool = False
    pasteboard: bool = False


@dataclass
class Request:
    model_id: str
    parameters: InferenceParameters
    conversation: List[Message]
    format_thinking: bool = False
    tag_content: Optional[str] = None
    editor_enabled: bool = False

    def body(self) -> Dict:
        return self.parameters.to_body(self.conversation)


def select_template(config: Config, name: Optional[str]) -> PromptTemplate:
    if not name:
        return PromptTemplate(name="")
    template = config.templates.get(name)
    if template is None:
        available = ", ".join(sorted(config.templates)) or "none"
        raise ConfigError(f"prompt template '{name}' not found (available: {available})",
                          reason="Unknown prompt template.")
    return template


def collect_variables(text: str, provided: Dict[str, str], ask: Callable[[str], str]) -> Dict[str, str]:
    """Values for every placeholder in text; names without a provided value are asked for once."""
    values = {}
    for name in template_placeholders(text):
        if name in provided:
            values[name] = provided[name]
        else:
            values[name] = ask(f"Input for {name}")
    return values


def resolve_parameters(options: Options, template: PromptTemplate, model_id: str) -> InferenceParameters:
    """Merge command line, template and default values (in that order of precedence)."""
    params = InferenceParameters(
        max_tokens=options.tokens or template.max_tokens or DEFAULT_MAX_TOKENS,
        temperature=template.temperature if template.temperature is not None else DEFAULT_TEMPERATURE,
        top_p=template.top_p,
        top_k=template.top_k if template.top_k is not None else DEFAULT_TOP_K,
        stop_sequences=list(template.stop_sequences),
        anthropic_beta=list(template.betas) or None,
    )

    if options.think or template.thinking:
        if supports_thinking(model_id):
            budget = options.budget or template.budget_tokens or DEFAULT_BUDGET_TOKENS
            params.thinking = ThinkingConfig(budget_tokens=budget)
            # the service only accepts the default sampling settings while thinking
            params.temperature = 1.0
            params.top_p = None
            params.top_k = None
            logger.info(f"enabled thinking for {model_id} with budget {budget}")
        else:
            logger.info(f"thinking is not supported by {model_id}, ignoring")

    return params


def _attached_images(options: Options, model_id: str,
                     read_pasteboard: Optional[Callable[[], Optional[bytes]]]) -> List[bytes]:
    images = []
    if options.pasteboard:
        if not supports_vision(model_id):
            raise InputClassificationError(
                f"{model_id}: model does not have vision capability that allows Claude to understand and analyze images",
                reason="Pasteboard",
            )
        data = read_pasteboard() if read_pasteboard else None
        if not data:
            raise InputClassificationError(
                "there was a problem reading the image from the clipboard. Did you copy an image to the clipboard?",
                reason="Pasteboard",
            )
        images.append(data)
    if options.images:
        images.extend(parse_image_list(options.images))
    return images


def prepare_request(options: Options, config: Config, stdin: bytes = b"",
                    ask: Callable[[str], str] = get_user_input,
                    resolve_profile: Optional[Callable[[str], str]] = None,
                    read_pasteboard: Optional[Callable[[], Optional[bytes]]] = None,
                    environment: Callable[[], str] = environment_context) -> Request:
    """
    Build the request for one invocation.

    Raises:
        ConfigError, InputClassificationError, ParameterConflictError
    """
    template = select_template(config, options.prompt)

    model_id = options.model or template.model_id or config.default_model_id
    logger.debug(f"model id set to {model_id}")

    provided = parse_variable_input(options.variable_input) if options.variable_input else {}

    payload = stdin
    if options.metaprompt:
        rewritten = rewrite_metaprompt_variables(stdin.decode("utf-8", errors="replace"))
        values = collect_variables(rewritten, provided, ask)
        payload = substitute_placeholders(rewritten, values).encode("utf-8")
        provided = {**provided, **values}

    user = template.user
    if user:
        user = substitute_placeholders(user, collect_variables(user, provided, ask))

    params = resolve_parameters(options, template, model_id)
    params.system = options.system or template.system or None

    editor_context = None
    editor_enabled = False
    if options.text_editor or template.text_editor:
        tools = get_llm_tool_schemas(model_id)
        if tools:
            params.tools = tools
            editor_context = environment()
            editor_enabled = True
            logger.info(f"enabled text editor tool {tools[0]['type']} for {model_id}")
        else:
            logger.info(f"text editor tool is not supported for model {model_id}, ignoring")

    params.validate(model_id)

    message = build_user_message(
        model_id,
        payload=payload,
        system=params.system,
        user=user,
        prefix=options.prefix,
        images=_attached_images(options, model_id, read_pasteboard),
        editor_context=editor_context,
        markdown=options.format,
    )
    if not accepts_system_field(model_id):
        # system text was placed in the first user message instead
        params.system = None

    conversation = [message]
    prefill = prefill_message(options.assistant or template.assistant)
    if prefill is not None:
        conversation.append(prefill)

    wire_model_id = model_id
    if options.cross_region and resolve_profile is not None:
        wire_model_id = resolve_profile(model_id)
        if wire_model_id != model_id:
            logger.info(f"using inference profile {wire_model_id} for {model_id}")

    return Request(
        model_id=wire_model_id,
        parameters=params,
        conversation=conversation,
        format_thinking=options.format and params.thinking is not None,
        tag_content=options.tag_content,
        editor_enabled=editor_enabled,
    )


def write_tag_content(text: str, tag: str, directory: str = ".") -> Path:
    """Write the content of the first <tag>...</tag> in text to <tag>.txt."""
    path = Path(directory) / f"{tag}.txt"
    path.write_text(extract_xml_tag_content(text, tag), encoding="utf-8")
    logger.info(f"wrote content of <{tag}> to {path}")
    return path


def _merge_prefill(conversation: List[Message]) -> None:
    """Fold an assistant prefill into the streamed assistant message that continues it."""
    if len(conversation) >= 2 and conversation[-2].role == conversation[-1].role == ROLE_ASSISTANT:
        streamed = conversation.pop()
        conversation[-1].content.extend(streamed.content)


def announce_tool_call(name: str, tool_input: Dict) -> None:
    command = tool_input.get("command", "")
    path = tool_input.get("path", "")
    print_colored(f"🛠️  {name}: {command} {path}".rstrip(), Colors.YELLOW, file=sys.stderr)


class ChatSession:
    def __init__(self, llm, renderer, editor: Optional[FileEditor] = None,
                 max_tool_rounds: int = MAX_TOOL_ROUNDS,
                 on_tool_call: Callable[[str, Dict], None] = announce_tool_call) -> None:
        self.llm = llm
        self.renderer = renderer
        self.editor = editor or FileEditor()
        self.max_tool_rounds = max_tool_rounds
        self.on_tool_call = on_tool_call

    def _stream_once(self, request: Request) -> DecoderState:
        body = request.body()
        logger.debug(f"request body: {json.dumps(body)[:2000]}")
        stream = self.llm.open_stream(request.model_id, body)
        state = DecoderState(request.conversation, format_thinking=request.format_thinking)
        try:
            for delta in decode_stream(state, self.llm.iter_events(stream)):
                self.renderer.write(delta)
        except KeyboardInterrupt:
            if state.started:
                # partial assistant output is discarded
                request.conversation.pop()
            raise CancellationError("the request was interrupted by the user")
        finally:
            stream.close()
        return state

    def _run_tools(self, request: Request) -> None:
        tool_uses = request.conversation[-1].tool_uses()
        results = []
        for tool_use in tool_uses:
            self.on_tool_call(tool_use.name, tool_use.input)
            result = handle_tool_call(self.editor, tool_use)
            logger.info(f"tool_result for {tool_use.id} (error={result.is_error}): {result.content[:500]}")
            results.append(result)
        request.conversation.append(Message(role=ROLE_USER, content=results))

    def run(self, request: Request) -> List[Message]:
        """
        Invoke the model until it stops without requesting a tool.

        Returns:
            The full conversation
        """
        rounds = 0
        while True:
            state = self._stream_once(request)
            logger.debug(f"stream finished: signal={state.signal} stop_reason={state.stop_reason}")
            if state.signal == COMPLETED:
                break

            rounds += 1
            if rounds > self.max_tool_rounds:
                raise StreamProtocolError(f"the model requested more than {self.max_tool_rounds} tool calls in a row")

            _merge_prefill(request.conversation)
            self._run_tools(request)

        if request.tag_content:
            write_tag_content(self.renderer.text, request.tag_content)
        return request.conversation
