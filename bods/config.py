import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from dotenv import load_dotenv
from platformdirs import user_cache_dir, user_config_dir

from agent.errors import ConfigError
from agent.models import DEFAULT_MODEL_ID


APP_NAME = "bods"
EMBEDDED_CONFIG_PATH = Path(__file__).with_name("bods.yaml")

DEFAULT_REGION = "us-east-1"
DEFAULT_TIMEOUT = 600.0
DEFAULT_MAX_TOKENS = 2048
DEFAULT_TEMPERATURE = 1.0
DEFAULT_TOP_K = 250
DEFAULT_BUDGET_TOKENS = 1024

# third-party loggers kept quiet unless DEBUG is set
NOISY_LOGGERS = ("botocore", "boto3", "urllib3", "httpx", "httpcore", "anthropic")

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


@dataclass
class PromptTemplate:
    name: str
    description: str = ""
    model_id: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    top_p: Optional[float] = None
    top_k: Optional[int] = None
    system: str = ""
    user: str = ""
    assistant: str = ""
    thinking: bool = False
    budget_tokens: Optional[int] = None
    text_editor: bool = False
    betas: List[str] = field(default_factory=list)
    stop_sequences: List[str] = field(default_factory=list)


_TEMPLATE_TYPES = {
    "description": (str,),
    "model_id": (str,),
    "temperature": (int, float),
    "max_tokens": (int,),
    "top_p": (int, float),
    "top_k": (int,),
    "system": (str,),
    "user": (str,),
    "assistant": (str,),
    "thinking": (bool,),
    "budget_tokens": (int,),
    "text_editor": (bool,),
    "betas": (list,),
    "stop_sequences": (list,),
}


@dataclass
class Config:
    region: str
    default_model_id: str
    log_level_str: str
    timeout: float
    debug: bool
    dump_prompt: bool
    completion_enabled: bool
    config_text: str
    config_source: str
    templates: Dict[str, PromptTemplate]
    cache_path: str


def user_config_path() -> Path:
    return Path(user_config_dir(APP_NAME)) / "bods.yaml"


def cache_db_path() -> Path:
    return Path(user_cache_dir(APP_NAME)) / "cache.db"


def debug_log_path() -> Path:
    return Path(tempfile.gettempdir()) / "bods.log"


def setup_logging(log_level_str: str, debug: bool = False) -> Optional[Path]:
    """
    Configure the root logger.

    With ``debug`` all records go at DEBUG level to a fresh log file in the
    temp directory, whose path is returned. Otherwise records go to stderr.
    """
    if debug:
        path = debug_log_path()
        logging.basicConfig(
            level=logging.DEBUG,
            format=f'%(asctime)s - debug [{os.getpid()}] %(name)s - %(levelname)s - %(message)s',
            filename=str(path),
            filemode='w',
            force=True,
        )
        return path

    level = getattr(logging, log_level_str.upper(), logging.WARNING)
    logging.basicConfig(level=level, format=LOG_FORMAT, force=True)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
    return None


def _check_template_fields(name: str, values: Dict[str, Any]) -> Dict[str, Any]:
    checked = {}
    for key, value in values.items():
        if key not in _TEMPLATE_TYPES:
            logging.getLogger(__name__).warning(f"prompt template '{name}': ignoring unknown field '{key}'")
            continue
        if value is None:
            continue
        expected = _TEMPLATE_TYPES[key]
        # bool is an int subclass; only accept it where a bool is expected
        if not isinstance(value, expected) or (isinstance(value, bool) and bool not in expected):
            raise ConfigError(f"prompt template '{name}': field '{key}' has invalid value {value!r}",
                              reason="Could not load configuration file.")
        if key in ("betas", "stop_sequences"):
            value = [str(item) for item in value]
        checked[key] = value
    return checked


def parse_templates(text: str) -> Dict[str, PromptTemplate]:
    """Parse the ``prompts`` section of a bods.yaml document."""
    try:
        document = yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"error loading config: {e}", reason="Could not load configuration file.") from e

    if not isinstance(document, dict):
        raise ConfigError("config must be a YAML mapping", reason="Could not load configuration file.")

    prompts = document.get("prompts") or {}
    if not isinstance(prompts, dict):
        raise ConfigError("'prompts' must be a mapping of template names", reason="Could not load configuration file.")

    templates = {}
    for name, values in prompts.items():
        if not isinstance(values, dict):
            raise ConfigError(f"prompt template '{name}' must be a mapping", reason="Could not load configuration file.")
        templates[str(name)] = PromptTemplate(name=str(name), **_check_template_fields(str(name), values))
    return templates


def read_config_text() -> Tuple[str, str]:
    """Return the active bods.yaml text and where it came from."""
    path = user_config_path()
    if path.is_file():
        try:
            return path.read_text(encoding="utf-8"), str(path)
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigError(f"could not read {path}: {e}", reason="Could not load configuration file.") from e
    return EMBEDDED_CONFIG_PATH.read_text(encoding="utf-8"), "embedded"


def _parse_float_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return float(value.strip())
    except ValueError as e:
        raise ConfigError(f"{name}={value!r} is not a number") from e


def load_config() -> Config:
    load_dotenv()

    log_level_str = os.getenv('LOGGING_LEVEL', 'WARNING').upper()
    if log_level_str.startswith('LOGGING.'):
        log_level_str = log_level_str.replace('LOGGING.', '')

    region = os.getenv('AWS_REGION') or os.getenv('AWS_DEFAULT_REGION') or DEFAULT_REGION
    config_text, config_source = read_config_text()

    return Config(
        region=region,
        default_model_id=os.getenv('BODS_MODEL') or DEFAULT_MODEL_ID,
        log_level_str=log_level_str,
        timeout=_parse_float_env('BODS_TIMEOUT', DEFAULT_TIMEOUT),
        debug=bool(os.getenv('DEBUG')),
        dump_prompt=bool(os.getenv('DUMP_PROMPT')),
        completion_enabled=os.getenv('__BODS_CMP_ENABLED') == '1',
        config_text=config_text,
        config_source=config_source,
        templates=parse_templates(config_text),
        cache_path=str(cache_db_path()),
    )
