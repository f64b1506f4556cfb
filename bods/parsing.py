import logging
import re
from pathlib import Path
from typing import Dict, List

from agent.errors import ConfigError


logger = logging.getLogger(__name__)

FILE_SCHEME = "file://"

_PLACEHOLDER = re.compile(r"\{\{\.([A-Za-z_]+)\}\}")  # e.g. {{.TASK}}
_METAPROMPT_VARIABLE = re.compile(r"\{\$([A-Za-z_]+)\}")  # e.g. {$CUSTOMER}


def template_placeholders(text: str) -> List[str]:
    """Return placeholder names in order of first appearance, each once."""
    names: List[str] = []
    for match in _PLACEHOLDER.finditer(text):
        if match.group(1) not in names:
            names.append(match.group(1))
    return names


def substitute_placeholders(text: str, values: Dict[str, str]) -> str:
    """Replace {{.NAME}} placeholders; names without a value become empty."""
    return _PLACEHOLDER.sub(lambda m: values.get(m.group(1), ""), text)


def rewrite_metaprompt_variables(text: str) -> str:
    """Rewrite metaprompt variables {$name} into {{.NAME}} placeholders."""
    return _METAPROMPT_VARIABLE.sub(lambda m: "{{." + m.group(1).upper() + "}}", text)


def _strip_quotes(value: str) -> str:
    return value.strip('"').strip("'")


def _read_file_value(value: str) -> str:
    filename = _strip_quotes(value[len(FILE_SCHEME):])
    try:
        return Path(filename).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"could not read {filename}: {e}", reason="Input variables parsing failed.") from e


def parse_variable_input(raw: str) -> Dict[str, str]:
    """
    Parse ``KEY=VALUE[,KEY=VALUE]`` variable input.

    Keys are uppercased, surrounding quotes are stripped from values and
    ``file://PATH`` values are replaced by the file content. Pairs without
    ``=`` and empty values are dropped.
    """
    variables: Dict[str, str] = {}
    for pair in raw.split(","):
        name, sep, value = pair.partition("=")
        if not sep:
            continue
        name, value = name.strip().upper(), value.strip()
        if value.startswith(FILE_SCHEME):
            value = _read_file_value(value)
        else:
            value = _strip_quotes(value)
        if value:
            variables[name] = value
    return variables


def parse_image_list(raw: str) -> List[bytes]:
    """Read every ``file://`` entry of a comma separated image list."""
    images = []
    for url in raw.split(","):
        url = url.strip()
        if not url.startswith(FILE_SCHEME):
            if url:
                logger.warning(f"ignoring image '{url}': only file:// URLs are supported")
            continue
        filename = _strip_quotes(url[len(FILE_SCHEME):])
        logger.debug(f"processing image {filename}")
        try:
            images.append(Path(filename).read_bytes())
        except OSError as e:
            raise ConfigError(f"could not read image {filename}: {e}",
                              reason="Error processing content of --images flag") from e
    return images


def extract_xml_tag_content(text: str, tag: str) -> str:
    """Content between the first <tag> and the following </tag>, or '' if absent."""
    start_tag, end_tag = f"<{tag}>", f"</{tag}>"
    start = text.find(start_tag)
    if start == -1:
        return ""
    start += len(start_tag)
    end = text.find(end_tag, start)
    if end == -1:
        return ""
    return text[start:end]
