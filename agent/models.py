"""
Claude model identifiers on Bedrock and the capabilities derived from them.

Inference-profile prefixes (``us.``, ``eu.``, ``global.`` ...) are kept in the
identifier sent on the wire but ignored when capabilities are looked up.
"""

import re
from dataclasses import dataclass
from typing import Optional


CLAUDE_INSTANT = "anthropic.claude-instant-v1"
CLAUDE_V2 = "anthropic.claude-v2"
CLAUDE_V21 = "anthropic.claude-v2:1"
CLAUDE_V3_HAIKU = "anthropic.claude-3-haiku-20240307-v1:0"
CLAUDE_V3_SONNET = "anthropic.claude-3-sonnet-20240229-v1:0"
CLAUDE_V3_OPUS = "anthropic.claude-3-opus-20240229-v1:0"
CLAUDE_V35_SONNET = "anthropic.claude-3-5-sonnet-20240620-v1:0"
CLAUDE_V35_SONNET_V2 = "anthropic.claude-3-5-sonnet-20241022-v2:0"
CLAUDE_V35_HAIKU = "anthropic.claude-3-5-haiku-20241022-v1:0"
CLAUDE_V37_SONNET = "anthropic.claude-3-7-sonnet-20250219-v1:0"
CLAUDE_V4_SONNET = "anthropic.claude-sonnet-4-20250514-v1:0"
CLAUDE_V4_OPUS = "anthropic.claude-opus-4-20250514-v1:0"
CLAUDE_V41_OPUS = "anthropic.claude-opus-4-1-20250805-v1:0"
CLAUDE_V45_SONNET = "anthropic.claude-sonnet-4-5-20250929-v1:0"
CLAUDE_V45_HAIKU = "anthropic.claude-haiku-4-5-20251001-v1:0"
CLAUDE_V45_OPUS = "anthropic.claude-opus-4-5-20251101-v1:0"
CLAUDE_V46_OPUS = "anthropic.claude-opus-4-6-v1"

DEFAULT_MODEL_ID = CLAUDE_V37_SONNET

KNOWN_MODEL_IDS = [
    CLAUDE_INSTANT,
    CLAUDE_V2,
    CLAUDE_V21,
    CLAUDE_V3_HAIKU,
    CLAUDE_V3_SONNET,
    CLAUDE_V3_OPUS,
    CLAUDE_V35_SONNET,
    CLAUDE_V35_SONNET_V2,
    CLAUDE_V35_HAIKU,
    CLAUDE_V37_SONNET,
    CLAUDE_V4_SONNET,
    CLAUDE_V4_OPUS,
    CLAUDE_V41_OPUS,
    CLAUDE_V45_SONNET,
    CLAUDE_V45_HAIKU,
    CLAUDE_V45_OPUS,
    CLAUDE_V46_OPUS,
]

# Text editor tool schema versions
TEXT_EDITOR_20241022 = "text_editor_20241022"
TEXT_EDITOR_20250124 = "text_editor_20250124"
TEXT_EDITOR_20250728 = "text_editor_20250728"

TEXT_EDITOR_NAME_LEGACY = "str_replace_editor"
TEXT_EDITOR_NAME = "str_replace_based_edit_tool"

# e.g. claude-sonnet-4-5-20250929, claude-opus-4-20250514, claude-opus-4-6-v1
_MODERN_NAME = re.compile(r"claude-(opus|sonnet|haiku)-(\d+)(?:-(\d)(?!\d))?")
# e.g. claude-3-7-sonnet-20250219, claude-3-haiku-20240307
_LEGACY_NAME = re.compile(r"claude-(\d)(?:-(\d))?-(opus|sonnet|haiku)")


@dataclass(frozen=True)
class ModelFamily:
    major: int
    minor: int
    tier: Optional[str]

    @property
    def version(self):
        return (self.major, self.minor)


def normalize_model_id(model_id: str) -> str:
    """Strip a region/global inference-profile prefix, e.g. us.anthropic.x -> anthropic.x"""
    idx = model_id.find(".anthropic.")
    if idx == -1:
        return model_id
    return model_id[idx + 1:]


def is_inference_profile_id(model_id: str) -> bool:
    if model_id.startswith("global."):
        return True
    # two-letter region code, e.g. 'us.', 'eu.'
    return len(model_id) >= 3 and model_id[2] == "."


def model_family(model_id: str) -> Optional[ModelFamily]:
    base = normalize_model_id(model_id)

    match = _MODERN_NAME.search(base)
    if match:
        tier, major, minor = match.groups()
        return ModelFamily(int(major), int(minor or 0), tier)

    match = _LEGACY_NAME.search(base)
    if match:
        major, minor, tier = match.groups()
        return ModelFamily(int(major), int(minor or 0), tier)

    if "claude-v2" in base or "claude-instant" in base:
        return ModelFamily(2, 0, None)

    return None


def _is(family: Optional[ModelFamily], major: int, minor: int, tier: Optional[str] = None) -> bool:
    if family is None:
        return False
    if tier is not None and family.tier != tier:
        return False
    return family.version == (major, minor)


def accepts_system_field(model_id: str) -> bool:
    """Claude 3 and later take the system prompt as a dedicated request field."""
    family = model_family(model_id)
    return family is not None and family.major >= 3


def supports_vision(model_id: str) -> bool:
    family = model_family(model_id)
    if family is None or family.major < 3:
        return False
    return not _is(family, 3, 5, "haiku")


def supports_prompt_caching(model_id: str) -> bool:
    family = model_family(model_id)
    if family is None:
        return False
    if family.major >= 4:
        return True
    return _is(family, 3, 5, "haiku") or _is(family, 3, 7, "sonnet")


def supports_thinking(model_id: str) -> bool:
    family = model_family(model_id)
    if family is None:
        return False
    return family.major >= 4 or _is(family, 3, 7, "sonnet")


def requires_temperature_xor_top_p(model_id: str) -> bool:
    """Claude 4.1 and newer reject requests carrying both temperature and top_p."""
    family = model_family(model_id)
    return family is not None and family.version >= (4, 1)


def supports_text_editor(model_id: str) -> bool:
    return text_editor_schema(model_id) is not None


def text_editor_schema(model_id: str) -> Optional[str]:
    """Return the on-wire text editor tool type for a model, or None if unsupported."""
    family = model_family(model_id)
    if family is None:
        return None
    if family.major >= 4:
        return TEXT_EDITOR_20250728
    if _is(family, 3, 7, "sonnet"):
        return TEXT_EDITOR_20250124
    if _is(family, 3, 5, "sonnet"):
        return TEXT_EDITOR_20241022
    return None


def text_editor_name(model_id: str) -> str:
    if text_editor_schema(model_id) == TEXT_EDITOR_20250728:
        return TEXT_EDITOR_NAME
    return TEXT_EDITOR_NAME_LEGACY


# latency-optimized inference is offered for the 3.5 Haiku profile in us-east-2 only
LATENCY_OPTIMIZED_PROFILES = {("us." + CLAUDE_V35_HAIKU, "us-east-2")}


def supports_latency_optimized(model_id: str, region: str) -> bool:
    return (model_id, region) in LATENCY_OPTIMIZED_PROFILES
