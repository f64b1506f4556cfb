from datetime import date

from agent import models
from bods.tool_schemas import environment_context, get_llm_tool_schemas


def test_tool_definitions_per_model_class():
    assert get_llm_tool_schemas(models.CLAUDE_V35_SONNET_V2) == [
        {"type": "text_editor_20241022", "name": "str_replace_editor"}
    ]
    assert get_llm_tool_schemas("us." + models.CLAUDE_V37_SONNET) == [
        {"type": "text_editor_20250124", "name": "str_replace_editor"}
    ]
    assert get_llm_tool_schemas(models.CLAUDE_V45_OPUS) == [
        {"type": "text_editor_20250728", "name": "str_replace_based_edit_tool"}
    ]
    assert get_llm_tool_schemas(models.CLAUDE_V3_OPUS) == []


def test_environment_context(tmp_path):
    (tmp_path / ".git").mkdir()
    text = environment_context(cwd=str(tmp_path), today=date(2025, 3, 7), platform="darwin")

    assert "<env>\n" in text
    assert f"Working directory: {tmp_path}\n" in text
    assert "Is directory a git repo: Yes\n" in text
    assert "Platform: darwin\n" in text
    assert "Today's date: 3/7/2025\n" in text
    assert text.rstrip().endswith("</env>")


def test_environment_context_outside_git(tmp_path):
    assert "Is directory a git repo: No" in environment_context(cwd=str(tmp_path))
