import os
import sys
from datetime import date
from typing import Dict, List, Optional

from agent.models import supports_text_editor, text_editor_name, text_editor_schema


def get_llm_tool_schemas(model_id: str) -> List[Dict[str, str]]:
    """Return the tool definitions to send for a model (empty if it has no editor tool).

    The text editor is a server-defined tool: only its versioned type and
    fixed name are sent, the model already knows the input schema.
    """
    if not supports_text_editor(model_id):
        return []
    return [{"type": text_editor_schema(model_id), "name": text_editor_name(model_id)}]


def environment_context(cwd: Optional[str] = None, today: Optional[date] = None,
                        platform: Optional[str] = None) -> str:
    """Describe the working environment to a model that may edit files."""
    try:
        cwd = cwd or os.getcwd()
    except OSError as e:
        return f"Error getting working directory: {e}"

    today = today or date.today()
    is_git_repo = "Yes" if os.path.exists(os.path.join(cwd, ".git")) else "No"

    return (
        "\nHere is useful information about the environment you are running in:\n\n<env>\n"
        f"Working directory: {cwd}\n"
        f"Is directory a git repo: {is_git_repo}\n"
        f"Platform: {platform or sys.platform}\n"
        f"Today's date: {today.month}/{today.day}/{today.year}\n"
        "</env>\n\n"
    )
