"""
Text editor tool executed on behalf of the model.
View, create, str_replace, insert and undo_edit on local files, with an
in-memory undo stack per path.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from .errors import ToolError
from .messages import ToolResultBlock, ToolUseBlock
from .models import TEXT_EDITOR_NAME, TEXT_EDITOR_NAME_LEGACY


logger = logging.getLogger(__name__)

SNIPPET_LINES = 4

VIEW = "view"
CREATE = "create"
STR_REPLACE = "str_replace"
INSERT = "insert"
UNDO_EDIT = "undo_edit"

COMMANDS = (VIEW, CREATE, STR_REPLACE, INSERT, UNDO_EDIT)

EDITOR_TOOL_NAMES = {TEXT_EDITOR_NAME, TEXT_EDITOR_NAME_LEGACY}


def make_output(content: str, descriptor: str, init_line: int = 1) -> str:
    """Number lines the way ``cat -n`` does."""
    numbered = [f"{init_line + i:6}\t{line}" for i, line in enumerate(content.split("\n"))]
    return f"Here's the result of running `cat -n` on {descriptor}:\n" + "\n".join(numbered) + "\n"


class FileEditor:
    """
    File editor with per-path undo history.

    State lives for one process; edits are written straight to disk and are
    only reverted through ``undo_edit``.
    """

    def __init__(self):
        self.history: Dict[str, List[str]] = {}

    def validate_path(self, command: str, path: str) -> Tuple[bool, Optional[str]]:
        """
        Check a path/command combination before running the command.

        Returns:
            (is_valid, error_message)
        """
        if not os.path.isabs(path):
            return False, (
                f"the path {path} is not an absolute path, it should start with '/'. "
                f"Maybe you meant {os.path.abspath(path)}?"
            )

        exists = os.path.exists(path)
        if not exists and command != CREATE:
            return False, f"the path {path} does not exist. Please provide a valid path"

        if exists and command == CREATE:
            return False, f"file already exists at: {path}. Cannot overwrite files using command 'create'"

        if os.path.isdir(path) and command != VIEW:
            return False, f"the path {path} is a directory and only the 'view' command can be used on directories"

        return True, None

    def execute(self, command: str, path: str, params: Dict[str, Any]) -> str:
        """
        Run one editor command.

        Args:
            command: one of view, create, str_replace, insert, undo_edit
            path: absolute path of the target file or directory
            params: remaining command parameters as sent by the model

        Returns:
            Text result for the model

        Raises:
            ToolError: on validation failure or a command-level error
        """
        if command not in COMMANDS:
            raise ToolError(f"unrecognized command: {command}. Allowed commands are: {', '.join(COMMANDS)}")

        is_valid, error_msg = self.validate_path(command, path)
        if not is_valid:
            raise ToolError(error_msg)

        if command == VIEW:
            return self.view(path, params.get("view_range"))

        if command == CREATE:
            file_text = params.get("file_text")
            if file_text is None:
                raise ToolError("parameter 'file_text' is required for command: create")
            return self.create(path, file_text)

        if command == STR_REPLACE:
            old_str = params.get("old_str")
            if not old_str:
                raise ToolError("parameter 'old_str' is required for command: str_replace")
            return self.str_replace(path, old_str, params.get("new_str") or "")

        if command == INSERT:
            insert_line = params.get("insert_line")
            if isinstance(insert_line, bool) or not isinstance(insert_line, (int, float)):
                raise ToolError("parameter 'insert_line' is required for command: insert")
            # newer schemas send insert_text, older ones new_str
            text = params.get("insert_text")
            if text is None:
                text = params.get("new_str")
            if text is None:
                raise ToolError("parameter 'insert_text' is required for command: insert")
            return self.insert(path, int(insert_line), text)

        return self.undo_edit(path)

    def view(self, path: str, view_range: Optional[List[Union[int, float]]] = None) -> str:
        if os.path.isdir(path):
            if view_range is not None:
                raise ToolError("the 'view_range' parameter is not allowed when 'path' points to a directory")
            listing = "\n".join(self._list_directory(path))
            return f"Here's the files and directories up to 2 levels deep in {path}, excluding hidden items:\n{listing}\n"

        content = self._read_file(path)
        if view_range is None:
            return make_output(content, path)

        if not isinstance(view_range, list) or len(view_range) != 2:
            raise ToolError("invalid 'view_range'. It should be a list of two integers")
        if not all(isinstance(n, (int, float)) and not isinstance(n, bool) for n in view_range):
            raise ToolError("invalid 'view_range'. Both elements should be numbers")

        lines = content.split("\n")
        n_lines = len(lines)
        start, end = int(view_range[0]), int(view_range[1])
        shown = [start, end]

        if start < 1 or start > n_lines:
            raise ToolError(
                f"invalid 'view_range': {shown}. Its first element '{start}' should be within "
                f"the range of lines of the file: [1, {n_lines}]"
            )
        if end != -1:
            if end > n_lines:
                raise ToolError(
                    f"invalid 'view_range': {shown}. Its second element '{end}' should be smaller "
                    f"than the number of lines in the file: '{n_lines}'"
                )
            if end < start:
                raise ToolError(
                    f"invalid 'view_range': {shown}. Its second element '{end}' should be larger "
                    f"or equal than its first '{start}'"
                )

        selected = lines[start - 1:] if end == -1 else lines[start - 1:end]
        return make_output("\n".join(selected), path, start)

    def create(self, path: str, file_text: str) -> str:
        parent = Path(path).parent
        try:
            parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ToolError(f"failed to create directory {parent}: {e}") from e

        self._write_file(path, file_text)
        self.history.setdefault(path, []).append(file_text)
        return f"File created successfully at: {path}"

    def str_replace(self, path: str, old_str: str, new_str: str) -> str:
        content = self._read_file(path)

        occurrences = []
        index = content.find(old_str)
        while index != -1:
            occurrences.append(content.count("\n", 0, index) + 1)
            index = content.find(old_str, index + len(old_str))

        if not occurrences:
            raise ToolError(f"No replacement was performed, old_str `{old_str}` did not appear verbatim in {path}")
        if len(occurrences) > 1:
            raise ToolError(
                f"No replacement was performed. Multiple occurrences of old_str `{old_str}` "
                f"in lines {occurrences}. Please ensure it is unique"
            )

        new_content = content.replace(old_str, new_str, 1)
        self._write_file(path, new_content)
        self.history.setdefault(path, []).append(content)

        replacement_line = occurrences[0] - 1
        start = max(0, replacement_line - SNIPPET_LINES)
        end = replacement_line + SNIPPET_LINES + new_str.count("\n")
        snippet = "\n".join(new_content.split("\n")[start:end + 1])

        return (
            f"The file {path} has been edited.\n"
            + make_output(snippet, f"a snippet of {path}", start + 1)
            + "Review the changes and make sure they are as expected. Edit the file again if necessary."
        )

    def insert(self, path: str, insert_line: int, text: str) -> str:
        content = self._read_file(path)
        lines = content.split("\n")
        n_lines = len(lines)

        if insert_line < 0 or insert_line > n_lines:
            raise ToolError(
                f"invalid 'insert_line' parameter: {insert_line}. It should be within "
                f"the range of lines of the file: [0, {n_lines}]"
            )

        new_lines = text.split("\n")
        result = lines[:insert_line] + new_lines + lines[insert_line:]
        self._write_file(path, "\n".join(result))
        self.history.setdefault(path, []).append(content)

        start = max(0, insert_line - SNIPPET_LINES)
        end = min(len(result), insert_line + len(new_lines) + SNIPPET_LINES)
        snippet = "\n".join(result[start:end])

        return (
            f"The file {path} has been edited.\n"
            + make_output(snippet, "a snippet of the edited file", start + 1)
            + "Review the changes and make sure they are as expected (correct indentation, "
            "no duplicate lines, etc). Edit the file again if necessary."
        )

    def undo_edit(self, path: str) -> str:
        stack = self.history.get(path)
        if not stack:
            raise ToolError(f"No edit history found for {path}")

        previous = stack.pop()
        self._write_file(path, previous)
        return f"Last edit to {path} undone successfully.\n" + make_output(previous, path)

    def _list_directory(self, path: str) -> List[str]:
        entries = [path]
        root_depth = path.rstrip(os.sep).count(os.sep)
        for dirpath, dirnames, filenames in os.walk(path):
            dirnames[:] = sorted(d for d in dirnames if not d.startswith("."))
            depth = dirpath.rstrip(os.sep).count(os.sep) - root_depth
            if depth >= 2:
                dirnames[:] = []
                continue
            names = sorted(dirnames + [f for f in filenames if not f.startswith(".")])
            entries.extend(os.path.join(dirpath, name) for name in names)
        return entries

    def _read_file(self, path: str) -> str:
        try:
            return Path(path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ToolError(f"ran into {e} while trying to read {path}") from e

    def _write_file(self, path: str, content: str) -> None:
        try:
            Path(path).write_text(content, encoding="utf-8")
        except OSError as e:
            raise ToolError(f"ran into {e} while trying to write to {path}") from e


def execute_tool_call(editor: FileEditor, tool_name: str, tool_args: Dict[str, Any]) -> Dict:
    """
    Execute a tool call by name with provided arguments.

    Args:
        editor: Editor holding the undo history for this invocation
        tool_name: Name of the tool to execute
        tool_args: Dictionary of arguments for the tool

    Returns:
        Dict with keys: success, output, error
    """
    if tool_name not in EDITOR_TOOL_NAMES:
        return {"success": False, "output": "", "error": f"Unknown tool: {tool_name}"}

    command = tool_args.get("command") or ""
    path = tool_args.get("path") or ""
    params = {k: v for k, v in tool_args.items() if k not in ("command", "path")}
    try:
        output = editor.execute(command, path, params)
    except ToolError as e:
        logger.info(f"{tool_name} {command} failed: {e.detail}")
        return {"success": False, "output": "", "error": e.detail}
    return {"success": True, "output": output, "error": None}


def handle_tool_call(editor: FileEditor, tool_use: ToolUseBlock) -> ToolResultBlock:
    """Run a decoded tool_use block and build the matching tool_result block."""
    tool_args = tool_use.input
    if isinstance(tool_args, str):
        try:
            tool_args = json.loads(tool_args)
        except json.JSONDecodeError as e:
            return ToolResultBlock(tool_use.id, f"Error parsing tool call: {e}", is_error=True)

    result = execute_tool_call(editor, tool_use.name, tool_args or {})
    if not result["success"]:
        return ToolResultBlock(tool_use.id, f"Error: {result['error']}", is_error=True)
    return ToolResultBlock(tool_use.id, result["output"])
