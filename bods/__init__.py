"""
Core application package for bods.
Provides configuration, console utilities, parsing helpers, content building,
output rendering, the command line and the invocation session.
"""

__all__ = [
    "cli",
    "clipboard",
    "config",
    "console",
    "content",
    "parsing",
    "render",
    "session",
    "thinking",
    "tool_schemas",
]
