"""
Error kinds raised across bods.
Each error carries a one-line category header (reason) and a detail message.
"""

from typing import Optional


class BodsError(Exception):
    """Base error with a user-facing category header."""

    reason = "Something went wrong."

    def __init__(self, detail: str, reason: Optional[str] = None):
        super().__init__(detail)
        self.detail = detail
        if reason:
            self.reason = reason


class ConfigError(BodsError):
    reason = "Could not load configuration."


class InputClassificationError(BodsError):
    reason = "Unsupported input."


class ParameterConflictError(BodsError):
    reason = "Conflicting inference parameters."


class TransportError(BodsError):
    reason = "There was a problem invoking the model. Have you enabled the model and set the correct region?"


class StreamProtocolError(BodsError):
    reason = "The response stream could not be processed."


class ToolError(BodsError):
    reason = "Tool call failed."


class CancellationError(BodsError):
    reason = "The request was cancelled."
