# errors.py: error kinds raised by the pipeline, translated once by the HTTP layer
from __future__ import annotations
from typing import Optional


class MediaError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(MediaError):
    status_code = 400


class NotFoundError(MediaError):
    status_code = 404


class ToolError(MediaError):
    """External binary exited non-zero or produced no output."""

    def __init__(self, tool: str, message: str, returncode: Optional[int] = None):
        super().__init__(f"{tool} failed: {message}" if message else f"{tool} failed")
        self.tool = tool
        self.returncode = returncode


class StorageError(MediaError):
    pass


class ConfigError(MediaError):
    pass
