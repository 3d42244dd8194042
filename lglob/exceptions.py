"""Custom exception hierarchy for the global checker."""

from __future__ import annotations


class LglobError(Exception):
    """Base class for all checker related errors."""


class MalformedListingError(LglobError):
    """Raised when the disassembler output does not follow the expected layout."""

    def __init__(self, message: str, *, line_number: int | None = None, text: str | None = None):
        self.line_number = line_number
        self.text = text
        if line_number is not None:
            message = f"listing line {line_number}: {message}"
        if text is not None:
            message = f"{message}: {text!r}"
        super().__init__(message)


class ToolUnavailableError(LglobError):
    """Raised when the external disassembler cannot produce a listing."""


class UnresolvedModuleError(LglobError):
    """Raised when a required module cannot be located or loaded."""

    def __init__(self, module: str, reason: str):
        self.module = module
        self.reason = reason
        super().__init__(f"could not resolve module {module!r}: {reason}")


class WhitelistError(LglobError):
    """Raised when a whitelist definition file cannot be loaded."""


__all__ = [
    "LglobError",
    "MalformedListingError",
    "ToolUnavailableError",
    "UnresolvedModuleError",
    "WhitelistError",
]
