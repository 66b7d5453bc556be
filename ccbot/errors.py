"""Error taxonomy raised while resolving custom command templates."""

from __future__ import annotations

from typing import Dict, Optional


class TemplateError(Exception):
    """Base class for every fatal template resolution failure.

    ``user_message`` is the text shown in the invoking channel; ``str(exc)``
    may carry extra diagnostics meant for the log.
    """

    def __init__(self, message: str, *, user_message: Optional[str] = None):
        super().__init__(message)
        self.user_message = user_message or message


class ParseError(TemplateError):
    """Raised for unbalanced braces and malformed if/else/fi structure."""


class InstructionError(TemplateError):
    """Raised when an instruction is given unusable arguments."""


class PermissionDenied(TemplateError):
    """Raised when a require/not gate rejects the invoker."""


class ConfigurationError(TemplateError):
    """Raised when a template references a role, channel or sticker the guild lacks."""


class ExternalRequestFailed(TemplateError):
    """Raised when a webrequest instruction cannot produce a JSON result."""

    def __init__(self, url: str, status: Optional[int], reason: str):
        if status is None:
            message = f"Failed to fetch data from {url}: {reason}"
        else:
            message = f"Failed to fetch data from {url}: {status} {reason}".rstrip()
        super().__init__(message)
        self.url = url
        self.status = status
        self.reason = reason


class ResolutionLimitExceeded(TemplateError):
    """Raised when a template needs more steps than the configured cap."""

    def __init__(
        self,
        limit: int,
        *,
        buffer: str,
        variables: Dict[str, object],
        last_instruction: Optional[str],
    ):
        super().__init__(
            f"Resolution limit of {limit} steps exceeded "
            f"(last instruction {last_instruction!r}, variables {sorted(variables)}, "
            f"remaining buffer {buffer[:200]!r})",
            user_message=f"This custom command needed more than {limit} steps to resolve.",
        )
        self.limit = limit
        self.buffer = buffer
        self.variables = dict(variables)
        self.last_instruction = last_instruction


__all__ = [
    "ConfigurationError",
    "ExternalRequestFailed",
    "InstructionError",
    "ParseError",
    "PermissionDenied",
    "ResolutionLimitExceeded",
    "TemplateError",
]
