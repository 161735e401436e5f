"""Gateway error taxonomy.

Every failed tool invocation surfaces to the caller as exactly one
``GatewayError``; the kind tells where in the pipeline it was produced.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ErrorKind(str, Enum):
    """Where a failure originated."""

    VALIDATION = "Validation"
    ACCESS_DENIED = "AccessDenied"
    UNKNOWN_OPERATION = "UnknownOperation"
    BACKEND = "Backend"
    CONFIG = "Config"


@dataclass(eq=False)
class GatewayError(Exception):
    """An error raised to the MCP caller.

    The message is shown to the caller as-is, so it must never contain the
    access token.
    """

    kind: ErrorKind
    message: str
    hint: str | None = None
    status_code: int | None = None

    def __str__(self) -> str:
        return self.message


def validation_error(message: str) -> GatewayError:
    """Error for arguments rejected by the structural or cross-field validators."""
    return GatewayError(kind=ErrorKind.VALIDATION, message=message)


def access_denied(message: str) -> GatewayError:
    """Error for tools withheld by read-only mode."""
    return GatewayError(kind=ErrorKind.ACCESS_DENIED, message=message)


def unknown_operation(name: str) -> GatewayError:
    """Error for a tool name that is not in the catalog."""
    return GatewayError(kind=ErrorKind.UNKNOWN_OPERATION, message=f"Unknown tool: {name}")


def backend_error(message: str, *, status_code: int | None = None, hint: str | None = None) -> GatewayError:
    """Error reported by the GitLab client; the message is passed through verbatim."""
    return GatewayError(kind=ErrorKind.BACKEND, message=message, hint=hint, status_code=status_code)


def config_error(message: str) -> GatewayError:
    """Error for missing or invalid host configuration."""
    return GatewayError(kind=ErrorKind.CONFIG, message=message)
