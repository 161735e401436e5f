"""Error helper tests."""

from __future__ import annotations

from gitlab_mcp.errors import (
    ErrorKind,
    access_denied,
    backend_error,
    config_error,
    unknown_operation,
    validation_error,
)


def test_helpers_set_kind_and_message() -> None:
    assert validation_error("bad").kind is ErrorKind.VALIDATION
    assert access_denied("no").kind is ErrorKind.ACCESS_DENIED
    assert config_error("missing").kind is ErrorKind.CONFIG

    unknown = unknown_operation("frobnicate")
    assert unknown.kind is ErrorKind.UNKNOWN_OPERATION
    assert unknown.message == "Unknown tool: frobnicate"


def test_backend_error_keeps_status_and_str() -> None:
    err = backend_error("GitLab API error (500): boom", status_code=500)

    assert err.kind is ErrorKind.BACKEND
    assert err.status_code == 500
    assert str(err) == "GitLab API error (500): boom"


def test_kind_values_are_stable() -> None:
    assert [k.value for k in ErrorKind] == ["Validation", "AccessDenied", "UnknownOperation", "Backend", "Config"]
