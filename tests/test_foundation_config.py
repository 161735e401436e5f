"""Foundational tests: configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest
from gitlab_mcp.config import DEFAULT_API_URL, DEFAULT_PORT, load_config_from_env
from gitlab_mcp.errors import ErrorKind, GatewayError

ENV_VARS = (
    "GITLAB_PERSONAL_ACCESS_TOKEN",
    "GITLAB_API_URL",
    "GITLAB_READ_ONLY_MODE",
    "USE_SSE",
    "PORT",
    "GITLAB_MCP_AUDIT_LOG_PATH",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_load_config_requires_token() -> None:
    with pytest.raises(GatewayError) as exc:
        _ = load_config_from_env()

    assert exc.value.kind is ErrorKind.CONFIG
    assert "GITLAB_PERSONAL_ACCESS_TOKEN" in exc.value.message


def test_load_config_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GITLAB_PERSONAL_ACCESS_TOKEN", " glpat-abc ")

    cfg = load_config_from_env()

    assert cfg.token == "glpat-abc"
    assert cfg.api_url == DEFAULT_API_URL
    assert cfg.read_only is False
    assert cfg.use_sse is False
    assert cfg.port == DEFAULT_PORT
    assert cfg.audit_log_path is None


def test_load_config_parses_flags(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("GITLAB_PERSONAL_ACCESS_TOKEN", "glpat-abc")
    monkeypatch.setenv("GITLAB_API_URL", "https://gitlab.internal/api/v4/")
    monkeypatch.setenv("GITLAB_READ_ONLY_MODE", "true")
    monkeypatch.setenv("USE_SSE", "1")
    monkeypatch.setenv("PORT", "8080")
    monkeypatch.setenv("GITLAB_MCP_AUDIT_LOG_PATH", str(tmp_path / "audit.jsonl"))

    cfg = load_config_from_env()

    assert cfg.api_url == "https://gitlab.internal/api/v4"
    assert cfg.read_only is True
    assert cfg.use_sse is True
    assert cfg.port == 8080
    assert cfg.audit_log_path == tmp_path / "audit.jsonl"


@pytest.mark.parametrize("value", ["false", "0", "", "no"])
def test_read_only_flag_off_values(monkeypatch: pytest.MonkeyPatch, value: str) -> None:
    monkeypatch.setenv("GITLAB_PERSONAL_ACCESS_TOKEN", "glpat-abc")
    monkeypatch.setenv("GITLAB_READ_ONLY_MODE", value)

    assert load_config_from_env().read_only is False


@pytest.mark.parametrize(
    ("name", "value", "fragment"),
    [
        ("PORT", "abc", "PORT must be an integer"),
        ("PORT", "70000", "PORT must be between"),
        ("GITLAB_API_URL", "ftp://gitlab", "absolute http(s) URL"),
        ("GITLAB_MCP_AUDIT_LOG_PATH", "relative/audit.jsonl", "absolute path"),
    ],
)
def test_load_config_rejects_invalid_values(
    monkeypatch: pytest.MonkeyPatch, name: str, value: str, fragment: str
) -> None:
    monkeypatch.setenv("GITLAB_PERSONAL_ACCESS_TOKEN", "glpat-abc")
    monkeypatch.setenv(name, value)

    with pytest.raises(GatewayError) as exc:
        _ = load_config_from_env()

    assert exc.value.kind is ErrorKind.CONFIG
    assert fragment in exc.value.message
    assert "glpat-abc" not in exc.value.message
