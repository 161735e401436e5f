"""Configuration loading for gitlab-mcp.

Configuration is supplied by the host environment (e.g., MCP client config), not by the agent.
The personal access token is a secret and must never be emitted to agents, logs, or audit
reasons.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse

from .errors import config_error

DEFAULT_API_URL = "https://gitlab.com/api/v4"
DEFAULT_PORT = 3000


@dataclass(frozen=True, slots=True)
class LimitsConfig:
    """Network limits applied by the GitLab client."""

    # Network
    total_timeout_s: float = 60.0
    connect_timeout_s: float = 5.0
    read_timeout_s: float = 30.0

    # Retries
    max_attempts: int = 3
    max_backoff_s: float = 5.0


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Process-wide configuration, fixed for the lifetime of the server."""

    token: str
    api_url: str
    read_only: bool
    use_sse: bool
    port: int

    audit_log_path: Path | None
    audit_max_bytes: int
    audit_max_backups: int
    limits: LimitsConfig


def _parse_bool(value: str | None) -> bool:
    if value is None:
        return False
    normalized = value.strip().lower()
    return normalized in {"1", "true", "yes", "on"}


def _parse_port(value: str | None) -> int:
    if not value:
        return DEFAULT_PORT
    try:
        port = int(value)
    except ValueError as exc:
        raise config_error("PORT must be an integer") from exc
    if not 0 < port < 65536:
        raise config_error("PORT must be between 1 and 65535")
    return port


def _parse_api_url(value: str | None) -> str:
    if not value:
        return DEFAULT_API_URL
    url = value.strip().rstrip("/")
    parsed = urlparse(url)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise config_error("GITLAB_API_URL must be an absolute http(s) URL")
    return url


def load_config_from_env() -> AppConfig:
    """Load and validate configuration from environment variables.

    Raises:
        GatewayError: If configuration is missing/invalid.
    """
    token = os.getenv("GITLAB_PERSONAL_ACCESS_TOKEN")
    if not token or not token.strip():
        raise config_error("GITLAB_PERSONAL_ACCESS_TOKEN environment variable is not set")

    audit_path_raw = os.getenv("GITLAB_MCP_AUDIT_LOG_PATH")
    audit_path: Path | None = None
    if audit_path_raw:
        p = Path(audit_path_raw)
        if not p.is_absolute():
            raise config_error("GITLAB_MCP_AUDIT_LOG_PATH must be an absolute path when set")
        audit_path = p

    return AppConfig(
        token=token.strip(),
        api_url=_parse_api_url(os.getenv("GITLAB_API_URL")),
        read_only=_parse_bool(os.getenv("GITLAB_READ_ONLY_MODE")),
        use_sse=_parse_bool(os.getenv("USE_SSE")),
        port=_parse_port(os.getenv("PORT")),
        audit_log_path=audit_path,
        audit_max_bytes=5 * 1024 * 1024,
        audit_max_backups=2,
        limits=LimitsConfig(),
    )
