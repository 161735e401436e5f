"""Smoke tests for the MCP server wiring."""

from __future__ import annotations

import json

import gitlab_mcp.server as server_module
import gitlab_mcp.tools as tools
import pytest
from gitlab_mcp.errors import GatewayError
from gitlab_mcp.server import call_tool, list_tools


@pytest.fixture
def fresh_runtime(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    monkeypatch.setattr(tools, "_RUNTIME", None)
    monkeypatch.setenv("GITLAB_PERSONAL_ACCESS_TOKEN", "glpat-smoke")
    monkeypatch.delenv("GITLAB_MCP_AUDIT_LOG_PATH", raising=False)
    monkeypatch.delenv("GITLAB_API_URL", raising=False)
    monkeypatch.delenv("PORT", raising=False)
    return monkeypatch


@pytest.mark.asyncio
async def test_server_lists_all_tools(fresh_runtime: pytest.MonkeyPatch) -> None:
    fresh_runtime.delenv("GITLAB_READ_ONLY_MODE", raising=False)

    listed = await list_tools()

    assert len(listed) == 53
    assert all(t.inputSchema["type"] == "object" for t in listed)


@pytest.mark.asyncio
async def test_server_lists_read_only_subset(fresh_runtime: pytest.MonkeyPatch) -> None:
    fresh_runtime.setenv("GITLAB_READ_ONLY_MODE", "true")

    listed = await list_tools()

    names = {t.name for t in listed}
    assert len(listed) == 29
    assert "create_issue" not in names
    assert "list_issues" in names


@pytest.mark.asyncio
async def test_tool_metadata_does_not_leak_token(fresh_runtime: pytest.MonkeyPatch) -> None:
    listed = await list_tools()

    as_json = json.dumps([t.model_dump() for t in listed], sort_keys=True)
    assert "glpat-smoke" not in as_json


@pytest.mark.asyncio
async def test_call_tool_reraises_gateway_errors(fresh_runtime: pytest.MonkeyPatch) -> None:
    fresh_runtime.setenv("GITLAB_READ_ONLY_MODE", "true")

    with pytest.raises(GatewayError) as exc:
        await call_tool("push_files", {})

    assert "not available in read-only mode" in str(exc.value)


@pytest.mark.asyncio
async def test_call_tool_wraps_blocks_as_text_content(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_dispatch(name: str, arguments: dict | None) -> list[dict[str, str]]:
        return [{"type": "text", "text": f"{name}:{sorted(arguments or {})}"}]

    monkeypatch.setattr("gitlab_mcp.server.dispatch_tool", fake_dispatch)

    out = await call_tool("get_project", {"project_id": "1"})

    assert out[0].type == "text"
    assert out[0].text == "get_project:['project_id']"


@pytest.mark.asyncio
async def test_self_test_runs_without_configuration(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("GITLAB_PERSONAL_ACCESS_TOKEN", raising=False)

    await server_module.test_server()
