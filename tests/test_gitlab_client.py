"""GitLab client tests using httpx.MockTransport (no network)."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest
from gitlab_mcp.config import LimitsConfig
from gitlab_mcp.errors import ErrorKind, GatewayError
from gitlab_mcp.gitlab_client import GitLabClient

API = "https://gitlab.example.com/api/v4"


def _client(handler, *, max_attempts: int = 3) -> GitLabClient:  # type: ignore[no-untyped-def]
    return GitLabClient(
        token="tok",
        limits=LimitsConfig(max_attempts=max_attempts, max_backoff_s=0.0),
        api_base_url=API,
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_client_retries_on_429_then_succeeds() -> None:
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        if calls["n"] < 3:
            return httpx.Response(429, json={"message": "rate limited"})
        return httpx.Response(200, json={"id": 1})

    out = await _client(handler).get_project(1)

    assert out == {"id": 1}
    assert calls["n"] == 3


@pytest.mark.asyncio
async def test_client_gives_up_after_max_attempts() -> None:
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        return httpx.Response(503, json={"message": "unavailable"})

    with pytest.raises(GatewayError) as exc:
        await _client(handler, max_attempts=2).get_project(1)

    assert calls["n"] == 2
    assert exc.value.kind is ErrorKind.BACKEND
    assert exc.value.status_code == 503
    assert exc.value.message == "GitLab API error (503): unavailable"


@pytest.mark.asyncio
async def test_client_does_not_retry_client_errors() -> None:
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        return httpx.Response(404, json={"message": "404 Project Not Found"})

    with pytest.raises(GatewayError) as exc:
        await _client(handler).get_project("missing/proj")

    assert calls["n"] == 1
    assert exc.value.message == "GitLab API error (404): 404 Project Not Found"
    assert exc.value.status_code == 404


@pytest.mark.asyncio
async def test_client_reports_transport_failures() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(GatewayError) as exc:
        await _client(handler, max_attempts=2).get_project(1)

    assert exc.value.kind is ErrorKind.BACKEND
    assert exc.value.message.startswith("GitLab request failed:")


@pytest.mark.asyncio
async def test_writes_are_not_retried_on_server_errors() -> None:
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        return httpx.Response(502, json={"message": "bad gateway"})

    with pytest.raises(GatewayError) as exc:
        await _client(handler).create_issue(1, {"title": "Bug"})

    assert calls["n"] == 1
    assert exc.value.status_code == 502


@pytest.mark.asyncio
async def test_writes_are_not_retried_on_read_timeouts() -> None:
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(GatewayError):
        await _client(handler).create_pipeline(1, "main", {})

    assert calls["n"] == 1


@pytest.mark.asyncio
async def test_writes_are_retried_when_not_applied() -> None:
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        if calls["n"] == 1:
            raise httpx.ConnectError("connection refused", request=request)
        if calls["n"] == 2:
            return httpx.Response(429, json={"message": "rate limited"})
        return httpx.Response(201, json={"iid": 1})

    out = await _client(handler).create_issue(1, {"title": "Bug"})

    assert out == {"iid": 1}
    assert calls["n"] == 3


@pytest.mark.asyncio
async def test_client_sends_token_and_encodes_project_path() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"id": 5})

    await _client(handler).get_project("group/sub/proj")

    req = seen[0]
    assert req.headers["PRIVATE-TOKEN"] == "tok"
    assert req.url.raw_path == b"/api/v4/projects/group%2Fsub%2Fproj"


@pytest.mark.asyncio
async def test_list_queries_render_lists_and_booleans() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[])

    await _client(handler).list_issues(1, {"iids": [3, 4], "state": "opened", "per_page": 20})
    await _client(handler).list_commits(1, {"sha": "develop", "with_stats": True})

    issues_params = seen[0].url.params
    assert issues_params.get_list("iids[]") == ["3", "4"]
    assert issues_params["state"] == "opened"
    assert issues_params["per_page"] == "20"

    commits_params = seen[1].url.params
    assert commits_params["ref_name"] == "develop"
    assert commits_params["with_stats"] == "true"
    assert "sha" not in commits_params


@pytest.mark.asyncio
async def test_get_file_contents_decodes_base64() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path.endswith("/repository/files/README.md")
        return httpx.Response(
            200,
            json={"file_path": "README.md", "encoding": "base64", "content": "aGVsbG8="},
        )

    out = await _client(handler).get_file_contents(1, "README.md", "main")

    assert out == {"file_path": "README.md", "encoding": "text", "content": "hello"}


@pytest.mark.asyncio
async def test_get_file_contents_uses_default_branch_and_tree_for_directories() -> None:
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.path)
        if request.url.path == "/api/v4/projects/1":
            return httpx.Response(200, json={"id": 1, "default_branch": "trunk"})
        assert request.url.params["ref"] == "trunk"
        assert request.url.params["path"] == "docs"
        return httpx.Response(200, json=[{"name": "index.md", "type": "blob"}])

    out = await _client(handler).get_file_contents(1, "docs/")

    assert out == [{"name": "index.md", "type": "blob"}]
    assert seen == ["/api/v4/projects/1", "/api/v4/projects/1/repository/tree"]


@pytest.mark.asyncio
async def test_create_or_update_file_creates_when_missing() -> None:
    bodies: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "HEAD":
            return httpx.Response(404)
        bodies.append(json.loads(request.content))
        return httpx.Response(201, json={"id": "abc123"})

    out = await _client(handler).create_or_update_file(1, "src/app.py", "print()", "add app", "main")

    assert out == {"id": "abc123"}
    assert bodies[0]["branch"] == "main"
    assert bodies[0]["actions"] == [{"file_path": "src/app.py", "content": "print()", "action": "create"}]


@pytest.mark.asyncio
async def test_create_or_update_file_updates_when_present() -> None:
    bodies: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "HEAD":
            return httpx.Response(200)
        bodies.append(json.loads(request.content))
        return httpx.Response(201, json={"id": "def456"})

    await _client(handler).create_or_update_file(1, "a.txt", "x", "m", "dev")

    assert bodies[0]["actions"][0]["action"] == "update"


@pytest.mark.asyncio
async def test_create_merge_request_draft_prefixes_title() -> None:
    bodies: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(201, json={"iid": 1})

    await _client(handler).create_merge_request(
        1,
        {"title": "Add feature", "source_branch": "f", "target_branch": "main", "draft": True, "labels": ["a", "b"]},
    )

    assert bodies[0]["title"] == "Draft: Add feature"
    assert bodies[0]["labels"] == "a,b"
    assert "draft" not in bodies[0]


@pytest.mark.asyncio
async def test_delete_returns_none_for_empty_body() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "DELETE"
        return httpx.Response(204)

    assert await _client(handler).delete_project_wiki_page(1, "home") is None


@pytest.mark.asyncio
async def test_get_job_log_returns_text() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/v4/projects/1/jobs/7/trace"
        return httpx.Response(200, text="line 1\nline 2\n")

    assert await _client(handler).get_job_log(1, 7) == "line 1\nline 2\n"


@pytest.mark.asyncio
async def test_create_pipeline_sends_variables_as_key_value_list() -> None:
    bodies: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(201, json={"id": 9})

    await _client(handler).create_pipeline(1, "main", {"DEPLOY": "1"})

    assert bodies[0] == {"ref": "main", "variables": [{"key": "DEPLOY", "value": "1"}]}


@pytest.mark.asyncio
async def test_validate_runner_tags_reports_matches() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/api/v4/projects/1/runners":
            return httpx.Response(200, json=[{"id": 1}, {"id": 2}])
        if path == "/api/v4/runners/1":
            return httpx.Response(200, json={"id": 1, "tag_list": ["docker", "linux"]})
        if path == "/api/v4/runners/2":
            return httpx.Response(200, json={"id": 2, "tag_list": ["docker"]})
        raise AssertionError(path)

    out = await _client(handler).validate_runner_tags(1, ["docker", "gpu"])

    assert out["valid"] is False
    assert out["valid_tags"] == ["docker"]
    assert out["invalid_tags"] == ["gpu"]
    assert out["available_tags"] == ["docker", "linux"]
    assert out["matching_runners"] == []


@pytest.mark.asyncio
async def test_runner_health_check_healthy() -> None:
    contacted = (datetime.now(timezone.utc) - timedelta(minutes=2)).isoformat()

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={"id": 4, "status": "online", "online": True, "paused": False, "contacted_at": contacted},
        )

    out = await _client(handler).runner_health_check(4)

    assert out["status"] == "healthy"
    assert out["issues"] == []


@pytest.mark.asyncio
async def test_runner_health_check_reports_issues() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={
                "id": 4,
                "status": "offline",
                "online": False,
                "paused": True,
                "contacted_at": "2020-01-01T00:00:00Z",
            },
        )

    out = await _client(handler).runner_health_check(4)

    assert out["status"] == "unhealthy"
    assert len(out["issues"]) == 3
    assert "Runner is paused" in out["issues"]
