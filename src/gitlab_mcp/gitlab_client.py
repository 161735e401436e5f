"""GitLab REST (v4) client.

Provides:
- one coroutine per backend operation used by the tools
- no-redirect behavior and finite timeouts
- bounded retries with backoff on 429/5xx and transport failures
- translation of every failure into a Backend ``GatewayError``
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import json
import logging
import posixpath
from datetime import datetime, timedelta, timezone
from typing import Any
from urllib.parse import quote

import httpx

from .config import LimitsConfig
from .errors import GatewayError, backend_error

logger = logging.getLogger(__name__)

# Runners that have not contacted GitLab for this long are reported as unhealthy.
STALE_CONTACT_AFTER = timedelta(hours=1)

IDEMPOTENT_METHODS = frozenset({"GET", "HEAD"})


def _enc(value: str | int) -> str:
    """URL-encode an id or path for use as a single path segment."""
    return quote(str(value), safe="")


def _query(options: dict[str, Any]) -> dict[str, Any]:
    """Render an options bag as GitLab query parameters."""
    params: dict[str, Any] = {}
    for key, value in options.items():
        if value is None:
            continue
        if isinstance(value, bool):
            params[key] = "true" if value else "false"
        elif isinstance(value, list):
            params[f"{key}[]"] = [str(v) for v in value]
        else:
            params[key] = str(value)
    return params


def _error_detail(resp: httpx.Response) -> str:
    try:
        payload = resp.json()
    except ValueError:
        return resp.text.strip() or resp.reason_phrase
    if isinstance(payload, dict):
        for key in ("message", "error", "error_description"):
            value = payload.get(key)
            if isinstance(value, str):
                return value
            if value is not None:
                return json.dumps(value, sort_keys=True)
    return json.dumps(payload, sort_keys=True)


def _parse_timestamp(value: object) -> datetime | None:
    if not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class GitLabClient:
    """Minimal GitLab REST client."""

    def __init__(
        self,
        *,
        token: str,
        limits: LimitsConfig,
        api_base_url: str = "https://gitlab.com/api/v4",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Create a GitLab REST client.

        Args:
            token: Personal access token sent as ``PRIVATE-TOKEN``.
            limits: Timeouts/retry limits.
            api_base_url: API root, e.g. ``https://gitlab.example.com/api/v4``.
            transport: Optional httpx transport for tests.
        """
        self._token = token
        self._limits = limits
        self._api_base_url = api_base_url.rstrip("/")
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        return {
            "PRIVATE-TOKEN": self._token,
            "Accept": "application/json",
        }

    def _compute_backoff_s(self, attempt_index: int) -> float:
        # attempt_index: 1 for first retry, 2 for second retry...
        base = min(self._limits.max_backoff_s, 0.5 * (2 ** (attempt_index - 1)))
        jitter = min(0.05, 0.01 * attempt_index)
        return min(self._limits.max_backoff_s, base + jitter)

    def _is_retryable(self, method: str, status_code: int | None, exc: Exception | None) -> bool:
        # Writes are only retried when GitLab cannot have applied them.
        idempotent = method in IDEMPOTENT_METHODS
        if exc is not None:
            if isinstance(exc, (httpx.ConnectError, httpx.ConnectTimeout)):
                return True
            return idempotent and isinstance(exc, (httpx.TimeoutException, httpx.TransportError))
        if status_code is None:
            return False
        if status_code == 429:
            return True
        return idempotent and 500 <= status_code <= 599

    async def _send(
        self,
        *,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json_body: object | None = None,
        files: dict[str, Any] | None = None,
        data: dict[str, str] | None = None,
    ) -> httpx.Response:
        url = f"{self._api_base_url}{path}"
        timeout = httpx.Timeout(
            timeout=self._limits.total_timeout_s,
            connect=self._limits.connect_timeout_s,
            read=self._limits.read_timeout_s,
        )

        async with httpx.AsyncClient(
            follow_redirects=False,
            timeout=timeout,
            transport=self._transport,
        ) as client:
            for attempt in range(1, self._limits.max_attempts + 1):
                try:
                    resp = await client.request(
                        method,
                        url,
                        headers=self._headers(),
                        params=params,
                        json=json_body,
                        files=files,
                        data=data,
                    )
                except Exception as exc:  # pylint: disable=broad-exception-caught
                    if attempt < self._limits.max_attempts and self._is_retryable(method, None, exc):
                        logger.warning("%s %s failed (%s), retrying", method, path, type(exc).__name__)
                        await asyncio.sleep(self._compute_backoff_s(attempt))
                        continue
                    raise backend_error(f"GitLab request failed: {exc}") from exc

                if resp.status_code < 400:
                    return resp

                if attempt < self._limits.max_attempts and self._is_retryable(method, resp.status_code, None):
                    logger.warning("%s %s returned %s, retrying", method, path, resp.status_code)
                    await asyncio.sleep(self._compute_backoff_s(attempt))
                    continue

                raise backend_error(
                    f"GitLab API error ({resp.status_code}): {_error_detail(resp)}",
                    status_code=resp.status_code,
                )

        raise backend_error("GitLab request failed")  # pragma: no cover

    async def request_json(
        self,
        *,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json_body: object | None = None,
        files: dict[str, Any] | None = None,
        data: dict[str, str] | None = None,
    ) -> object:
        """Make a request and return decoded JSON (``None`` for empty bodies)."""
        resp = await self._send(
            method=method, path=path, params=params, json_body=json_body, files=files, data=data
        )
        if resp.status_code == 204 or not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as exc:
            raise backend_error("GitLab returned invalid JSON", status_code=resp.status_code) from exc

    async def request_text(self, *, method: str, path: str, params: dict[str, Any] | None = None) -> str:
        """Make a request and return the raw response body."""
        resp = await self._send(method=method, path=path, params=params)
        return resp.text

    # Repositories and files

    async def get_project(self, project_id: str | int) -> object:
        return await self.request_json(method="GET", path=f"/projects/{_enc(project_id)}")

    async def get_default_branch_ref(self, project_id: str | int) -> str:
        project = await self.get_project(project_id)
        branch = project.get("default_branch") if isinstance(project, dict) else None
        if not isinstance(branch, str) or not branch:
            raise backend_error("Project has no default branch")
        return branch

    async def fork_project(self, project_id: str | int, namespace: str | None = None) -> object:
        body = {"namespace": namespace} if namespace else None
        return await self.request_json(
            method="POST", path=f"/projects/{_enc(project_id)}/fork", json_body=body
        )

    async def create_branch(self, project_id: str | int, *, name: str, ref: str | None = None) -> object:
        """Create ``name`` from ``ref``, or from the default branch when no ref is given."""
        if not ref:
            ref = await self.get_default_branch_ref(project_id)
        return await self.request_json(
            method="POST",
            path=f"/projects/{_enc(project_id)}/repository/branches",
            params={"branch": name, "ref": ref},
        )

    async def search_projects(self, search: str, page: int | None = None, per_page: int | None = None) -> object:
        return await self.request_json(
            method="GET",
            path="/projects",
            params=_query({"search": search, "page": page, "per_page": per_page}),
        )

    async def create_repository(self, options: dict[str, Any]) -> object:
        return await self.request_json(method="POST", path="/projects", json_body=options)

    async def get_file_contents(self, project_id: str | int, file_path: str, ref: str | None = None) -> object:
        """Return a file (with decoded content) or, for a directory path, its tree listing."""
        if not ref:
            ref = await self.get_default_branch_ref(project_id)
        if not file_path or file_path.endswith("/"):
            return await self.request_json(
                method="GET",
                path=f"/projects/{_enc(project_id)}/repository/tree",
                params=_query({"path": file_path.rstrip("/") or None, "ref": ref}),
            )
        data = await self.request_json(
            method="GET",
            path=f"/projects/{_enc(project_id)}/repository/files/{_enc(file_path)}",
            params={"ref": ref},
        )
        if isinstance(data, dict) and data.get("encoding") == "base64" and isinstance(data.get("content"), str):
            try:
                data = dict(data)
                data["content"] = base64.b64decode(data["content"]).decode("utf-8")
                data["encoding"] = "text"
            except (binascii.Error, UnicodeDecodeError):
                # Binary file: keep the base64 payload as returned.
                pass
        return data

    async def _file_exists(self, project_id: str | int, file_path: str, ref: str) -> bool:
        try:
            await self._send(
                method="HEAD",
                path=f"/projects/{_enc(project_id)}/repository/files/{_enc(file_path)}",
                params={"ref": ref},
            )
        except GatewayError as err:
            if err.status_code == 404:
                return False
            raise
        return True

    async def create_or_update_file(
        self,
        project_id: str | int,
        file_path: str,
        content: str,
        commit_message: str,
        branch: str,
        previous_path: str | None = None,
    ) -> object:
        """Write one file as a single commit on ``branch``."""
        action: dict[str, Any] = {"file_path": file_path, "content": content}
        if previous_path:
            action["action"] = "move"
            action["previous_path"] = previous_path
        elif await self._file_exists(project_id, file_path, branch):
            action["action"] = "update"
        else:
            action["action"] = "create"

        return await self.request_json(
            method="POST",
            path=f"/projects/{_enc(project_id)}/repository/commits",
            json_body={"branch": branch, "commit_message": commit_message, "actions": [action]},
        )

    async def create_issue(self, project_id: str | int, options: dict[str, Any]) -> object:
        body = dict(options)
        if isinstance(body.get("labels"), list):
            body["labels"] = ",".join(body["labels"])
        return await self.request_json(
            method="POST", path=f"/projects/{_enc(project_id)}/issues", json_body=body
        )

    async def create_merge_request(self, project_id: str | int, options: dict[str, Any]) -> object:
        body = dict(options)
        if body.pop("draft", False) and not str(body.get("title", "")).lower().startswith("draft:"):
            body["title"] = f"Draft: {body['title']}"
        if isinstance(body.get("labels"), list):
            body["labels"] = ",".join(body["labels"])
        return await self.request_json(
            method="POST", path=f"/projects/{_enc(project_id)}/merge_requests", json_body=body
        )

    async def list_group_projects(self, group_id: str | int, options: dict[str, Any]) -> object:
        return await self.request_json(
            method="GET", path=f"/groups/{_enc(group_id)}/projects", params=_query(options)
        )

    async def get_project_events(self, project_id: str | int, options: dict[str, Any]) -> object:
        return await self.request_json(
            method="GET", path=f"/projects/{_enc(project_id)}/events", params=_query(options)
        )

    async def list_commits(self, project_id: str | int, options: dict[str, Any]) -> object:
        params = dict(options)
        if "sha" in params:
            params["ref_name"] = params.pop("sha")
        return await self.request_json(
            method="GET",
            path=f"/projects/{_enc(project_id)}/repository/commits",
            params=_query(params),
        )

    async def list_issues(self, project_id: str | int, options: dict[str, Any]) -> object:
        return await self.request_json(
            method="GET", path=f"/projects/{_enc(project_id)}/issues", params=_query(options)
        )

    async def list_merge_requests(self, project_id: str | int, options: dict[str, Any]) -> object:
        return await self.request_json(
            method="GET", path=f"/projects/{_enc(project_id)}/merge_requests", params=_query(options)
        )

    # Wikis (projects and groups share the same endpoints under different roots)

    async def _list_wiki_pages(self, root: str, with_content: bool | None) -> object:
        return await self.request_json(
            method="GET", path=f"{root}/wikis", params=_query({"with_content": with_content})
        )

    async def _get_wiki_page(self, root: str, slug: str, options: dict[str, Any]) -> object:
        return await self.request_json(
            method="GET", path=f"{root}/wikis/{_enc(slug)}", params=_query(options)
        )

    async def _create_wiki_page(self, root: str, options: dict[str, Any]) -> object:
        return await self.request_json(method="POST", path=f"{root}/wikis", json_body=options)

    async def _edit_wiki_page(self, root: str, slug: str, options: dict[str, Any]) -> object:
        return await self.request_json(method="PUT", path=f"{root}/wikis/{_enc(slug)}", json_body=options)

    async def _delete_wiki_page(self, root: str, slug: str) -> None:
        await self.request_json(method="DELETE", path=f"{root}/wikis/{_enc(slug)}")

    async def _upload_wiki_attachment(
        self, root: str, *, file_path: str, content: str, branch: str | None = None
    ) -> object:
        files = {"file": (posixpath.basename(file_path) or file_path, content.encode("utf-8"))}
        data = {"branch": branch} if branch else None
        return await self.request_json(
            method="POST", path=f"{root}/wikis/attachments", files=files, data=data
        )

    async def list_project_wiki_pages(self, project_id: str | int, *, with_content: bool | None = None) -> object:
        return await self._list_wiki_pages(f"/projects/{_enc(project_id)}", with_content)

    async def get_project_wiki_page(self, project_id: str | int, slug: str, options: dict[str, Any]) -> object:
        return await self._get_wiki_page(f"/projects/{_enc(project_id)}", slug, options)

    async def create_project_wiki_page(self, project_id: str | int, options: dict[str, Any]) -> object:
        return await self._create_wiki_page(f"/projects/{_enc(project_id)}", options)

    async def edit_project_wiki_page(self, project_id: str | int, slug: str, options: dict[str, Any]) -> object:
        return await self._edit_wiki_page(f"/projects/{_enc(project_id)}", slug, options)

    async def delete_project_wiki_page(self, project_id: str | int, slug: str) -> None:
        await self._delete_wiki_page(f"/projects/{_enc(project_id)}", slug)

    async def upload_project_wiki_attachment(self, project_id: str | int, **kwargs: Any) -> object:
        return await self._upload_wiki_attachment(f"/projects/{_enc(project_id)}", **kwargs)

    async def list_group_wiki_pages(self, group_id: str | int, *, with_content: bool | None = None) -> object:
        return await self._list_wiki_pages(f"/groups/{_enc(group_id)}", with_content)

    async def get_group_wiki_page(self, group_id: str | int, slug: str, options: dict[str, Any]) -> object:
        return await self._get_wiki_page(f"/groups/{_enc(group_id)}", slug, options)

    async def create_group_wiki_page(self, group_id: str | int, options: dict[str, Any]) -> object:
        return await self._create_wiki_page(f"/groups/{_enc(group_id)}", options)

    async def edit_group_wiki_page(self, group_id: str | int, slug: str, options: dict[str, Any]) -> object:
        return await self._edit_wiki_page(f"/groups/{_enc(group_id)}", slug, options)

    async def delete_group_wiki_page(self, group_id: str | int, slug: str) -> None:
        await self._delete_wiki_page(f"/groups/{_enc(group_id)}", slug)

    async def upload_group_wiki_attachment(self, group_id: str | int, **kwargs: Any) -> object:
        return await self._upload_wiki_attachment(f"/groups/{_enc(group_id)}", **kwargs)

    # Members and issue notes

    async def list_project_members(self, project_id: str | int, options: dict[str, Any]) -> object:
        return await self.request_json(
            method="GET", path=f"/projects/{_enc(project_id)}/members/all", params=_query(options)
        )

    async def list_group_members(self, group_id: str | int, options: dict[str, Any]) -> object:
        return await self.request_json(
            method="GET", path=f"/groups/{_enc(group_id)}/members/all", params=_query(options)
        )

    async def get_issue_notes(self, project_id: str | int, issue_iid: int, options: dict[str, Any]) -> object:
        return await self.request_json(
            method="GET",
            path=f"/projects/{_enc(project_id)}/issues/{issue_iid}/notes",
            params=_query(options),
        )

    async def get_issue_discussions(self, project_id: str | int, issue_iid: int, options: dict[str, Any]) -> object:
        return await self.request_json(
            method="GET",
            path=f"/projects/{_enc(project_id)}/issues/{issue_iid}/discussions",
            params=_query(options),
        )

    # Pipelines and jobs

    async def list_pipelines(self, project_id: str | int, options: dict[str, Any]) -> object:
        return await self.request_json(
            method="GET", path=f"/projects/{_enc(project_id)}/pipelines", params=_query(options)
        )

    async def get_pipeline(self, project_id: str | int, pipeline_id: int) -> object:
        return await self.request_json(
            method="GET", path=f"/projects/{_enc(project_id)}/pipelines/{pipeline_id}"
        )

    async def get_pipeline_jobs(self, project_id: str | int, pipeline_id: int, scope: list[str] | None = None) -> object:
        return await self.request_json(
            method="GET",
            path=f"/projects/{_enc(project_id)}/pipelines/{pipeline_id}/jobs",
            params=_query({"scope": scope}),
        )

    async def get_job(self, project_id: str | int, job_id: int) -> object:
        return await self.request_json(method="GET", path=f"/projects/{_enc(project_id)}/jobs/{job_id}")

    async def get_job_log(self, project_id: str | int, job_id: int) -> str:
        return await self.request_text(method="GET", path=f"/projects/{_enc(project_id)}/jobs/{job_id}/trace")

    async def create_pipeline(self, project_id: str | int, ref: str, variables: dict[str, str]) -> object:
        body: dict[str, Any] = {"ref": ref}
        if variables:
            body["variables"] = [{"key": k, "value": v} for k, v in variables.items()]
        return await self.request_json(
            method="POST", path=f"/projects/{_enc(project_id)}/pipeline", json_body=body
        )

    async def retry_pipeline(self, project_id: str | int, pipeline_id: int) -> object:
        return await self.request_json(
            method="POST", path=f"/projects/{_enc(project_id)}/pipelines/{pipeline_id}/retry"
        )

    async def cancel_pipeline(self, project_id: str | int, pipeline_id: int) -> object:
        return await self.request_json(
            method="POST", path=f"/projects/{_enc(project_id)}/pipelines/{pipeline_id}/cancel"
        )

    async def retry_job(self, project_id: str | int, job_id: int) -> object:
        return await self.request_json(method="POST", path=f"/projects/{_enc(project_id)}/jobs/{job_id}/retry")

    async def cancel_job(self, project_id: str | int, job_id: int) -> object:
        return await self.request_json(method="POST", path=f"/projects/{_enc(project_id)}/jobs/{job_id}/cancel")

    # Projects

    async def list_projects(self, options: dict[str, Any]) -> object:
        return await self.request_json(method="GET", path="/projects", params=_query(options))

    async def validate_ci_yaml(
        self, project_id: str | int, content: str, include_merged_yaml: bool | None = None
    ) -> object:
        body: dict[str, Any] = {"content": content}
        if include_merged_yaml is not None:
            body["include_merged_yaml"] = include_merged_yaml
        return await self.request_json(
            method="POST", path=f"/projects/{_enc(project_id)}/ci/lint", json_body=body
        )

    # Runners

    async def get_project_runners(self, project_id: str | int, options: dict[str, Any]) -> object:
        return await self.request_json(
            method="GET", path=f"/projects/{_enc(project_id)}/runners", params=_query(options)
        )

    async def list_shared_runners(self, options: dict[str, Any]) -> object:
        params = dict(options)
        params.setdefault("type", "instance_type")
        return await self.request_json(method="GET", path="/runners/all", params=_query(params))

    async def get_runner_details(self, runner_id: int) -> object:
        return await self.request_json(method="GET", path=f"/runners/{runner_id}")

    async def enable_project_runner(self, project_id: str | int, runner_id: int) -> object:
        return await self.request_json(
            method="POST",
            path=f"/projects/{_enc(project_id)}/runners",
            json_body={"runner_id": runner_id},
        )

    async def disable_project_runner(self, project_id: str | int, runner_id: int) -> None:
        await self.request_json(method="DELETE", path=f"/projects/{_enc(project_id)}/runners/{runner_id}")

    async def register_runner(
        self, registration_token: str, description: str | None = None, tags: list[str] | None = None
    ) -> object:
        body: dict[str, Any] = {"token": registration_token}
        if description is not None:
            body["description"] = description
        if tags:
            body["tag_list"] = ",".join(tags)
        return await self.request_json(method="POST", path="/runners", json_body=body)

    async def validate_runner_tags(self, project_id: str | int, tags: list[str]) -> dict[str, Any]:
        """Check which of ``tags`` are served by at least one runner of the project."""
        runners = await self.get_project_runners(project_id, {"per_page": 100})
        available: set[str] = set()
        runner_tags: dict[int, set[str]] = {}
        for runner in runners if isinstance(runners, list) else []:
            runner_id = runner.get("id") if isinstance(runner, dict) else None
            if not isinstance(runner_id, int):
                continue
            details = await self.get_runner_details(runner_id)
            tag_list = details.get("tag_list") if isinstance(details, dict) else None
            runner_tags[runner_id] = set(tag_list) if isinstance(tag_list, list) else set()
            available |= runner_tags[runner_id]

        requested = list(dict.fromkeys(tags))
        valid = [t for t in requested if t in available]
        invalid = [t for t in requested if t not in available]
        matching = sorted(rid for rid, rtags in runner_tags.items() if set(requested) <= rtags)
        return {
            "project_id": project_id,
            "valid": not invalid,
            "valid_tags": valid,
            "invalid_tags": invalid,
            "available_tags": sorted(available),
            "matching_runners": matching,
        }

    async def update_runner_settings(self, runner_id: int, settings: dict[str, Any]) -> object:
        return await self.request_json(method="PUT", path=f"/runners/{runner_id}", json_body=settings)

    async def get_runner_jobs(self, runner_id: int, options: dict[str, Any]) -> object:
        return await self.request_json(method="GET", path=f"/runners/{runner_id}/jobs", params=_query(options))

    async def runner_health_check(self, runner_id: int) -> dict[str, Any]:
        """Summarize whether a runner is online, unpaused and recently in contact."""
        details = await self.get_runner_details(runner_id)
        if not isinstance(details, dict):
            raise backend_error("Unexpected runner response")

        issues: list[str] = []
        runner_status = details.get("status")
        online = details.get("online")
        if online is None:
            online = runner_status == "online"
        if not online:
            issues.append(f"Runner is not online (status: {runner_status or 'unknown'})")

        paused = details.get("paused")
        if paused is None and "active" in details:
            paused = not details.get("active")
        if paused:
            issues.append("Runner is paused")

        contacted_at = _parse_timestamp(details.get("contacted_at"))
        if contacted_at is None:
            issues.append("Runner has never contacted GitLab")
        elif datetime.now(timezone.utc) - contacted_at > STALE_CONTACT_AFTER:
            issues.append("Runner has not contacted GitLab in over an hour")

        return {
            "runner_id": runner_id,
            "status": "healthy" if not issues else "unhealthy",
            "online": bool(online),
            "paused": bool(paused),
            "runner_status": runner_status,
            "last_contact": details.get("contacted_at"),
            "version": details.get("version"),
            "platform": details.get("platform"),
            "architecture": details.get("architecture"),
            "tag_list": details.get("tag_list", []),
            "issues": issues,
        }
