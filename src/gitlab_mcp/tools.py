"""Tool registry and dispatch layer.

This module:
- registers every tool as an ``Operation`` (contract, read-only flag, handler, formatter)
- builds a per-server runtime from host-provided config
- runs each call through access control, validation and exactly one handler
- writes one audit event per call, with a correlation_id
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel

from . import schemas as s
from .audit import AuditLogger, build_event, new_correlation_id
from .catalog import ToolCatalog
from .config import AppConfig, load_config_from_env
from .errors import ErrorKind, GatewayError, access_denied, backend_error, unknown_operation, validation_error
from .formatters import (
    ContentBlock,
    format_commits_response,
    format_discussions_response,
    format_events_response,
    format_issues_response,
    format_json,
    format_members_response,
    format_merge_requests_response,
    format_notes_response,
    format_text,
    format_wiki_attachment_response,
    format_wiki_page_response,
    format_wiki_pages_response,
)
from .gitlab_client import GitLabClient
from .policy import AccessControl
from .validation import ValidationOutcome, check_cross_field, validate_arguments

logger = logging.getLogger(__name__)

Handler = Callable[["Runtime", Any], Awaitable[object]]
Formatter = Callable[[object], list[ContentBlock]]

ISSUE_DATE_FIELDS = ("created_after", "created_before", "updated_after", "updated_before")


@dataclass(frozen=True, slots=True)
class Operation:
    """One tool: its input contract, read-only eligibility, handler and response shape."""

    name: str
    description: str
    input_model: type[BaseModel]
    read_only: bool
    handler: Handler
    formatter: Formatter = format_json
    date_fields: tuple[str, ...] = field(default=())

    def validate(self, arguments: dict[str, Any] | None) -> ValidationOutcome:
        """Run structural validation, then the cross-field rules."""
        outcome = validate_arguments(self, arguments)
        if not outcome.ok or outcome.args is None:
            return outcome
        return check_cross_field(self, outcome.args)

    async def invoke(self, runtime: Runtime, args: BaseModel) -> list[ContentBlock]:
        result = await self.handler(runtime, args)
        return self.formatter(result)


@dataclass(frozen=True, slots=True)
class Runtime:
    """Per-server runtime dependencies shared across tool calls."""

    config: AppConfig
    audit: AuditLogger
    catalog: ToolCatalog
    access: AccessControl
    gitlab: GitLabClient


_RUNTIME: Runtime | None = None


def _options(args: BaseModel, *exclude: str) -> dict[str, Any]:
    """Return the options bag: every set field except the ones routed separately."""
    return args.model_dump(exclude_none=True, exclude=set(exclude))


# Repositories and files


async def _tool_create_or_update_file(runtime: Runtime, args: s.CreateOrUpdateFileArgs) -> object:
    return await runtime.gitlab.create_or_update_file(
        args.project_id,
        args.file_path,
        args.content,
        args.commit_message,
        args.branch,
        args.previous_path,
    )


async def _tool_search_repositories(runtime: Runtime, args: s.SearchRepositoriesArgs) -> object:
    return await runtime.gitlab.search_projects(args.search, args.page, args.per_page)


async def _tool_create_repository(runtime: Runtime, args: s.CreateRepositoryArgs) -> object:
    return await runtime.gitlab.create_repository(_options(args))


async def _tool_get_file_contents(runtime: Runtime, args: s.GetFileContentsArgs) -> object:
    return await runtime.gitlab.get_file_contents(args.project_id, args.file_path, args.ref)


async def _tool_push_files(runtime: Runtime, args: s.PushFilesArgs) -> object:
    """Write each file in order; stop at the first failure.

    Files written before the failure stay committed.
    """
    results: list[object] = []
    for entry in args.files:
        try:
            result = await runtime.gitlab.create_or_update_file(
                args.project_id,
                entry.path,
                entry.content,
                args.commit_message,
                args.branch,
            )
        except GatewayError as err:
            logger.error(
                "push_files: writing %s failed after %d of %d files: %s",
                entry.path,
                len(results),
                len(args.files),
                err.message,
            )
            raise
        results.append(result)
    return results


async def _tool_create_issue(runtime: Runtime, args: s.CreateIssueArgs) -> object:
    return await runtime.gitlab.create_issue(args.project_id, _options(args, "project_id"))


async def _tool_create_merge_request(runtime: Runtime, args: s.CreateMergeRequestArgs) -> object:
    return await runtime.gitlab.create_merge_request(args.project_id, _options(args, "project_id"))


async def _tool_fork_repository(runtime: Runtime, args: s.ForkRepositoryArgs) -> object:
    return await runtime.gitlab.fork_project(args.project_id, args.namespace)


async def _tool_create_branch(runtime: Runtime, args: s.CreateBranchArgs) -> object:
    return await runtime.gitlab.create_branch(args.project_id, name=args.branch, ref=args.ref)


async def _tool_list_group_projects(runtime: Runtime, args: s.ListGroupProjectsArgs) -> object:
    return await runtime.gitlab.list_group_projects(args.group_id, _options(args, "group_id"))


async def _tool_get_project_events(runtime: Runtime, args: s.GetProjectEventsArgs) -> object:
    return await runtime.gitlab.get_project_events(args.project_id, _options(args, "project_id"))


async def _tool_list_commits(runtime: Runtime, args: s.ListCommitsArgs) -> object:
    return await runtime.gitlab.list_commits(args.project_id, _options(args, "project_id"))


async def _tool_list_issues(runtime: Runtime, args: s.ListIssuesArgs) -> object:
    return await runtime.gitlab.list_issues(args.project_id, _options(args, "project_id"))


async def _tool_list_merge_requests(runtime: Runtime, args: s.ListMergeRequestsArgs) -> object:
    return await runtime.gitlab.list_merge_requests(args.project_id, _options(args, "project_id"))


# Project wikis


async def _tool_list_project_wiki_pages(runtime: Runtime, args: s.ListProjectWikiPagesArgs) -> object:
    return await runtime.gitlab.list_project_wiki_pages(args.project_id, with_content=args.with_content)


async def _tool_get_project_wiki_page(runtime: Runtime, args: s.GetProjectWikiPageArgs) -> object:
    return await runtime.gitlab.get_project_wiki_page(
        args.project_id, args.slug, _options(args, "project_id", "slug")
    )


async def _tool_create_project_wiki_page(runtime: Runtime, args: s.CreateProjectWikiPageArgs) -> object:
    return await runtime.gitlab.create_project_wiki_page(args.project_id, _options(args, "project_id"))


async def _tool_edit_project_wiki_page(runtime: Runtime, args: s.EditProjectWikiPageArgs) -> object:
    return await runtime.gitlab.edit_project_wiki_page(
        args.project_id, args.slug, _options(args, "project_id", "slug")
    )


async def _tool_delete_project_wiki_page(runtime: Runtime, args: s.DeleteProjectWikiPageArgs) -> object:
    await runtime.gitlab.delete_project_wiki_page(args.project_id, args.slug)
    return f"Wiki page '{args.slug}' has been deleted."


async def _tool_upload_project_wiki_attachment(runtime: Runtime, args: s.UploadProjectWikiAttachmentArgs) -> object:
    return await runtime.gitlab.upload_project_wiki_attachment(
        args.project_id, file_path=args.file_path, content=args.content, branch=args.branch
    )


# Group wikis


async def _tool_list_group_wiki_pages(runtime: Runtime, args: s.ListGroupWikiPagesArgs) -> object:
    return await runtime.gitlab.list_group_wiki_pages(args.group_id, with_content=args.with_content)


async def _tool_get_group_wiki_page(runtime: Runtime, args: s.GetGroupWikiPageArgs) -> object:
    return await runtime.gitlab.get_group_wiki_page(args.group_id, args.slug, _options(args, "group_id", "slug"))


async def _tool_create_group_wiki_page(runtime: Runtime, args: s.CreateGroupWikiPageArgs) -> object:
    return await runtime.gitlab.create_group_wiki_page(args.group_id, _options(args, "group_id"))


async def _tool_edit_group_wiki_page(runtime: Runtime, args: s.EditGroupWikiPageArgs) -> object:
    return await runtime.gitlab.edit_group_wiki_page(args.group_id, args.slug, _options(args, "group_id", "slug"))


async def _tool_delete_group_wiki_page(runtime: Runtime, args: s.DeleteGroupWikiPageArgs) -> object:
    await runtime.gitlab.delete_group_wiki_page(args.group_id, args.slug)
    return f"Wiki page '{args.slug}' has been deleted."


async def _tool_upload_group_wiki_attachment(runtime: Runtime, args: s.UploadGroupWikiAttachmentArgs) -> object:
    return await runtime.gitlab.upload_group_wiki_attachment(
        args.group_id, file_path=args.file_path, content=args.content, branch=args.branch
    )


# Members and issue notes


async def _tool_list_project_members(runtime: Runtime, args: s.ListProjectMembersArgs) -> object:
    return await runtime.gitlab.list_project_members(args.project_id, _options(args, "project_id"))


async def _tool_list_group_members(runtime: Runtime, args: s.ListGroupMembersArgs) -> object:
    return await runtime.gitlab.list_group_members(args.group_id, _options(args, "group_id"))


async def _tool_list_issue_notes(runtime: Runtime, args: s.ListIssueNotesArgs) -> object:
    return await runtime.gitlab.get_issue_notes(
        args.project_id, args.issue_iid, _options(args, "project_id", "issue_iid")
    )


async def _tool_list_issue_discussions(runtime: Runtime, args: s.ListIssueDiscussionsArgs) -> object:
    return await runtime.gitlab.get_issue_discussions(
        args.project_id, args.issue_iid, _options(args, "project_id", "issue_iid")
    )


# Pipelines and jobs


async def _tool_list_pipelines(runtime: Runtime, args: s.ListPipelinesArgs) -> object:
    return await runtime.gitlab.list_pipelines(args.project_id, _options(args, "project_id"))


async def _tool_get_pipeline(runtime: Runtime, args: s.GetPipelineArgs) -> object:
    return await runtime.gitlab.get_pipeline(args.project_id, args.pipeline_id)


async def _tool_get_pipeline_jobs(runtime: Runtime, args: s.GetPipelineJobsArgs) -> object:
    return await runtime.gitlab.get_pipeline_jobs(args.project_id, args.pipeline_id, args.scope)


async def _tool_get_job(runtime: Runtime, args: s.GetJobArgs) -> object:
    return await runtime.gitlab.get_job(args.project_id, args.job_id)


async def _tool_get_job_log(runtime: Runtime, args: s.GetJobLogArgs) -> object:
    return await runtime.gitlab.get_job_log(args.project_id, args.job_id)


async def _tool_create_pipeline(runtime: Runtime, args: s.CreatePipelineArgs) -> object:
    return await runtime.gitlab.create_pipeline(args.project_id, args.ref, args.variables or {})


async def _tool_retry_pipeline(runtime: Runtime, args: s.RetryPipelineArgs) -> object:
    return await runtime.gitlab.retry_pipeline(args.project_id, args.pipeline_id)


async def _tool_cancel_pipeline(runtime: Runtime, args: s.CancelPipelineArgs) -> object:
    return await runtime.gitlab.cancel_pipeline(args.project_id, args.pipeline_id)


async def _tool_retry_job(runtime: Runtime, args: s.RetryJobArgs) -> object:
    return await runtime.gitlab.retry_job(args.project_id, args.job_id)


async def _tool_cancel_job(runtime: Runtime, args: s.CancelJobArgs) -> object:
    return await runtime.gitlab.cancel_job(args.project_id, args.job_id)


# Projects


async def _tool_list_projects(runtime: Runtime, args: s.ListProjectsArgs) -> object:
    return await runtime.gitlab.list_projects(_options(args))


async def _tool_get_project(runtime: Runtime, args: s.GetProjectArgs) -> object:
    return await runtime.gitlab.get_project(args.project_id)


async def _tool_validate_ci_yaml(runtime: Runtime, args: s.ValidateCIYamlArgs) -> object:
    return await runtime.gitlab.validate_ci_yaml(args.project_id, args.content, args.include_merged_yaml)


# Runners


async def _tool_get_project_runners(runtime: Runtime, args: s.GetProjectRunnersArgs) -> object:
    return await runtime.gitlab.get_project_runners(args.project_id, _options(args, "project_id"))


async def _tool_list_shared_runners(runtime: Runtime, args: s.ListSharedRunnersArgs) -> object:
    return await runtime.gitlab.list_shared_runners(_options(args))


async def _tool_get_runner_details(runtime: Runtime, args: s.GetRunnerDetailsArgs) -> object:
    return await runtime.gitlab.get_runner_details(args.runner_id)


async def _tool_enable_project_runner(runtime: Runtime, args: s.EnableProjectRunnerArgs) -> object:
    return await runtime.gitlab.enable_project_runner(args.project_id, args.runner_id)


async def _tool_disable_project_runner(runtime: Runtime, args: s.DisableProjectRunnerArgs) -> object:
    await runtime.gitlab.disable_project_runner(args.project_id, args.runner_id)
    return f"Runner {args.runner_id} has been disabled for project {args.project_id}"


async def _tool_register_runner(runtime: Runtime, args: s.RegisterRunnerArgs) -> object:
    return await runtime.gitlab.register_runner(args.registration_token, args.description, args.tags)


async def _tool_validate_runner_tags(runtime: Runtime, args: s.ValidateRunnerTagsArgs) -> object:
    return await runtime.gitlab.validate_runner_tags(args.project_id, args.tags)


async def _tool_update_runner_settings(runtime: Runtime, args: s.UpdateRunnerSettingsArgs) -> object:
    return await runtime.gitlab.update_runner_settings(args.runner_id, _options(args, "runner_id"))


async def _tool_get_runner_jobs(runtime: Runtime, args: s.GetRunnerJobsArgs) -> object:
    return await runtime.gitlab.get_runner_jobs(args.runner_id, _options(args, "runner_id"))


async def _tool_runner_health_check(runtime: Runtime, args: s.RunnerHealthCheckArgs) -> object:
    return await runtime.gitlab.runner_health_check(args.runner_id)


OPERATIONS: tuple[Operation, ...] = (
    Operation(
        "create_or_update_file",
        "Create or update a single file in a GitLab project",
        s.CreateOrUpdateFileArgs,
        False,
        _tool_create_or_update_file,
    ),
    Operation(
        "search_repositories",
        "Search for GitLab projects",
        s.SearchRepositoriesArgs,
        True,
        _tool_search_repositories,
    ),
    Operation(
        "create_repository",
        "Create a new GitLab project",
        s.CreateRepositoryArgs,
        False,
        _tool_create_repository,
    ),
    Operation(
        "get_file_contents",
        "Get the contents of a file or directory from a GitLab project",
        s.GetFileContentsArgs,
        True,
        _tool_get_file_contents,
    ),
    Operation(
        "push_files",
        "Push multiple files to a GitLab project, one commit per file, in order",
        s.PushFilesArgs,
        False,
        _tool_push_files,
    ),
    Operation(
        "create_issue",
        "Create a new issue in a GitLab project",
        s.CreateIssueArgs,
        False,
        _tool_create_issue,
    ),
    Operation(
        "create_merge_request",
        "Create a new merge request in a GitLab project",
        s.CreateMergeRequestArgs,
        False,
        _tool_create_merge_request,
    ),
    Operation(
        "fork_repository",
        "Fork a GitLab project to your account or specified namespace",
        s.ForkRepositoryArgs,
        False,
        _tool_fork_repository,
    ),
    Operation(
        "create_branch",
        "Create a new branch in a GitLab project",
        s.CreateBranchArgs,
        False,
        _tool_create_branch,
    ),
    Operation(
        "list_group_projects",
        "List all projects (repositories) within a specific GitLab group",
        s.ListGroupProjectsArgs,
        True,
        _tool_list_group_projects,
    ),
    Operation(
        "get_project_events",
        "Get recent events/activities for a GitLab project",
        s.GetProjectEventsArgs,
        True,
        _tool_get_project_events,
        format_events_response,
    ),
    Operation(
        "list_commits",
        "Get commit history for a GitLab project",
        s.ListCommitsArgs,
        True,
        _tool_list_commits,
        format_commits_response,
        ("since", "until"),
    ),
    Operation(
        "list_issues",
        "Get issues for a GitLab project",
        s.ListIssuesArgs,
        True,
        _tool_list_issues,
        format_issues_response,
        ISSUE_DATE_FIELDS,
    ),
    Operation(
        "list_merge_requests",
        "Get merge requests for a GitLab project",
        s.ListMergeRequestsArgs,
        True,
        _tool_list_merge_requests,
        format_merge_requests_response,
        ISSUE_DATE_FIELDS,
    ),
    # Project wiki
    Operation(
        "list_project_wiki_pages",
        "List all wiki pages for a GitLab project",
        s.ListProjectWikiPagesArgs,
        True,
        _tool_list_project_wiki_pages,
        format_wiki_pages_response,
    ),
    Operation(
        "get_project_wiki_page",
        "Get a specific wiki page for a GitLab project",
        s.GetProjectWikiPageArgs,
        True,
        _tool_get_project_wiki_page,
        format_wiki_page_response,
    ),
    Operation(
        "create_project_wiki_page",
        "Create a new wiki page for a GitLab project",
        s.CreateProjectWikiPageArgs,
        False,
        _tool_create_project_wiki_page,
        format_wiki_page_response,
    ),
    Operation(
        "edit_project_wiki_page",
        "Edit an existing wiki page for a GitLab project",
        s.EditProjectWikiPageArgs,
        False,
        _tool_edit_project_wiki_page,
        format_wiki_page_response,
    ),
    Operation(
        "delete_project_wiki_page",
        "Delete a wiki page from a GitLab project",
        s.DeleteProjectWikiPageArgs,
        False,
        _tool_delete_project_wiki_page,
        format_text,
    ),
    Operation(
        "upload_project_wiki_attachment",
        "Upload an attachment to a GitLab project wiki",
        s.UploadProjectWikiAttachmentArgs,
        False,
        _tool_upload_project_wiki_attachment,
        format_wiki_attachment_response,
    ),
    # Group wiki
    Operation(
        "list_group_wiki_pages",
        "List all wiki pages for a GitLab group",
        s.ListGroupWikiPagesArgs,
        True,
        _tool_list_group_wiki_pages,
        format_wiki_pages_response,
    ),
    Operation(
        "get_group_wiki_page",
        "Get a specific wiki page for a GitLab group",
        s.GetGroupWikiPageArgs,
        True,
        _tool_get_group_wiki_page,
        format_wiki_page_response,
    ),
    Operation(
        "create_group_wiki_page",
        "Create a new wiki page for a GitLab group",
        s.CreateGroupWikiPageArgs,
        False,
        _tool_create_group_wiki_page,
        format_wiki_page_response,
    ),
    Operation(
        "edit_group_wiki_page",
        "Edit an existing wiki page for a GitLab group",
        s.EditGroupWikiPageArgs,
        False,
        _tool_edit_group_wiki_page,
        format_wiki_page_response,
    ),
    Operation(
        "delete_group_wiki_page",
        "Delete a wiki page from a GitLab group",
        s.DeleteGroupWikiPageArgs,
        False,
        _tool_delete_group_wiki_page,
        format_text,
    ),
    Operation(
        "upload_group_wiki_attachment",
        "Upload an attachment to a GitLab group wiki",
        s.UploadGroupWikiAttachmentArgs,
        False,
        _tool_upload_group_wiki_attachment,
        format_wiki_attachment_response,
    ),
    # Members
    Operation(
        "list_project_members",
        "List all members of a GitLab project (including inherited members)",
        s.ListProjectMembersArgs,
        True,
        _tool_list_project_members,
        format_members_response,
    ),
    Operation(
        "list_group_members",
        "List all members of a GitLab group (including inherited members)",
        s.ListGroupMembersArgs,
        True,
        _tool_list_group_members,
        format_members_response,
    ),
    # Issue notes
    Operation(
        "list_issue_notes",
        "Fetch all comments and system notes for a GitLab issue",
        s.ListIssueNotesArgs,
        True,
        _tool_list_issue_notes,
        format_notes_response,
    ),
    Operation(
        "list_issue_discussions",
        "Fetch all discussions (threaded comments) for a GitLab issue",
        s.ListIssueDiscussionsArgs,
        True,
        _tool_list_issue_discussions,
        format_discussions_response,
    ),
    # Pipelines and jobs
    Operation(
        "list_pipelines",
        "List pipelines for a GitLab project",
        s.ListPipelinesArgs,
        True,
        _tool_list_pipelines,
        date_fields=("updated_after", "updated_before"),
    ),
    Operation("get_pipeline", "Get details of a specific pipeline", s.GetPipelineArgs, True, _tool_get_pipeline),
    Operation(
        "get_pipeline_jobs",
        "List jobs in a specific pipeline",
        s.GetPipelineJobsArgs,
        True,
        _tool_get_pipeline_jobs,
    ),
    Operation("get_job", "Get details of a specific job", s.GetJobArgs, True, _tool_get_job),
    Operation("get_job_log", "Get job execution log/trace", s.GetJobLogArgs, True, _tool_get_job_log, format_text),
    Operation("create_pipeline", "Create a new pipeline", s.CreatePipelineArgs, False, _tool_create_pipeline),
    Operation("retry_pipeline", "Retry a failed pipeline", s.RetryPipelineArgs, False, _tool_retry_pipeline),
    Operation("cancel_pipeline", "Cancel a running pipeline", s.CancelPipelineArgs, False, _tool_cancel_pipeline),
    Operation("retry_job", "Retry a specific job", s.RetryJobArgs, False, _tool_retry_job),
    Operation("cancel_job", "Cancel a running job", s.CancelJobArgs, False, _tool_cancel_job),
    # Projects
    Operation("list_projects", "List GitLab projects", s.ListProjectsArgs, True, _tool_list_projects),
    Operation("get_project", "Get project details", s.GetProjectArgs, True, _tool_get_project),
    Operation(
        "validate_ci_yaml",
        "Validate GitLab CI YAML configuration using GitLab's lint API",
        s.ValidateCIYamlArgs,
        True,
        _tool_validate_ci_yaml,
    ),
    # Runners
    Operation(
        "get_project_runners",
        "Get all runners available for a specific project",
        s.GetProjectRunnersArgs,
        True,
        _tool_get_project_runners,
    ),
    Operation(
        "list_shared_runners",
        "List all shared runners available in the GitLab instance",
        s.ListSharedRunnersArgs,
        True,
        _tool_list_shared_runners,
    ),
    Operation(
        "get_runner_details",
        "Get detailed information about a specific runner",
        s.GetRunnerDetailsArgs,
        True,
        _tool_get_runner_details,
    ),
    Operation(
        "enable_project_runner",
        "Enable a specific runner for a project",
        s.EnableProjectRunnerArgs,
        False,
        _tool_enable_project_runner,
    ),
    Operation(
        "disable_project_runner",
        "Disable a specific runner for a project",
        s.DisableProjectRunnerArgs,
        False,
        _tool_disable_project_runner,
        format_text,
    ),
    Operation(
        "register_runner",
        "Register a new runner with GitLab",
        s.RegisterRunnerArgs,
        False,
        _tool_register_runner,
    ),
    Operation(
        "validate_runner_tags",
        "Validate runner tags and check available tags for a project",
        s.ValidateRunnerTagsArgs,
        True,
        _tool_validate_runner_tags,
    ),
    Operation(
        "update_runner_settings",
        "Update settings and configuration for a specific runner",
        s.UpdateRunnerSettingsArgs,
        False,
        _tool_update_runner_settings,
    ),
    Operation(
        "get_runner_jobs",
        "Get job history and execution details for a specific runner",
        s.GetRunnerJobsArgs,
        True,
        _tool_get_runner_jobs,
    ),
    Operation(
        "runner_health_check",
        "Perform health check and status verification for a runner",
        s.RunnerHealthCheckArgs,
        True,
        _tool_runner_health_check,
    ),
)

OPERATIONS_BY_NAME: dict[str, Operation] = {op.name: op for op in OPERATIONS}

CATALOG = ToolCatalog.from_operations(OPERATIONS)


def build_runtime(config: AppConfig, *, gitlab: GitLabClient | None = None) -> Runtime:
    """Wire a runtime from explicit configuration."""
    audit = AuditLogger(
        sink_path=config.audit_log_path,
        max_bytes=config.audit_max_bytes,
        max_backups=config.audit_max_backups,
    )
    if gitlab is None:
        gitlab = GitLabClient(token=config.token, limits=config.limits, api_base_url=config.api_url)
    return Runtime(
        config=config,
        audit=audit,
        catalog=CATALOG,
        access=AccessControl(CATALOG, read_only=config.read_only),
        gitlab=gitlab,
    )


def initialize_runtime_from_env() -> Runtime:
    """Initialize and cache runtime from environment.

    Called at server startup (fail-fast), and can also be used lazily.
    """
    global _RUNTIME  # pylint: disable=global-statement
    if _RUNTIME is not None:
        return _RUNTIME

    _RUNTIME = build_runtime(load_config_from_env())
    return _RUNTIME


def _target_from_args(arguments: dict[str, Any] | None) -> str:
    if not isinstance(arguments, dict):
        return "<unknown>"
    for key, label in (("project_id", "project"), ("group_id", "group"), ("runner_id", "runner")):
        value = arguments.get(key)
        if isinstance(value, (str, int)) and not isinstance(value, bool) and str(value):
            return f"{label}:{value}"
    return "<none>"


async def dispatch_tool(name: str, arguments: dict[str, Any] | None) -> list[ContentBlock]:
    """Run one tool call through access control, validation and its handler.

    Returns the content blocks on success. Every failure is raised as a single
    ``GatewayError``; no backend call is made until both validation stages pass.
    """
    correlation_id = new_correlation_id()
    target = _target_from_args(arguments)

    runtime: Runtime | None = None
    start: float | None = None

    try:
        runtime = initialize_runtime_from_env()
        start = runtime.audit.measure_start()

        decision = runtime.access.authorize(name)
        if not decision.allowed:
            raise access_denied(decision.reason or f"Tool '{name}' is not available")

        operation = OPERATIONS_BY_NAME.get(name)
        if operation is None or runtime.catalog.lookup(name) is None:
            raise unknown_operation(name)

        outcome = operation.validate(arguments)
        if not outcome.ok or outcome.args is None:
            raise validation_error(outcome.error or "Invalid arguments")

        try:
            content = await operation.invoke(runtime, outcome.args)
        except GatewayError:
            raise
        except Exception as exc:  # pylint: disable=broad-exception-caught
            raise backend_error(str(exc)) from exc

        runtime.audit.write_event(
            build_event(
                correlation_id=correlation_id,
                operation=name,
                target=target,
                outcome="succeeded",
                duration_ms=runtime.audit.measure_duration_ms(start),
            )
        )
        return content

    except GatewayError as err:
        outcome_label = "failed" if err.kind is ErrorKind.BACKEND else "denied"
        if runtime is not None and start is not None:
            audit = runtime.audit
            duration: int | None = audit.measure_duration_ms(start)
        else:
            # Runtime could not be initialized (e.g., Config failures); still audit to stderr.
            audit = AuditLogger(sink_path=None)
            duration = None
        audit.write_event(
            build_event(
                correlation_id=correlation_id,
                operation=name,
                target=target,
                outcome=outcome_label,
                reason=err.message,
                duration_ms=duration,
            )
        )
        raise
