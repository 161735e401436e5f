"""Input contracts for every tool.

Each model is the structural contract of one tool's arguments. Pagination bounds and
date formats are checked separately by ``validation.check_cross_field`` so that the
caller gets the same messages for every paginated tool.

Project and group identifiers accept either the numeric id or the URL-encoded path
(``group/project``) and are passed to GitLab unchanged.
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, BeforeValidator, Field, StrictInt, StrictStr


def _reject_bool(value: object) -> object:
    if isinstance(value, bool):
        raise ValueError("Input should be a valid integer")
    return value


ProjectId = Union[StrictStr, StrictInt]
GroupId = Union[StrictStr, StrictInt]
# Accepts numeric strings ("12") as well as integers, but never booleans.
NumericId = Annotated[int, BeforeValidator(_reject_bool)]

Visibility = Literal["private", "internal", "public"]
SortDirection = Literal["asc", "desc"]
WikiFormat = Literal["markdown", "rdoc", "asciidoc", "org"]


class Paginated(BaseModel):
    page: StrictInt | None = Field(default=None, description="Page number (1-based)")
    per_page: StrictInt | None = Field(default=None, description="Results per page (1-100)")


# Repositories and files


class CreateOrUpdateFileArgs(BaseModel):
    project_id: ProjectId = Field(description="Project ID or URL-encoded path")
    file_path: str = Field(min_length=1, description="Path of the file in the repository")
    content: str = Field(description="New file content")
    commit_message: str = Field(min_length=1)
    branch: str = Field(min_length=1, description="Branch to commit to")
    previous_path: str | None = Field(default=None, description="Original path when moving a file")


class SearchRepositoriesArgs(Paginated):
    search: str = Field(min_length=1, description="Search query")


class CreateRepositoryArgs(BaseModel):
    name: str = Field(min_length=1, description="Project name")
    description: str | None = None
    visibility: Visibility | None = None
    initialize_with_readme: bool | None = None


class GetFileContentsArgs(BaseModel):
    project_id: ProjectId
    file_path: str = Field(description="File or directory path; empty for the repository root")
    ref: str | None = Field(default=None, description="Branch, tag or commit; defaults to the default branch")


class FileEntry(BaseModel):
    path: str = Field(min_length=1, description="Path of the file in the repository")
    content: str


class PushFilesArgs(BaseModel):
    project_id: ProjectId
    branch: str = Field(min_length=1)
    files: list[FileEntry] = Field(min_length=1, description="Files to write, in order")
    commit_message: str = Field(min_length=1)


class CreateIssueArgs(BaseModel):
    project_id: ProjectId
    title: str = Field(min_length=1)
    description: str | None = None
    assignee_ids: list[StrictInt] | None = None
    labels: list[str] | None = None
    milestone_id: StrictInt | None = None
    confidential: bool | None = None
    due_date: str | None = Field(default=None, description="Due date (YYYY-MM-DD)")


class CreateMergeRequestArgs(BaseModel):
    project_id: ProjectId
    title: str = Field(min_length=1)
    description: str | None = None
    source_branch: str = Field(min_length=1)
    target_branch: str = Field(min_length=1)
    draft: bool | None = None
    allow_collaboration: bool | None = None
    remove_source_branch: bool | None = None
    assignee_ids: list[StrictInt] | None = None
    labels: list[str] | None = None


class ForkRepositoryArgs(BaseModel):
    project_id: ProjectId
    namespace: str | None = Field(default=None, description="Namespace to fork into")


class CreateBranchArgs(BaseModel):
    project_id: ProjectId
    branch: str = Field(min_length=1, description="Name of the new branch")
    ref: str | None = Field(default=None, description="Source ref; defaults to the project's default branch")


class ListGroupProjectsArgs(Paginated):
    group_id: GroupId
    archived: bool | None = None
    visibility: Visibility | None = None
    order_by: Literal["id", "name", "path", "created_at", "updated_at", "last_activity_at"] | None = None
    sort: SortDirection | None = None
    search: str | None = None
    simple: bool | None = None
    include_subgroups: bool | None = None
    with_shared: bool | None = None


class GetProjectEventsArgs(Paginated):
    project_id: ProjectId
    action: str | None = Field(default=None, description="Event action type, e.g. pushed, created, closed")
    target_type: Literal["issue", "milestone", "merge_request", "note", "project", "snippet", "user"] | None = None
    before: str | None = Field(default=None, description="Only events created before this date (YYYY-MM-DD)")
    after: str | None = Field(default=None, description="Only events created after this date (YYYY-MM-DD)")
    sort: SortDirection | None = None


class ListCommitsArgs(Paginated):
    project_id: ProjectId
    sha: str | None = Field(default=None, description="Branch, tag or commit to list from")
    since: str | None = Field(default=None, description="ISO 8601 lower bound")
    until: str | None = Field(default=None, description="ISO 8601 upper bound")
    path: str | None = None
    author: str | None = None
    all: bool | None = None
    with_stats: bool | None = None
    first_parent: bool | None = None
    order: Literal["default", "topo"] | None = None


class ListIssuesArgs(Paginated):
    project_id: ProjectId
    iids: list[StrictInt] | None = None
    state: Literal["opened", "closed", "all"] | None = None
    labels: str | None = Field(default=None, description="Comma-separated label names")
    milestone: str | None = None
    scope: Literal["created_by_me", "assigned_to_me", "all"] | None = None
    author_id: StrictInt | None = None
    assignee_id: StrictInt | None = None
    search: str | None = None
    created_after: str | None = None
    created_before: str | None = None
    updated_after: str | None = None
    updated_before: str | None = None
    order_by: Literal["created_at", "updated_at", "priority", "due_date", "relative_position", "label_priority", "milestone_due", "popularity", "weight"] | None = None
    sort: SortDirection | None = None


class ListMergeRequestsArgs(Paginated):
    project_id: ProjectId
    state: Literal["opened", "closed", "locked", "merged", "all"] | None = None
    order_by: Literal["created_at", "updated_at"] | None = None
    sort: SortDirection | None = None
    milestone: str | None = None
    labels: str | None = Field(default=None, description="Comma-separated label names")
    created_after: str | None = None
    created_before: str | None = None
    updated_after: str | None = None
    updated_before: str | None = None
    scope: Literal["created_by_me", "assigned_to_me", "all"] | None = None
    author_id: StrictInt | None = None
    assignee_id: StrictInt | None = None
    search: str | None = None
    source_branch: str | None = None
    target_branch: str | None = None
    wip: Literal["yes", "no"] | None = None


# Wikis


class ListProjectWikiPagesArgs(BaseModel):
    project_id: ProjectId
    with_content: bool | None = None


class GetProjectWikiPageArgs(BaseModel):
    project_id: ProjectId
    slug: str = Field(min_length=1, description="Slug of the wiki page")
    render_html: bool | None = None
    version: str | None = Field(default=None, description="Wiki page version SHA")


class CreateProjectWikiPageArgs(BaseModel):
    project_id: ProjectId
    title: str = Field(min_length=1)
    content: str
    format: WikiFormat | None = None


class EditProjectWikiPageArgs(BaseModel):
    project_id: ProjectId
    slug: str = Field(min_length=1)
    title: str | None = None
    content: str | None = None
    format: WikiFormat | None = None


class DeleteProjectWikiPageArgs(BaseModel):
    project_id: ProjectId
    slug: str = Field(min_length=1)


class UploadProjectWikiAttachmentArgs(BaseModel):
    project_id: ProjectId
    file_path: str = Field(min_length=1, description="File name to store the attachment under")
    content: str = Field(description="Attachment content")
    branch: str | None = None


class ListGroupWikiPagesArgs(BaseModel):
    group_id: GroupId
    with_content: bool | None = None


class GetGroupWikiPageArgs(BaseModel):
    group_id: GroupId
    slug: str = Field(min_length=1)
    render_html: bool | None = None
    version: str | None = None


class CreateGroupWikiPageArgs(BaseModel):
    group_id: GroupId
    title: str = Field(min_length=1)
    content: str
    format: WikiFormat | None = None


class EditGroupWikiPageArgs(BaseModel):
    group_id: GroupId
    slug: str = Field(min_length=1)
    title: str | None = None
    content: str | None = None
    format: WikiFormat | None = None


class DeleteGroupWikiPageArgs(BaseModel):
    group_id: GroupId
    slug: str = Field(min_length=1)


class UploadGroupWikiAttachmentArgs(BaseModel):
    group_id: GroupId
    file_path: str = Field(min_length=1)
    content: str
    branch: str | None = None


# Members and issue notes


class ListProjectMembersArgs(Paginated):
    project_id: ProjectId
    query: str | None = Field(default=None, description="Filter by name, email or username")
    user_ids: list[StrictInt] | None = None
    skip_users: list[StrictInt] | None = None


class ListGroupMembersArgs(Paginated):
    group_id: GroupId
    query: str | None = None
    user_ids: list[StrictInt] | None = None
    skip_users: list[StrictInt] | None = None


class ListIssueNotesArgs(Paginated):
    project_id: ProjectId
    issue_iid: NumericId = Field(description="Project-scoped issue IID")
    sort: SortDirection | None = None
    order_by: Literal["created_at", "updated_at"] | None = None


class ListIssueDiscussionsArgs(Paginated):
    project_id: ProjectId
    issue_iid: NumericId


# Pipelines and jobs


class ListPipelinesArgs(Paginated):
    project_id: ProjectId
    scope: Literal["running", "pending", "finished", "branches", "tags"] | None = None
    status: Literal[
        "created",
        "waiting_for_resource",
        "preparing",
        "pending",
        "running",
        "success",
        "failed",
        "canceled",
        "skipped",
        "manual",
        "scheduled",
    ] | None = None
    ref: str | None = None
    sha: str | None = None
    yaml_errors: bool | None = None
    username: str | None = None
    updated_after: str | None = None
    updated_before: str | None = None
    order_by: Literal["id", "status", "ref", "updated_at", "user_id"] | None = None
    sort: SortDirection | None = None


class GetPipelineArgs(BaseModel):
    project_id: ProjectId
    pipeline_id: NumericId


class GetPipelineJobsArgs(BaseModel):
    project_id: ProjectId
    pipeline_id: NumericId
    scope: list[str] | None = Field(default=None, description="Job statuses to include")


class GetJobArgs(BaseModel):
    project_id: ProjectId
    job_id: NumericId


class GetJobLogArgs(BaseModel):
    project_id: ProjectId
    job_id: NumericId


class CreatePipelineArgs(BaseModel):
    project_id: ProjectId
    ref: str = Field(min_length=1, description="Branch or tag to run the pipeline for")
    variables: dict[str, str] | None = Field(default=None, description="Pipeline variables (key -> value)")


class RetryPipelineArgs(BaseModel):
    project_id: ProjectId
    pipeline_id: NumericId


class CancelPipelineArgs(BaseModel):
    project_id: ProjectId
    pipeline_id: NumericId


class RetryJobArgs(BaseModel):
    project_id: ProjectId
    job_id: NumericId


class CancelJobArgs(BaseModel):
    project_id: ProjectId
    job_id: NumericId


# Projects


class ListProjectsArgs(Paginated):
    search: str | None = None
    owned: bool | None = None
    membership: bool | None = None
    starred: bool | None = None
    visibility: Visibility | None = None
    archived: bool | None = None
    order_by: Literal["id", "name", "path", "created_at", "updated_at", "last_activity_at"] | None = None
    sort: SortDirection | None = None
    simple: bool | None = None


class GetProjectArgs(BaseModel):
    project_id: ProjectId


class ValidateCIYamlArgs(BaseModel):
    project_id: ProjectId
    content: str = Field(min_length=1, description="CI/CD configuration YAML")
    include_merged_yaml: bool | None = None


# Runners

RunnerScope = Literal["active", "paused", "online", "offline"]
RunnerType = Literal["instance_type", "group_type", "project_type"]
RunnerStatus = Literal["online", "offline", "stale", "never_contacted"]


class GetProjectRunnersArgs(Paginated):
    project_id: ProjectId
    scope: RunnerScope | None = None
    type: RunnerType | None = None
    status: RunnerStatus | None = None
    tag_list: list[str] | None = None


class ListSharedRunnersArgs(Paginated):
    scope: RunnerScope | None = None
    type: RunnerType | None = None
    status: RunnerStatus | None = None
    paused: bool | None = None
    tag_list: list[str] | None = None


class GetRunnerDetailsArgs(BaseModel):
    runner_id: NumericId = Field(ge=1)


class EnableProjectRunnerArgs(BaseModel):
    project_id: ProjectId
    runner_id: NumericId = Field(ge=1)


class DisableProjectRunnerArgs(BaseModel):
    project_id: ProjectId
    runner_id: NumericId = Field(ge=1)


class RegisterRunnerArgs(BaseModel):
    registration_token: str = Field(min_length=1)
    description: str | None = None
    tags: list[str] | None = None


class ValidateRunnerTagsArgs(BaseModel):
    project_id: ProjectId
    tags: list[str] = Field(min_length=1)


class UpdateRunnerSettingsArgs(BaseModel):
    runner_id: NumericId = Field(ge=1)
    description: str | None = None
    paused: bool | None = None
    tag_list: list[str] | None = None
    run_untagged: bool | None = None
    locked: bool | None = None
    access_level: Literal["not_protected", "ref_protected"] | None = None
    maximum_timeout: StrictInt | None = Field(default=None, ge=600)


class GetRunnerJobsArgs(Paginated):
    runner_id: NumericId = Field(ge=1)
    status: Literal["running", "success", "failed", "canceled"] | None = None
    order_by: Literal["id"] | None = None
    sort: SortDirection | None = None


class RunnerHealthCheckArgs(BaseModel):
    runner_id: NumericId = Field(ge=1)
