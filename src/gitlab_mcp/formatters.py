"""Response shaping.

Every tool result becomes a list of MCP text content blocks. Most tools return the
GitLab payload as pretty-printed JSON; list endpoints with a well-known item shape get
a one-line summary followed by the items pruned to the fields an agent needs.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

ContentBlock = dict[str, str]

ACCESS_LEVELS = {
    0: "No access",
    5: "Minimal access",
    10: "Guest",
    20: "Reporter",
    30: "Developer",
    40: "Maintainer",
    50: "Owner",
}


def text_block(text: str) -> ContentBlock:
    return {"type": "text", "text": text}


def format_json(result: object) -> list[ContentBlock]:
    """Default: the whole result as one pretty-printed JSON block."""
    return [text_block(json.dumps(result, indent=2, default=str))]


def format_text(result: object) -> list[ContentBlock]:
    return [text_block(result if isinstance(result, str) else str(result))]


def _username(user: object) -> str | None:
    if isinstance(user, dict):
        value = user.get("username")
        return value if isinstance(value, str) else None
    return None


def _pick(item: dict[str, Any], *keys: str) -> dict[str, Any]:
    return {k: item[k] for k in keys if k in item}


def _list_formatter(noun: str, prune: Callable[[dict[str, Any]], dict[str, Any]]) -> Callable[[object], list[ContentBlock]]:
    def formatter(result: object) -> list[ContentBlock]:
        if not isinstance(result, list):
            return format_json(result)
        items = [prune(item) if isinstance(item, dict) else item for item in result]
        summary = f"Found {len(items)} {noun}"
        return [text_block(summary), text_block(json.dumps(items, indent=2, default=str))]

    formatter.__name__ = f"format_{noun.replace(' ', '_')}_response"
    return formatter


def _prune_event(event: dict[str, Any]) -> dict[str, Any]:
    out = _pick(event, "id", "action_name", "target_type", "target_iid", "target_title", "created_at")
    out["author"] = _username(event.get("author")) or event.get("author_username")
    push = event.get("push_data")
    if isinstance(push, dict):
        out["push"] = _pick(push, "action", "ref_type", "ref", "commit_count", "commit_title")
    return out


def _prune_commit(commit: dict[str, Any]) -> dict[str, Any]:
    out = _pick(
        commit,
        "id",
        "short_id",
        "title",
        "author_name",
        "author_email",
        "authored_date",
        "committed_date",
        "web_url",
    )
    if isinstance(commit.get("stats"), dict):
        out["stats"] = commit["stats"]
    return out


def _prune_issue(issue: dict[str, Any]) -> dict[str, Any]:
    out = _pick(issue, "id", "iid", "title", "state", "labels", "created_at", "updated_at", "closed_at", "web_url")
    out["author"] = _username(issue.get("author"))
    out["assignees"] = [u for u in (_username(a) for a in issue.get("assignees") or []) if u]
    milestone = issue.get("milestone")
    if isinstance(milestone, dict):
        out["milestone"] = milestone.get("title")
    return out


def _prune_merge_request(mr: dict[str, Any]) -> dict[str, Any]:
    out = _pick(
        mr,
        "id",
        "iid",
        "title",
        "state",
        "draft",
        "source_branch",
        "target_branch",
        "merge_status",
        "labels",
        "created_at",
        "updated_at",
        "merged_at",
        "web_url",
    )
    out["author"] = _username(mr.get("author"))
    return out


def _prune_wiki_page(page: dict[str, Any]) -> dict[str, Any]:
    return _pick(page, "title", "slug", "format", "encoding", "content")


def _prune_member(member: dict[str, Any]) -> dict[str, Any]:
    out = _pick(member, "id", "username", "name", "state", "access_level", "expires_at", "web_url")
    level = member.get("access_level")
    if isinstance(level, int):
        out["role"] = ACCESS_LEVELS.get(level, f"Level {level}")
    return out


def _prune_note(note: dict[str, Any]) -> dict[str, Any]:
    out = _pick(note, "id", "body", "system", "resolvable", "resolved", "created_at", "updated_at")
    out["author"] = _username(note.get("author"))
    return out


def _prune_discussion(discussion: dict[str, Any]) -> dict[str, Any]:
    notes = discussion.get("notes") or []
    return {
        "id": discussion.get("id"),
        "individual_note": discussion.get("individual_note"),
        "notes": [_prune_note(n) for n in notes if isinstance(n, dict)],
    }


format_events_response = _list_formatter("events", _prune_event)
format_commits_response = _list_formatter("commits", _prune_commit)
format_issues_response = _list_formatter("issues", _prune_issue)
format_merge_requests_response = _list_formatter("merge requests", _prune_merge_request)
format_wiki_pages_response = _list_formatter("wiki pages", _prune_wiki_page)
format_members_response = _list_formatter("members", _prune_member)
format_notes_response = _list_formatter("notes", _prune_note)
format_discussions_response = _list_formatter("discussions", _prune_discussion)


def format_wiki_page_response(page: object) -> list[ContentBlock]:
    if not isinstance(page, dict):
        return format_json(page)
    return [text_block(json.dumps(_prune_wiki_page(page), indent=2, default=str))]


def format_wiki_attachment_response(attachment: object) -> list[ContentBlock]:
    if not isinstance(attachment, dict):
        return format_json(attachment)
    out = _pick(attachment, "file_name", "file_path", "branch")
    link = attachment.get("link")
    if isinstance(link, dict):
        out["url"] = link.get("url")
        out["markdown"] = link.get("markdown")
    return [text_block(json.dumps(out, indent=2, default=str))]
