"""Response formatting tests."""

from __future__ import annotations

import json

from gitlab_mcp.formatters import (
    format_discussions_response,
    format_json,
    format_members_response,
    format_merge_requests_response,
    format_text,
    format_wiki_attachment_response,
)


def test_format_json_pretty_prints() -> None:
    blocks = format_json({"a": 1})

    assert blocks == [{"type": "text", "text": '{\n  "a": 1\n}'}]


def test_format_text_passes_strings_through() -> None:
    assert format_text("done") == [{"type": "text", "text": "done"}]


def test_members_get_role_names() -> None:
    blocks = format_members_response(
        [
            {"id": 1, "username": "alice", "access_level": 40, "avatar_url": "x"},
            {"id": 2, "username": "bob", "access_level": 33},
        ]
    )

    assert blocks[0]["text"] == "Found 2 members"
    members = json.loads(blocks[1]["text"])
    assert members[0]["role"] == "Maintainer"
    assert members[1]["role"] == "Level 33"
    assert "avatar_url" not in members[0]


def test_list_formatter_falls_back_for_non_lists() -> None:
    blocks = format_merge_requests_response({"message": "unexpected"})

    assert len(blocks) == 1
    assert json.loads(blocks[0]["text"]) == {"message": "unexpected"}


def test_discussions_keep_note_authors() -> None:
    blocks = format_discussions_response(
        [{"id": "d1", "individual_note": False, "notes": [{"id": 5, "body": "hi", "author": {"username": "carol"}}]}]
    )

    discussions = json.loads(blocks[1]["text"])
    assert discussions[0]["notes"][0] == {"id": 5, "body": "hi", "author": "carol"}


def test_wiki_attachment_exposes_link() -> None:
    blocks = format_wiki_attachment_response(
        {
            "file_name": "diagram.png",
            "file_path": "uploads/abc/diagram.png",
            "branch": "main",
            "link": {"url": "uploads/abc/diagram.png", "markdown": "![diagram](uploads/abc/diagram.png)"},
        }
    )

    out = json.loads(blocks[0]["text"])
    assert out["markdown"] == "![diagram](uploads/abc/diagram.png)"
    assert out["branch"] == "main"
