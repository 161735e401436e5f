"""Tool catalog tests: contents, ordering and advertised schemas."""

from __future__ import annotations

import json

import pytest
from gitlab_mcp.catalog import OperationDescriptor, ToolCatalog, build_input_schema
from gitlab_mcp.schemas import PushFilesArgs
from gitlab_mcp.tools import CATALOG, OPERATIONS


def test_catalog_contains_every_operation_in_registry_order() -> None:
    assert len(CATALOG) == 53
    assert CATALOG.names() == [op.name for op in OPERATIONS]
    assert CATALOG.names()[0] == "create_or_update_file"
    assert CATALOG.names()[-1] == "runner_health_check"


def test_read_only_flags() -> None:
    read_only = {d.name for d in CATALOG.list() if d.read_only}

    assert len(read_only) == 29
    assert {"list_issues", "get_job_log", "validate_ci_yaml", "runner_health_check"} <= read_only
    assert not {"create_issue", "push_files", "delete_group_wiki_page", "register_runner"} & read_only


def test_lookup_and_contains() -> None:
    descriptor = CATALOG.lookup("get_project")

    assert descriptor is not None
    assert descriptor.description == "Get project details"
    assert "get_project" in CATALOG
    assert CATALOG.lookup("nope") is None
    assert "nope" not in CATALOG


def test_every_schema_is_a_self_contained_object() -> None:
    for descriptor in CATALOG.list():
        schema = descriptor.input_schema
        assert schema["type"] == "object"
        assert isinstance(schema["properties"], dict)
        assert "$ref" not in json.dumps(schema), descriptor.name


def test_nested_models_are_inlined() -> None:
    schema = build_input_schema(PushFilesArgs)

    items = schema["properties"]["files"]["items"]
    assert items["type"] == "object"
    assert set(items["properties"]) == {"path", "content"}


def test_duplicate_names_rejected() -> None:
    d = OperationDescriptor(name="x", description="", input_schema={"type": "object", "properties": {}}, read_only=True)

    with pytest.raises(ValueError):
        ToolCatalog([d, d])
