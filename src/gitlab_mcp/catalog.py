"""Tool catalog.

The catalog is built once from the operation registry and never changes afterwards,
so concurrent readers need no locking. Its order is the order tools are advertised in.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

if TYPE_CHECKING:
    from .tools import Operation


@dataclass(frozen=True, slots=True)
class OperationDescriptor:
    """Public description of one tool."""

    name: str
    description: str
    input_schema: dict[str, Any]
    read_only: bool


def _inline_refs(node: Any, defs: dict[str, Any]) -> Any:
    if isinstance(node, dict):
        ref = node.get("$ref")
        if isinstance(ref, str) and ref.startswith("#/$defs/"):
            return _inline_refs(defs[ref.split("/")[-1]], defs)
        return {k: _inline_refs(v, defs) for k, v in node.items()}
    if isinstance(node, list):
        return [_inline_refs(item, defs) for item in node]
    return node


def build_input_schema(model: type[BaseModel]) -> dict[str, Any]:
    """Convert an input model into the advertised ``{type, properties}`` shape.

    Nested models are inlined so the result is self-contained.
    """
    schema = model.model_json_schema()
    defs = schema.get("$defs", {})
    properties = _inline_refs(schema.get("properties") or {}, defs)
    return {"type": "object", "properties": properties}


class ToolCatalog:
    """Immutable, ordered registry of operation descriptors."""

    def __init__(self, descriptors: Iterable[OperationDescriptor]) -> None:
        ordered = tuple(descriptors)
        by_name: dict[str, OperationDescriptor] = {}
        for d in ordered:
            if d.name in by_name:
                raise ValueError(f"Duplicate tool name: {d.name}")
            by_name[d.name] = d
        self._descriptors = ordered
        self._by_name = by_name

    @classmethod
    def from_operations(cls, operations: Iterable[Operation]) -> ToolCatalog:
        return cls(
            OperationDescriptor(
                name=op.name,
                description=op.description,
                input_schema=build_input_schema(op.input_model),
                read_only=op.read_only,
            )
            for op in operations
        )

    def list(self) -> tuple[OperationDescriptor, ...]:
        return self._descriptors

    def lookup(self, name: str) -> OperationDescriptor | None:
        return self._by_name.get(name)

    def names(self) -> list[str]:
        return [d.name for d in self._descriptors]

    def __len__(self) -> int:
        return len(self._descriptors)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name
