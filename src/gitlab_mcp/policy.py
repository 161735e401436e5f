"""Read-only access control.

When the server runs in read-only mode only tools registered as read-only are listed or
invocable. The mode is fixed at construction and never changes at runtime.
"""

from __future__ import annotations

from dataclasses import dataclass

from .catalog import OperationDescriptor, ToolCatalog
from .errors import ErrorKind


@dataclass(frozen=True, slots=True)
class PolicyDecision:
    """Policy decision result."""

    allowed: bool
    reason: str | None = None
    kind: ErrorKind | None = None


class AccessControl:
    """Gates tool listing and invocation on the read-only flag."""

    def __init__(self, catalog: ToolCatalog, *, read_only: bool) -> None:
        self._catalog = catalog
        self._read_only = read_only

    @property
    def read_only(self) -> bool:
        """Return whether read-only mode is enabled."""
        return self._read_only

    def list_visible(self) -> tuple[OperationDescriptor, ...]:
        """Return the descriptors a caller may see, in catalog order."""
        if not self._read_only:
            return self._catalog.list()
        return tuple(d for d in self._catalog.list() if d.read_only)

    def authorize(self, name: str) -> PolicyDecision:
        """Return whether the named tool may be invoked.

        In read-only mode unknown and mutating tools are both denied as AccessDenied;
        the reason still tells them apart.
        """
        if not self._read_only:
            return PolicyDecision(True)
        descriptor = self._catalog.lookup(name)
        if descriptor is None:
            return PolicyDecision(False, f"Unknown tool: {name}", ErrorKind.ACCESS_DENIED)
        if not descriptor.read_only:
            return PolicyDecision(
                False,
                f"Tool '{name}' is not available in read-only mode",
                ErrorKind.ACCESS_DENIED,
            )
        return PolicyDecision(True)
