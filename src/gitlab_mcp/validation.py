"""Two-stage argument validation.

Stage one checks the raw payload against the tool's input model and reports every
violation. Stage two applies rules the model does not express (pagination bounds and
date formats) and stops at the first violation. Neither stage raises: both return a
``ValidationOutcome`` which the dispatcher turns into an error.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ValidationError

if TYPE_CHECKING:
    from .tools import Operation

MAX_PER_PAGE = 100

_ISO_DATE_RE = re.compile(
    r"^(?P<year>\d{4})-(?P<month>\d{2})-(?P<day>\d{2})"
    r"(?:T(?P<hour>\d{2}):(?P<minute>\d{2})(?::(?P<second>\d{2})(?:\.(?P<fraction>\d{1,9}))?)?"
    r"(?P<offset>Z|[+-]\d{2}:\d{2})?)?$"
)


@dataclass(frozen=True, slots=True)
class ValidationOutcome:
    """Result of a validation stage: either validated args or an error message."""

    args: BaseModel | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _format_location(loc: tuple[Any, ...]) -> str:
    return ".".join(str(part) for part in loc) or "<root>"


def format_validation_error(exc: ValidationError) -> str:
    """Render every violation as ``path: reason``."""
    details = [f"{_format_location(err['loc'])}: {err['msg']}" for err in exc.errors()]
    return f"Invalid arguments: {', '.join(details)}"


def validate_arguments(operation: Operation, arguments: dict[str, Any] | None) -> ValidationOutcome:
    """Validate a raw payload against the operation's input model."""
    if arguments is None:
        return ValidationOutcome(error="Arguments are required")
    try:
        return ValidationOutcome(args=operation.input_model.model_validate(arguments))
    except ValidationError as exc:
        return ValidationOutcome(error=format_validation_error(exc))


def is_valid_iso_date(value: str) -> bool:
    """Return True for a real calendar date, optionally with time of day and UTC offset."""
    m = _ISO_DATE_RE.match(value)
    if m is None:
        return False
    parts = m.groupdict()
    try:
        tz = timezone.utc
        offset = parts["offset"]
        if offset and offset != "Z":
            hours, minutes = int(offset[1:3]), int(offset[4:6])
            if minutes > 59:
                return False
            delta = timedelta(hours=hours, minutes=minutes)
            tz = timezone(-delta if offset[0] == "-" else delta)
        datetime(
            int(parts["year"]),
            int(parts["month"]),
            int(parts["day"]),
            int(parts["hour"] or 0),
            int(parts["minute"] or 0),
            int(parts["second"] or 0),
            tzinfo=tz,
        )
    except ValueError:
        return False
    return True


def check_pagination(args: BaseModel) -> str | None:
    page = getattr(args, "page", None)
    if page is not None and page < 1:
        return "page must be greater than 0"
    per_page = getattr(args, "per_page", None)
    if per_page is not None and not 1 <= per_page <= MAX_PER_PAGE:
        return f"per_page must be between 1 and {MAX_PER_PAGE}"
    return None


def check_dates(args: BaseModel, date_fields: tuple[str, ...]) -> str | None:
    for field in date_fields:
        value = getattr(args, field, None)
        if isinstance(value, str) and not is_valid_iso_date(value):
            return f"{field} must be a valid ISO 8601 date (YYYY-MM-DDTHH:MM:SSZ)"
    return None


def check_cross_field(operation: Operation, args: BaseModel) -> ValidationOutcome:
    """Apply pagination and date rules to structurally valid arguments."""
    error = check_pagination(args) or check_dates(args, operation.date_fields)
    if error is not None:
        return ValidationOutcome(error=error)
    return ValidationOutcome(args=args)
