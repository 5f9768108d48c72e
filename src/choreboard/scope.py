"""Edit-scope resolution: does a field edit touch one occurrence or the whole series?"""

from __future__ import annotations

from enum import Enum
from typing import Any

from choreboard import log
from choreboard.chores.model import Occurrence, Priority, Template
from choreboard.errors import InvalidValueError, NotFoundError, ScopeRequiredError


class EditableField(str, Enum):
    DESCRIPTION = "description"
    PRIORITY = "priority"


class EditScope(str, Enum):
    INSTANCE = "instance"
    SERIES = "series"


def needs_scope(template: Template | None) -> bool:
    """Recurring templates require the caller to pick instance or series."""
    return template is not None and template.recurrence.is_recurring


def coerce_value(field: EditableField, value: Any) -> Any:
    """Normalize *value* for *field*; ``None`` clears the field."""
    if value is None:
        return None
    if field == EditableField.DESCRIPTION:
        if not isinstance(value, str):
            raise InvalidValueError(f"description must be text, got {type(value).__name__}")
        return value
    if field == EditableField.PRIORITY:
        if isinstance(value, Priority):
            return value
        try:
            return Priority(value)
        except ValueError:
            allowed = ", ".join(p.value for p in Priority)
            raise InvalidValueError(f"priority must be one of {allowed}, got {value!r}") from None
    raise InvalidValueError(f"unsupported field {field!r}")


def _set_override(occ: Occurrence, field: EditableField, value: Any) -> None:
    match field:
        case EditableField.DESCRIPTION:
            occ.description_override = value
        case EditableField.PRIORITY:
            occ.priority_override = value


def _set_template(template: Template, field: EditableField, value: Any) -> None:
    match field:
        case EditableField.DESCRIPTION:
            template.description = value
        case EditableField.PRIORITY:
            template.priority = value


def resolve_scope(template: Template | None, scope: EditScope | None) -> EditScope:
    """Pick the scope an edit will be applied with.

    Non-recurring templates edit the occurrence and template together, which
    is reported as ``SERIES``; an occurrence whose template is gone can only
    be edited in place.
    """
    if template is None:
        return EditScope.INSTANCE
    if not needs_scope(template):
        return EditScope.SERIES
    if scope is None:
        raise ScopeRequiredError(
            f"'{template.title}' repeats; choose whether to edit this instance or the series"
        )
    return scope


def apply_field_edit(
    occ: Occurrence,
    template: Template | None,
    field: EditableField,
    value: Any,
    scope: EditScope | None,
) -> EditScope:
    """Write *value* according to the resolved scope and return that scope.

    Instance edits set an override that shadows the template. Series edits
    change the template; occurrences without their own override pick the new
    value up. For a one-off chore the template takes the value and the
    occurrence's override is cleared so both read the same.
    """
    value = coerce_value(field, value)
    if template is None and scope == EditScope.SERIES:
        raise NotFoundError("template", occ.template_id)
    applied = resolve_scope(template, scope)

    if applied == EditScope.INSTANCE:
        _set_override(occ, field, value)
    else:
        assert template is not None
        _set_template(template, field, value)
        if not template.recurrence.is_recurring:
            _set_override(occ, field, None)

    log.debug(f"Edit {field.value} on {occ.id} applied to {applied.value}")
    return applied
