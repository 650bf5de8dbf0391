"""Turns form sections into a layout-ready description and checks required fields.

A rendered form is a list of blocks, one per section. Regular sections are laid
out on a 12 column grid: fields are grouped into rows by ``row_no`` and each
cell spans ``col_span`` columns. Child sections (those with a
``foreign_key_to_parent``) are rendered as an embedded table of the child
records instead of input cells.
"""
import logging
from typing import Any, Dict, List, Mapping, Optional

from mastersapi.models.form import FormField, FormSection

logger = logging.getLogger(__name__)

ALLOWED_COL_SPANS = {1, 2, 3, 4, 6, 8, 12}
DEFAULT_COL_SPAN = 6

PLAIN_INPUTS = {"text", "email", "number", "password", "date", "textarea", "checkbox"}
CHECKED = {"true", "1", "yes", "on"}


def widget_for(field: FormField) -> str:
    if field.input_type in PLAIN_INPUTS:
        return field.input_type
    if field.input_type == "select":
        return "lookup" if field.dynamic_options else "select"
    return "text"


def normalize_col_span(col_span: Optional[int]) -> int:
    return col_span if col_span in ALLOWED_COL_SPANS else DEFAULT_COL_SPAN


def placeholder_for(field: FormField) -> str:
    verb = "Select" if field.input_type in ("select", "date") else "Enter"
    return f"{verb} {field.label.lower()}"


def static_options(field: FormField) -> List[Dict[str, str]]:
    options = (field.options_config or {}).get("options") or []
    return [
        {"value": str(o.get("value")), "label": str(o.get("label", o.get("value")))}
        for o in options
        if isinstance(o, Mapping)
    ]


def render_cell(
    field: FormField,
    values: Mapping[str, Any],
    lookups: Mapping[str, Dict[str, Any]],
) -> Dict[str, Any]:
    widget = widget_for(field)
    cell = {
        "name": field.name,
        "label": field.label,
        "widget": widget,
        "required": field.required,
        "col_span": normalize_col_span(field.col_span),
        "placeholder": placeholder_for(field),
        "value": values.get(field.name),
    }
    if widget == "lookup":
        resolved = lookups.get(field.name, {})
        cell["source_table"] = field.dynamic_options.source_table
        cell["options"] = resolved.get("options", [])
        cell["options_error"] = resolved.get("error")
    elif widget == "select":
        cell["options"] = static_options(field)
    return cell


def render_section(
    section: FormSection,
    values: Mapping[str, Any],
    lookups: Mapping[str, Dict[str, Any]],
) -> Dict[str, Any]:
    if section.is_child:
        return {
            "kind": "child_table",
            "id": section.id,
            "title": section.name,
            "table": section.child_table_name,
            "foreign_key": section.foreign_key_to_parent,
            "columns": [{"key": f.name, "label": f.label} for f in section.fields],
        }

    rows: Dict[int, List[FormField]] = {}
    for field in section.fields:
        rows.setdefault(field.row_no or 1, []).append(field)

    return {
        "kind": "fields",
        "id": section.id,
        "title": section.name,
        "rows": [
            {"row_no": row_no, "cells": [render_cell(f, values, lookups) for f in fields]}
            for row_no, fields in sorted(rows.items())
        ],
    }


def render_form(
    sections: List[FormSection],
    values: Optional[Mapping[str, Any]] = None,
    lookups: Optional[Mapping[str, Dict[str, Any]]] = None,
) -> List[Dict[str, Any]]:
    """Renders every section in order.

    ``values`` holds the record being edited (empty in create mode) and
    ``lookups`` maps a field name to ``{"options": [...], "error": str | None}``
    for fields with a dynamic option source.
    """
    values = values or {}
    lookups = lookups or {}
    return [render_section(s, values, lookups) for s in sections if s.in_form]


def lookup_fields(sections: List[FormSection]) -> List[FormField]:
    """Fields whose options are fetched from another table at render time."""
    return [
        f
        for s in sections
        if s.in_form and not s.is_child
        for f in s.fields
        if f.input_type == "select" and f.dynamic_options
    ]


def is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict)):
        return len(value) == 0
    return False


def is_missing(field: FormField, value: Any) -> bool:
    # an unticked checkbox does not satisfy "required"
    if field.input_type == "checkbox":
        return str(value).strip().lower() not in CHECKED
    return is_empty(value)


def validate_required(sections: List[FormSection], data: Mapping[str, Any]) -> Dict[str, str]:
    errors = {}
    for section in sections:
        if section.is_child or not section.in_form:
            continue
        for field in section.fields:
            if field.required and is_missing(field, data.get(field.name)):
                errors[field.name] = f"{field.label} is required"
    if errors:
        logger.debug(f"Required fields missing: {sorted(errors)}")
    return errors
