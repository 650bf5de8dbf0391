"""Assembles descriptor rows from ``forms``/``form_sections``/``form_fields`` into a MasterConfig."""
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from mastersapi.models.form import DynamicOptions, FormField, FormSection, MasterConfig

logger = logging.getLogger(__name__)

DEFAULT_VISIBILITY = ["form", "list"]


def _sort_key(item):
    index, row = item
    order = row.get("sort_order")
    return (order if order is not None else index, index)


def dynamic_options_for(options_config: Optional[Mapping[str, Any]]) -> Optional[DynamicOptions]:
    if not isinstance(options_config, Mapping) or options_config.get("type") != "dynamic":
        return None
    try:
        return DynamicOptions(
            type="dynamic",
            source_table=str(options_config["source_table"]),
            value_column=str(options_config["value_column"]),
            label_column=str(options_config["label_column"]),
        )
    except KeyError as e:
        logger.warning(f"Dynamic options_config missing {e}: {dict(options_config)}")
        return None


def build_field(row: Mapping[str, Any]) -> FormField:
    rules = row.get("validation_rules") or {}
    return FormField(
        name=row["column_name"],
        label=row["field_label"],
        input_type=row.get("input_type") or "text",
        required=bool(rules.get("required")),
        row_no=row.get("row_no") or 1,
        col_span=row.get("col_span") or 6,
        options_config=row.get("options_config"),
        validation_rules=row.get("validation_rules"),
        dynamic_options=dynamic_options_for(row.get("options_config")),
    )


def build_sections(
    section_rows: Iterable[Mapping[str, Any]], field_rows: Iterable[Mapping[str, Any]]
) -> List[FormSection]:
    fields_by_section: Dict[Any, List[Mapping[str, Any]]] = {}
    for index, field in sorted(enumerate(field_rows), key=_sort_key):
        fields_by_section.setdefault(field["section_id"], []).append(field)

    sections = []
    for index, section in sorted(enumerate(section_rows), key=_sort_key):
        fk = section.get("foreign_key_to_parent") or None
        visibility = section.get("visibility")
        sections.append(
            FormSection(
                id=section.get("id"),
                name=section["section_title"],
                sort_order=section.get("sort_order") if section.get("sort_order") is not None else index,
                fields=[build_field(f) for f in fields_by_section.get(section.get("id"), [])],
                foreign_key_to_parent=fk,
                child_table_name=section.get("table_name") if fk else None,
                visibility=DEFAULT_VISIBILITY if visibility is None else list(visibility),
            )
        )
    return sections


def build_master_config(
    form_row: Mapping[str, Any],
    section_rows: Iterable[Mapping[str, Any]],
    field_rows: Iterable[Mapping[str, Any]],
) -> MasterConfig:
    return MasterConfig(
        id=form_row["id"],
        slug=form_row["slug"],
        form_title=form_row["form_title"],
        primary_table_name=form_row["primary_table_name"],
        form_type=form_row.get("form_type"),
        datatable_config=form_row.get("datatable_config"),
        sections=build_sections(section_rows, field_rows),
    )


def main_sections(config: MasterConfig) -> List[FormSection]:
    return [s for s in config.sections if not s.is_child]


def strip_schema(table_name: Optional[str]) -> str:
    name = table_name or ""
    return name[len("public."):] if name.startswith("public.") else name


def child_section(config: MasterConfig, table_name: str) -> Optional[FormSection]:
    for section in config.sections:
        if section.is_child and strip_schema(section.child_table_name) == strip_schema(table_name):
            return section
    return None
