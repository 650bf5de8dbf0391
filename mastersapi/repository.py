"""Async data access for descriptors and the entity tables they point at."""
import datetime
import decimal
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple

import sqlalchemy
from sqlalchemy.exc import SQLAlchemyError

from mastersapi.database import (
    database,
    form_field_table,
    form_section_table,
    clean_identifier,
    form_table,
    get_entity_table,
)
from mastersapi.engine.config import build_master_config, dynamic_options_for
from mastersapi.engine.form import CHECKED, lookup_fields
from mastersapi.models.form import FormSection, MasterConfig

logger = logging.getLogger(__name__)


def row_to_dict(row, columns: Iterable[sqlalchemy.Column]) -> Optional[Dict[str, Any]]:
    if row is None:
        return None
    return {c.name: row[c.name] for c in columns}


def coerce_value(column: sqlalchemy.Column, value: Any) -> Any:
    """Converts a JSON value to the python type the column expects; raises ValueError when it cannot."""
    if value is None:
        return None
    try:
        python_type = column.type.python_type
    except NotImplementedError:
        return value
    if python_type is bool:
        return value.strip().lower() in CHECKED if isinstance(value, str) else bool(value)
    if isinstance(value, python_type) and not isinstance(value, bool):
        return value
    if python_type in (int, float, decimal.Decimal) and isinstance(value, (str, int, float)):
        return python_type(value)
    if python_type is datetime.datetime and isinstance(value, str):
        return datetime.datetime.fromisoformat(value)
    if python_type is datetime.date and isinstance(value, str):
        return datetime.date.fromisoformat(value[:10])
    if python_type is datetime.time and isinstance(value, str):
        return datetime.time.fromisoformat(value)
    return value


def primary_key_column(table: sqlalchemy.Table) -> sqlalchemy.Column:
    pk = list(table.primary_key.columns)
    if pk:
        return pk[0]
    return table.c["id"]


def prepare_values(table: sqlalchemy.Table, payload: Mapping[str, Any]) -> Dict[str, Any]:
    """Drops keys that are not columns of ``table`` and coerces the rest to the column types."""
    known = {k: coerce_value(table.c[k], v) for k, v in payload.items() if k in table.c}
    dropped = sorted(set(payload) - set(known))
    if dropped:
        logger.debug(f"Dropping unknown columns for {table.name}: {dropped}")
    return known


# descriptors

async def fetch_form_by_slug(slug: str) -> Optional[Dict[str, Any]]:
    query = form_table.select().where(form_table.c.slug == slug)
    return row_to_dict(await database.fetch_one(query), form_table.columns)


async def fetch_sections(form_id: int) -> List[Dict[str, Any]]:
    query = (
        form_section_table.select()
        .where(form_section_table.c.form_id == form_id)
        .order_by(form_section_table.c.sort_order, form_section_table.c.id)
    )
    return [row_to_dict(r, form_section_table.columns) for r in await database.fetch_all(query)]


async def fetch_fields(section_ids: Iterable[int]) -> List[Dict[str, Any]]:
    section_ids = list(section_ids)
    if not section_ids:
        return []
    query = (
        form_field_table.select()
        .where(form_field_table.c.section_id.in_(section_ids))
        .order_by(form_field_table.c.sort_order, form_field_table.c.id)
    )
    return [row_to_dict(r, form_field_table.columns) for r in await database.fetch_all(query)]


async def load_master_config(slug: str) -> Optional[MasterConfig]:
    form = await fetch_form_by_slug(slug)
    if form is None:
        logger.debug(f"No form descriptor for slug {slug}")
        return None
    sections = await fetch_sections(form["id"])
    fields = await fetch_fields(s["id"] for s in sections)
    return build_master_config(form, sections, fields)


# entity rows

async def fetch_rows(table_name: str) -> List[Dict[str, Any]]:
    table = await get_entity_table(table_name)
    query = table.select().order_by(primary_key_column(table))
    return [row_to_dict(r, table.columns) for r in await database.fetch_all(query)]


async def fetch_record(table_name: str, record_id: Any) -> Optional[Dict[str, Any]]:
    table = await get_entity_table(table_name)
    pk = primary_key_column(table)
    query = table.select().where(pk == coerce_value(pk, record_id))
    return row_to_dict(await database.fetch_one(query), table.columns)


async def insert_record(table_name: str, payload: Mapping[str, Any]) -> Any:
    table = await get_entity_table(table_name)
    values = prepare_values(table, payload)
    logger.info(f"Inserting into {table.name}", extra={"columns": sorted(values)})
    new_id = await database.execute(table.insert().values(**values))
    pk = primary_key_column(table)
    return values.get(pk.name, new_id)


async def update_record(table_name: str, record_id: Any, payload: Mapping[str, Any]) -> Dict[str, Any]:
    table = await get_entity_table(table_name)
    pk = primary_key_column(table)
    values = prepare_values(table, payload)
    if not values:
        return values
    logger.info(f"Updating {table.name} {record_id}", extra={"columns": sorted(values)})
    query = table.update().where(pk == coerce_value(pk, record_id)).values(**values)
    await database.execute(query)
    return values


async def fetch_children(table_name: str, foreign_key: str, parent_id: Any) -> List[Dict[str, Any]]:
    table = await get_entity_table(table_name)
    fk = table.c[foreign_key]
    query = (
        table.select()
        .where(fk == coerce_value(fk, parent_id))
        .order_by(primary_key_column(table))
    )
    return [row_to_dict(r, table.columns) for r in await database.fetch_all(query)]


# dynamic options

async def fetch_options(table_name: str, value_column: str, label_column: str) -> List[Dict[str, str]]:
    table = await get_entity_table(table_name)
    value_col = table.c[value_column]
    label_col = table.c[label_column]
    columns = [value_col] if value_col is label_col else [value_col, label_col]
    query = sqlalchemy.select(*columns).order_by(label_col)
    rows = await database.fetch_all(query)
    options = []
    for row in rows:
        value = row[value_column]
        label = row[label_column]
        options.append({"value": str(value), "label": str(label if label not in (None, "") else value)})
    return options


async def resolve_lookups(sections: List[FormSection]) -> Dict[str, Dict[str, Any]]:
    lookups = {}
    for field in lookup_fields(sections):
        source = field.dynamic_options
        try:
            options = await fetch_options(source.source_table, source.value_column, source.label_column)
            lookups[field.name] = {"options": options, "error": None}
        except (ValueError, KeyError, SQLAlchemyError) as e:
            logger.error(f"Error fetching options from {source.source_table}: {e}")
            lookups[field.name] = {
                "options": [],
                "error": f"Failed to load options from {source.source_table}",
            }
    return lookups


async def declared_lookup_sources() -> Set[Tuple[str, str, str]]:
    """``(table, value_column, label_column)`` for every dynamic option source a form declares."""
    rows = await database.fetch_all(sqlalchemy.select(form_field_table.c.options_config))
    sources = set()
    for row in rows:
        source = dynamic_options_for(row["options_config"])
        if source is None:
            continue
        try:
            table_name = clean_identifier(source.source_table)
        except ValueError:
            logger.warning(f"Ignoring lookup source with invalid table name {source.source_table!r}")
            continue
        sources.add((table_name, source.value_column, source.label_column))
    return sources
