"""Generic CRUD screens driven by the form descriptors stored in the database."""
import logging
from contextlib import contextmanager
from typing import Annotated, Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from fastapi.encoders import jsonable_encoder
from sqlalchemy.exc import NoSuchTableError

from mastersapi.config import config as settings
from mastersapi.database import get_entity_table
from mastersapi.engine.config import child_section, main_sections
from mastersapi.engine.form import render_form, validate_required
from mastersapi.engine.payload import build_create_payload, build_update_payload, without_blanks
from mastersapi.engine.table import paginate, search_rows, table_columns
from mastersapi.models.form import MasterConfig
from mastersapi.models.user import User
from mastersapi.repository import (
    coerce_value,
    fetch_children,
    fetch_record,
    fetch_rows,
    insert_record,
    load_master_config,
    primary_key_column,
    resolve_lookups,
    prepare_values,
    update_record,
)
from mastersapi.security import get_current_user

logger = logging.getLogger(__name__)
router = APIRouter()


async def get_master_config(slug: str) -> MasterConfig:
    master = await load_master_config(slug)
    if master is None:
        raise HTTPException(status_code=404, detail=f"Failed to load configuration for slug: {slug}")
    return master


@contextmanager
def entity_errors(table_name: str):
    try:
        yield
    except NoSuchTableError as e:
        raise HTTPException(status_code=404, detail=f"Table not found: {table_name}") from e
    except (ValueError, KeyError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid request for {table_name}: {e}") from e


async def _save(write, table_name: str):
    try:
        return await write
    except (ValueError, KeyError, NoSuchTableError):
        raise
    except Exception as e:
        logger.error(f"Saving into {table_name} failed: {e}")
        raise HTTPException(status_code=500, detail="An error occurred while saving. Please try again.") from e


def _raise_validation(errors: Dict[str, str]):
    raise HTTPException(status_code=422, detail={"message": "Validation failed", "errors": errors})


async def _require_record(table_name: str, record_id: str) -> Dict[str, Any]:
    with entity_errors(table_name):
        record = await fetch_record(table_name, record_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Record not found")
    return record


@router.get("/{slug}/form", status_code=200)
async def get_form_view(
    master: Annotated[MasterConfig, Depends(get_master_config)],
    current_user: Annotated[User, Depends(get_current_user)],
    id: Optional[str] = None,
):
    values = {}
    if id:
        values = jsonable_encoder(await _require_record(master.primary_table_name, id))
    lookups = await resolve_lookups(master.sections)
    return {
        "slug": master.slug,
        "title": master.form_title,
        "mode": "edit" if id else "create",
        "record_id": id,
        "submit_label": "Update" if id else "Create",
        "sections": render_form(master.sections, values, lookups),
    }


@router.get("/{slug}/records", status_code=200)
async def list_records(
    master: Annotated[MasterConfig, Depends(get_master_config)],
    current_user: Annotated[User, Depends(get_current_user)],
    search: Optional[str] = None,
    page: int = 1,
    per_page: Annotated[int, Query(ge=1, le=500)] = settings.DEFAULT_PAGE_SIZE,
):
    with entity_errors(master.primary_table_name):
        rows = await fetch_rows(master.primary_table_name)
    columns = table_columns(master)
    filtered = search_rows(rows, search, [c["key"] for c in columns])
    return {
        "title": master.form_title,
        "columns": columns,
        "search": search or "",
        **paginate(filtered, page, per_page),
    }


@router.get("/{slug}/records/{record_id}", status_code=200)
async def get_record(
    record_id: str,
    master: Annotated[MasterConfig, Depends(get_master_config)],
    current_user: Annotated[User, Depends(get_current_user)],
):
    return await _require_record(master.primary_table_name, record_id)


@router.post("/{slug}/records", status_code=201)
async def create_record(
    data: Dict[str, Any],
    response: Response,
    master: Annotated[MasterConfig, Depends(get_master_config)],
    current_user: Annotated[User, Depends(get_current_user)],
):
    errors = validate_required(main_sections(master), data)
    if errors:
        _raise_validation(errors)

    table_name = master.primary_table_name
    with entity_errors(table_name):
        table = await get_entity_table(table_name)
        payload = prepare_values(table, build_create_payload(data))
        if current_user.company_id and "company_id" in table.c and "company_id" not in payload:
            payload["company_id"] = current_user.company_id
        if not payload:
            response.status_code = 200
            return {"message": "Nothing to save", "id": None, "created": False}
        new_id = await _save(insert_record(table_name, payload), table_name)

    logger.info(f"Created {master.slug} record {new_id}")
    return {"message": "Record created", "id": new_id, "created": True, "payload": jsonable_encoder(payload)}


@router.put("/{slug}/records/{record_id}", status_code=200)
async def update_record_view(
    record_id: str,
    data: Dict[str, Any],
    master: Annotated[MasterConfig, Depends(get_master_config)],
    current_user: Annotated[User, Depends(get_current_user)],
):
    table_name = master.primary_table_name
    original = await _require_record(table_name, record_id)

    errors = validate_required(main_sections(master), {**jsonable_encoder(original), **data})
    if errors:
        _raise_validation(errors)

    with entity_errors(table_name):
        table = await get_entity_table(table_name)
        changes = prepare_values(table, without_blanks(data))
        payload = build_update_payload(changes, original)
        payload.pop(primary_key_column(table).name, None)
        if not payload:
            logger.debug(f"No changes for {master.slug} record {record_id}")
            return {"message": "No changes", "id": record_id, "updated": False, "payload": {}}
        await _save(update_record(table_name, record_id, payload), table_name)

    logger.info(f"Updated {master.slug} record {record_id}")
    return {"message": "Record updated", "id": record_id, "updated": True, "payload": jsonable_encoder(payload)}


@router.get("/{slug}/records/{record_id}/children", status_code=200)
async def list_children(
    record_id: str,
    master: Annotated[MasterConfig, Depends(get_master_config)],
    current_user: Annotated[User, Depends(get_current_user)],
):
    await _require_record(master.primary_table_name, record_id)

    children = []
    for section in master.sections:
        if not section.is_child:
            continue
        block = {
            "table": section.child_table_name,
            "title": section.name,
            "foreign_key": section.foreign_key_to_parent,
            "columns": [{"key": f.name, "label": f.label} for f in section.fields],
            "rows": [],
            "error": None,
        }
        try:
            block["rows"] = await fetch_children(
                section.child_table_name, section.foreign_key_to_parent, record_id
            )
        except (ValueError, KeyError, NoSuchTableError) as e:
            logger.error(f"Error fetching {section.child_table_name} data: {e}")
            block["error"] = f"Failed to load {section.child_table_name}"
        children.append(block)
    return children


@router.post("/{slug}/records/{record_id}/children/{table}", status_code=201)
async def create_child_record(
    record_id: str,
    table: str,
    data: Dict[str, Any],
    master: Annotated[MasterConfig, Depends(get_master_config)],
    current_user: Annotated[User, Depends(get_current_user)],
):
    section = child_section(master, table)
    if section is None:
        raise HTTPException(status_code=404, detail=f"No child section for table {table}")
    await _require_record(master.primary_table_name, record_id)

    as_form = section.model_copy(update={"foreign_key_to_parent": None})
    errors = validate_required([as_form], data)
    if errors:
        _raise_validation(errors)

    with entity_errors(table):
        child_table = await get_entity_table(section.child_table_name)
        payload = prepare_values(child_table, build_create_payload(data))
        fk = section.foreign_key_to_parent
        payload[fk] = coerce_value(child_table.c[fk], record_id)
        new_id = await _save(insert_record(section.child_table_name, payload), table)

    logger.info(f"Created {section.child_table_name} record {new_id} for {master.slug} {record_id}")
    return {"message": "Record created", "id": new_id, "created": True, "payload": jsonable_encoder(payload)}
