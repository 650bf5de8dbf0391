import logging
from typing import Annotated, List

import sqlalchemy
from fastapi import APIRouter, Depends, HTTPException
from mastersapi.database import database, picklist_table
from mastersapi.engine.payload import build_update_payload
from mastersapi.models.picklist import Picklist, PicklistUpdateIn
from mastersapi.models.user import User
from mastersapi.repository import row_to_dict
from mastersapi.security import get_current_user

logger = logging.getLogger(__name__)
router = APIRouter()

active = sqlalchemy.or_(picklist_table.c.is_active.is_(None), picklist_table.c.is_active == sqlalchemy.true())


@router.get("/types", response_model=List[str], status_code=200)
async def list_picklist_types(current_user: Annotated[User, Depends(get_current_user)]):
    query = (
        sqlalchemy.select(picklist_table.c.type)
        .where(active)
        .distinct()
        .order_by(picklist_table.c.type)
    )
    rows = await database.fetch_all(query)
    return [row.type for row in rows]


@router.get("/{type}", response_model=List[Picklist], status_code=200)
async def list_picklists(type: str, current_user: Annotated[User, Depends(get_current_user)]):
    query = (
        picklist_table.select()
        .where(picklist_table.c.type == type, active)
        .order_by(picklist_table.c.sort_order, picklist_table.c.id)
    )
    return [row_to_dict(r, picklist_table.columns) for r in await database.fetch_all(query)]


@router.post("", status_code=201)
async def create_picklist(picklist: Picklist, current_user: Annotated[User, Depends(get_current_user)]):
    values = picklist.model_dump(exclude={"id"})
    picklist_id = await database.execute(picklist_table.insert().values(**values))
    logger.info(f"Picklist {picklist.type}/{picklist.value} created")
    return {"message": "Picklist created", "id": picklist_id}


@router.put("/{pid}", status_code=200)
async def update_picklist(
    pid: int, picklist: PicklistUpdateIn, current_user: Annotated[User, Depends(get_current_user)]
):
    existing = row_to_dict(
        await database.fetch_one(picklist_table.select().where(picklist_table.c.id == pid)),
        picklist_table.columns,
    )
    if existing is None:
        raise HTTPException(status_code=404, detail="Picklist not found")

    payload = build_update_payload(picklist.model_dump(exclude_unset=True, exclude_none=True), existing)
    if not payload:
        return {"message": "No changes", "id": pid, "updated": False}

    await database.execute(
        picklist_table.update().where(picklist_table.c.id == pid).values(**payload)
    )
    return {"message": "Picklist updated", "id": pid, "updated": True}
