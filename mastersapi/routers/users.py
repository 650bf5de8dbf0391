import logging
from typing import Annotated, List

import sqlalchemy
from fastapi import APIRouter, Depends, HTTPException, status
from mastersapi.models.user import User, UserCreateIn
from mastersapi.security import ADMIN_ROLES, get_password_hash, get_user, require_roles
from mastersapi.database import database, user_table, user_role_table, role_table

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("", response_model=List[User], status_code=200)
async def list_users(current_user: Annotated[User, Depends(require_roles(ADMIN_ROLES))]):
    query = (
        sqlalchemy.select(
            user_table.c.id,
            user_table.c.email,
            user_table.c.username,
            user_table.c.company_id,
            user_table.c.confirmed,
            role_table.c.name.label("role_name"),
        )
        .select_from(
            user_table
            .join(user_role_table, user_table.c.id == user_role_table.c.user_id, isouter=True)
            .join(role_table, user_role_table.c.role_id == role_table.c.id, isouter=True)
        )
        .order_by(user_table.c.username, user_table.c.id, role_table.c.name)
    )

    users = {}
    for row in await database.fetch_all(query):
        user = users.get(row.id)
        if user is None:
            user = users[row.id] = {
                "id": row.id,
                "email": row.email,
                "username": row.username,
                "company_id": row.company_id,
                "confirmed": bool(row.confirmed),
                "roles": [],
            }
        if row.role_name:
            user["roles"].append(row.role_name)
    return list(users.values())


@router.post("", status_code=201)
async def create_user(
    user: UserCreateIn, current_user: Annotated[User, Depends(require_roles(ADMIN_ROLES))]
):
    if await get_user(user.email) is not None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="A user with that email already exists",
        )
    role = await database.fetch_one(role_table.select().where(role_table.c.id == user.role_id))
    if role is None:
        raise HTTPException(status_code=400, detail=f"Unknown role: {user.role_id}")

    company_id = user.company_id or current_user.company_id
    async with database.transaction():
        user_id = await database.execute(
            user_table.insert().values(
                email=user.email,
                username=user.username,
                password_hash=get_password_hash(user.password),
                company_id=company_id,
                confirmed=True,
            )
        )
        await database.execute(user_role_table.insert().values(user_id=user_id, role_id=role.id))

    logger.info(f"User {user.email} created with role {role.name} by {current_user.email}")
    return {"message": "User created", "id": user_id, "role": role.name, "company_id": company_id}
