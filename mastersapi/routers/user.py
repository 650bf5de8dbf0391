import logging
from typing import Annotated

from fastapi import APIRouter, Depends
from mastersapi.models.user import UserIn, User
from mastersapi.security import (
    authenticate_user,
    create_access_token,
    get_current_user,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/token", status_code=200)
async def login(user: UserIn):
    authenticated = await authenticate_user(user.email, user.password)
    access_token = create_access_token(authenticated.email)
    return {"access_token": access_token, "token_type": "bearer", **authenticated.model_dump()}


@router.get("/me", response_model=User, status_code=200)
async def me(current_user: Annotated[User, Depends(get_current_user)]):
    return current_user
