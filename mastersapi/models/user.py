from pydantic import BaseModel


class User(BaseModel):
    id: int | None = None
    email: str
    username: str | None = None
    company_id: str | None = None
    roles: list = []
    confirmed: bool = False


class UserIn(BaseModel):
    email: str
    password: str


class UserCreateIn(BaseModel):
    email: str
    username: str
    password: str
    role_id: int
    company_id: str | None = None
