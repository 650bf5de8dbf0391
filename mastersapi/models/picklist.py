from pydantic import BaseModel


class Picklist(BaseModel):
    id: int | None = None
    type: str
    label: str
    value: str
    sort_order: int = 0
    head: str | None = None
    is_active: bool | None = True


class PicklistUpdateIn(BaseModel):
    type: str | None = None
    label: str | None = None
    value: str | None = None
    sort_order: int | None = None
    head: str | None = None
    is_active: bool | None = None
