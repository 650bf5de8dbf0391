"""Pytest configuration and fixtures."""
import datetime
import os
from typing import AsyncGenerator

# Must be set before anything imports mastersapi.config
os.environ["ENV_STATE"] = "test"

import pytest
import sqlalchemy
from httpx import ASGITransport, AsyncClient

from mastersapi.database import (
    database,
    engine,
    form_field_table,
    form_section_table,
    form_table,
    role_table,
    user_role_table,
    user_table,
)
from mastersapi.main import app
from mastersapi.security import create_access_token, get_password_hash

# Entity tables are owned outside the descriptor schema; the API only reflects them.
entity_metadata = sqlalchemy.MetaData()

departments_table = sqlalchemy.Table(
    "departments",
    entity_metadata,
    sqlalchemy.Column("id", sqlalchemy.Integer, primary_key=True),
    sqlalchemy.Column("name", sqlalchemy.String(128), nullable=False),
    sqlalchemy.Column("code", sqlalchemy.String(16)),
)

employees_table = sqlalchemy.Table(
    "employees",
    entity_metadata,
    sqlalchemy.Column("id", sqlalchemy.Integer, primary_key=True),
    sqlalchemy.Column("full_name", sqlalchemy.String(256), nullable=False),
    sqlalchemy.Column("email", sqlalchemy.String(256)),
    sqlalchemy.Column("department_id", sqlalchemy.Integer),
    sqlalchemy.Column("is_active", sqlalchemy.Boolean),
    sqlalchemy.Column("joined_on", sqlalchemy.Date),
    sqlalchemy.Column("company_id", sqlalchemy.String(64)),
)

qualifications_table = sqlalchemy.Table(
    "qualifications",
    entity_metadata,
    sqlalchemy.Column("id", sqlalchemy.Integer, primary_key=True),
    sqlalchemy.Column("employee_id", sqlalchemy.Integer, nullable=False),
    sqlalchemy.Column("degree", sqlalchemy.String(128), nullable=False),
    sqlalchemy.Column("institute", sqlalchemy.String(256)),
    sqlalchemy.Column("year", sqlalchemy.Integer),
)

EMPLOYEE_SECTIONS = [
    {
        "section_title": "Basic Details",
        "table_name": "public.employees",
        "fields": [
            {"field_label": "Full Name", "column_name": "full_name", "input_type": "text",
             "validation_rules": {"required": True}, "row_no": 1, "col_span": 6},
            {"field_label": "Email", "column_name": "email", "input_type": "email",
             "row_no": 1, "col_span": 6},
            {"field_label": "Department", "column_name": "department_id", "input_type": "select",
             "options_config": {"type": "dynamic", "source_table": "public.departments",
                                "value_column": "id", "label_column": "name"},
             "row_no": 2, "col_span": 4},
            {"field_label": "Active", "column_name": "is_active", "input_type": "checkbox",
             "row_no": 2, "col_span": 2},
            {"field_label": "Joined On", "column_name": "joined_on", "input_type": "date",
             "row_no": 2, "col_span": 5},
        ],
    },
    {
        "section_title": "Qualifications",
        "table_name": "public.qualifications",
        "foreign_key_to_parent": "employee_id",
        "fields": [
            {"field_label": "Degree", "column_name": "degree", "input_type": "text",
             "validation_rules": {"required": True}},
            {"field_label": "Institute", "column_name": "institute", "input_type": "text"},
            {"field_label": "Year", "column_name": "year", "input_type": "number"},
        ],
    },
]


@pytest.fixture(scope="session", autouse=True)
def entity_tables():
    """Create the demo entity tables before any test opens its rollback transaction."""
    entity_metadata.drop_all(engine)
    entity_metadata.create_all(engine)
    yield
    entity_metadata.drop_all(engine)


@pytest.fixture(autouse=True)
async def db() -> AsyncGenerator:
    await database.connect()
    yield
    await database.disconnect()


@pytest.fixture()
async def async_client() -> AsyncGenerator:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture()
def user_factory():
    """Factory for users stored directly in the database; returns the user row as a dict."""

    async def _create_user(
        email: str = "test@example.com",
        password: str = "1234",
        company_id: str | None = "acme",
        confirmed: bool = True,
        roles: list | None = None,
    ):
        user_id = await database.execute(
            user_table.insert().values(
                email=email,
                username=email.split("@")[0],
                password_hash=get_password_hash(password),
                company_id=company_id,
                confirmed=confirmed,
            )
        )
        for name in roles or []:
            role = await database.fetch_one(role_table.select().where(role_table.c.name == name))
            role_id = role.id if role else await database.execute(role_table.insert().values(name=name))
            await database.execute(user_role_table.insert().values(user_id=user_id, role_id=role_id))
        return {"id": user_id, "email": email, "password": password, "company_id": company_id}

    return _create_user


@pytest.fixture()
async def registered_user(user_factory) -> dict:
    return await user_factory()


@pytest.fixture()
async def admin_user(user_factory) -> dict:
    return await user_factory(email="admin@example.com", roles=["Administrator"])


@pytest.fixture()
def token(registered_user) -> str:
    return create_access_token(registered_user["email"])


@pytest.fixture()
def auth_headers(token) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def admin_headers(admin_user) -> dict:
    return {"Authorization": f"Bearer {create_access_token(admin_user['email'])}"}


@pytest.fixture()
def form_factory():
    """Factory writing descriptor rows the way an administrator would configure them."""

    async def _create_form(slug, form_title, primary_table_name, sections, datatable_config=None):
        form_id = await database.execute(
            form_table.insert().values(
                slug=slug,
                form_title=form_title,
                primary_table_name=primary_table_name,
                form_type="master",
                datatable_config=datatable_config,
            )
        )
        for section_index, section in enumerate(sections):
            section_id = await database.execute(
                form_section_table.insert().values(
                    form_id=form_id,
                    section_title=section["section_title"],
                    table_name=section.get("table_name", primary_table_name),
                    foreign_key_to_parent=section.get("foreign_key_to_parent"),
                    visibility=section.get("visibility", ["form", "list"]),
                    sort_order=section_index,
                )
            )
            for field_index, field in enumerate(section["fields"]):
                await database.execute(
                    form_field_table.insert().values(
                        section_id=section_id,
                        field_label=field["field_label"],
                        column_name=field["column_name"],
                        input_type=field.get("input_type", "text"),
                        options_config=field.get("options_config"),
                        validation_rules=field.get("validation_rules"),
                        sort_order=field_index,
                        row_no=field.get("row_no", 1),
                        col_span=field.get("col_span", 6),
                    )
                )
        return form_id

    return _create_form


@pytest.fixture()
async def employee_form(form_factory) -> str:
    await form_factory(
        "employees",
        "Employee Master",
        "public.employees",
        EMPLOYEE_SECTIONS,
        datatable_config={
            "default_columns": [
                {"header": "Name", "accessorKey": "full_name", "type": "text"},
                {"header": "Email", "accessorKey": "email", "type": "text", "width": "240px"},
            ]
        },
    )
    return "employees"


@pytest.fixture()
async def departments() -> dict:
    ids = {}
    for name, code in [("Sales", "SAL"), ("Engineering", "ENG")]:
        ids[name] = await database.execute(departments_table.insert().values(name=name, code=code))
    return ids


@pytest.fixture()
def employee_factory():
    async def _create_employee(full_name: str = "Ada Lovelace", **values):
        values.setdefault("email", f"{full_name.split()[0].lower()}@example.com")
        values.setdefault("is_active", True)
        values.setdefault("joined_on", datetime.date(2024, 1, 31))
        values.setdefault("company_id", "acme")
        return await database.execute(employees_table.insert().values(full_name=full_name, **values))

    return _create_employee
