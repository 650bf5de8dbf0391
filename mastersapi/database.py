import logging
import re

import databases
import sqlalchemy
from fastapi.concurrency import run_in_threadpool
from mastersapi.config import config
from mastersapi.engine.config import strip_schema

logger = logging.getLogger(__name__)

metadata = sqlalchemy.MetaData()


user_table = sqlalchemy.Table(
    "user",
    metadata,
    sqlalchemy.Column("id", sqlalchemy.Integer, primary_key=True),
    sqlalchemy.Column("email", sqlalchemy.String, unique=True),
    sqlalchemy.Column("username", sqlalchemy.String, nullable=False),
    sqlalchemy.Column("password_hash", sqlalchemy.String, nullable=False),
    sqlalchemy.Column("company_id", sqlalchemy.String(64)),
    sqlalchemy.Column("confirmed", sqlalchemy.Boolean, default=False),
)

user_role_table = sqlalchemy.Table(
    "user_role",
    metadata,
    sqlalchemy.Column("user_id", sqlalchemy.ForeignKey("user.id"), primary_key=True),
    sqlalchemy.Column("role_id", sqlalchemy.ForeignKey("roles.id"), primary_key=True),
)

role_table = sqlalchemy.Table(
    "roles",
    metadata,
    sqlalchemy.Column("id", sqlalchemy.Integer, primary_key=True),
    sqlalchemy.Column("name", sqlalchemy.String(64), unique=True, nullable=False),
)

# one row per CRUD screen
form_table = sqlalchemy.Table(
    "forms",
    metadata,
    sqlalchemy.Column("id", sqlalchemy.Integer, primary_key=True),
    sqlalchemy.Column("slug", sqlalchemy.String(128), nullable=False, unique=True),
    sqlalchemy.Column("form_title", sqlalchemy.String(256), nullable=False),
    sqlalchemy.Column("primary_table_name", sqlalchemy.String(128), nullable=False),
    sqlalchemy.Column("form_type", sqlalchemy.String(32), default="master"),
    sqlalchemy.Column("datatable_config", sqlalchemy.JSON),  # {"default_columns": [{header, accessorKey, type, width}]}
    sqlalchemy.Column("created_at", sqlalchemy.DateTime, default=sqlalchemy.func.now()),
)

form_section_table = sqlalchemy.Table(
    "form_sections",
    metadata,
    sqlalchemy.Column("id", sqlalchemy.Integer, primary_key=True),
    sqlalchemy.Column("form_id", sqlalchemy.ForeignKey("forms.id"), nullable=False),
    sqlalchemy.Column("section_title", sqlalchemy.String(256), nullable=False),
    sqlalchemy.Column("table_name", sqlalchemy.String(128)),
    sqlalchemy.Column("foreign_key_to_parent", sqlalchemy.String(128)),  # set on child sections only
    sqlalchemy.Column("visibility", sqlalchemy.JSON, default=["form", "list"]),
    sqlalchemy.Column("sort_order", sqlalchemy.Integer),
)

form_field_table = sqlalchemy.Table(
    "form_fields",
    metadata,
    sqlalchemy.Column("id", sqlalchemy.Integer, primary_key=True),
    sqlalchemy.Column("section_id", sqlalchemy.ForeignKey("form_sections.id"), nullable=False),
    sqlalchemy.Column("field_label", sqlalchemy.String(256), nullable=False),
    sqlalchemy.Column("column_name", sqlalchemy.String(128), nullable=False),
    sqlalchemy.Column("input_type", sqlalchemy.String(32), nullable=False, default="text"),
    sqlalchemy.Column("options_config", sqlalchemy.JSON),
    sqlalchemy.Column("validation_rules", sqlalchemy.JSON),  # e.g. {"required": true}
    sqlalchemy.Column("sort_order", sqlalchemy.Integer),
    sqlalchemy.Column("row_no", sqlalchemy.Integer, default=1),
    sqlalchemy.Column("col_span", sqlalchemy.Integer, default=6),
)

picklist_table = sqlalchemy.Table(
    "picklists",
    metadata,
    sqlalchemy.Column("id", sqlalchemy.Integer, primary_key=True),
    sqlalchemy.Column("type", sqlalchemy.String(64), nullable=False),
    sqlalchemy.Column("label", sqlalchemy.String(256), nullable=False),
    sqlalchemy.Column("value", sqlalchemy.String(256), nullable=False),
    sqlalchemy.Column("sort_order", sqlalchemy.Integer, default=0),
    sqlalchemy.Column("head", sqlalchemy.String(256)),
    sqlalchemy.Column("is_active", sqlalchemy.Boolean, default=True),
)


connect_args = {}
if config.DATABASE_URL and config.DATABASE_URL.startswith("sqlite"):
    connect_args = {"check_same_thread": False}

engine = sqlalchemy.create_engine(config.DATABASE_URL, connect_args=connect_args)

metadata.create_all(engine)
database = databases.Database(
    config.DATABASE_URL, force_rollback=config.DB_FORCE_ROLL_BACK
)


IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
# service-owned tables are never served as entities
INTERNAL_TABLES = {
    t.name for t in (user_table, user_role_table, role_table, form_table, form_section_table, form_field_table)
}
_entity_tables = {}


def clean_identifier(name: str) -> str:
    """Strips a ``public.`` schema prefix and rejects anything that is not a plain identifier."""
    cleaned = strip_schema((name or "").strip())
    if not IDENTIFIER_RE.match(cleaned):
        raise ValueError(f"Invalid identifier: {name!r}")
    return cleaned


def _reflect(table_name: str) -> sqlalchemy.Table:
    return sqlalchemy.Table(table_name, sqlalchemy.MetaData(), autoload_with=engine)


async def get_entity_table(name: str) -> sqlalchemy.Table:
    """Reflects an externally-owned entity table; raises NoSuchTableError when it is missing."""
    table_name = clean_identifier(name)
    if table_name in INTERNAL_TABLES:
        raise ValueError(f"{table_name} is not an entity table")
    table = _entity_tables.get(table_name)
    if table is None:
        logger.debug(f"Reflecting entity table {table_name}")
        table = await run_in_threadpool(_reflect, table_name)
        _entity_tables[table_name] = table
    return table


def forget_entity_tables():
    """Drops cached reflections so changed entity schemas are picked up on next use."""
    logger.debug(f"Forgetting {len(_entity_tables)} reflected entity tables")
    _entity_tables.clear()
