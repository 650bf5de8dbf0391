import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import NoSuchTableError

from mastersapi.database import clean_identifier
from mastersapi.models.user import User
from mastersapi.repository import declared_lookup_sources, fetch_options
from mastersapi.security import get_current_user

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/{table}", status_code=200)
async def lookup_options(
    table: str,
    current_user: Annotated[User, Depends(get_current_user)],
    value_column: str = "id",
    label_column: Optional[str] = None,
):
    """Options for a record lookup: ``[{"value": ..., "label": ...}]`` ordered by label.

    Only sources some form field declares in its ``options_config`` are served.
    """
    label_column = label_column or value_column
    try:
        table_name = clean_identifier(table)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Failed to load options from {table}") from e

    if (table_name, value_column, label_column) not in await declared_lookup_sources():
        logger.warning(
            f"Refused lookup on {table_name}({value_column}, {label_column})",
            extra={"email": current_user.email},
        )
        raise HTTPException(status_code=403, detail=f"No lookup is configured for {table}")

    try:
        return await fetch_options(table_name, value_column, label_column)
    except NoSuchTableError as e:
        raise HTTPException(status_code=404, detail=f"Table not found: {table}") from e
    except (ValueError, KeyError) as e:
        logger.error(f"Error fetching options from {table}: {e}")
        raise HTTPException(status_code=400, detail=f"Failed to load options from {table}") from e
