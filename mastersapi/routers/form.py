import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from mastersapi.security import ADMIN_ROLES, get_current_user, require_roles
from mastersapi.models.user import User
from mastersapi.models.form import FormIn, MasterConfig
from mastersapi.database import (
    database,
    forget_entity_tables,
    form_table,
    form_section_table,
    form_field_table,
)
from mastersapi.engine.table import paginate
from mastersapi.repository import fetch_form_by_slug, fetch_sections, load_master_config


logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("", status_code=200)
async def list_forms(
    current_user: Annotated[User, Depends(get_current_user)],
    page: int = 1,
    per_page: int = 10,
):
    query = form_table.select().order_by(form_table.c.form_title)
    forms = await database.fetch_all(query)
    result = paginate(forms, page, max(per_page, 1))
    result["items"] = [
        {
            "id": f.id,
            "slug": f.slug,
            "form_title": f.form_title,
            "primary_table_name": f.primary_table_name,
            "form_type": f.form_type,
        }
        for f in result["items"]
    ]
    return result


@router.get("/{slug}", response_model=MasterConfig, status_code=200)
async def get_form(slug: str, current_user: Annotated[User, Depends(get_current_user)]):
    config = await load_master_config(slug)
    if config is None:
        raise HTTPException(status_code=404, detail="Form not found")
    return config


@router.post("", status_code=201)
async def create_form(form: FormIn, current_user: Annotated[User, Depends(require_roles(ADMIN_ROLES))]):
    existing_form = await fetch_form_by_slug(form.slug)
    if existing_form:
        raise HTTPException(status_code=400, detail="Form with this slug already exists")

    async with database.transaction():
        form_id = await database.execute(
            form_table.insert().values(
                slug=form.slug,
                form_title=form.form_title,
                primary_table_name=form.primary_table_name,
                form_type=form.form_type,
                datatable_config=form.datatable_config,
            )
        )
        for section_index, section in enumerate(form.sections):
            section_id = await database.execute(
                form_section_table.insert().values(
                    form_id=form_id,
                    section_title=section.section_title,
                    table_name=section.table_name or form.primary_table_name,
                    foreign_key_to_parent=section.foreign_key_to_parent,
                    visibility=section.visibility,
                    sort_order=section.sort_order if section.sort_order is not None else section_index,
                )
            )
            for field_index, f in enumerate(section.fields):
                await database.execute(
                    form_field_table.insert().values(
                        section_id=section_id,
                        field_label=f.field_label,
                        column_name=f.column_name,
                        input_type=f.input_type,
                        options_config=f.options_config,
                        validation_rules=f.validation_rules,
                        sort_order=f.sort_order if f.sort_order is not None else field_index,
                        row_no=f.row_no,
                        col_span=f.col_span,
                    )
                )

    # reflect entity tables afresh
    forget_entity_tables()
    logger.info(f"Form {form.slug} created by {current_user.email}")
    return {"message": "Form created successfully", "form_id": form_id, "slug": form.slug}


@router.delete("/{slug}", status_code=200)
async def delete_form(slug: str, current_user: Annotated[User, Depends(require_roles(ADMIN_ROLES))]):
    form = await fetch_form_by_slug(slug)
    if not form:
        raise HTTPException(status_code=404, detail="Form not found")

    section_ids = [s["id"] for s in await fetch_sections(form["id"])]
    async with database.transaction():
        if section_ids:
            await database.execute(
                form_field_table.delete().where(form_field_table.c.section_id.in_(section_ids))
            )
        await database.execute(
            form_section_table.delete().where(form_section_table.c.form_id == form["id"])
        )
        await database.execute(form_table.delete().where(form_table.c.id == form["id"]))

    forget_entity_tables()
    logger.info(f"Form {slug} deleted by {current_user.email}")
    return {"message": "Form deleted successfully", "form_id": form["id"]}
