from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class DynamicOptions(BaseModel):
    type: str = "dynamic"
    source_table: str
    value_column: str
    label_column: str


class FormField(BaseModel):
    name: str
    label: str
    input_type: str = "text"
    required: bool = False
    row_no: int = 1
    col_span: int = 6
    options_config: Optional[Dict[str, Any]] = None
    validation_rules: Optional[Dict[str, Any]] = None
    dynamic_options: Optional[DynamicOptions] = None


class FormSection(BaseModel):
    id: Optional[int] = None
    name: str
    sort_order: int = 0
    fields: List[FormField] = []
    foreign_key_to_parent: Optional[str] = None
    child_table_name: Optional[str] = None
    visibility: List[str] = ["form", "list"]

    @property
    def is_child(self) -> bool:
        return bool(self.foreign_key_to_parent)

    @property
    def in_form(self) -> bool:
        return "form" in self.visibility

    @property
    def in_list(self) -> bool:
        return "list" in self.visibility


class MasterConfig(BaseModel):
    id: int
    slug: str
    form_title: str
    primary_table_name: str
    form_type: Optional[str] = None
    datatable_config: Optional[Dict[str, Any]] = None
    sections: List[FormSection] = []


# Descriptor payloads for the forms admin endpoints

class FieldIn(BaseModel):
    field_label: str
    column_name: str
    input_type: str = "text"
    options_config: Optional[Dict[str, Any]] = None
    validation_rules: Optional[Dict[str, Any]] = None
    sort_order: Optional[int] = None
    row_no: int = 1
    col_span: int = 6


class SectionIn(BaseModel):
    section_title: str
    table_name: Optional[str] = None
    foreign_key_to_parent: Optional[str] = None
    visibility: List[str] = ["form", "list"]
    sort_order: Optional[int] = None
    fields: List[FieldIn] = []


class FormIn(BaseModel):
    slug: str
    form_title: str
    primary_table_name: str
    form_type: str = "master"
    datatable_config: Optional[Dict[str, Any]] = None
    sections: List[SectionIn] = []

