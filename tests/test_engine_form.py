import pytest

from mastersapi.engine.form import (
    is_empty,
    lookup_fields,
    normalize_col_span,
    placeholder_for,
    render_form,
    validate_required,
    widget_for,
)
from mastersapi.models.form import DynamicOptions, FormField, FormSection


def make_field(name, label=None, **kwargs):
    return FormField(name=name, label=label or name.replace("_", " ").title(), **kwargs)


@pytest.fixture()
def sections():
    department = DynamicOptions(source_table="departments", value_column="id", label_column="name")
    return [
        FormSection(
            id=1,
            name="Basic Details",
            fields=[
                make_field("full_name", required=True, row_no=1, col_span=6),
                make_field("email", input_type="email", row_no=1, col_span=6),
                make_field("department_id", "Department", input_type="select", row_no=2, col_span=4,
                           dynamic_options=department),
                make_field("joined_on", input_type="date", row_no=2, col_span=5),
            ],
        ),
        FormSection(
            id=2,
            name="Contact",
            fields=[
                make_field("phone", row_no=1),
                make_field("gender", input_type="select",
                           options_config={"options": [{"value": "f", "label": "Female"}, {"value": "m"}]}),
                make_field("notes", input_type="textarea", row_no=3, col_span=12),
            ],
        ),
        FormSection(
            id=3,
            name="Qualifications",
            foreign_key_to_parent="employee_id",
            child_table_name="qualifications",
            fields=[make_field("degree", required=True), make_field("institute")],
        ),
    ]


def count_cells(block):
    return sum(len(row["cells"]) for row in block["rows"])


def test_each_section_renders_its_field_count(sections):
    rendered = render_form(sections)

    assert len(rendered) == 3
    assert count_cells(rendered[0]) == 4
    assert count_cells(rendered[1]) == 3
    assert len(rendered[2]["columns"]) == 2


def test_fields_grouped_into_rows(sections):
    basic = render_form(sections)[0]

    assert [row["row_no"] for row in basic["rows"]] == [1, 2]
    assert [c["name"] for c in basic["rows"][0]["cells"]] == ["full_name", "email"]
    assert [c["name"] for c in basic["rows"][1]["cells"]] == ["department_id", "joined_on"]


def test_col_span_normalized(sections):
    cells = render_form(sections)[0]["rows"][1]["cells"]

    assert cells[0]["col_span"] == 4
    assert cells[1]["col_span"] == 6


@pytest.mark.parametrize("span, expected", [(1, 1), (3, 3), (12, 12), (5, 6), (0, 6), (None, 6), (13, 6)])
def test_normalize_col_span(span, expected):
    assert normalize_col_span(span) == expected


def test_widgets_and_placeholders(sections):
    fields = {f.name: f for s in sections for f in s.fields}

    assert widget_for(fields["full_name"]) == "text"
    assert widget_for(fields["email"]) == "email"
    assert widget_for(fields["department_id"]) == "lookup"
    assert widget_for(fields["gender"]) == "select"
    assert widget_for(fields["notes"]) == "textarea"
    assert widget_for(make_field("odd", input_type="colour")) == "text"

    assert placeholder_for(fields["full_name"]) == "Enter full name"
    assert placeholder_for(fields["department_id"]) == "Select department"
    assert placeholder_for(fields["joined_on"]) == "Select joined on"


def test_static_select_options(sections):
    gender = render_form(sections)[1]["rows"][0]["cells"][1]

    assert gender["options"] == [
        {"value": "f", "label": "Female"},
        {"value": "m", "label": "m"},
    ]


def test_lookup_cell_uses_resolved_options(sections):
    lookups = {"department_id": {"options": [{"value": "1", "label": "Engineering"}], "error": None}}
    cell = render_form(sections, lookups=lookups)[0]["rows"][1]["cells"][0]

    assert cell["widget"] == "lookup"
    assert cell["source_table"] == "departments"
    assert cell["options"] == [{"value": "1", "label": "Engineering"}]
    assert cell["options_error"] is None


def test_lookup_cell_reports_error(sections):
    lookups = {"department_id": {"options": [], "error": "Failed to load options from departments"}}
    cell = render_form(sections, lookups=lookups)[0]["rows"][1]["cells"][0]

    assert cell["options"] == []
    assert cell["options_error"] == "Failed to load options from departments"


def test_values_prefill_cells(sections):
    rendered = render_form(sections, values={"full_name": "Ada Lovelace"})

    cells = rendered[0]["rows"][0]["cells"]
    assert cells[0]["value"] == "Ada Lovelace"
    assert cells[1]["value"] is None


def test_child_section_renders_as_table(sections):
    child = render_form(sections)[2]

    assert child["kind"] == "child_table"
    assert child["table"] == "qualifications"
    assert child["foreign_key"] == "employee_id"
    assert child["columns"] == [
        {"key": "degree", "label": "Degree"},
        {"key": "institute", "label": "Institute"},
    ]


def test_lookup_fields_skips_static_and_child(sections):
    assert [f.name for f in lookup_fields(sections)] == ["department_id"]


def test_required_empty_string_fails(sections):
    errors = validate_required(sections, {"full_name": "", "email": "ada@example.com"})

    assert errors == {"full_name": "Full Name is required"}


def test_required_whitespace_and_missing_fail(sections):
    assert "full_name" in validate_required(sections, {"full_name": "   "})
    assert "full_name" in validate_required(sections, {})


def test_required_passes(sections):
    assert validate_required(sections, {"full_name": "Ada Lovelace"}) == {}


def test_child_required_fields_not_checked_on_parent(sections):
    assert "degree" not in validate_required(sections, {"full_name": "Ada"})


def test_is_empty():
    assert is_empty(None)
    assert is_empty("")
    assert is_empty([])
    assert not is_empty(0)
    assert not is_empty(False)
    assert not is_empty("x")


def test_required_checkbox_must_be_ticked():
    terms = FormSection(name="Terms", fields=[make_field("agree", input_type="checkbox", required=True)])

    assert validate_required([terms], {"agree": False}) == {"agree": "Agree is required"}
    assert "agree" in validate_required([terms], {"agree": "false"})
    assert "agree" in validate_required([terms], {})
    assert validate_required([terms], {"agree": True}) == {}
    assert validate_required([terms], {"agree": "on"}) == {}


def test_section_hidden_from_form_is_not_rendered_or_validated(sections):
    sections[1] = sections[1].model_copy(update={"visibility": ["list"]})
    sections[1].fields[0] = sections[1].fields[0].model_copy(update={"required": True})

    rendered = render_form(sections)

    assert [block["title"] for block in rendered] == ["Basic Details", "Qualifications"]
    assert validate_required(sections, {"full_name": "Ada"}) == {}
