from __future__ import annotations

import pytest

from edu_import.models.column_spec import ColumnKind, ColumnSpec, ImportMode, ImportSchema, SchemaDefinitionError
from edu_import.schema.registry import UnknownEntityError, get_schema, list_entity_types, lookup_kinds_for


def _schema(columns, key="code", **kw):
    return ImportSchema(
        entity_type="t",
        title="T",
        entity="t",
        entity_label="Thing",
        mode=ImportMode.CREATE,
        business_key=key,
        columns=tuple(columns),
        **kw,
    )


def test_registered_entity_types():
    assert set(list_entity_types()) == {
        "students", "student_update", "staff", "staff_update",
        "parents", "parent_update", "questions", "question_update",
    }


@pytest.mark.parametrize("entity_type", list_entity_types())
def test_every_schema_has_a_required_business_key(entity_type):
    schema = get_schema(entity_type)
    assert schema.entity_type == entity_type
    assert schema.key_column.required
    assert len(set(schema.column_names)) == len(schema.column_names)


def test_update_schemas_only_require_the_key():
    for name in list_entity_types():
        schema = get_schema(name)
        if schema.mode is ImportMode.UPDATE:
            assert schema.required_columns() == [schema.business_key]


def test_unknown_entity():
    with pytest.raises(UnknownEntityError, match="unknown entity type 'teachers'"):
        get_schema("teachers")


def test_duplicate_column_names_rejected():
    with pytest.raises(SchemaDefinitionError, match="duplicate"):
        _schema([ColumnSpec("code", "Code", True), ColumnSpec("code", "Code again")])


def test_business_key_must_exist_and_be_required():
    with pytest.raises(SchemaDefinitionError, match="is not a column"):
        _schema([ColumnSpec("name", "Name", True)])
    with pytest.raises(SchemaDefinitionError, match="must be required"):
        _schema([ColumnSpec("code", "Code")])


def test_unique_columns_must_exist():
    with pytest.raises(SchemaDefinitionError, match="unique column"):
        _schema([ColumnSpec("code", "Code", True)], unique_columns=("email",))


def test_column_properties():
    schema = get_schema("student_update")
    col = schema.column("class_name")
    assert col.kind is ColumnKind.LOOKUP
    assert col.target_field == "class_id"
    assert col.diff_field == "class"
    assert schema.column("first_name").target_field == "first_name"
    assert schema.column("date_of_birth").expected_format == "YYYY-MM-DD"
    assert schema.column("nope") is None


def test_lookup_kinds_include_link_columns():
    assert lookup_kinds_for(get_schema("staff")) == {"subjects", "classes"}
    assert lookup_kinds_for(get_schema("parents")) == {"students"}
    assert lookup_kinds_for(get_schema("staff_update")) == set()
