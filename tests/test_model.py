import pytest

from dbdocs.model import Column, Relation, Schema, Table


@pytest.fixture
def schema():
    child_column = Column(name="column_a")
    parent_column = Column(name="column_b")
    child = Table(name="table_a", columns=[child_column])
    parent = Table(name="table_b", columns=[parent_column])
    relation = Relation(
        table=child,
        parent_table=parent,
        columns=[child_column],
        parent_columns=[parent_column],
    )
    child_column.parent_relations.append(relation)
    parent_column.child_relations.append(relation)
    return Schema(name="testschema", tables=[child, parent], relations=[relation])


def test_find_table_by_name(schema):
    assert schema.find_table_by_name("table_b") is schema.tables[1]


def test_find_table_by_name_missing(schema):
    with pytest.raises(LookupError, match="missing"):
        schema.find_table_by_name("missing")


def test_find_column_by_name(schema):
    table = schema.tables[0]
    assert table.find_column_by_name("column_a") is table.columns[0]
    with pytest.raises(LookupError, match="column_z"):
        table.find_column_by_name("column_z")


def test_normalize_table_names_without_current_schema(schema):
    names = ["table_a", "other.table_b"]
    assert schema.normalize_table_names(names) == names


def test_normalize_table_names_with_current_schema():
    schema = Schema(name="db", current_schema="public")
    assert schema.normalize_table_names(["users", "audit.logs"]) == [
        "public.users",
        "audit.logs",
    ]


def test_repr_survives_cyclic_relations(schema):
    column = schema.tables[0].columns[0]
    assert "column_a" in repr(column)
    assert "table_a" in repr(schema)


def test_relations_link_both_sides(schema):
    relation = schema.relations[0]
    assert relation.columns[0].parent_relations[0] is relation
    assert relation.parent_columns[0].child_relations[0] is relation