from dataclasses import replace

import pytest

from dbdocs.lint import (
    ColumnCount,
    DuplicateRelations,
    LabelStyleBigQuery,
    Lint,
    RequireColumns,
    RequireColumnsColumn,
    RequireForeignKeyIndex,
    RequireViewpoints,
    check_label_style_bigquery,
    lint_from_mapping,
)
from dbdocs.model import (
    TYPE_FK,
    Column,
    Constraint,
    Index,
    Label,
    Relation,
    Schema,
    Table,
    Trigger,
    Viewpoint,
)
from dbdocs.rules import RuleWarn


def new_test_schema() -> Schema:
    ca = Column(name="column_a1", type="bigint(20)", comment="column a", nullable=False)
    cb = Column(name="column_b1", type="text", comment="", nullable=True)
    ta = Table(
        name="table_a",
        labels=[Label("bq-invalid")],
        type="BASE TABLE",
        comment="",
        columns=[
            ca,
            Column(
                name="column_a2",
                type="datetime",
                comment="column a2",
                nullable=False,
                default="CURRENT_TIMESTAMP",
            ),
        ],
    )
    tb = Table(
        name="table_b",
        type="BASE TABLE",
        comment="table b",
        columns=[cb, Column(name="column_b2", type="text", comment="column b2", nullable=True)],
    )
    tc = Table(
        name="table_c",
        type="BASE TABLE",
        comment="table c",
        columns=[
            Column(name=f"column_c{i}", type="text", comment=f"column c{i}") for i in range(1, 5)
        ],
    )
    relation = Relation(table=ta, parent_table=tb, columns=[ca], parent_columns=[cb])
    ca.parent_relations = [relation]
    cb.child_relations = [relation]
    ta.indexes = [Index(name="a2_idx", definition="a2 index", table=ta.name, columns=["column_a2"])]
    ta.constraints = [
        Constraint(
            name="a1_b1_fk",
            type=TYPE_FK,
            table=ta.name,
            referenced_table=tb.name,
            columns=["column_a1"],
            referenced_columns=["column_b1"],
            comment="a1_b1_fk comment",
        ),
        Constraint(name="a1_unique", type="UNIQUE", table=ta.name, columns=["column_a1"]),
    ]
    ta.triggers = [
        Trigger(
            name="update_table_a_column_a1",
            definition="CREATE CONSTRAINT TRIGGER update_table_a_column_a1 "
            "AFTER INSERT OR UPDATE ON table_a",
            comment="Update column_a1 when update table",
        ),
        Trigger(
            name="update_table_a_column_a2",
            definition="CREATE CONSTRAINT TRIGGER update_table_a_column_a2 "
            "AFTER INSERT OR UPDATE ON table_a",
        ),
    ]
    return Schema(
        name="testschema",
        labels=[Label("bq-invalid")],
        tables=[ta, tb, tc],
        relations=[relation],
        viewpoints=[
            Viewpoint(name="testviewpoint", desc="testviewpoint desc", tables=["table_c"])
        ],
    )


@pytest.mark.parametrize(
    "enabled, lint_exclude, exclude, want",
    [
        (True, [], [], 1),
        (False, [], [], 0),
        (True, [], ["table_c"], 0),
        (True, ["table_c"], [], 0),
        (True, [], ["*_c"], 0),
        (True, ["*_c"], [], 0),
    ],
)
def test_column_count(enabled, lint_exclude, exclude, want):
    rule = ColumnCount(enabled=enabled, exclude=exclude, max=3)
    assert len(rule.check(new_test_schema(), lint_exclude)) == want


def test_column_count_message():
    warns = ColumnCount(enabled=True, max=3).check(new_test_schema(), [])
    assert warns == [RuleWarn("table_c", "too many columns. [4/3]")]


@pytest.mark.parametrize(
    "enabled, lint_exclude, exclude_a2, exclude_b2, want",
    [
        (True, [], [], [], 4),
        (False, [], [], [], 0),
        (True, [], ["table_c"], ["table_c"], 2),
        (True, [], ["table_b", "table_c"], ["table_a", "table_c"], 0),
        (True, ["table_c"], [], [], 2),
        (True, [], ["table_*"], ["table_*"], 0),
    ],
)
def test_require_columns(enabled, lint_exclude, exclude_a2, exclude_b2, want):
    rule = RequireColumns(
        enabled=enabled,
        columns=[
            RequireColumnsColumn(name="column_a2", exclude=exclude_a2),
            RequireColumnsColumn(name="column_b2", exclude=exclude_b2),
        ],
    )
    assert len(rule.check(new_test_schema(), lint_exclude)) == want


def _schema_with_duplicates() -> Schema:
    schema = new_test_schema()
    first = schema.relations[0]
    schema.relations.append(replace(first, definition="copy"))
    other = replace(first, definition="copy2", table=replace(first.table, name="other_table"))
    schema.relations.append(other)
    return schema


@pytest.mark.parametrize(
    "enabled, lint_exclude, want",
    [
        (True, [], 1),
        (False, [], 0),
        (True, ["table_a"], 0),
        (True, ["*_a"], 0),
    ],
)
def test_duplicate_relations(enabled, lint_exclude, want):
    rule = DuplicateRelations(enabled=enabled)
    assert len(rule.check(_schema_with_duplicates(), lint_exclude)) == want


def test_duplicate_relations_message():
    warns = DuplicateRelations(enabled=True).check(_schema_with_duplicates(), [])
    assert warns == [RuleWarn("table_a", "duplicate relations. [table_a -> table_b]")]


@pytest.mark.parametrize(
    "enabled, lint_exclude, exclude, want",
    [
        (True, [], [], 1),
        (False, [], [], 0),
        (True, [], ["table_a.column_a1"], 0),
        (True, [], ["column_a1"], 0),
        (True, ["table_a"], [], 0),
        (True, [], ["*_a1"], 0),
        (True, ["*_a"], [], 0),
    ],
)
def test_require_foreign_key_index(enabled, lint_exclude, exclude, want):
    rule = RequireForeignKeyIndex(enabled=enabled, exclude=exclude)
    assert len(rule.check(new_test_schema(), lint_exclude)) == want


def test_require_foreign_key_index_message():
    warns = RequireForeignKeyIndex(enabled=True).check(new_test_schema(), [])
    assert warns == [
        RuleWarn("table_a.column_a1", "foreign key columns do not have an index. [table_a]")
    ]


@pytest.mark.parametrize(
    "enabled, lint_exclude, want",
    [
        (True, [], 2),
        (False, [], 0),
        (True, ["table_a"], 1),
    ],
)
def test_label_style_bigquery(enabled, lint_exclude, want):
    rule = LabelStyleBigQuery(enabled=enabled)
    assert len(rule.check(new_test_schema(), lint_exclude)) == want


def test_label_style_bigquery_targets():
    warns = LabelStyleBigQuery(enabled=True).check(new_test_schema(), [])
    assert [w.target for w in warns] == [
        "testschema.Labels.bq-invalid",
        "table_a.Labels.bq-invalid",
    ]
    assert warns[1].message == (
        "required to be in BigQuery `key:value` style. [label `bq-invalid` in table `table_a`]"
    )


@pytest.mark.parametrize(
    "label, want",
    [
        ("env:prod", True),
        ("env:", True),
        ("e:p", True),
        ("env", False),
        (":prod", False),
        ("Env:prod", False),
        ("0nv:prod", False),
        ("env:0rod", True),
        ("-nv:prod", False),
        ("env:-rod", True),
        ("(nv:prod", False),
        ("en v:prod", False),
        ("env:pr od", False),
        ("env:テスト", True),
        ("e変数:テスト", True),
    ],
)
def test_check_label_style_bigquery(label, want):
    assert check_label_style_bigquery(label) is want


def test_check_label_style_bigquery_length_limits():
    assert check_label_style_bigquery("k" * 63 + ":v") is True
    assert check_label_style_bigquery("k" * 64 + ":v") is False
    assert check_label_style_bigquery("k:" + "v" * 64) is False


@pytest.mark.parametrize(
    "enabled, lint_exclude, exclude, want",
    [
        (True, [], [], 2),
        (False, [], [], 0),
        (True, ["table_a"], [], 1),
        (True, ["*_a"], [], 1),
        (True, [], ["table_b"], 1),
    ],
)
def test_require_viewpoints(enabled, lint_exclude, exclude, want):
    rule = RequireViewpoints(enabled=enabled, exclude=exclude)
    schema = new_test_schema()
    schema.tables[0].type = "VIEW"
    assert len(rule.check(schema, lint_exclude)) == want


def test_default_lint_reports_nothing():
    lint = Lint()
    assert len(lint.rules()) == 13
    assert lint.check(new_test_schema(), []) == []


def test_lint_check_combines_rules():
    lint = Lint(
        column_count=ColumnCount(enabled=True, max=3),
        require_viewpoints=RequireViewpoints(enabled=True),
    )
    warns = lint.check(new_test_schema(), [])
    assert [w.target for w in warns] == ["table_c", "table_a", "table_b"]


def test_lint_check_applies_exclude():
    lint = Lint(column_count=ColumnCount(enabled=True, max=3))
    assert lint.check(new_test_schema(), ["table_c"]) == []


def test_lint_from_mapping():
    lint = lint_from_mapping(
        {
            "columnCount": {"enabled": True, "max": 3},
            "requireColumns": {
                "enabled": True,
                "columns": [{"name": "column_a2", "exclude": ["table_b", "table_c"]}],
            },
            "requireTableComment": {"enabled": True, "allOrNothing": True},
            "requireColumnComment": {"enabled": True, "excludeTables": ["table_b"]},
        }
    )
    assert lint.column_count == ColumnCount(enabled=True, max=3)
    assert lint.require_columns.columns == [
        RequireColumnsColumn(name="column_a2", exclude=["table_b", "table_c"])
    ]
    assert lint.require_table_comment.all_or_nothing is True
    assert lint.require_column_comment.exclude_tables == ["table_b"]
    assert lint.duplicate_relations.enabled is False


def test_lint_from_mapping_none_gives_defaults():
    assert lint_from_mapping(None) == Lint()


def test_lint_from_mapping_rejects_non_mapping():
    with pytest.raises(TypeError):
        lint_from_mapping({"columnCount": ["enabled"]})