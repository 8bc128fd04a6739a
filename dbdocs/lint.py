"""Lint rules on columns, relations, indexes, labels and viewpoints, and the lint set."""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, fields
from typing import Any

from dbdocs.model import TYPE_FK, Schema
from dbdocs.rules import (
    RequireColumnComment,
    RequireConstraintComment,
    RequireIndexComment,
    RequireTableComment,
    RequireTableLabels,
    RequireTriggerComment,
    Rule,
    RuleWarn,
    UnrelatedTable,
    match,
)


@dataclass
class ColumnCount(Rule):
    """No table may have more than ``max`` columns."""

    max: int = 0
    exclude: list[str] = field(default_factory=list)

    def check(self, schema: Schema, exclude: Sequence[str]) -> list[RuleWarn]:
        if not self.enabled:
            return []
        normalized = schema.normalize_table_names(self.exclude)
        return [
            RuleWarn(table.name, f"too many columns. [{len(table.columns)}/{self.max}]")
            for table in schema.tables
            if not match(exclude, table.name)
            and not match(normalized, table.name)
            and len(table.columns) > self.max
        ]


@dataclass
class RequireColumnsColumn:
    """A column that every table, except the excluded ones, must have."""

    name: str
    exclude: list[str] = field(default_factory=list)


@dataclass
class RequireColumns(Rule):
    """Every table must have each of the listed columns."""

    columns: list[RequireColumnsColumn] = field(default_factory=list)

    def check(self, schema: Schema, exclude: Sequence[str]) -> list[RuleWarn]:
        if not self.enabled:
            return []
        warns: list[RuleWarn] = []
        for table in schema.tables:
            if match(exclude, table.name):
                continue
            present = {column.name for column in table.columns}
            for required in self.columns:
                if match(required.exclude, table.name):
                    continue
                if required.name not in present:
                    warns.append(
                        RuleWarn(table.name, f"column '{required.name}' required.")
                    )
        return warns


@dataclass
class DuplicateRelations(Rule):
    """No two relations may join the same columns of the same tables."""

    def check(self, schema: Schema, exclude: Sequence[str]) -> list[RuleWarn]:
        if not self.enabled:
            return []
        seen: set[tuple[str, str, tuple[str, ...], tuple[str, ...]]] = set()
        warns: list[RuleWarn] = []
        for relation in schema.relations:
            child, parent = relation.table.name, relation.parent_table.name
            if match(exclude, child) or match(exclude, parent):
                continue
            key = (
                child,
                parent,
                tuple(sorted(column.name for column in relation.columns)),
                tuple(sorted(column.name for column in relation.parent_columns)),
            )
            if key in seen:
                warns.append(
                    RuleWarn(child, f"duplicate relations. [{child} -> {parent}]")
                )
            seen.add(key)
        return warns


@dataclass
class RequireForeignKeyIndex(Rule):
    """Every foreign key column must be covered by an index."""

    exclude: list[str] = field(default_factory=list)

    def check(self, schema: Schema, exclude: Sequence[str]) -> list[RuleWarn]:
        if not self.enabled:
            return []
        warns: list[RuleWarn] = []
        for table in schema.tables:
            if match(exclude, table.name):
                continue
            indexed = {column for index in table.indexes for column in index.columns}
            for constraint in table.constraints:
                if constraint.type != TYPE_FK:
                    continue
                for column in constraint.columns:
                    target = f"{table.name}.{column}"
                    if match(self.exclude, column) or match(self.exclude, target):
                        continue
                    if column not in indexed:
                        warns.append(
                            RuleWarn(
                                target,
                                "foreign key columns do not have an index. "
                                f"[{table.name}]",
                            )
                        )
        return warns


_BQ_KEY_RE = re.compile(
    r'''[^A-Z0-9 !"#$%&'()*+,\-./:;<=>?@\[\\\]^_{|}~`][^A-Z !"#$%&'()*+,./:;<=>?@\[\\\]^{|}~`]*'''
)
_BQ_VALUE_RE = re.compile(r'''[^A-Z !"#$%&'()*+,./:;<=>?@\[\\\]^{|}~`]*''')
_BQ_MAX_LENGTH = 63


def check_label_style_bigquery(label: str) -> bool:
    """Tell whether ``label`` has the BigQuery ``key:value`` form."""
    if label.count(":") != 1:
        return False
    key, value = label.split(":")
    key_length = len(key.encode("utf-8"))
    if key_length == 0 or key_length > _BQ_MAX_LENGTH:
        return False
    if len(value.encode("utf-8")) > _BQ_MAX_LENGTH:
        return False
    return bool(_BQ_KEY_RE.fullmatch(key)) and bool(_BQ_VALUE_RE.fullmatch(value))


@dataclass
class LabelStyleBigQuery(Rule):
    """Schema and table labels must be in BigQuery ``key:value`` style."""

    exclude: list[str] = field(default_factory=list)

    def check(self, schema: Schema, exclude: Sequence[str]) -> list[RuleWarn]:
        if not self.enabled:
            return []
        style = "required to be in BigQuery `key:value` style."
        warns = [
            RuleWarn(
                f"{schema.name}.Labels.{label.name}",
                f"{style} [label `{label.name}` in database `{schema.name}`]",
            )
            for label in schema.labels
            if not check_label_style_bigquery(label.name)
        ]
        normalized = schema.normalize_table_names(self.exclude)
        for table in schema.tables:
            if match(exclude, table.name) or match(normalized, table.name):
                continue
            warns.extend(
                RuleWarn(
                    f"{table.name}.Labels.{label.name}",
                    f"{style} [label `{label.name}` in table `{table.name}`]",
                )
                for label in table.labels
                if not check_label_style_bigquery(label.name)
            )
        return warns


@dataclass
class RequireViewpoints(Rule):
    """Every table must belong to at least one viewpoint."""

    exclude: list[str] = field(default_factory=list)

    def check(self, schema: Schema, exclude: Sequence[str]) -> list[RuleWarn]:
        if not self.enabled:
            return []
        in_viewpoint = {name for viewpoint in schema.viewpoints for name in viewpoint.tables}
        return [
            RuleWarn(table.name, f"table `{table.name}` is not included in any viewpoints.")
            for table in schema.tables
            if not match(exclude, table.name)
            and not match(self.exclude, table.name)
            and table.name not in in_viewpoint
        ]


@dataclass
class Lint:
    """The full set of lint rules, each disabled unless configured."""

    require_table_comment: RequireTableComment = field(default_factory=RequireTableComment)
    require_column_comment: RequireColumnComment = field(default_factory=RequireColumnComment)
    require_index_comment: RequireIndexComment = field(default_factory=RequireIndexComment)
    require_constraint_comment: RequireConstraintComment = field(
        default_factory=RequireConstraintComment
    )
    require_trigger_comment: RequireTriggerComment = field(default_factory=RequireTriggerComment)
    require_table_labels: RequireTableLabels = field(default_factory=RequireTableLabels)
    unrelated_table: UnrelatedTable = field(default_factory=UnrelatedTable)
    column_count: ColumnCount = field(default_factory=ColumnCount)
    require_columns: RequireColumns = field(default_factory=RequireColumns)
    duplicate_relations: DuplicateRelations = field(default_factory=DuplicateRelations)
    require_foreign_key_index: RequireForeignKeyIndex = field(
        default_factory=RequireForeignKeyIndex
    )
    label_style_big_query: LabelStyleBigQuery = field(default_factory=LabelStyleBigQuery)
    require_viewpoints: RequireViewpoints = field(default_factory=RequireViewpoints)

    def rules(self) -> list[Rule]:
        """Return every rule in a fixed order."""
        return [getattr(self, f.name) for f in fields(self)]

    def check(self, schema: Schema, exclude: Sequence[str]) -> list[RuleWarn]:
        """Run every rule; ``exclude`` names tables to skip, qualified by the schema."""
        normalized = schema.normalize_table_names(list(exclude))
        return [warn for rule in self.rules() for warn in rule.check(schema, normalized)]


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _rule_from_mapping(rule_type: type[Rule], data: Any) -> Rule:
    if data is None:
        return rule_type()
    if not isinstance(data, Mapping):
        raise TypeError(f"lint rule settings must be a mapping, got {type(data).__name__}")
    kwargs: dict[str, Any] = {}
    for f in fields(rule_type):
        value = data.get(_camel(f.name))
        if value is None:
            continue
        if rule_type is RequireColumns and f.name == "columns":
            value = [
                RequireColumnsColumn(
                    name=item.get("name", ""), exclude=list(item.get("exclude") or [])
                )
                for item in value
            ]
        elif isinstance(value, list):
            value = list(value)
        kwargs[f.name] = value
    return rule_type(**kwargs)


def lint_from_mapping(data: Mapping[str, Any] | None) -> Lint:
    """Build a Lint from its camelCase configuration mapping."""
    if data is None:
        return Lint()
    if not isinstance(data, Mapping):
        raise TypeError(f"lint settings must be a mapping, got {type(data).__name__}")
    kwargs = {
        f.name: _rule_from_mapping(type(f.default_factory()), data.get(_camel(f.name)))
        for f in fields(Lint)
    }
    return Lint(**kwargs)