"""Lint rules that check comments, labels and relations of a schema."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, ClassVar

from dbdocs.model import Schema, Table


@lru_cache(maxsize=256)
def _wildcard(pattern: str) -> re.Pattern[str]:
    return re.compile(".*".join(re.escape(part) for part in pattern.split("*")), re.DOTALL)


def match_length(patterns: Iterable[str], name: str) -> int | None:
    """Return the literal length of the first pattern matching ``name``.

    Patterns support ``*`` as a wildcard; the length excludes the stars.
    Returns None when no pattern matches.
    """
    for pattern in patterns:
        if _wildcard(pattern).fullmatch(name):
            return len(pattern.replace("*", ""))
    return None


def match(patterns: Iterable[str], name: str) -> bool:
    """Tell whether any ``*`` wildcard pattern matches ``name``."""
    return match_length(patterns, name) is not None


@dataclass(frozen=True)
class RuleWarn:
    """A single problem reported by a rule."""

    target: str
    message: str


@dataclass
class Rule(ABC):
    """A lint rule; disabled rules report nothing."""

    enabled: bool = False

    @abstractmethod
    def check(self, schema: Schema, exclude: Sequence[str]) -> list[RuleWarn]:
        """Return the warnings for ``schema``, skipping tables in ``exclude``."""


def _excluded(table: Table, exclude: Sequence[str], normalized: Sequence[str]) -> bool:
    return match(exclude, table.name) or match(normalized, table.name)


@dataclass
class RequireTableComment(Rule):
    """Every table must have a comment."""

    all_or_nothing: bool = False
    exclude: list[str] = field(default_factory=list)

    def check(self, schema: Schema, exclude: Sequence[str]) -> list[RuleWarn]:
        if not self.enabled:
            return []
        normalized = schema.normalize_table_names(self.exclude)
        warns: list[RuleWarn] = []
        commented = False
        for table in schema.tables:
            if _excluded(table, exclude, normalized):
                continue
            if table.comment:
                commented = True
            else:
                warns.append(RuleWarn(table.name, "table comment required."))
        if self.all_or_nothing and not commented:
            return []
        return warns


@dataclass
class _TableItemCommentRule(Rule):
    """Every item of a given kind in each table must have a comment."""

    _message: ClassVar[str] = ""

    all_or_nothing: bool = False
    exclude: list[str] = field(default_factory=list)
    exclude_tables: list[str] = field(default_factory=list)

    @staticmethod
    @abstractmethod
    def _items(table: Table) -> Iterable[Any]:
        """Return the items of ``table`` that this rule inspects."""

    def check(self, schema: Schema, exclude: Sequence[str]) -> list[RuleWarn]:
        if not self.enabled:
            return []
        normalized = schema.normalize_table_names(self.exclude_tables)
        warns: list[RuleWarn] = []
        commented = False
        for table in schema.tables:
            if _excluded(table, exclude, normalized):
                continue
            for item in self._items(table):
                target = f"{table.name}.{item.name}"
                if match(self.exclude, item.name) or match(self.exclude, target):
                    continue
                if item.comment:
                    commented = True
                else:
                    warns.append(RuleWarn(target, self._message))
        if self.all_or_nothing and not commented:
            return []
        return warns


@dataclass
class RequireColumnComment(_TableItemCommentRule):
    """Every column must have a comment."""

    _message: ClassVar[str] = "column comment required."

    @staticmethod
    def _items(table: Table) -> Iterable[Any]:
        return table.columns


@dataclass
class RequireIndexComment(_TableItemCommentRule):
    """Every index must have a comment."""

    _message: ClassVar[str] = "index comment required."

    @staticmethod
    def _items(table: Table) -> Iterable[Any]:
        return table.indexes


@dataclass
class RequireConstraintComment(_TableItemCommentRule):
    """Every constraint must have a comment."""

    _message: ClassVar[str] = "constraint comment required."

    @staticmethod
    def _items(table: Table) -> Iterable[Any]:
        return table.constraints


@dataclass
class RequireTriggerComment(_TableItemCommentRule):
    """Every trigger must have a comment."""

    _message: ClassVar[str] = "trigger comment required."

    @staticmethod
    def _items(table: Table) -> Iterable[Any]:
        return table.triggers


@dataclass
class RequireTableLabels(Rule):
    """Every table must carry at least one label."""

    all_or_nothing: bool = False
    exclude: list[str] = field(default_factory=list)

    def check(self, schema: Schema, exclude: Sequence[str]) -> list[RuleWarn]:
        if not self.enabled:
            return []
        normalized = schema.normalize_table_names(self.exclude)
        warns: list[RuleWarn] = []
        labeled = False
        for table in schema.tables:
            if _excluded(table, exclude, normalized):
                continue
            if table.labels:
                labeled = True
            else:
                warns.append(RuleWarn(table.name, "table labels required."))
        if self.all_or_nothing and not labeled:
            return []
        return warns


@dataclass
class UnrelatedTable(Rule):
    """No table may stand apart from every relation."""

    all_or_nothing: bool = False
    exclude: list[str] = field(default_factory=list)

    def check(self, schema: Schema, exclude: Sequence[str]) -> list[RuleWarn]:
        if not self.enabled:
            return []
        normalized = schema.normalize_table_names(self.exclude)
        unrelated = {
            table.name: table
            for table in schema.tables
            if not _excluded(table, exclude, normalized)
        }
        before = len(unrelated)
        for relation in schema.relations:
            unrelated.pop(relation.table.name, None)
            unrelated.pop(relation.parent_table.name, None)
        related = before != len(unrelated)

        warns: list[RuleWarn] = []
        if unrelated:
            names = " ".join(unrelated)
            warns.append(
                RuleWarn(schema.name, f"unrelated (isolated) table exists. [{names}]")
            )
        if self.all_or_nothing and not related:
            return []
        return warns