"""Measurement of how much of a schema is documented."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any

from dbdocs.model import Schema


@dataclass
class TableCoverage:
    """Documentation coverage of one table."""

    name: str
    coverage: float = 0.0
    covered: int = 0
    total: int = 0


@dataclass
class Coverage:
    """Documentation coverage of a whole schema."""

    name: str
    coverage: float = 0.0
    tables: list[TableCoverage] = field(default_factory=list)
    covered: int = 0
    total: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON-ready form: name, coverage and per-table coverage."""
        return {
            "name": self.name,
            "coverage": self.coverage,
            "tables": [{"name": t.name, "coverage": t.coverage} for t in self.tables],
        }


def round_coverage(value: float) -> float:
    """Round half up to one decimal place."""
    return math.floor(value * 10 + 0.5) / 10


def measure(schema: Schema) -> Coverage:
    """Count documented items in ``schema`` and compute percentages."""
    cover = Coverage(name=schema.name, total=1, covered=1 if schema.desc else 0)

    for table in schema.tables:
        comments = [table.comment]
        comments += [column.comment for column in table.columns]
        comments += [index.comment for index in table.indexes]
        comments += [constraint.comment for constraint in table.constraints]
        comments += [trigger.comment for trigger in table.triggers]

        covered = sum(1 for comment in comments if comment)
        table_cover = TableCoverage(
            name=table.name,
            covered=covered,
            total=len(comments),
            coverage=round_coverage(covered / len(comments) * 100),
        )
        cover.tables.append(table_cover)
        cover.covered += table_cover.covered
        cover.total += table_cover.total

    cover.coverage = round_coverage(cover.covered / cover.total * 100)
    return cover