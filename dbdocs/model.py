"""In-memory model of a documented database schema."""

from __future__ import annotations

from dataclasses import dataclass, field

TYPE_FK = "FOREIGN KEY"


@dataclass
class Label:
    """A label attached to a schema, table or column."""

    name: str
    virtual: bool = False


@dataclass(eq=False)
class Column:
    """A table column."""

    name: str
    type: str = ""
    nullable: bool = False
    default: str | None = None
    comment: str = ""
    extra_def: str = ""
    labels: list[Label] = field(default_factory=list)
    pk: bool = False
    fk: bool = False
    hide_for_er: bool = False
    parent_relations: list[Relation] = field(default_factory=list, repr=False)
    child_relations: list[Relation] = field(default_factory=list, repr=False)


@dataclass(eq=False)
class Index:
    """A table index."""

    name: str
    definition: str = ""
    table: str | None = None
    columns: list[str] = field(default_factory=list)
    comment: str = ""


@dataclass(eq=False)
class Constraint:
    """A table constraint."""

    name: str
    type: str = ""
    definition: str = ""
    table: str | None = None
    referenced_table: str | None = None
    columns: list[str] = field(default_factory=list)
    referenced_columns: list[str] = field(default_factory=list)
    comment: str = ""


@dataclass(eq=False)
class Trigger:
    """A table trigger."""

    name: str
    definition: str = ""
    comment: str = ""


@dataclass(eq=False)
class Relation:
    """A relation from child columns to parent columns."""

    table: Table = field(repr=False)
    parent_table: Table = field(repr=False)
    columns: list[Column] = field(default_factory=list, repr=False)
    parent_columns: list[Column] = field(default_factory=list, repr=False)
    cardinality: str = ""
    parent_cardinality: str = ""
    definition: str = ""
    virtual: bool = False
    hide_for_er: bool = False


@dataclass(eq=False)
class Table:
    """A table or view."""

    name: str
    type: str = ""
    comment: str = ""
    definition: str = ""
    columns: list[Column] = field(default_factory=list)
    indexes: list[Index] = field(default_factory=list)
    constraints: list[Constraint] = field(default_factory=list)
    triggers: list[Trigger] = field(default_factory=list)
    labels: list[Label] = field(default_factory=list)
    viewpoints: list = field(default_factory=list, repr=False)

    def find_column_by_name(self, name: str) -> Column:
        """Return the column called ``name``; raise LookupError if absent."""
        for column in self.columns:
            if column.name == name:
                return column
        raise LookupError(f"not found column '{name}' on table '{self.name}'")


@dataclass(eq=False)
class Viewpoint:
    """A named subset of the schema."""

    name: str
    desc: str = ""
    labels: list[str] = field(default_factory=list)
    tables: list[str] = field(default_factory=list)
    distance: int = 0
    groups: list = field(default_factory=list)
    schema: Schema | None = field(default=None, repr=False)


@dataclass(eq=False)
class Schema:
    """A whole database schema."""

    name: str = ""
    desc: str = ""
    tables: list[Table] = field(default_factory=list)
    relations: list[Relation] = field(default_factory=list, repr=False)
    labels: list[Label] = field(default_factory=list)
    viewpoints: list[Viewpoint] = field(default_factory=list)
    current_schema: str = ""

    def find_table_by_name(self, name: str) -> Table:
        """Return the table called ``name``; raise LookupError if absent."""
        for table in self.tables:
            if table.name == name:
                return table
        raise LookupError(f"not found table '{name}'")

    def normalize_table_names(self, names: list[str]) -> list[str]:
        """Qualify unqualified names with the current schema, if one is set."""
        if not self.current_schema:
            return list(names)
        return [
            name if "." in name else f"{self.current_schema}.{name}" for name in names
        ]