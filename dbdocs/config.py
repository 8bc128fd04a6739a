"""Configuration of documentation runs: loading, defaults and validation."""

from __future__ import annotations

import os
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit, urlunsplit

import yaml
from packaging.version import InvalidVersion, Version

from dbdocs.lint import Lint, lint_from_mapping

DEFAULT_DOC_PATH = "dbdoc"
DEFAULT_CONFIG_FILE_PATHS = (".dbdocs.yml", "dbdocs.yml", ".dbdocs.yaml", "dbdocs.yaml")
DEFAULT_ER_FORMAT = "svg"
SUPPORT_ER_FORMAT = ("png", "jpg", "svg", "mermaid")
SCHEMA_FILE_NAME = "schema.json"
DEFAULT_ER_DISTANCE = 1
HIDEABLE_COLUMNS = ("Children", "Parents", "Comment", "Labels", "Default", "ExtraDef")
RUNNING_VERSION = "dev"

DSN_ENV = "DBDOCS_DSN"
DOC_PATH_ENV = "DBDOCS_DOC_PATH"

_MASK = "*****"


class ConfigError(Exception):
    """Raised when a configuration cannot be loaded or is invalid."""


def _mapping(value: Any, what: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"{what} must be a mapping")
    return value


def _strings(value: Any, what: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ConfigError(f"{what} must be a list")
    return [str(item) for item in value]


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _string_map(value: Any, what: str) -> dict[str, str]:
    return {str(key): _text(item) for key, item in _mapping(value, what).items()}


def _items(value: Any, what: str) -> list[Mapping[str, Any]]:
    return [_mapping(item, what) for item in (value or [])]


@dataclass
class DSN:
    """Data source name, optionally with request headers."""

    url: str = ""
    headers: dict[str, str] = field(default_factory=dict)

    @classmethod
    def _from_yaml(cls, value: Any) -> DSN:
        if value is None:
            return cls()
        if isinstance(value, str):
            return cls(url=value)
        data = _mapping(value, "dsn")
        return cls(url=_text(data.get("url")), headers=_string_map(data.get("headers"), "dsn.headers"))


@dataclass
class Format:
    """Document format settings."""

    adjust: bool = False
    sort: bool = False
    number: bool = False
    show_only_first_paragraph: bool = False
    hide_columns_without_values: list[str] = field(default_factory=list)

    @classmethod
    def _from_yaml(cls, value: Any) -> Format:
        data = _mapping(value, "format")
        hide = data.get("hideColumnsWithoutValues")
        if isinstance(hide, bool):
            hidden = list(HIDEABLE_COLUMNS) if hide else []
        elif isinstance(hide, list):
            hidden = [item for item in hide if isinstance(item, str)]
        else:
            hidden = []
        return cls(
            adjust=bool(data.get("adjust")),
            sort=bool(data.get("sort")),
            number=bool(data.get("number")),
            show_only_first_paragraph=bool(data.get("showOnlyFirstParagraph")),
            hide_columns_without_values=hidden,
        )


@dataclass
class ShowColumnTypes:
    """Which columns an ER diagram keeps visible."""

    related: bool = False
    primary: bool = False


@dataclass
class ER:
    """ER diagram settings."""

    skip: bool = False
    format: str = ""
    comment: bool = False
    hide_def: bool = False
    show_column_types: ShowColumnTypes | None = None
    distance: int | None = None
    font: str = ""

    @classmethod
    def _from_yaml(cls, value: Any) -> ER:
        data = _mapping(value, "er")
        show = data.get("showColumnTypes")
        show_types = None
        if show is not None:
            show_data = _mapping(show, "er.showColumnTypes")
            show_types = ShowColumnTypes(
                related=bool(show_data.get("related")),
                primary=bool(show_data.get("primary")),
            )
        distance = data.get("distance")
        return cls(
            skip=bool(data.get("skip")),
            format=_text(data.get("format")),
            comment=bool(data.get("comment")),
            hide_def=bool(data.get("hideDef")),
            show_column_types=show_types,
            distance=None if distance is None else int(distance),
            font=_text(data.get("font")),
        )


@dataclass
class AdditionalRelation:
    """A relation declared in the configuration."""

    table: str = ""
    columns: list[str] = field(default_factory=list)
    cardinality: str = ""
    parent_table: str = ""
    parent_columns: list[str] = field(default_factory=list)
    parent_cardinality: str = ""
    definition: str = ""
    override: bool = False

    @classmethod
    def _from_yaml(cls, data: Mapping[str, Any]) -> AdditionalRelation:
        return cls(
            table=_text(data.get("table")),
            columns=_strings(data.get("columns"), "relations.columns"),
            cardinality=_text(data.get("cardinality")),
            parent_table=_text(data.get("parentTable")),
            parent_columns=_strings(data.get("parentColumns"), "relations.parentColumns"),
            parent_cardinality=_text(data.get("parentCardinality")),
            definition=_text(data.get("def")),
            override=bool(data.get("override")),
        )


@dataclass
class AdditionalComment:
    """Comments and labels declared in the configuration for one table."""

    table: str = ""
    table_comment: str = ""
    column_comments: dict[str, str] = field(default_factory=dict)
    column_labels: dict[str, list[str]] = field(default_factory=dict)
    index_comments: dict[str, str] = field(default_factory=dict)
    constraint_comments: dict[str, str] = field(default_factory=dict)
    trigger_comments: dict[str, str] = field(default_factory=dict)
    labels: list[str] = field(default_factory=list)

    @classmethod
    def _from_yaml(cls, data: Mapping[str, Any]) -> AdditionalComment:
        column_labels = {
            str(name): _strings(labels, "comments.columnLabels")
            for name, labels in _mapping(data.get("columnLabels"), "comments.columnLabels").items()
        }
        return cls(
            table=_text(data.get("table")),
            table_comment=_text(data.get("tableComment")),
            column_comments=_string_map(data.get("columnComments"), "comments.columnComments"),
            column_labels=column_labels,
            index_comments=_string_map(data.get("indexComments"), "comments.indexComments"),
            constraint_comments=_string_map(
                data.get("constraintComments"), "comments.constraintComments"
            ),
            trigger_comments=_string_map(data.get("triggerComments"), "comments.triggerComments"),
            labels=_strings(data.get("labels"), "comments.labels"),
        )


@dataclass
class DetectVirtualRelations:
    """Settings for detecting relations from column names."""

    enabled: bool = False
    strategy: str = ""


@dataclass
class ViewpointGroup:
    """A group of tables inside a viewpoint."""

    name: str = ""
    desc: str = ""
    labels: list[str] = field(default_factory=list)
    tables: list[str] = field(default_factory=list)
    color: str = ""

    @classmethod
    def _from_yaml(cls, data: Mapping[str, Any]) -> ViewpointGroup:
        return cls(
            name=_text(data.get("name")),
            desc=_text(data.get("desc")),
            labels=_strings(data.get("labels"), "groups.labels"),
            tables=_strings(data.get("tables"), "groups.tables"),
            color=_text(data.get("color")),
        )


@dataclass
class ConfigViewpoint:
    """A viewpoint declared in the configuration."""

    name: str = ""
    desc: str = ""
    labels: list[str] = field(default_factory=list)
    tables: list[str] = field(default_factory=list)
    groups: list[ViewpointGroup] = field(default_factory=list)
    distance: int = 0

    @classmethod
    def _from_yaml(cls, data: Mapping[str, Any]) -> ConfigViewpoint:
        return cls(
            name=_text(data.get("name")),
            desc=_text(data.get("desc")),
            labels=_strings(data.get("labels"), "viewpoints.labels"),
            tables=_strings(data.get("tables"), "viewpoints.tables"),
            groups=[
                ViewpointGroup._from_yaml(group)
                for group in _items(data.get("groups"), "viewpoints.groups")
            ],
            distance=int(data.get("distance") or 0),
        )


_TEMPLATE_KEYS = {
    "md": ("index", "table", "viewpoint", "enum"),
    "dot": ("schema", "table"),
    "puml": ("schema", "table"),
    "mermaid": ("schema", "table"),
}


@dataclass
class Templates:
    """Paths of template files overriding the built-in ones, per output kind."""

    md: dict[str, str] = field(default_factory=dict)
    dot: dict[str, str] = field(default_factory=dict)
    puml: dict[str, str] = field(default_factory=dict)
    mermaid: dict[str, str] = field(default_factory=dict)

    @classmethod
    def _from_yaml(cls, value: Any) -> Templates:
        data = _mapping(value, "templates")
        kwargs = {}
        for kind, keys in _TEMPLATE_KEYS.items():
            section = _mapping(data.get(kind), f"templates.{kind}")
            kwargs[kind] = {key: _text(section[key]) for key in keys if section.get(key)}
        return cls(**kwargs)


Option = Callable[["Config"], None]


def dsn_url(dsn: str) -> Option:
    """Set the DSN URL."""

    def apply(config: Config) -> None:
        config.dsn.url = dsn

    return apply


def doc_path(path: str) -> Option:
    """Set the document directory."""

    def apply(config: Config) -> None:
        config.doc_path = path

    return apply


def adjust(flag: bool) -> Option:
    """Turn on table width adjustment when ``flag`` is true."""

    def apply(config: Config) -> None:
        if flag:
            config.format.adjust = True

    return apply


def sort(flag: bool) -> Option:
    """Turn on sorting when ``flag`` is true."""

    def apply(config: Config) -> None:
        if flag:
            config.format.sort = True

    return apply


def er_skip(skip: bool) -> Option:
    """Set whether ER diagrams are skipped."""

    def apply(config: Config) -> None:
        config.er.skip = skip

    return apply


def er_format(fmt: str) -> Option:
    """Set the ER diagram format unless ``fmt`` is empty."""

    def apply(config: Config) -> None:
        if fmt:
            config.er.format = fmt

    return apply


def distance(value: int) -> Option:
    """Set the distance of related tables to include."""

    def apply(config: Config) -> None:
        config.distance = value

    return apply


def base_url(url: str) -> Option:
    """Set the base URL for links unless ``url`` is empty."""

    def apply(config: Config) -> None:
        if url:
            config.base_url = url

    return apply


def include(names: list[str]) -> Option:
    """Set the tables to include unless ``names`` is empty."""

    def apply(config: Config) -> None:
        if names:
            config.include = list(names)

    return apply


def exclude(names: list[str]) -> Option:
    """Set the tables to exclude unless ``names`` is empty."""

    def apply(config: Config) -> None:
        if names:
            config.exclude = list(names)

    return apply


def include_labels(labels: list[str]) -> Option:
    """Set the table labels to include unless ``labels`` is empty."""

    def apply(config: Config) -> None:
        if labels:
            config.include_labels = list(labels)

    return apply


_ENV_RE = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}|\$([A-Za-z_][A-Za-z0-9_]*)")


def expand_env(text: str) -> str:
    """Replace ``$NAME`` and ``${NAME}`` with environment values; unset ones become empty."""
    return _ENV_RE.sub(lambda m: os.environ.get(m.group(1) or m.group(2), ""), text)


_CONSTRAINT_RE = re.compile(r"^\s*(!=|>=|<=|~>|==|=|>|<|~|\^)?\s*v?(\d\S*)\s*$")


def _parse_version(text: str) -> Version:
    try:
        return Version(text.strip().removeprefix("v"))
    except InvalidVersion:
        raise ConfigError(f"invalid version: {text}") from None


def _bump(release: tuple[int, ...], keep: int) -> Version:
    parts = list(release[:keep])
    parts[-1] += 1
    return Version(".".join(str(part) for part in parts))


def _constraint(op: str, bound: Version) -> Callable[[Version], bool]:
    release = bound.release
    if op in ("", "=", "=="):
        return lambda v: v == bound
    if op == "!=":
        return lambda v: v != bound
    if op == ">":
        return lambda v: v > bound
    if op == ">=":
        return lambda v: v >= bound
    if op == "<":
        return lambda v: v < bound
    if op == "<=":
        return lambda v: v <= bound
    if op == "~":
        upper = _bump(release, 2 if len(release) >= 2 else 1)
    elif op == "~>":
        upper = _bump(release, max(len(release) - 1, 1))
    else:
        nonzero = next((i for i, part in enumerate(release) if part), len(release) - 1)
        upper = _bump(release, nonzero + 1)
    return lambda v: bound <= v < upper


def _parse_constraints(text: str) -> list[list[Callable[[Version], bool]]]:
    alternatives = []
    for alternative in text.split("||"):
        group = []
        for part in alternative.split(","):
            found = _CONSTRAINT_RE.match(part)
            if found is None:
                raise ConfigError(f"improper constraint: {part.strip()}")
            group.append(_constraint(found.group(1) or "", _parse_version(found.group(2))))
        alternatives.append(group)
    return alternatives


@dataclass
class Config:
    """Settings for documenting a database."""

    name: str = ""
    desc: str = ""
    labels: list[str] = field(default_factory=list)
    dsn: DSN = field(default_factory=DSN)
    doc_path: str = ""
    format: Format = field(default_factory=Format)
    er: ER = field(default_factory=ER)
    include: list[str] = field(default_factory=list)
    exclude: list[str] = field(default_factory=list)
    distance: int = 0
    lint: Lint = field(default_factory=Lint)
    lint_exclude: list[str] = field(default_factory=list)
    viewpoints: list[ConfigViewpoint] = field(default_factory=list)
    relations: list[AdditionalRelation] = field(default_factory=list)
    comments: list[AdditionalComment] = field(default_factory=list)
    dictionary: dict[str, str] = field(default_factory=dict)
    templates: Templates = field(default_factory=Templates)
    detect_virtual_relations: DetectVirtualRelations = field(
        default_factory=DetectVirtualRelations
    )
    base_url: str = ""
    required_version: str = ""
    disable_output_schema: bool = False
    merged_dictionary: dict[str, str] = field(default_factory=dict)
    include_labels: list[str] = field(default_factory=list)
    path: str = ""
    root: str = ""

    def __post_init__(self) -> None:
        self._set_default()

    def load(self, config_path: str, *args: Option) -> None:
        """Load file, environment and options in turn, then fill defaults and validate."""
        self.load_config_file(config_path)
        self.load_environ()
        self.load_option(*args)
        self._set_default()
        self.validate()

    def load_option(self, *args: Option) -> None:
        """Apply each option in order."""
        for option in args:
            option(self)

    def load_environ(self) -> None:
        """Override the DSN and document path from the environment."""
        dsn = os.environ.get(DSN_ENV, "")
        if dsn:
            self.dsn.url = dsn
        path = os.environ.get(DOC_PATH_ENV, "")
        if path:
            self.doc_path = path

    def load_config_file(self, path: str) -> None:
        """Load ``path``, or the single default config file found when it is empty."""
        if not path and not os.environ.get(DSN_ENV):
            found = [
                name
                for name in DEFAULT_CONFIG_FILE_PATHS
                if os.path.isfile(os.path.join(self.root, name))
            ]
            if not found:
                return
            if len(found) > 1:
                raise ConfigError(f"duplicate config file [{', '.join(found)}]")
            path = os.path.join(self.root, found[0])
        if not path:
            return
        full_path = os.path.normpath(os.path.abspath(path))
        try:
            data = Path(full_path).read_bytes()
        except OSError as exc:
            raise ConfigError(f"failed to load config file: {exc}") from exc
        self.path = full_path
        self.load_config(data)

    def load_config(self, data: bytes | str) -> None:
        """Read YAML settings from ``data``, expanding environment variables first."""
        text = data.decode("utf-8") if isinstance(data, bytes) else data
        try:
            parsed = yaml.safe_load(expand_env(text))
        except yaml.YAMLError as exc:
            raise ConfigError(f"failed to load config file: {exc}") from exc
        if parsed is None:
            parsed = {}
        if not isinstance(parsed, Mapping):
            raise ConfigError("failed to load config file: top level must be a mapping")
        try:
            self._apply(parsed)
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"failed to load config file: {exc}") from exc
        self.merged_dictionary.update(self.dictionary)

    def _apply(self, data: Mapping[str, Any]) -> None:
        if "name" in data:
            self.name = _text(data["name"])
        if "desc" in data:
            self.desc = _text(data["desc"])
        if "labels" in data:
            self.labels = _strings(data["labels"], "labels")
        if "dsn" in data:
            self.dsn = DSN._from_yaml(data["dsn"])
        if "docPath" in data:
            self.doc_path = _text(data["docPath"])
        if "format" in data:
            self.format = Format._from_yaml(data["format"])
        if "er" in data:
            self.er = ER._from_yaml(data["er"])
        if "include" in data:
            self.include = _strings(data["include"], "include")
        if "exclude" in data:
            self.exclude = _strings(data["exclude"], "exclude")
        if "distance" in data:
            self.distance = int(data["distance"] or 0)
        if "lint" in data:
            self.lint = lint_from_mapping(data["lint"])
        if "lintExclude" in data:
            self.lint_exclude = _strings(data["lintExclude"], "lintExclude")
        if "viewpoints" in data:
            self.viewpoints = [
                ConfigViewpoint._from_yaml(item) for item in _items(data["viewpoints"], "viewpoints")
            ]
        if "relations" in data:
            self.relations = [
                AdditionalRelation._from_yaml(item) for item in _items(data["relations"], "relations")
            ]
        if "comments" in data:
            self.comments = [
                AdditionalComment._from_yaml(item) for item in _items(data["comments"], "comments")
            ]
        if "dict" in data:
            self.dictionary = _string_map(data["dict"], "dict")
        if "templates" in data:
            self.templates = Templates._from_yaml(data["templates"])
        if "detectVirtualRelations" in data:
            section = _mapping(data["detectVirtualRelations"], "detectVirtualRelations")
            self.detect_virtual_relations = DetectVirtualRelations(
                enabled=bool(section.get("enabled")), strategy=_text(section.get("strategy"))
            )
        if "baseUrl" in data:
            self.base_url = _text(data["baseUrl"])
        if "requiredVersion" in data:
            self.required_version = _text(data["requiredVersion"])
        if "disableOutputSchema" in data:
            self.disable_output_schema = bool(data["disableOutputSchema"])

    def _set_default(self) -> None:
        if not self.doc_path:
            self.doc_path = DEFAULT_DOC_PATH
        if not self.er.format:
            self.er.format = DEFAULT_ER_FORMAT
        if self.er.distance is None:
            self.er.distance = DEFAULT_ER_DISTANCE

    def check_version(self, version: str) -> None:
        """Raise ConfigError unless ``version`` satisfies the required version."""
        if version == "dev" or not self.required_version:
            return
        alternatives = _parse_constraints(self.required_version)
        running = _parse_version(version)
        if not any(all(check(running) for check in group) for group in alternatives):
            raise ConfigError(
                f"the required version for the configuration is '{self.required_version}'. "
                f"however, the running version is '{version}'"
            )

    def validate(self) -> None:
        """Raise ConfigError if the settings are inconsistent."""
        self.check_version(RUNNING_VERSION)
        if self.er.format not in SUPPORT_ER_FORMAT:
            raise ConfigError(f"unsupported ER format: {self.er.format}")
        for i, viewpoint in enumerate(self.viewpoints):
            if not viewpoint.name:
                raise ConfigError(f"viewpoints[{i}] name is required")
            if not viewpoint.desc:
                raise ConfigError(f"viewpoints[{i}] description is required")
            for j, group in enumerate(viewpoint.groups):
                if not group.name:
                    raise ConfigError(f"viewpoints[{i}].groups[{j}] name is required")
                if not group.desc:
                    raise ConfigError(f"viewpoints[{i}].groups[{j}] description is required")

    def masked_dsn(self) -> str:
        """Return the DSN URL with any password replaced by stars."""
        url = self.dsn.url
        try:
            parts = urlsplit(url)
        except ValueError as exc:
            raise ConfigError(f"invalid DSN: {exc}") from exc
        userinfo, at, host = parts.netloc.rpartition("@")
        if not at:
            return url
        user, colon, _ = userinfo.partition(":")
        if not colon:
            return url
        return urlunsplit(parts._replace(netloc=f"{user}:{_MASK}@{host}"))

    def schema_file_path(self) -> str:
        """Return where the schema JSON file lives inside the document directory."""
        return os.path.join(self.doc_path, SCHEMA_FILE_NAME)

    def need_to_generate_er_images(self) -> bool:
        """Tell whether ER diagram images have to be rendered."""
        return not self.er.skip and self.er.format != "mermaid"