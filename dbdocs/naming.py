"""Naming strategies used to detect virtual relations from column names."""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass

Namer = Callable[[str], str]

_PRIMARY_KEY = "id"

_UNCOUNTABLE = frozenset(
    {
        "equipment",
        "information",
        "rice",
        "money",
        "species",
        "series",
        "fish",
        "sheep",
        "deer",
        "news",
        "metadata",
        "staff",
        "feedback",
        "software",
        "hardware",
    }
)

_IRREGULAR = {
    "person": "people",
    "man": "men",
    "woman": "women",
    "child": "children",
    "ox": "oxen",
    "mouse": "mice",
    "louse": "lice",
    "goose": "geese",
    "tooth": "teeth",
    "foot": "feet",
    "die": "dice",
}
_IRREGULAR_PLURALS = {plural: singular for singular, plural in _IRREGULAR.items()}


def _rules(pairs: tuple[tuple[str, str], ...]) -> tuple[tuple[re.Pattern[str], str], ...]:
    return tuple((re.compile(pattern), replacement) for pattern, replacement in pairs)


_PLURAL_RULES = _rules(
    (
        (r"(quiz)$", r"\1zes"),
        (r"(matr|vert|ind)(?:ix|ex)$", r"\1ices"),
        (r"(alias|status|campus)$", r"\1es"),
        (r"(octop|vir)us$", r"\1i"),
        (r"(ax|test)is$", r"\1es"),
        (r"(bu)s$", r"\1ses"),
        (r"(x|ch|ss|sh|zz)$", r"\1es"),
        (r"([^aeiouy]|qu)y$", r"\1ies"),
        (r"(?:([^f])fe|([lr])f)$", r"\1\2ves"),
        (r"sis$", "ses"),
        (r"([ti])um$", r"\1a"),
        (r"(buffal|tomat|potat|her|ech|vet)o$", r"\1oes"),
        (r"s$", "s"),
        (r"$", "s"),
    )
)

_SINGULAR_RULES = _rules(
    (
        (r"(quiz)zes$", r"\1"),
        (r"(matr)ices$", r"\1ix"),
        (r"(vert|ind)ices$", r"\1ex"),
        (r"(alias|status|campus)(?:es)?$", r"\1"),
        (r"(octop|vir)(?:us|i)$", r"\1us"),
        (r"(ax|test)es$", r"\1is"),
        (r"(analy|ba|diagno|parenthe|progno|synop|the|cri)(?:sis|ses)$", r"\1sis"),
        (r"(shoe)s$", r"\1"),
        (r"(bus)(?:es)?$", r"\1"),
        (r"(buffal|tomat|potat|her|ech|vet)oes$", r"\1o"),
        (r"(x|ch|ss|sh|zz)es$", r"\1"),
        (r"(movie)s$", r"\1"),
        (r"([^aeiouy]|qu)ies$", r"\1y"),
        (r"([lr])ves$", r"\1f"),
        (r"(hive|tive)s$", r"\1"),
        (r"([^f])ves$", r"\1fe"),
        (r"([ti])a$", r"\1um"),
        (r"(ss|us|is)$", r"\1"),
        (r"s$", ""),
    )
)


def _restore_case(original: str, word: str) -> str:
    if original.isupper():
        return word.upper()
    if original[:1].isupper():
        return word[:1].upper() + word[1:]
    return word


def _inflect(
    word: str,
    irregular: dict[str, str],
    keep: dict[str, str],
    rules: tuple[tuple[re.Pattern[str], str], ...],
) -> str:
    if not word:
        return word
    lower = word.lower()
    if lower in _UNCOUNTABLE or lower in keep:
        return word
    if lower in irregular:
        return _restore_case(word, irregular[lower])
    for pattern, replacement in rules:
        if pattern.search(lower):
            return _restore_case(word, pattern.sub(replacement, lower, count=1))
    return word


def pluralize(word: str) -> str:
    """Return the English plural of ``word``."""
    return _inflect(word, _IRREGULAR, _IRREGULAR_PLURALS, _PLURAL_RULES)


def singularize(word: str) -> str:
    """Return the English singular of ``word``."""
    return _inflect(word, _IRREGULAR_PLURALS, _IRREGULAR, _SINGULAR_RULES)


def _require_name(name: str) -> str:
    if not isinstance(name, str):
        raise TypeError(f"column name must be a string, not {type(name).__name__}")
    return name


def _id_prefix(name: str) -> str | None:
    head, sep, tail = _require_name(name).rpartition("_")
    if not sep or tail != _PRIMARY_KEY:
        return None
    return head


def default_parent_table_namer(name: str) -> str:
    """``user_id`` -> ``users``; names not ending in ``_id`` give ``""``."""
    prefix = _id_prefix(name)
    return "" if prefix is None else pluralize(prefix)


def default_parent_column_namer(name: str) -> str:
    """The parent column is always ``id``."""
    _require_name(name)
    return _PRIMARY_KEY


def singular_table_parent_table_namer(name: str) -> str:
    """``user_id`` -> ``user``; names not ending in ``_id`` give ``""``."""
    prefix = _id_prefix(name)
    return "" if prefix is None else singularize(prefix)


def singular_table_parent_column_namer(name: str) -> str:
    """The parent column is always ``id``."""
    _require_name(name)
    return _PRIMARY_KEY


def identical_parent_column_namer(name: str) -> str:
    """The parent column has the same name as the child column."""
    return _require_name(name)


@dataclass(frozen=True)
class NamingStrategy:
    """Pair of namers deriving a parent table and column from a column name."""

    parent_table: Namer
    parent_column: Namer

    def parent_table_name(self, name: str) -> str:
        return self.parent_table(name)

    def parent_column_name(self, name: str) -> str:
        return self.parent_column(name)


_STRATEGIES = {
    "": NamingStrategy(default_parent_table_namer, default_parent_column_namer),
    "default": NamingStrategy(default_parent_table_namer, default_parent_column_namer),
    "singularTableName": NamingStrategy(
        singular_table_parent_table_namer, singular_table_parent_column_namer
    ),
    "identical": NamingStrategy(default_parent_table_namer, identical_parent_column_namer),
    "identicalSingularTableName": NamingStrategy(
        singular_table_parent_table_namer, identical_parent_column_namer
    ),
}


def select_naming_strategy(name: str) -> NamingStrategy:
    """Return the strategy registered under ``name``."""
    try:
        return _STRATEGIES[name]
    except KeyError:
        raise ValueError(f"naming strategy does not exist. strategy: {name}") from None