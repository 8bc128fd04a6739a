import pytest

from dbdocs.naming import (
    default_parent_column_namer,
    default_parent_table_namer,
    identical_parent_column_namer,
    pluralize,
    select_naming_strategy,
    singular_table_parent_column_namer,
    singular_table_parent_table_namer,
    singularize,
)


@pytest.mark.parametrize("name, want", [("user_id", "user")])
def test_singular_table_parent_table_namer(name, want):
    assert singular_table_parent_table_namer(name) == want


@pytest.mark.parametrize("name, want", [("user_id", "id")])
def test_singular_table_parent_column_namer(name, want):
    assert singular_table_parent_column_namer(name) == want


@pytest.mark.parametrize("name, want", [("user_id", "user_id")])
def test_identical_parent_column_namer(name, want):
    assert identical_parent_column_namer(name) == want


def test_default_parent_table_namer():
    assert default_parent_table_namer("user_id") == "users"
    assert default_parent_table_namer("username") == ""
    assert default_parent_table_namer("user_uuid") == ""


def test_default_parent_column_namer():
    assert default_parent_column_namer("user_id") == "id"


@pytest.mark.parametrize("word", ["user", "category", "box", "person", "status", "post"])
def test_pluralize_singularize_round_trip(word):
    assert singularize(pluralize(word)) == word


def test_pluralize_keeps_plural():
    assert pluralize("users") == "users"
    assert singularize("user") == "user"


def test_select_naming_strategy():
    default = select_naming_strategy("")
    assert default.parent_table_name("user_id") == "users"
    assert default.parent_column_name("user_id") == "id"
    singular = select_naming_strategy("identicalSingularTableName")
    assert singular.parent_table_name("user_id") == "user"
    assert singular.parent_column_name("user_id") == "user_id"


def test_select_naming_strategy_unknown():
    with pytest.raises(ValueError, match="naming strategy does not exist"):
        select_naming_strategy("nope")