import annotated_types
import pytest
from pydantic import Field

from fluent_config import ConstraintTable, Email, Length, Pattern, Predicate, Range, Required, Url
from fluent_config.constraints import collect_constraints, evaluate_all


def test_required():
    assert Required().evaluate("A", None) == "Validation failed for 'A' (Required): a value is required"
    assert Required().evaluate("A", "  ") is not None
    assert Required().evaluate("A", 0) is None


def test_none_skips_everything_but_required():
    assert Range(min=1).evaluate("A", None) is None
    assert Pattern(r"\d+").evaluate("A", None) is None


def test_range():
    assert Range(1, 10).evaluate("Port", 5) is None
    assert Range(1, 10).evaluate("Port", 11) == "Validation failed for 'Port' (Range): value must be between 1 and 10"
    assert Range(min=1).evaluate("Port", 0).endswith("value must be at least 1")


def test_length_and_pattern():
    assert Length(2, 4).evaluate("Name", "a") is not None
    assert Length(2, 4).evaluate("Name", "abc") is None
    assert Pattern(r"[a-z]+").evaluate("Name", "abc") is None
    assert Pattern(r"[a-z]+").evaluate("Name", "abc1") is not None


def test_email_and_url():
    assert Email().evaluate("Mail", "ops@example.com") is None
    assert Email().evaluate("Mail", "ops") is not None
    assert Url().evaluate("Site", "https://example.com") is None
    assert Url().evaluate("Site", "mailto:ops@example.com") is not None


def test_custom_message():
    assert Range(1, 2, message="pick 1 or 2").evaluate("X", 3) == "Validation failed for 'X' (Range): pick 1 or 2"


def test_annotated_types_translation():
    constraints = collect_constraints([annotated_types.Ge(1), annotated_types.MaxLen(3), Field(lt=5)])
    assert len(constraints) == 3
    assert all(c.pydantic_native for c in constraints)
    errors = evaluate_all("X", 0, constraints[:1])
    assert errors == ["Validation failed for 'X' (Range): value must be at least 1"]


def test_constraint_table_lookup_is_case_insensitive():
    table = ConstraintTable().constrain("Api:Port", lambda v: v != 0, "port must be set")
    table.add("Api:Host", Required())
    assert len(table) == 2
    found = table.for_path("api:port")
    assert len(found) == 1
    assert found[0].evaluate("Api:Port", 0) == "Validation failed for 'Api:Port' (Predicate): port must be set"
    assert table.for_path("api:port", case_sensitive=True) == []


def test_constraint_table_argument_checks():
    with pytest.raises(ValueError):
        ConstraintTable().add("", Required())
    with pytest.raises(TypeError):
        ConstraintTable().constrain("A", "not callable", "msg")


def test_predicate_name():
    check = Predicate(lambda v: v % 2 == 0, "must be even", name="Even")
    assert check.evaluate("N", 3) == "Validation failed for 'N' (Even): must be even"
