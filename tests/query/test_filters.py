import pytest

from dbbridge.errors import FilterCriteriaError
from dbbridge.query import FilterType, and_clause, format_where, or_clause


def test_numeric_bare_number_defaults_to_equals():
    assert format_where("Elevation", "550", FilterType.INTEGER) == "Elevation = 550"


def test_numeric_operators():
    assert format_where("Elevation", "<= 550", FilterType.INTEGER) == "Elevation <= 550"
    assert format_where("Elevation", ">=12", "integer") == "Elevation >= 12"
    assert format_where("Depth", "< 1.5", FilterType.DOUBLE) == "Depth < 1.5"
    assert format_where("Depth", "= 3", FilterType.FLOAT) == "Depth = 3.0"


def test_numeric_between_normalizes_bounds():
    assert (
        format_where("Elevation", "BETWEEN 500 AND 550", FilterType.INTEGER)
        == "Elevation BETWEEN 500 AND 550"
    )
    assert format_where("Depth", "between 1 and 2.5", FilterType.DOUBLE) == "Depth BETWEEN 1.0 AND 2.5"


@pytest.mark.parametrize(
    "criteria,value_type",
    [
        ("BETWEEN 1_0 AND 20", FilterType.INTEGER),
        ("BETWEEN 10 AND inf", FilterType.DOUBLE),
        ("nan", FilterType.DOUBLE),
        (">= inf", FilterType.FLOAT),
        ("= Infinity", FilterType.DOUBLE),
        ("1e400", FilterType.DOUBLE),
        ("١٢", FilterType.INTEGER),
        ("1_000", FilterType.DOUBLE),
    ],
)
def test_non_literal_numbers_are_rejected(criteria, value_type):
    with pytest.raises(FilterCriteriaError):
        format_where("Elevation", criteria, value_type)


def test_between_must_have_two_bounds():
    with pytest.raises(FilterCriteriaError) as excinfo:
        format_where("Elevation", "BETWEEN 500", FilterType.INTEGER)
    assert "BETWEEN 12 AND 56" in str(excinfo.value)
    with pytest.raises(FilterCriteriaError):
        format_where("Elevation", "BETWEEN 500 AND 550 AND 600", FilterType.INTEGER)


def test_numeric_wildcard_matches_everything():
    assert format_where("Elevation", "*", FilterType.INTEGER) is None
    assert format_where("Elevation", None, FilterType.DOUBLE) is None


def test_invalid_number_lists_examples():
    with pytest.raises(FilterCriteriaError) as excinfo:
        format_where("Elevation", "abc", FilterType.INTEGER)
    assert "BETWEEN 500 AND 550" in str(excinfo.value)
    with pytest.raises(ValueError):
        format_where("Elevation", "1.5", FilterType.INTEGER)


def test_null_checks_pass_through():
    assert format_where("Owner", "is null", FilterType.STRING) == "Owner is null"
    assert format_where("Elevation", "IS NOT NULL", FilterType.INTEGER) == "Elevation IS NOT NULL"


def test_string_forms():
    assert format_where("State", "LIKE COLO*") == "State LIKE 'COLO%'"
    assert format_where("State", "= COLORADO") == "State = 'COLORADO'"
    assert format_where("State", "COLORADO") == "State LIKE 'COLORADO'"
    assert format_where("State", "*") == "State LIKE '%'"


def test_string_rejects_single_quotes():
    with pytest.raises(FilterCriteriaError):
        format_where("Name", "O'Brien")


def test_string_criteria_required():
    with pytest.raises(FilterCriteriaError):
        format_where("Name", None)
    with pytest.raises(FilterCriteriaError):
        format_where("Name", "   ")


def test_and_or_clauses():
    assert and_clause(["a = 1", "b = 2"]) == "(a = 1 AND b = 2)"
    assert or_clause(["a = 1", "b = 2"]) == "(a = 1 OR b = 2)"
