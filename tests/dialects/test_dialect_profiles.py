from datetime import date, datetime

import pytest

from dbbridge.dialects import (
    DIALECTS,
    ConstraintSignature,
    DateTimePrecision,
    DateTimeValue,
    EngineType,
    RowLimitStyle,
    get_dialect,
    resolve_engine,
)
from dbbridge.errors import UnknownEngineError
from dbbridge.query import WriteStatement


def test_every_engine_has_a_profile():
    assert set(DIALECTS) == set(EngineType)
    for engine, profile in DIALECTS.items():
        assert profile.engine is engine


def test_legacy_engine_names_resolve():
    assert resolve_engine("SQL Server") is EngineType.SQLSERVER
    assert resolve_engine("postgres") is EngineType.POSTGRESQL
    assert resolve_engine("MariaDB") is EngineType.MYSQL
    assert get_dialect("sqlite3") is DIALECTS[EngineType.SQLITE]


def test_unknown_engine_raises():
    with pytest.raises(UnknownEngineError) as excinfo:
        get_dialect("dbase")
    assert "dbase" in str(excinfo.value)


def test_get_dialect_passes_profiles_through():
    profile = get_dialect(EngineType.ORACLE)
    assert get_dialect(profile) is profile


def test_escape_field_per_engine():
    assert get_dialect("sqlserver").escape_field("Station.Elevation") == "[Station].[Elevation]"
    assert get_dialect("mysql").escape_field("name") == "`name`"
    assert get_dialect("postgresql").escape_field("name") == '"name"'
    assert get_dialect("h2").escape_field("name") == "name"


def test_escape_field_leaves_functions_and_escaped_names():
    sqlserver = get_dialect("sqlserver")
    assert sqlserver.escape_field("COUNT(*)") == "COUNT(*)"
    assert sqlserver.escape_field("[Name]") == "[Name]"


def test_quote_string_uses_engine_escape():
    assert get_dialect("postgresql").quote_string("O'Brien") == "'O''Brien'"
    assert get_dialect("mysql").quote_string("O'Brien") == "'O\\'Brien'"


def test_backslash_escaping_engines_double_backslashes():
    assert get_dialect("mysql").quote_string("C:\\") == "'C:\\\\'"
    assert get_dialect("informix").quote_string("a\\'b") == "'a\\\\\\'b'"
    assert get_dialect("postgresql").quote_string("C:\\") == "'C:\\'"


def test_mysql_insert_with_trailing_backslash_stays_terminated():
    sql = WriteStatement(dialect="mysql").add_table("t").add_field("p").add_value("C:\\").to_insert_string()
    assert sql == "INSERT INTO t (`p`) VALUES ('C:\\\\')"


def test_boolean_literals():
    assert get_dialect("access").format_value(True) == "True"
    assert get_dialect("sqlserver").format_value(False) == "0"
    assert get_dialect("postgresql").format_value(True) == "TRUE"


def test_format_value_handles_missing_numbers():
    sqlite = get_dialect("sqlite")
    assert sqlite.format_value(None) == "NULL"
    assert sqlite.format_value(float("nan")) == "NULL"
    assert sqlite.format_value(1.5) == "1.5"
    assert sqlite.format_value(7) == "7"


def test_format_value_rejects_unknown_types():
    with pytest.raises(TypeError):
        get_dialect("sqlite").format_value(object())


def test_access_datetime_is_month_first_with_hashes():
    value = datetime(2021, 3, 4, 5, 6, 7)
    assert get_dialect("access").format_datetime(value) == "#03-04-2021 05:06:07#"
    assert get_dialect("access").format_datetime(value, escape=False) == "03-04-2021 05:06:07"


def test_informix_datetime_respects_precision():
    informix = get_dialect("informix")
    value = datetime(2021, 3, 4, 5, 6, 7)
    assert informix.format_datetime(value, DateTimePrecision.MINUTE) == "DATETIME (2021-03-04 05:06)"
    assert informix.format_datetime(value, DateTimePrecision.MONTH) == "DATETIME (2021-03)"


def test_postgres_datetime_always_has_full_date():
    postgres = get_dialect("postgresql")
    assert postgres.format_datetime(datetime(2021, 3, 4, 5, 6, 7), DateTimePrecision.YEAR) == "'2021-03-04'"
    assert postgres.format_value(date(2021, 3, 4)) == "'2021-03-04'"


def test_datetime_value_carries_precision():
    sqlserver = get_dialect("sqlserver")
    value = DateTimeValue(datetime(2021, 3, 4, 5, 6, 7), DateTimePrecision.HOUR)
    assert sqlserver.format_value(value) == "'2021-03-04 05'"


def test_row_limit_styles():
    assert get_dialect("sqlserver").row_limit_style is RowLimitStyle.TOP
    assert get_dialect("oracle").row_limit_style is RowLimitStyle.ROWNUM
    assert get_dialect("access").row_limit_style is RowLimitStyle.NONE
    assert get_dialect("sqlite").row_limit_style is RowLimitStyle.LIMIT


def test_constraint_signatures_match_by_value():
    sqlserver = get_dialect("sqlserver")
    assert sqlserver.matches_constraint_violation("23000", 2627)
    assert sqlserver.matches_constraint_violation("23000", 2601)
    assert not sqlserver.matches_constraint_violation("23000", 547)
    assert get_dialect("postgresql").matches_constraint_violation("23505", 99)
    assert get_dialect("mysql").matches_constraint_violation(None, 1062)
    assert not get_dialect("mysql").matches_constraint_violation(None, 1452)


def test_engines_without_signatures():
    for engine in ("informix", "oracle", "h2"):
        profile = get_dialect(engine)
        assert not profile.has_constraint_signatures
        assert not profile.matches_constraint_violation("23000", 1)


def test_constraint_signature_needs_a_code():
    with pytest.raises(ValueError):
        ConstraintSignature()
