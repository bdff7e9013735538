import logging

import pytest

from dbbridge.errors import DbBridgeError
from dbbridge.utils import get_logger, resolve_slow_query_ms, time_call
from dbbridge.utils.logging import CorrelationIdFilter, get_correlation_id, set_correlation_id


def test_correlation_id_round_trip():
    token = set_correlation_id("test-token")
    assert token == "test-token"
    assert get_correlation_id() == "test-token"


def test_correlation_filter_stamps_records():
    set_correlation_id("abc")
    record = logging.LogRecord("dbbridge.tests", logging.INFO, __file__, 1, "msg", None, None)
    assert CorrelationIdFilter().filter(record)
    assert record.correlation_id == "abc"


def test_loggers_live_under_package_namespace():
    assert get_logger("tests.logging").name == "dbbridge.tests.logging"


def test_time_call_logs_duration(caplog):
    logger = get_logger("tests.logging")
    caplog.set_level(logging.DEBUG, logger=logger.name)
    with time_call("unit-test", logger, sql="SELECT 1", threshold_ms=10_000) as timer:
        pass
    records = [record for record in caplog.records if record.name == logger.name]
    assert any("unit-test took" in record.getMessage() for record in records)
    assert records[-1].levelno == logging.DEBUG
    assert records[-1].sql == "SELECT 1"
    assert timer.elapsed_ms >= 0


def test_time_call_warns_above_threshold_and_marks_failures(caplog):
    logger = get_logger("tests.logging")
    caplog.set_level(logging.DEBUG, logger=logger.name)
    with pytest.raises(ZeroDivisionError):
        with time_call("slow", logger, threshold_ms=0):
            1 / 0
    record = [r for r in caplog.records if r.name == logger.name][-1]
    assert record.levelno == logging.WARNING
    assert record.failed is True


def test_resolve_slow_query_ms(monkeypatch):
    monkeypatch.delenv("DBBRIDGE_SLOW_QUERY_MS", raising=False)
    assert resolve_slow_query_ms(default=100) == 100
    monkeypatch.setenv("DBBRIDGE_SLOW_QUERY_MS", "250")
    assert resolve_slow_query_ms(default=100) == 250
    assert resolve_slow_query_ms(default=100, override=5) == 5


def test_resolve_slow_query_ms_rejects_bad_values(monkeypatch):
    monkeypatch.setenv("DBBRIDGE_SLOW_QUERY_MS", "fast")
    with pytest.raises(DbBridgeError):
        resolve_slow_query_ms()
    monkeypatch.setenv("DBBRIDGE_SLOW_QUERY_MS", "-1")
    with pytest.raises(DbBridgeError):
        resolve_slow_query_ms()
    with pytest.raises(DbBridgeError):
        resolve_slow_query_ms(override=-3)
