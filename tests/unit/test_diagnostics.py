"""
Unit tests for diagnostics/log.py
"""

import json
import logging
from datetime import datetime, timedelta

import pytest

from dynparams.diagnostics import DiagnosticEntry, DiagnosticKind, DiagnosticLog


class TestDiagnosticKind:

    def test_values(self):
        assert DiagnosticKind.EXECUTION_FAILURE.value == "execution_failure"
        assert len(list(DiagnosticKind)) == 6


class TestDiagnosticEntry:

    def test_to_dict_serializes_values(self):
        entry = DiagnosticEntry(
            kind=DiagnosticKind.EXECUTION_FAILURE,
            message="boom",
            parameter="Region",
            dependency_values={"Environment": "Production", "When": datetime(2024, 1, 1)},
        )
        data = entry.to_dict()
        assert data["kind"] == "execution_failure"
        assert data["dependency_values"]["Environment"] == "Production"
        assert data["dependency_values"]["When"] == "2024-01-01 00:00:00"


class TestDiagnosticLog:
    """Test recording and querying."""

    @pytest.fixture
    def log(self):
        log = DiagnosticLog()
        log.record(DiagnosticKind.EXECUTION_FAILURE, "region failed", parameter="Region", cascade_id="c1")
        log.record(DiagnosticKind.RESULT_WARNING, "server empty", parameter="Server", cascade_id="c1")
        log.record(DiagnosticKind.PERFORMANCE_WARNING, "region slow", parameter="Region", cascade_id="c2")
        return log

    def test_query_by_parameter_case_insensitive(self, log):
        entries = log.get_by_parameter("region")
        assert [e.message for e in entries] == ["region slow", "region failed"]

    def test_query_by_kind(self, log):
        assert [e.message for e in log.get_by_kind(DiagnosticKind.RESULT_WARNING)] == ["server empty"]

    def test_query_combined_filters(self, log):
        entries = log.query(
            parameter="Region",
            kinds={DiagnosticKind.EXECUTION_FAILURE, DiagnosticKind.PERFORMANCE_WARNING},
            cascade_id="c1",
        )
        assert [e.message for e in entries] == ["region failed"]

    def test_query_since(self, log):
        assert log.query(since=datetime.utcnow() + timedelta(minutes=1)) == []

    def test_limit_and_recent(self, log):
        assert len(log.query(limit=2)) == 2
        assert [e.message for e in log.get_recent(1)] == ["region slow"]
        assert log.get_recent(0) == []

    def test_bounded(self):
        log = DiagnosticLog(max_entries=3)
        for i in range(5):
            log.record(DiagnosticKind.CASCADE, f"cascade {i}")
        assert len(log) == 3
        assert log.get_recent(3)[-1].message == "cascade 2"

    def test_listener_called_and_errors_swallowed(self):
        log = DiagnosticLog()
        seen = []
        log.on_entry(lambda entry: seen.append(entry.message))
        log.on_entry(lambda entry: 1 / 0)

        log.record(DiagnosticKind.CASCADE, "done")
        assert seen == ["done"]
        assert len(log) == 1

    def test_mirrored_to_logger(self, caplog):
        log = DiagnosticLog()
        with caplog.at_level(logging.WARNING, logger="dynparams"):
            log.record(DiagnosticKind.RESULT_WARNING, "no results", parameter="Server")

        record = caplog.records[-1]
        assert record.levelno == logging.WARNING
        assert record.getMessage() == "no results"
        assert record.parameter == "Server"

    def test_statistics_and_json(self, log):
        stats = log.get_statistics()
        assert stats["total_entries"] == 3
        assert stats["by_kind"]["execution_failure"] == 1

        data = json.loads(log.to_json())
        assert [d["parameter"] for d in data] == ["Region", "Server", "Region"]

    def test_clear(self, log):
        log.clear()
        assert len(log) == 0
