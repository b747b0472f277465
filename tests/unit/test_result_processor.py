"""
Unit tests for results/processor.py
"""

import logging

import pytest

from dynparams.bootstrap.config import ExecutionOptions
from dynparams.results import (
    ERROR_PREFIX,
    ExecutionResult,
    ResultProcessor,
    flatten_one_level,
    to_display_string,
)


class TestFlattenOneLevel:
    """Test raw result flattening."""

    def test_none_is_empty(self):
        assert flatten_one_level(None) == []

    def test_scalar_is_single_item(self):
        assert flatten_one_level(5) == [5]
        assert flatten_one_level("abc") == ["abc"]

    def test_nested_sequences_spliced(self):
        assert flatten_one_level([["a", "b"], "c", ("d",)]) == ["a", "b", "c", "d"]

    def test_only_one_level(self):
        assert flatten_one_level([[["a"]], "b"]) == [["a"], "b"]

    def test_generator_input(self):
        assert flatten_one_level(x for x in ["a", "b"]) == ["a", "b"]

    def test_top_level_mapping_yields_keys(self):
        assert flatten_one_level({"east": 1, "west": 2}) == ["east", "west"]

    def test_nested_mapping_kept_whole(self):
        assert flatten_one_level([{"k": "v"}]) == [{"k": "v"}]


class TestToDisplayString:

    def test_conversions(self):
        assert to_display_string(None) is None
        assert to_display_string(1.5) == "1.5"
        assert to_display_string(b"prod") == "prod"
        assert to_display_string(True) == "True"


class TestResultProcessor:
    """Test normalization, truncation and warnings."""

    @pytest.fixture
    def processor(self):
        return ResultProcessor(ExecutionOptions(max_results=5, progress_threshold_ms=100))

    def test_plain_list(self, processor):
        result = processor.process("Region", ["east", "west"], elapsed_ms=3)
        assert result.choices == ("east", "west")
        assert result.warnings == ()
        assert result.success
        assert not result.truncated
        assert not result.slow

    def test_values_stringified_in_order(self, processor):
        result = processor.process("Size", [3, 1, 2.5], elapsed_ms=0)
        assert result.choices == ("3", "1", "2.5")

    def test_duplicates_kept(self, processor):
        result = processor.process("Region", ["east", "east"], elapsed_ms=0)
        assert result.choices == ("east", "east")

    def test_empty_values_filtered(self, processor):
        result = processor.process("Region", ["east", "", None, "   ", "west"], elapsed_ms=0)
        assert result.choices == ("east", "west")
        assert result.filtered_empty_count == 3
        assert "Filtered 3 empty values from data source for 'Region'" in result.warnings

    def test_only_empty_values(self, processor):
        """Test all-empty output is an empty success with a warning."""
        result = processor.process("Region", ["", "  ", None], elapsed_ms=0)
        assert result.choices == ()
        assert result.success
        assert result.is_empty
        assert "Data source for 'Region' returned no results" in result.warnings

    def test_none_result(self, processor):
        result = processor.process("Region", None, elapsed_ms=0)
        assert result.is_empty
        assert result.filtered_empty_count == 0

    @pytest.mark.parametrize("extra", [1, 3, 50])
    def test_truncation(self, processor, extra):
        """Test MaxResults + K entries are cut to MaxResults in order."""
        raw = [f"item-{i}" for i in range(5 + extra)]
        result = processor.process("Server", raw, elapsed_ms=0)

        assert result.choices == tuple(raw[:5])
        assert result.truncated
        assert result.original_count == 5 + extra
        assert any(f"truncated from {5 + extra} to 5" in w for w in result.warnings)

    def test_exactly_max_results_not_truncated(self, processor):
        result = processor.process("Server", list("abcde"), elapsed_ms=0)
        assert len(result.choices) == 5
        assert not result.truncated

    def test_slow_warning(self, processor, caplog):
        """Test a slow success still carries a performance warning."""
        with caplog.at_level(logging.INFO, logger="dynparams"):
            result = processor.process("Server", ["a"], elapsed_ms=250)

        assert result.success
        assert result.slow
        assert "took 250ms (progress threshold 100ms)" in result.warnings[-1]
        assert "Executed data source for 'Server'" in caplog.text

    def test_extra_warnings_first(self, processor):
        result = processor.process("Server", [], elapsed_ms=0, extra_warnings=["from executor"])
        assert result.warnings[0] == "from executor"

    def test_options_swapped_wholesale(self, processor):
        processor.options = ExecutionOptions(max_results=2)
        assert len(processor.process("Server", list("abcd"), elapsed_ms=0).choices) == 2


class TestExecutionResult:
    """Test ExecutionResult value object."""

    def test_error_result(self):
        result = ExecutionResult.error_result("Server", "boom", elapsed_ms=12, error_type="SchemaError")
        assert result.choices == (f"{ERROR_PREFIX}boom",)
        assert result.choices[0] == "Error: boom"
        assert not result.success
        assert not result.is_empty
        assert result.error_type == "SchemaError"

    def test_immutable(self):
        result = ExecutionResult(parameter="Server")
        with pytest.raises(AttributeError):
            result.choices = ("x",)

    def test_to_dict(self):
        data = ExecutionResult(parameter="Server", choices=("a",), warnings=("w",)).to_dict()
        assert data["choices"] == ["a"]
        assert data["warnings"] == ["w"]
        assert data["error"] is None
