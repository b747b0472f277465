"""
Unit tests for parameters/declarations.py

Tests validation of declaration feed records and dependency inference.
"""

from pathlib import Path

import pytest

from dynparams.errors import ConfigurationError, SelfDependencyError
from dynparams.parameters import (
    DeclaredSourceKind,
    ParameterDeclaration,
    SourceKind,
    infer_dependencies,
    load_declarations,
)


class TestParameterDeclaration:
    """Test record validation."""

    def test_pascal_case_record(self):
        """Test the collaborator's key spelling is accepted."""
        declaration = ParameterDeclaration.model_validate({
            "Name": "Region",
            "DependsOn": ["Environment"],
            "ScriptBlock": "['east', 'west']",
            "DefaultValue": "west",
            "ShowRefreshButton": True,
        })
        assert declaration.source_kind is DeclaredSourceKind.COMPUTED

        spec = declaration.to_spec()
        assert spec.name == "Region"
        assert spec.source_kind is SourceKind.COMPUTED
        assert spec.depends_on == ("Environment",)
        assert spec.default == "west"
        assert spec.show_refresh is True

    def test_snake_case_tabular_record(self):
        spec = ParameterDeclaration(
            name="Server",
            csv_path="servers.csv",
            csv_column="Server",
            csv_filter="Environment == 'Production'",
            script_directory="/srv/forms",
        ).to_spec()
        assert spec.source_kind is SourceKind.TABULAR
        assert spec.source.row_filter == "Environment == 'Production'"
        assert spec.script_directory == Path("/srv/forms")

    def test_depends_on_comma_string(self):
        declaration = ParameterDeclaration.model_validate(
            {"Name": "Server", "DependsOn": "Environment, Region", "ScriptBlock": "[]"}
        )
        assert declaration.depends_on == ["Environment", "Region"]

    def test_no_descriptor_is_static(self):
        spec = ParameterDeclaration(name="Environment", default="Development").to_spec()
        assert spec.source_kind is SourceKind.NONE
        assert not spec.is_data_source


class TestLoadDeclarations:
    """Test batch loading and error translation."""

    def test_loads_batch_in_order(self):
        specs = load_declarations([
            {"Name": "Environment"},
            {"Name": "Region", "DependsOn": ["Environment"], "ScriptBlock": "[]"},
        ])
        assert [s.name for s in specs] == ["Environment", "Region"]

    def test_script_and_csv_rejected(self):
        with pytest.raises(ConfigurationError, match="Choose one") as exc_info:
            load_declarations([{
                "Name": "Server",
                "ScriptBlock": "[]",
                "CsvPath": "servers.csv",
                "CsvColumn": "Server",
            }])
        assert exc_info.value.parameter == "Server"

    @pytest.mark.parametrize("record", [
        {"Name": "Server", "CsvPath": "servers.csv"},
        {"Name": "Server", "CsvColumn": "Server"},
    ])
    def test_half_csv_configuration_rejected(self, record):
        """Test a partial CSV descriptor does not silently become static."""
        with pytest.raises(ConfigurationError, match="requires csv_path and csv_column"):
            load_declarations([record])

    def test_filter_without_csv_rejected(self):
        with pytest.raises(ConfigurationError, match="csv_filter"):
            load_declarations([{"Name": "Server", "ScriptBlock": "[]", "CsvFilter": "True"}])

    def test_declared_kind_must_match_descriptor(self):
        with pytest.raises(ConfigurationError, match="requires a script"):
            load_declarations([{"Name": "Region", "SourceKind": "computed"}])

    def test_missing_name_labelled_by_index(self):
        with pytest.raises(ConfigurationError, match="'#1'"):
            load_declarations([{"Name": "Environment"}, {"ScriptBlock": "[]"}])

    def test_self_dependency_surfaces(self):
        with pytest.raises(SelfDependencyError):
            load_declarations([{"Name": "Region", "DependsOn": ["Region"], "ScriptBlock": "[]"}])


class TestInferDependencies:
    """Test signature-based dependency inference."""

    def test_matches_known_names(self):
        def servers(environment, REGION, page_size=10, **extra):
            return []

        assert infer_dependencies(servers, ["Environment", "Region", "Owner"]) == [
            "Environment", "Region",
        ]

    def test_no_matches(self):
        assert infer_dependencies(lambda owner: [], ["Environment"]) == []
