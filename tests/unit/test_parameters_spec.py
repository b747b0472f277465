"""
Unit tests for parameters/spec.py and parameters/registry.py
"""

from pathlib import Path

import pytest

from dynparams.errors import ConfigurationError, SelfDependencyError
from dynparams.parameters import (
    ComputedSource,
    ParameterRegistry,
    ParameterSpec,
    SourceKind,
    TabularSource,
)


class TestParameterSpec:
    """Test ParameterSpec construction and validation."""

    def test_computed_spec(self):
        spec = ParameterSpec.computed("Region", "['a']", depends_on=["Environment"])
        assert spec.source_kind is SourceKind.COMPUTED
        assert isinstance(spec.source, ComputedSource)
        assert spec.depends_on == ("Environment",)
        assert spec.is_data_source
        assert spec.has_dependencies

    def test_tabular_spec(self):
        spec = ParameterSpec.tabular("Server", "servers.csv", "Server", row_filter="Owner == 'bob'")
        assert spec.source_kind is SourceKind.TABULAR
        assert isinstance(spec.source, TabularSource)
        assert spec.source.describe_filter() == "Owner == 'bob'"

    def test_static_spec(self):
        spec = ParameterSpec.static("Environment", default="Development")
        assert not spec.is_data_source
        assert spec.default == "Development"

    def test_empty_name_rejected(self):
        with pytest.raises(ConfigurationError):
            ParameterSpec.static("  ")

    def test_self_dependency_rejected(self):
        """Test a parameter cannot list itself, in any casing."""
        with pytest.raises(SelfDependencyError) as exc_info:
            ParameterSpec.computed("Region", "[]", depends_on=["Environment", "REGION"])
        assert exc_info.value.parameter == "Region"

    def test_computed_without_script_rejected(self):
        with pytest.raises(ConfigurationError, match="no script"):
            ParameterSpec(name="Region", source_kind=SourceKind.COMPUTED)

    def test_blank_script_rejected(self):
        with pytest.raises(ConfigurationError, match="empty script"):
            ParameterSpec.computed("Region", "   ")

    def test_static_with_source_rejected(self):
        with pytest.raises(ConfigurationError):
            ParameterSpec(name="Region", source=ComputedSource("[]"))

    def test_tabular_needs_path_and_column(self):
        with pytest.raises(ConfigurationError, match="CSV path and a CSV column"):
            ParameterSpec.tabular("Server", "servers.csv", "")

    def test_blank_dependencies_dropped(self):
        spec = ParameterSpec.computed("Region", "[]", depends_on=["Environment", "", " "])
        assert spec.depends_on == ("Environment",)

    def test_script_directory_coerced_to_path(self):
        spec = ParameterSpec.tabular("Server", "servers.csv", "Server", script_directory="/srv/forms")
        assert spec.script_directory == Path("/srv/forms")

    def test_depends_on_name_case_insensitive(self):
        spec = ParameterSpec.computed("Region", "[]", depends_on=["Environment"])
        assert spec.depends_on_name("environment")
        assert not spec.depends_on_name("Server")

    def test_frozen(self):
        spec = ParameterSpec.static("Environment")
        with pytest.raises(AttributeError):
            spec.name = "Other"

    def test_to_dict(self):
        data = ParameterSpec.tabular("Server", "servers.csv", "Server", depends_on=["Environment"]).to_dict()
        assert data["source_kind"] == "tabular"
        assert data["csv_path"] == "servers.csv"
        assert data["depends_on"] == ["Environment"]

    def test_callable_script_description(self):
        def list_regions(environment):
            return []

        spec = ParameterSpec.computed("Region", list_regions)
        assert "list_regions" in spec.source.describe()


class TestParameterRegistry:
    """Test registry lookup and ordering."""

    def test_registration_order(self):
        registry = ParameterRegistry([
            ParameterSpec.static("C"),
            ParameterSpec.static("A"),
            ParameterSpec.static("B"),
        ])
        assert registry.names() == ["C", "A", "B"]
        assert len(registry) == 3

    def test_case_insensitive_lookup(self):
        registry = ParameterRegistry([ParameterSpec.static("Environment")])
        assert "ENVIRONMENT" in registry
        assert registry["environment"].name == "Environment"
        assert registry.canonical_name("environment") == "Environment"
        assert registry.canonical_name("Unknown") == "Unknown"

    def test_missing_lookup(self):
        registry = ParameterRegistry()
        assert registry.get("Nope") is None
        with pytest.raises(KeyError):
            registry["Nope"]

    def test_reregister_replaces_in_place(self):
        """Test replacement keeps the original registration position."""
        registry = ParameterRegistry([ParameterSpec.static("A"), ParameterSpec.static("B")])
        registry.register(ParameterSpec.computed("a", "[]"))
        assert registry.names() == ["a", "B"]
        assert registry.is_data_source("A")

    def test_version_bumps_on_change(self):
        registry = ParameterRegistry()
        v0 = registry.version
        registry.register(ParameterSpec.static("A"))
        v1 = registry.version
        registry.unregister("A")
        assert v0 < v1 < registry.version
        assert registry.unregister("A") is False

    def test_data_source_names(self):
        registry = ParameterRegistry([
            ParameterSpec.static("Environment"),
            ParameterSpec.computed("Region", "[]", depends_on=["Environment"]),
        ])
        assert registry.data_source_names() == ["Region"]

    def test_get_dependent_parameters(self):
        registry = ParameterRegistry([
            ParameterSpec.static("Environment"),
            ParameterSpec.computed("Region", "[]", depends_on=["environment"]),
            ParameterSpec.computed("Server", "[]", depends_on=["Region"]),
        ])
        assert registry.get_dependent_parameters("Environment") == ["Region"]
        assert registry.has_dependencies("Server")
        assert not registry.has_dependencies("Environment")

    def test_clear(self):
        registry = ParameterRegistry([ParameterSpec.static("A")])
        registry.clear()
        assert len(registry) == 0
