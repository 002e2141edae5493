"""Tests for the tool catalog and registry."""

import pytest

from bookcrafter_agent.application.services.tool_registry import ToolRegistry
from bookcrafter_agent.application.tools import get_builtin_tools
from bookcrafter_agent.domain.models import ToolCategory, ToolDefinition


class TestBuiltinCatalog:
    """Test the static catalog."""

    def test_catalog_size(self) -> None:
        assert len(get_builtin_tools()) == 36

    def test_names_are_unique(self) -> None:
        names = [tool.name for tool in get_builtin_tools()]
        assert len(names) == len(set(names))

    def test_mutating_tools_require_approval(self, registry: ToolRegistry) -> None:
        gated = {tool.name for tool in registry.requiring_approval()}

        assert {"write_chapter", "create_chapter", "delete_chapter", "create_entity", "update_entity", "delete_entity"} <= gated
        assert "read_chapter" not in gated
        assert "list_books" not in gated

    def test_every_schema_is_an_object(self) -> None:
        for tool in get_builtin_tools():
            assert tool.parameters["type"] == "object", tool.name
            for required in tool.required:
                assert required in tool.properties, f"{tool.name}.{required}"

    def test_categories(self, registry: ToolRegistry) -> None:
        assert len(registry.by_category(ToolCategory.FILE)) == 12
        assert len(registry.by_category(ToolCategory.ANALYSIS)) == 8
        assert len(registry.by_category(ToolCategory.GENERATION)) == 7
        assert len(registry.by_category(ToolCategory.EDITING)) == 9


class TestToolRegistry:
    """Test registry lookups and filtering."""

    def test_lookup(self, registry: ToolRegistry) -> None:
        assert "read_chapter" in registry
        assert registry.get("read_chapter").category == ToolCategory.FILE
        assert registry.get("summon_dragon") is None

    def test_duplicate_names_rejected(self) -> None:
        tool = ToolDefinition(name="dup", description="", category=ToolCategory.FILE)

        with pytest.raises(ValueError):
            ToolRegistry([tool, tool])

    def test_empty_selection_means_all(self, registry: ToolRegistry) -> None:
        assert len(registry.filter_enabled(())) == len(registry)
        assert len(registry.filter_enabled(None)) == len(registry)

    def test_filter_keeps_catalog_order_and_ignores_unknown(self, registry: ToolRegistry) -> None:
        tools = registry.filter_enabled(["write_chapter", "read_chapter", "summon_dragon"])

        assert [tool.name for tool in tools] == ["read_chapter", "write_chapter"]

    def test_read_only_and_gated_partition_catalog(self, registry: ToolRegistry) -> None:
        assert len(registry.read_only()) + len(registry.requiring_approval()) == len(registry)
