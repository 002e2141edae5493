"""Tests for ToolExecutor - built-in writing tools against the store contract.

Tests cover:
- File tools (chapters, entities, search)
- Analysis tools returning raw material
- Generation and editing passthrough tools
- Error results for unknown tools, bad arguments and store failures
- Sync and async store implementations
"""

import json

import pytest

from bookcrafter_agent.application.services.tool_executor import ToolArgumentError, ToolExecutor, slugify
from bookcrafter_agent.application.services.tool_registry import ToolRegistry
from bookcrafter_agent.domain.models import ToolCall
from tests.fixtures.store import AsyncInMemoryStore, InMemoryStore


def call(name: str, /, **arguments) -> ToolCall:
    return ToolCall(id=f"call-{name}", name=name, arguments=arguments)


# ============================================================================
# FILE TOOLS
# ============================================================================


class TestChapterTools:
    """Tests for chapter tools."""

    @pytest.mark.asyncio
    async def test_read_chapter(self, executor: ToolExecutor, store: InMemoryStore) -> None:
        result = await executor.execute(call("read_chapter", bookSlug="t1", chapterSlug="c"), store)

        assert result.is_error is False
        assert result.tool_call_id == "call-read_chapter"
        assert result.content == "# c\n\nHello"

    @pytest.mark.asyncio
    async def test_read_chapter_with_async_store(self, executor: ToolExecutor, async_store: AsyncInMemoryStore) -> None:
        result = await executor.execute(call("read_chapter", bookSlug="t1", chapterSlug="c"), async_store)

        assert result.content == "# c\n\nHello"

    @pytest.mark.asyncio
    async def test_read_empty_chapter(self, executor: ToolExecutor) -> None:
        store = InMemoryStore(books={"b": {"slug": "b", "title": "B", "chapters": [{"slug": "e", "title": "", "content": ""}]}})

        result = await executor.execute(call("read_chapter", bookSlug="b", chapterSlug="e"), store)

        assert result.content == "# e\n\n(empty chapter)"

    @pytest.mark.asyncio
    async def test_read_missing_chapter_is_error(self, executor: ToolExecutor, store: InMemoryStore) -> None:
        result = await executor.execute(call("read_chapter", bookSlug="t1", chapterSlug="nope"), store)

        assert result.is_error is True
        assert result.content.startswith("Error executing read_chapter:")
        assert "nope" in result.content

    @pytest.mark.asyncio
    async def test_missing_argument_is_error(self, executor: ToolExecutor, store: InMemoryStore) -> None:
        result = await executor.execute(call("read_chapter", bookSlug="t1"), store)

        assert result.is_error is True
        assert 'Argument "chapterSlug" is required' in result.content

    @pytest.mark.asyncio
    async def test_write_chapter_updates_store(self, executor: ToolExecutor, store: InMemoryStore) -> None:
        result = await executor.execute(call("write_chapter", bookSlug="t1", chapterSlug="c", content="Goodbye"), store)

        assert result.is_error is False
        assert store.get_chapter("t1", "c")["content"] == "Goodbye"
        assert store.calls == [("update_chapter", ("t1", "c", "Goodbye"))]

    @pytest.mark.asyncio
    async def test_write_chapter_accepts_empty_content(self, executor: ToolExecutor, store: InMemoryStore) -> None:
        result = await executor.execute(call("write_chapter", bookSlug="t1", chapterSlug="c", content=""), store)

        assert result.is_error is False
        assert store.get_chapter("t1", "c")["content"] == ""

    @pytest.mark.asyncio
    async def test_create_chapter_slugifies_title(self, executor: ToolExecutor, store: InMemoryStore) -> None:
        result = await executor.execute(call("create_chapter", bookSlug="t2", title="The Storm, Part 2!"), store)

        assert result.is_error is False
        chapter = store.get_chapter("t2", "the-storm-part-2")
        assert chapter is not None
        assert chapter["content"] == ""
        assert chapter["created"] == chapter["modified"]

    @pytest.mark.asyncio
    async def test_delete_chapter(self, executor: ToolExecutor, store: InMemoryStore) -> None:
        await executor.execute(call("delete_chapter", bookSlug="t1", chapterSlug="c"), store)

        assert store.get_chapter("t1", "c") is None

    @pytest.mark.asyncio
    async def test_list_books(self, executor: ToolExecutor, store: InMemoryStore) -> None:
        result = await executor.execute(call("list_books"), store)

        assert "- The First Tale (t1) [2 chapters]" in result.content
        assert "- Second Tale (t2) [0 chapters]" in result.content

    @pytest.mark.asyncio
    async def test_list_books_empty(self, executor: ToolExecutor) -> None:
        result = await executor.execute(call("list_books"), InMemoryStore(books={}))

        assert result.content == "No books found"

    @pytest.mark.asyncio
    async def test_list_chapters(self, executor: ToolExecutor, store: InMemoryStore) -> None:
        result = await executor.execute(call("list_chapters", bookSlug="t1"), store)

        assert result.content == "1. c (c)\n2. Arrival (arrival)"

    @pytest.mark.asyncio
    async def test_search_content_is_literal(self, executor: ToolExecutor, store: InMemoryStore) -> None:
        result = await executor.execute(call("search_content", query="harbor"), store)

        assert result.content == "- The First Tale / Arrival: 2 match(es)"

    @pytest.mark.asyncio
    async def test_search_content_case_sensitive(self, executor: ToolExecutor, store: InMemoryStore) -> None:
        result = await executor.execute(call("search_content", query="Harbor", caseSensitive=True), store)

        assert result.content == 'No results found for "Harbor"'

    @pytest.mark.asyncio
    async def test_search_content_treats_regex_characters_literally(self, executor: ToolExecutor, store: InMemoryStore) -> None:
        result = await executor.execute(call("search_content", query="h.rbor"), store)

        assert result.content.startswith("No results found")


class TestEntityTools:
    """Tests for entity tools."""

    @pytest.mark.asyncio
    async def test_get_entity_skips_empty_fields(self, executor: ToolExecutor, store: InMemoryStore) -> None:
        result = await executor.execute(call("get_entity", entitySlug="mira"), store)

        assert result.content == "# Mira\nType: character\n\n**role:** Smuggler"

    @pytest.mark.asyncio
    async def test_list_entities_by_type(self, executor: ToolExecutor, store: InMemoryStore) -> None:
        result = await executor.execute(call("list_entities", entityType="location"), store)

        assert result.content == "- Harbor Town (harbor) [location]"

    @pytest.mark.asyncio
    async def test_create_entity(self, executor: ToolExecutor, store: InMemoryStore) -> None:
        result = await executor.execute(call("create_entity", name="Old Tom", type="character", fields={"role": "Captain"}), store)

        assert result.is_error is False
        entity = store.get_entity("old-tom")
        assert entity["fields"] == [{"name": "role", "value": "Captain"}]

    @pytest.mark.asyncio
    async def test_update_entity_requires_object(self, executor: ToolExecutor, store: InMemoryStore) -> None:
        result = await executor.execute(call("update_entity", entitySlug="mira", fields="nope"), store)

        assert result.is_error is True
        assert store.calls == []

    @pytest.mark.asyncio
    async def test_delete_entity(self, executor: ToolExecutor, store: InMemoryStore) -> None:
        await executor.execute(call("delete_entity", entitySlug="harbor"), store)

        assert store.get_entity("harbor") is None


# ============================================================================
# ANALYSIS TOOLS
# ============================================================================


class TestAnalysisTools:
    """Tests for analysis tools."""

    @pytest.mark.asyncio
    async def test_analyze_entity_usage(self, executor: ToolExecutor, store: InMemoryStore) -> None:
        result = await executor.execute(call("analyze_entity_usage", entitySlug="mira"), store)

        assert result.content.startswith("## The First Tale / Arrival (1 mentions)")
        assert "> ...Mira walked into the harbor town" in result.content

    @pytest.mark.asyncio
    async def test_summarize_book_dumps_chapters(self, executor: ToolExecutor, store: InMemoryStore) -> None:
        result = await executor.execute(call("summarize_book", bookSlug="t1"), store)

        assert result.content.startswith("Book: The First Tale\n\n## c\n\nHello")
        assert "\n\n---\n\n## Arrival" in result.content

    @pytest.mark.asyncio
    async def test_summarize_chapter_reads_chapter(self, executor: ToolExecutor, store: InMemoryStore) -> None:
        result = await executor.execute(call("summarize_chapter", bookSlug="t1", chapterSlug="c"), store)

        assert result.content == "# c\n\nHello"

    @pytest.mark.asyncio
    async def test_word_count(self, executor: ToolExecutor, store: InMemoryStore) -> None:
        result = await executor.execute(call("get_word_count", bookSlug="t1", chapterSlug="c"), store)

        assert result.content == "- c: 1 words, 5 characters\n\n**Total:** 1 words, 5 characters"

    @pytest.mark.asyncio
    async def test_compare_chapters(self, executor: ToolExecutor, store: InMemoryStore) -> None:
        result = await executor.execute(call("compare_chapters", bookSlug="t1", chapter1Slug="c", chapter2Slug="arrival"), store)

        assert result.content.startswith("## Chapter 1: c\n\nHello\n\n---\n\n## Chapter 2: Arrival")


# ============================================================================
# GENERATION & EDITING TOOLS
# ============================================================================


class TestPassthroughTools:
    """Generation and editing tools return their parameters for the model."""

    @pytest.mark.asyncio
    async def test_editing_tool_echoes_parameters(self, executor: ToolExecutor, store: InMemoryStore) -> None:
        result = await executor.execute(call("proofread", text="teh cat"), store)

        assert result.content == "Tool: proofread\nParameters: " + json.dumps({"text": "teh cat"}, indent=2)

    @pytest.mark.asyncio
    async def test_generation_tool_adds_character_context(self, executor: ToolExecutor, store: InMemoryStore) -> None:
        result = await executor.execute(call("suggest_dialogue", characters=["mira", "ghost"], topic="cargo"), store)

        assert "\n\nEntity context:\n# Mira" in result.content
        assert 'Character "ghost" not found' in result.content


# ============================================================================
# ERRORS
# ============================================================================


class TestExecutorErrors:
    @pytest.mark.asyncio
    async def test_unknown_tool(self, executor: ToolExecutor, store: InMemoryStore) -> None:
        result = await executor.execute(call("summon_dragon"), store)

        assert result.is_error is True
        assert result.content == 'Error: Unknown tool "summon_dragon"'

    @pytest.mark.asyncio
    async def test_tool_missing_from_registry_is_unknown(self, registry: ToolRegistry, store: InMemoryStore) -> None:
        executor = ToolExecutor(ToolRegistry(registry.filter_enabled(["read_chapter"])))

        assert executor.can_execute("read_chapter") is True
        assert executor.can_execute("write_chapter") is False
        result = await executor.execute(call("write_chapter", bookSlug="t1", chapterSlug="c", content="x"), store)
        assert result.content == 'Error: Unknown tool "write_chapter"'
        assert store.calls == []

    @pytest.mark.asyncio
    async def test_store_exception_becomes_error_result(self, executor: ToolExecutor, store: InMemoryStore) -> None:
        result = await executor.execute(call("write_chapter", bookSlug="t1", chapterSlug="missing", content="x"), store)

        assert result.is_error is True
        assert result.content.startswith("Error executing write_chapter:")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["check_consistency", "summarize_book"])
    async def test_argument_error_names_the_called_tool(self, executor: ToolExecutor, store: InMemoryStore, name: str) -> None:
        with pytest.raises(ToolArgumentError) as exc_info:
            await executor._executors[name]({}, store)

        assert exc_info.value.tool_name == name
        assert exc_info.value.argument == "bookSlug"

        result = await executor.execute(call(name), store)
        assert result.is_error is True
        assert 'Argument "bookSlug" is required' in result.content


class TestSlugify:
    @pytest.mark.parametrize(
        "text,expected",
        [("The Storm", "the-storm"), ("  Hello,  World!  ", "hello-world"), ("Chapter 12", "chapter-12")],
    )
    def test_slugify(self, text: str, expected: str) -> None:
        assert slugify(text) == expected
