"""Tool executor for the built-in writing tools.

Runs a single ToolCall against a StoreAccess handle and always returns a
ToolResult. Failures never propagate to the caller: unknown tools, missing
records and bad arguments all come back as ``is_error`` results so the agent
loop can show them to the model and move on.

Design Principles:
- One handler per tool name, registered in a dispatch table
- Store methods may be sync or async; every call goes through ``resolve``
- Analysis, generation and editing tools hand raw material back to the model
  instead of doing the creative work themselves
"""

import json
import logging
import re
import time
from collections.abc import Awaitable, Callable, Mapping
from datetime import UTC, datetime
from typing import Any

from opentelemetry import trace

from bookcrafter_agent.application.services.store_access import StoreAccess, resolve
from bookcrafter_agent.application.services.tool_registry import ToolRegistry
from bookcrafter_agent.domain.models import ToolCall, ToolResult
from bookcrafter_agent.observability.metrics import tool_execution_count, tool_execution_errors, tool_execution_time

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

ToolHandler = Callable[[dict[str, Any], StoreAccess], Awaitable[Any]]

# Characters of surrounding text kept on each side of an entity mention
EXCERPT_RADIUS = 50

# Excerpts reported per chapter by analyze_entity_usage
MAX_EXCERPTS_PER_CHAPTER = 2

GENERATION_TOOLS = (
    "generate_character",
    "generate_location",
    "write_scene",
    "suggest_dialogue",
    "generate_outline",
    "expand_text",
    "brainstorm_ideas",
)

EDITING_TOOLS = (
    "proofread",
    "adapt_style",
    "change_pov",
    "change_tense",
    "simplify_text",
    "intensify_emotion",
    "translate",
    "add_descriptions",
    "remove_filter_words",
)


class ToolArgumentError(ValueError):
    """A required tool argument is missing or has the wrong type."""

    def __init__(self, tool_name: str, argument: str, reason: str = "is required") -> None:
        super().__init__(f'Argument "{argument}" {reason}')
        self.tool_name = tool_name
        self.argument = argument


def slugify(text: str) -> str:
    """Derive a slug: lowercase, runs of non-alphanumerics become a single dash."""
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")


def _now() -> str:
    return datetime.now(UTC).isoformat()


def _chapter_dump(chapters: list[Mapping[str, Any]]) -> str:
    return "\n\n---\n\n".join(f"## {ch.get('title', '')}\n\n{ch.get('content') or '(empty)'}" for ch in chapters)


def _format_entity(entity: Mapping[str, Any]) -> str:
    lines = [f"# {entity.get('name', '')}", f"Type: {entity.get('type', '')}", ""]
    for entity_field in entity.get("fields") or []:
        if entity_field.get("value"):
            lines.append(f"**{entity_field['name']}:** {entity_field['value']}")
    return "\n".join(lines)


class ToolExecutor:
    """Executes tool calls requested by the agent.

    The executor only knows tools that are both present in the registry and
    backed by a handler here. Lookups go through the registry first so that a
    name the model invented is rejected before any store access happens.
    """

    def __init__(self, registry: ToolRegistry | None = None) -> None:
        self._registry = registry if registry is not None else ToolRegistry.default()
        self._executors: dict[str, ToolHandler] = {
            # File tools
            "list_books": self._execute_list_books,
            "read_chapter": self._execute_read_chapter,
            "write_chapter": self._execute_write_chapter,
            "list_chapters": self._execute_list_chapters,
            "create_chapter": self._execute_create_chapter,
            "delete_chapter": self._execute_delete_chapter,
            "search_content": self._execute_search_content,
            "get_entity": self._execute_get_entity,
            "list_entities": self._execute_list_entities,
            "create_entity": self._execute_create_entity,
            "update_entity": self._execute_update_entity,
            "delete_entity": self._execute_delete_entity,
            # Analysis tools
            "analyze_entity_usage": self._execute_analyze_entity_usage,
            "check_consistency": self._book_dump_handler("check_consistency"),
            "summarize_chapter": self._execute_read_chapter,
            "summarize_book": self._book_dump_handler("summarize_book"),
            "find_plot_holes": self._execute_find_plot_holes,
            "analyze_character_arc": self._execute_analyze_character_arc,
            "get_word_count": self._execute_get_word_count,
            "compare_chapters": self._execute_compare_chapters,
        }
        for name in GENERATION_TOOLS:
            self._executors[name] = self._generation_handler(name)
        for name in EDITING_TOOLS:
            self._executors[name] = self._editing_handler(name)
        logger.info(f"ToolExecutor initialized with {len(self._executors)} tools")

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    def can_execute(self, tool_name: str) -> bool:
        """Check if a tool is both registered and implemented."""
        return tool_name in self._registry and tool_name in self._executors

    async def execute(self, tool_call: ToolCall, store_access: StoreAccess) -> ToolResult:
        """Execute one tool call.

        Args:
            tool_call: The call requested by the model
            store_access: Handle to the book/entity store

        Returns:
            ToolResult carrying the call id; ``is_error`` is set on any failure
        """
        with tracer.start_as_current_span(f"tool.{tool_call.name}") as span:
            span.set_attribute("tool.name", tool_call.name)
            span.set_attribute("tool.call_id", tool_call.id)

            handler = self._executors.get(tool_call.name) if tool_call.name in self._registry else None
            if handler is None:
                logger.warning(f"Unknown tool requested: {tool_call.name}")
                tool_execution_errors.add(1, {"tool": tool_call.name, "reason": "unknown"})
                return ToolResult(tool_call_id=tool_call.id, content=f'Error: Unknown tool "{tool_call.name}"', is_error=True)

            start_time = time.time()
            try:
                result = await handler(tool_call.arguments or {}, store_access)
            except Exception as e:
                logger.exception(f"Tool execution failed: {tool_call.name}")
                span.set_attribute("tool.error", str(e))
                tool_execution_errors.add(1, {"tool": tool_call.name, "reason": type(e).__name__})
                return ToolResult(tool_call_id=tool_call.id, content=f"Error executing {tool_call.name}: {e}", is_error=True)
            finally:
                elapsed_ms = (time.time() - start_time) * 1000
                tool_execution_time.record(elapsed_ms, {"tool": tool_call.name})
                tool_execution_count.add(1, {"tool": tool_call.name})

            content = result if isinstance(result, str) else json.dumps(result, indent=2, default=str)
            logger.debug(f"Tool {tool_call.name} completed in {elapsed_ms:.1f}ms")
            return ToolResult(tool_call_id=tool_call.id, content=content)

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _require(tool_name: str, args: dict[str, Any], key: str) -> Any:
        value = args.get(key)
        if value is None or value == "":
            raise ToolArgumentError(tool_name, key)
        return value

    @staticmethod
    async def _load_book(store: StoreAccess, book_slug: str) -> Mapping[str, Any]:
        book = await resolve(store.get_book(book_slug))
        if not book:
            raise LookupError(f'Book "{book_slug}" not found')
        return book

    @staticmethod
    async def _load_chapter(store: StoreAccess, book_slug: str, chapter_slug: str) -> Mapping[str, Any]:
        chapter = await resolve(store.get_chapter(book_slug, chapter_slug))
        if not chapter:
            raise LookupError(f'Chapter "{chapter_slug}" not found in book "{book_slug}"')
        return chapter

    @staticmethod
    async def _load_entity(store: StoreAccess, entity_slug: str) -> Mapping[str, Any]:
        entity = await resolve(store.get_entity(entity_slug))
        if not entity:
            raise LookupError(f'Entity "{entity_slug}" not found')
        return entity

    # =========================================================================
    # File Tools
    # =========================================================================

    async def _execute_list_books(self, args: dict[str, Any], store: StoreAccess) -> str:
        books = await resolve(store.get_books())
        if not books:
            return "No books found"
        lines = []
        for slug, book in books.items():
            chapter_count = len(book.get("chapters") or [])
            lines.append(f"- {book.get('title', slug)} ({slug}) [{chapter_count} chapters]")
        return "\n".join(lines)

    async def _execute_read_chapter(self, args: dict[str, Any], store: StoreAccess) -> str:
        book_slug = self._require("read_chapter", args, "bookSlug")
        chapter_slug = self._require("read_chapter", args, "chapterSlug")
        chapter = await self._load_chapter(store, book_slug, chapter_slug)
        return f"# {chapter.get('title') or chapter_slug}\n\n{chapter.get('content') or '(empty chapter)'}"

    async def _execute_write_chapter(self, args: dict[str, Any], store: StoreAccess) -> str:
        book_slug = self._require("write_chapter", args, "bookSlug")
        chapter_slug = self._require("write_chapter", args, "chapterSlug")
        content = args.get("content")
        if not isinstance(content, str):
            raise ToolArgumentError("write_chapter", "content", "must be a string")
        await resolve(store.update_chapter(book_slug, chapter_slug, content))
        return f'Successfully updated chapter "{chapter_slug}" in book "{book_slug}"'

    async def _execute_list_chapters(self, args: dict[str, Any], store: StoreAccess) -> str:
        book_slug = self._require("list_chapters", args, "bookSlug")
        book = await self._load_book(store, book_slug)
        chapters = book.get("chapters") or []
        if not chapters:
            return f'Book "{book_slug}" has no chapters'
        return "\n".join(f"{i}. {ch.get('title', '')} ({ch.get('slug', '')})" for i, ch in enumerate(chapters, start=1))

    async def _execute_create_chapter(self, args: dict[str, Any], store: StoreAccess) -> str:
        book_slug = self._require("create_chapter", args, "bookSlug")
        title = self._require("create_chapter", args, "title")
        slug = slugify(title)
        now = _now()
        chapter = {
            "slug": slug,
            "title": title,
            "content": args.get("content") or "",
            "created": now,
            "modified": now,
        }
        await resolve(store.add_chapter(book_slug, chapter))
        return f'Successfully created chapter "{title}" ({slug}) in book "{book_slug}"'

    async def _execute_delete_chapter(self, args: dict[str, Any], store: StoreAccess) -> str:
        book_slug = self._require("delete_chapter", args, "bookSlug")
        chapter_slug = self._require("delete_chapter", args, "chapterSlug")
        await resolve(store.delete_chapter(book_slug, chapter_slug))
        return f'Successfully deleted chapter "{chapter_slug}" from book "{book_slug}"'

    async def _execute_search_content(self, args: dict[str, Any], store: StoreAccess) -> str:
        query = self._require("search_content", args, "query")
        book_filter = args.get("bookSlug")
        case_sensitive = bool(args.get("caseSensitive", False))
        needle = query if case_sensitive else query.lower()

        results = []
        books = await resolve(store.get_books())
        for slug, book in books.items():
            if book_filter and slug != book_filter:
                continue
            for chapter in book.get("chapters") or []:
                content = chapter.get("content") or ""
                haystack = content if case_sensitive else content.lower()
                matches = haystack.count(needle)
                if matches:
                    results.append(f"- {book.get('title', slug)} / {chapter.get('title', '')}: {matches} match(es)")

        if not results:
            return f'No results found for "{query}"'
        return "\n".join(results)

    async def _execute_get_entity(self, args: dict[str, Any], store: StoreAccess) -> str:
        entity_slug = self._require("get_entity", args, "entitySlug")
        return _format_entity(await self._load_entity(store, entity_slug))

    async def _execute_list_entities(self, args: dict[str, Any], store: StoreAccess) -> str:
        entity_type = args.get("entityType")
        entities = await resolve(store.get_entities())
        selected = [(slug, e) for slug, e in entities.items() if not entity_type or e.get("type") == entity_type]
        if not selected:
            return f'No entities of type "{entity_type}" found' if entity_type else "No entities found"
        return "\n".join(f"- {e.get('name', slug)} ({slug}) [{e.get('type', '')}]" for slug, e in selected)

    async def _execute_create_entity(self, args: dict[str, Any], store: StoreAccess) -> str:
        name = self._require("create_entity", args, "name")
        entity_type = self._require("create_entity", args, "type")
        fields = args.get("fields") or {}
        if not isinstance(fields, dict):
            raise ToolArgumentError("create_entity", "fields", "must be an object")
        slug = slugify(name)
        now = _now()
        entity = {
            "slug": slug,
            "name": name,
            "type": entity_type,
            "fields": [{"name": key, "value": str(value)} for key, value in fields.items()],
            "created": now,
            "modified": now,
        }
        await resolve(store.add_entity(entity))
        return f'Successfully created {entity_type} "{name}" ({slug})'

    async def _execute_update_entity(self, args: dict[str, Any], store: StoreAccess) -> str:
        entity_slug = self._require("update_entity", args, "entitySlug")
        fields = args.get("fields")
        if not isinstance(fields, dict):
            raise ToolArgumentError("update_entity", "fields", "must be an object")
        await resolve(store.update_entity(entity_slug, fields))
        return f'Successfully updated entity "{entity_slug}"'

    async def _execute_delete_entity(self, args: dict[str, Any], store: StoreAccess) -> str:
        entity_slug = self._require("delete_entity", args, "entitySlug")
        await resolve(store.delete_entity(entity_slug))
        return f'Successfully deleted entity "{entity_slug}"'

    # =========================================================================
    # Analysis Tools
    # =========================================================================

    async def _execute_analyze_entity_usage(self, args: dict[str, Any], store: StoreAccess) -> str:
        entity_slug = self._require("analyze_entity_usage", args, "entitySlug")
        book_filter = args.get("bookSlug")
        entity = await self._load_entity(store, entity_slug)
        entity_name = entity.get("name") or entity_slug
        terms = [entity_name, f"@{entity_slug}"]

        sections = []
        books = await resolve(store.get_books())
        for slug, book in books.items():
            if book_filter and slug != book_filter:
                continue
            for chapter in book.get("chapters") or []:
                content = chapter.get("content") or ""
                count = 0
                excerpts = []
                for term in terms:
                    mentions = list(re.finditer(re.escape(term), content, re.IGNORECASE))
                    if not mentions:
                        continue
                    count += len(mentions)
                    first = mentions[0]
                    start = max(0, first.start() - EXCERPT_RADIUS)
                    end = min(len(content), first.end() + EXCERPT_RADIUS)
                    excerpts.append(f"...{content[start:end]}...")
                if count:
                    lines = [f"## {book.get('title', slug)} / {chapter.get('title', '')} ({count} mentions)"]
                    lines.extend(f"> {excerpt}" for excerpt in excerpts[:MAX_EXCERPTS_PER_CHAPTER])
                    sections.append("\n".join(lines))

        if not sections:
            return f'No usages of "{entity_name}" found'
        return "\n\n".join(sections)

    def _book_dump_handler(self, name: str) -> ToolHandler:
        async def handler(args: dict[str, Any], store: StoreAccess) -> str:
            book_slug = self._require(name, args, "bookSlug")
            book = await self._load_book(store, book_slug)
            return f"Book: {book.get('title', book_slug)}\n\n{_chapter_dump(book.get('chapters') or [])}"

        return handler

    async def _execute_find_plot_holes(self, args: dict[str, Any], store: StoreAccess) -> str:
        book_slug = self._require("find_plot_holes", args, "bookSlug")
        chapter_slug = args.get("chapterSlug")
        book = await self._load_book(store, book_slug)
        chapters = [ch for ch in book.get("chapters") or [] if not chapter_slug or ch.get("slug") == chapter_slug]
        return f"Book: {book.get('title', book_slug)}\n\n{_chapter_dump(chapters)}"

    async def _execute_analyze_character_arc(self, args: dict[str, Any], store: StoreAccess) -> str:
        entity_slug = self._require("analyze_character_arc", args, "entitySlug")
        book_slug = self._require("analyze_character_arc", args, "bookSlug")
        profile = await self._execute_get_entity({"entitySlug": entity_slug}, store)
        usage = await self._execute_analyze_entity_usage({"entitySlug": entity_slug, "bookSlug": book_slug}, store)
        return f"{profile}\n\n---\n\nUsage in story:\n\n{usage}"

    async def _execute_get_word_count(self, args: dict[str, Any], store: StoreAccess) -> str:
        book_slug = self._require("get_word_count", args, "bookSlug")
        chapter_slug = args.get("chapterSlug")
        book = await self._load_book(store, book_slug)

        lines = []
        total_words = total_chars = 0
        for chapter in book.get("chapters") or []:
            if chapter_slug and chapter.get("slug") != chapter_slug:
                continue
            content = chapter.get("content") or ""
            words = len(content.split())
            total_words += words
            total_chars += len(content)
            lines.append(f"- {chapter.get('title', '')}: {words} words, {len(content)} characters")

        lines.append("")
        lines.append(f"**Total:** {total_words} words, {total_chars} characters")
        return "\n".join(lines)

    async def _execute_compare_chapters(self, args: dict[str, Any], store: StoreAccess) -> str:
        book_slug = self._require("compare_chapters", args, "bookSlug")
        first_slug = self._require("compare_chapters", args, "chapter1Slug")
        second_slug = self._require("compare_chapters", args, "chapter2Slug")
        first = await self._load_chapter(store, book_slug, first_slug)
        second = await self._load_chapter(store, book_slug, second_slug)
        return (
            f"## Chapter 1: {first.get('title') or first_slug}\n\n{first.get('content') or '(empty)'}"
            "\n\n---\n\n"
            f"## Chapter 2: {second.get('title') or second_slug}\n\n{second.get('content') or '(empty)'}"
        )

    # =========================================================================
    # Generation & Editing Tools
    # =========================================================================

    def _generation_handler(self, name: str) -> ToolHandler:
        async def handler(args: dict[str, Any], store: StoreAccess) -> str:
            entity_context = []
            for key in ("characters", "includeCharacters"):
                for slug in args.get(key) or []:
                    try:
                        entity_context.append(_format_entity(await self._load_entity(store, slug)))
                    except LookupError:
                        entity_context.append(f'Character "{slug}" not found')

            context = "\n\nEntity context:\n" + "\n\n".join(entity_context) if entity_context else ""
            return f"Tool: {name}\nParameters: {json.dumps(args, indent=2)}{context}"

        return handler

    def _editing_handler(self, name: str) -> ToolHandler:
        async def handler(args: dict[str, Any], store: StoreAccess) -> str:
            return f"Tool: {name}\nParameters: {json.dumps(args, indent=2)}"

        return handler
