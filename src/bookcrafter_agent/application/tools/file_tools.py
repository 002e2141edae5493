"""File tools: reading, writing and searching books, chapters and entities."""

from bookcrafter_agent.domain.models import ToolCategory, ToolDefinition

_BOOK_SLUG = {"type": "string", "description": "The slug identifier of the book"}
_CHAPTER_SLUG = {"type": "string", "description": "The slug identifier of the chapter"}
_ENTITY_SLUG = {"type": "string", "description": "The slug identifier of the entity"}
_ENTITY_TYPES = ["person", "place", "custom"]


def _create_list_books_tool() -> ToolDefinition:
    """Create the list_books tool definition."""
    return ToolDefinition(
        name="list_books",
        description="List all available books in the workspace with their chapter counts",
        category=ToolCategory.FILE,
        requires_approval=False,
        parameters={"type": "object", "properties": {}},
    )


def _create_read_chapter_tool() -> ToolDefinition:
    """Create the read_chapter tool definition."""
    return ToolDefinition(
        name="read_chapter",
        description="Read the content of a specific chapter from a book",
        category=ToolCategory.FILE,
        requires_approval=False,
        parameters={
            "type": "object",
            "properties": {"bookSlug": _BOOK_SLUG, "chapterSlug": _CHAPTER_SLUG},
            "required": ["bookSlug", "chapterSlug"],
        },
    )


def _create_write_chapter_tool() -> ToolDefinition:
    """Create the write_chapter tool definition."""
    return ToolDefinition(
        name="write_chapter",
        description="Write or update the content of a chapter",
        category=ToolCategory.FILE,
        requires_approval=True,
        parameters={
            "type": "object",
            "properties": {
                "bookSlug": _BOOK_SLUG,
                "chapterSlug": _CHAPTER_SLUG,
                "content": {"type": "string", "description": "The new content for the chapter"},
            },
            "required": ["bookSlug", "chapterSlug", "content"],
        },
    )


def _create_list_chapters_tool() -> ToolDefinition:
    """Create the list_chapters tool definition."""
    return ToolDefinition(
        name="list_chapters",
        description="List all chapters in a book",
        category=ToolCategory.FILE,
        requires_approval=False,
        parameters={"type": "object", "properties": {"bookSlug": _BOOK_SLUG}, "required": ["bookSlug"]},
    )


def _create_create_chapter_tool() -> ToolDefinition:
    """Create the create_chapter tool definition."""
    return ToolDefinition(
        name="create_chapter",
        description="Create a new chapter in a book",
        category=ToolCategory.FILE,
        requires_approval=True,
        parameters={
            "type": "object",
            "properties": {
                "bookSlug": _BOOK_SLUG,
                "title": {"type": "string", "description": "The title of the new chapter"},
                "content": {"type": "string", "description": "Initial content for the chapter", "default": ""},
            },
            "required": ["bookSlug", "title"],
        },
    )


def _create_delete_chapter_tool() -> ToolDefinition:
    """Create the delete_chapter tool definition."""
    return ToolDefinition(
        name="delete_chapter",
        description="Delete a chapter from a book",
        category=ToolCategory.FILE,
        requires_approval=True,
        parameters={
            "type": "object",
            "properties": {
                "bookSlug": _BOOK_SLUG,
                "chapterSlug": {"type": "string", "description": "The slug identifier of the chapter to delete"},
            },
            "required": ["bookSlug", "chapterSlug"],
        },
    )


def _create_search_content_tool() -> ToolDefinition:
    """Create the search_content tool definition."""
    return ToolDefinition(
        name="search_content",
        description="Search for text across all chapters in a book or all books",
        category=ToolCategory.FILE,
        requires_approval=False,
        parameters={
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "The search query"},
                "bookSlug": {"type": "string", "description": "Optional: limit search to a specific book"},
                "caseSensitive": {
                    "type": "boolean",
                    "description": "Whether the search should be case sensitive",
                    "default": False,
                },
            },
            "required": ["query"],
        },
    )


def _create_get_entity_tool() -> ToolDefinition:
    """Create the get_entity tool definition."""
    return ToolDefinition(
        name="get_entity",
        description="Get details of a specific entity (character, location, etc.)",
        category=ToolCategory.FILE,
        requires_approval=False,
        parameters={"type": "object", "properties": {"entitySlug": _ENTITY_SLUG}, "required": ["entitySlug"]},
    )


def _create_list_entities_tool() -> ToolDefinition:
    """Create the list_entities tool definition."""
    return ToolDefinition(
        name="list_entities",
        description="List all entities, optionally filtered by type",
        category=ToolCategory.FILE,
        requires_approval=False,
        parameters={
            "type": "object",
            "properties": {
                "entityType": {
                    "type": "string",
                    "description": "Optional: filter by entity type (person, place, custom)",
                    "enum": _ENTITY_TYPES,
                },
            },
        },
    )


def _create_create_entity_tool() -> ToolDefinition:
    """Create the create_entity tool definition."""
    return ToolDefinition(
        name="create_entity",
        description="Create a new entity (character, location, etc.)",
        category=ToolCategory.FILE,
        requires_approval=True,
        parameters={
            "type": "object",
            "properties": {
                "name": {"type": "string", "description": "The name of the entity"},
                "type": {"type": "string", "description": "The type of entity", "enum": _ENTITY_TYPES},
                "fields": {
                    "type": "object",
                    "description": "Key-value pairs of entity fields (e.g., age, description)",
                },
            },
            "required": ["name", "type"],
        },
    )


def _create_update_entity_tool() -> ToolDefinition:
    """Create the update_entity tool definition."""
    return ToolDefinition(
        name="update_entity",
        description="Update an existing entity",
        category=ToolCategory.FILE,
        requires_approval=True,
        parameters={
            "type": "object",
            "properties": {
                "entitySlug": _ENTITY_SLUG,
                "fields": {"type": "object", "description": "Key-value pairs of fields to update"},
            },
            "required": ["entitySlug", "fields"],
        },
    )


def _create_delete_entity_tool() -> ToolDefinition:
    """Create the delete_entity tool definition."""
    return ToolDefinition(
        name="delete_entity",
        description="Delete an entity",
        category=ToolCategory.FILE,
        requires_approval=True,
        parameters={
            "type": "object",
            "properties": {
                "entitySlug": {"type": "string", "description": "The slug identifier of the entity to delete"},
            },
            "required": ["entitySlug"],
        },
    )


def get_file_tools() -> list[ToolDefinition]:
    """Get the file tool definitions in catalog order."""
    return [
        _create_list_books_tool(),
        _create_read_chapter_tool(),
        _create_write_chapter_tool(),
        _create_list_chapters_tool(),
        _create_create_chapter_tool(),
        _create_delete_chapter_tool(),
        _create_search_content_tool(),
        _create_get_entity_tool(),
        _create_list_entities_tool(),
        _create_create_entity_tool(),
        _create_update_entity_tool(),
        _create_delete_entity_tool(),
    ]
