"""Analysis tools.

These tools are read-only. They pull raw material out of the store (chapter
text, entity mentions, word counts) and hand it back to the model, which does
the actual analysis.
"""

from bookcrafter_agent.domain.models import ToolCategory, ToolDefinition

_BOOK_SLUG = {"type": "string", "description": "The slug identifier of the book"}
_SUMMARY_LENGTH = {"type": "string", "description": "Desired summary length", "enum": ["brief", "medium", "detailed"]}


def _create_analyze_entity_usage_tool() -> ToolDefinition:
    """Create the analyze_entity_usage tool definition.

    Collects mentions of an entity (by name or @slug) per chapter, with
    short excerpts around the first match.
    """
    return ToolDefinition(
        name="analyze_entity_usage",
        description="Retrieve usage data for an entity (@mention) across chapters for AI to analyze frequency, context, and patterns",
        category=ToolCategory.ANALYSIS,
        parameters={
            "type": "object",
            "properties": {
                "entitySlug": {"type": "string", "description": "The slug identifier of the entity to analyze"},
                "bookSlug": {"type": "string", "description": "Optional: limit analysis to a specific book"},
            },
            "required": ["entitySlug"],
        },
    )


def _create_check_consistency_tool() -> ToolDefinition:
    """Create the check_consistency tool definition."""
    return ToolDefinition(
        name="check_consistency",
        description="Retrieve all chapter contents from a book for AI to analyze and identify consistency issues in entities, timeline, or plot",
        category=ToolCategory.ANALYSIS,
        parameters={
            "type": "object",
            "properties": {
                "bookSlug": {"type": "string", "description": "The slug identifier of the book to check"},
                "checkType": {
                    "type": "string",
                    "description": "Type of consistency check to perform",
                    "enum": ["entity", "timeline", "plot", "all"],
                },
            },
            "required": ["bookSlug"],
        },
    )


def _create_summarize_chapter_tool() -> ToolDefinition:
    """Create the summarize_chapter tool definition."""
    return ToolDefinition(
        name="summarize_chapter",
        description="Retrieve chapter content for AI to generate a summary",
        category=ToolCategory.ANALYSIS,
        parameters={
            "type": "object",
            "properties": {
                "bookSlug": _BOOK_SLUG,
                "chapterSlug": {"type": "string", "description": "The slug identifier of the chapter"},
                "length": _SUMMARY_LENGTH,
            },
            "required": ["bookSlug", "chapterSlug"],
        },
    )


def _create_summarize_book_tool() -> ToolDefinition:
    """Create the summarize_book tool definition."""
    return ToolDefinition(
        name="summarize_book",
        description="Retrieve all chapter contents for AI to generate a book summary",
        category=ToolCategory.ANALYSIS,
        parameters={
            "type": "object",
            "properties": {"bookSlug": _BOOK_SLUG, "length": _SUMMARY_LENGTH},
            "required": ["bookSlug"],
        },
    )


def _create_find_plot_holes_tool() -> ToolDefinition:
    """Create the find_plot_holes tool definition."""
    return ToolDefinition(
        name="find_plot_holes",
        description="Retrieve narrative content for AI to identify potential plot holes or logical inconsistencies",
        category=ToolCategory.ANALYSIS,
        parameters={
            "type": "object",
            "properties": {
                "bookSlug": _BOOK_SLUG,
                "chapterSlug": {"type": "string", "description": "Optional: limit analysis to a specific chapter"},
            },
            "required": ["bookSlug"],
        },
    )


def _create_analyze_character_arc_tool() -> ToolDefinition:
    """Create the analyze_character_arc tool definition."""
    return ToolDefinition(
        name="analyze_character_arc",
        description="Retrieve character entity details and usage data for AI to analyze the character's development and arc throughout the story",
        category=ToolCategory.ANALYSIS,
        parameters={
            "type": "object",
            "properties": {
                "entitySlug": {"type": "string", "description": "The slug identifier of the character entity"},
                "bookSlug": _BOOK_SLUG,
            },
            "required": ["entitySlug", "bookSlug"],
        },
    )


def _create_get_word_count_tool() -> ToolDefinition:
    """Create the get_word_count tool definition.

    Unlike the other analysis tools this one computes its answer.
    """
    return ToolDefinition(
        name="get_word_count",
        description="Calculate and return word count statistics for a book or specific chapter (words, characters)",
        category=ToolCategory.ANALYSIS,
        parameters={
            "type": "object",
            "properties": {
                "bookSlug": _BOOK_SLUG,
                "chapterSlug": {"type": "string", "description": "Optional: get count for a specific chapter only"},
            },
            "required": ["bookSlug"],
        },
    )


def _create_compare_chapters_tool() -> ToolDefinition:
    """Create the compare_chapters tool definition."""
    return ToolDefinition(
        name="compare_chapters",
        description="Retrieve contents of two chapters for AI to compare and analyze differences in style, tone, or content",
        category=ToolCategory.ANALYSIS,
        parameters={
            "type": "object",
            "properties": {
                "bookSlug": _BOOK_SLUG,
                "chapter1Slug": {"type": "string", "description": "The slug identifier of the first chapter"},
                "chapter2Slug": {"type": "string", "description": "The slug identifier of the second chapter"},
                "compareType": {
                    "type": "string",
                    "description": "What aspect to compare",
                    "enum": ["style", "tone", "characters", "all"],
                },
            },
            "required": ["bookSlug", "chapter1Slug", "chapter2Slug"],
        },
    )


def get_analysis_tools() -> list[ToolDefinition]:
    """Get the analysis tool definitions in catalog order."""
    return [
        _create_analyze_entity_usage_tool(),
        _create_check_consistency_tool(),
        _create_summarize_chapter_tool(),
        _create_summarize_book_tool(),
        _create_find_plot_holes_tool(),
        _create_analyze_character_arc_tool(),
        _create_get_word_count_tool(),
        _create_compare_chapters_tool(),
    ]
