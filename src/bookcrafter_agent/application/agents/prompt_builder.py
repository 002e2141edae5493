"""System and context prompt construction for the writing assistant."""

import math

from bookcrafter_agent.domain.models import WritingContext

DEFAULT_SYSTEM_PROMPT = """You are an AI writing assistant for Book Crafter, a professional book authoring tool.

## Core Guidelines

**Language Rules:**
- Always respond in the SAME LANGUAGE as the user's message
- When writing to chapters, use the book's primary language
- Never switch languages mid-conversation unless explicitly requested

**Tool Usage:**
- Execute requested tools immediately and concisely
- Present results clearly without listing all available tools
- Focus on answering the user's specific question
- After using tools, provide brief, actionable insights

**Writing Assistance:**
- Help with creative writing, grammar, character development, and plot consistency
- Maintain the author's voice and style
- Provide constructive feedback when requested
- Be concise and direct in your responses

**Professional Tone:**
- Be helpful and supportive
- Respect the author's creative decisions
- Provide suggestions, not instructions
- Keep responses focused and relevant"""

CHAPTER_PREVIEW_CHARS = 500
SELECTION_PREVIEW_CHARS = 100
MAX_LISTED_ENTITIES = 10

PRESET_PROMPTS: dict[str, str] = {
    "expand_scene": "Expand this scene with more descriptive details and sensory information.",
    "check_grammar": "Check the grammar and style of the selected text. List all issues found.",
    "make_dramatic": "Rewrite this text to make it more dramatic and emotionally engaging.",
    "write_dialogue": "Write a dialogue between the mentioned characters based on their personalities.",
    "summarize": "Provide a concise summary of this chapter.",
    "find_plot_holes": "Analyze this content for any plot holes or inconsistencies.",
    "suggest_improvements": "Suggest improvements to make this text more compelling.",
    "character_consistency": "Check if the character behavior is consistent with their defined personality and background.",
}


def _truncate(text: str, limit: int) -> str:
    return text[:limit] + ("..." if len(text) > limit else "")


def build_context_aware_system_prompt(context: WritingContext | None = None, custom_prompt: str | None = None) -> str:
    """Build the system prompt, describing the active book, chapter and entities.

    Args:
        context: Editor context, if any
        custom_prompt: Replaces the default writing-assistant prompt

    Returns:
        The system prompt text
    """
    parts = [custom_prompt or DEFAULT_SYSTEM_PROMPT]
    if context is None:
        return "\n".join(parts)

    info: list[str] = []
    if context.current_chapter:
        chapter = context.current_chapter
        info.append("\n## Current Working Context")
        info.append(f"- **Active Book:** {chapter.book_slug}")
        info.append(f"- **Active Chapter:** {chapter.title} ({chapter.chapter_slug})")

    if context.entities:
        info.append(f"- **Available Entities:** {len(context.entities)} characters/locations/items")
        names = [e.name for e in context.entities[:MAX_LISTED_ENTITIES]]
        more = "..." if len(context.entities) > MAX_LISTED_ENTITIES else ""
        info.append(f"- **Entity Names:** {', '.join(names)}{more}")

    if context.selection:
        info.append(f'- **Selected Text:** "{_truncate(context.selection.text, SELECTION_PREVIEW_CHARS)}"')

    if info:
        parts.append("\n".join(info))

    parts.append("\n## Tool Usage Guidelines")
    parts.append("When performing operations:")
    if context.current_chapter:
        parts.append(f'- For book operations, use the current book: "{context.current_chapter.book_slug}"')
        parts.append(f'- For chapter operations, use the current chapter: "{context.current_chapter.chapter_slug}"')
    else:
        parts.append("- No book/chapter is currently selected. Ask the user to specify which book/chapter to work with.")
    parts.append("- Use list_books to see all available books")
    parts.append("- Use list_entities to see all characters, locations, and items")

    return "\n".join(parts)


def build_context_prompt(context: WritingContext) -> str:
    """Render the editor context (chapter preview, selection, entities) as text."""
    parts: list[str] = []

    if context.current_chapter:
        chapter = context.current_chapter
        parts.append("## Current Chapter")
        parts.append(f"Book: {chapter.book_slug}")
        parts.append(f"Chapter: {chapter.title}")
        if chapter.content:
            parts.append(f"Content Preview:\n{_truncate(chapter.content, CHAPTER_PREVIEW_CHARS)}")

    if context.selection:
        parts.append("\n## Selected Text")
        parts.append(context.selection.text)

    if context.entities:
        parts.append("\n## Available Entities")
        for entity in context.entities:
            fields = ", ".join(f"{f.name}: {f.value}" for f in entity.fields)
            parts.append(f"- {entity.name} ({entity.slug}): {fields}")

    return "\n".join(parts)


def build_system_prompt(context: WritingContext | None = None, custom_prompt: str | None = None) -> str:
    """Full system prompt sent to a backend: guidance plus rendered context."""
    system = build_context_aware_system_prompt(context, custom_prompt)
    if context is not None and not context.is_empty:
        system = f"{system}\n\n{build_context_prompt(context)}"
    return system


def estimate_tokens(text: str) -> int:
    """Rough token estimate (about four characters per token)."""
    return math.ceil(len(text) / 4)
