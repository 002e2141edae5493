"""Editing tools: proofreading, style, point of view, tense and translation."""

from bookcrafter_agent.domain.models import ToolCategory, ToolDefinition


def _text(description: str) -> dict:
    return {"type": "string", "description": description}


def _create_proofread_tool() -> ToolDefinition:
    return ToolDefinition(
        name="proofread",
        description="Check text for grammar, spelling, and punctuation errors",
        category=ToolCategory.EDITING,
        parameters={
            "type": "object",
            "properties": {
                "text": _text("The text to proofread"),
                "language": {"type": "string", "description": "The language of the text", "enum": ["en", "tr", "de", "fr", "es"]},
                "returnCorrected": {
                    "type": "boolean",
                    "description": "Whether to return corrected text or just list errors",
                    "default": True,
                },
            },
            "required": ["text"],
        },
    )


def _create_adapt_style_tool() -> ToolDefinition:
    return ToolDefinition(
        name="adapt_style",
        description="Adapt text to a different writing style",
        category=ToolCategory.EDITING,
        parameters={
            "type": "object",
            "properties": {
                "text": _text("The text to adapt"),
                "targetStyle": {
                    "type": "string",
                    "description": "The target writing style",
                    "enum": ["formal", "casual", "literary", "journalistic", "academic", "poetic"],
                },
                "preserveTone": {"type": "boolean", "description": "Whether to preserve the emotional tone", "default": True},
            },
            "required": ["text", "targetStyle"],
        },
    )


def _create_change_pov_tool() -> ToolDefinition:
    return ToolDefinition(
        name="change_pov",
        description="Change the point of view of a text (first person, third person, etc.)",
        category=ToolCategory.EDITING,
        parameters={
            "type": "object",
            "properties": {
                "text": _text("The text to transform"),
                "targetPOV": {
                    "type": "string",
                    "description": "The target point of view",
                    "enum": ["first-person", "second-person", "third-person-limited", "third-person-omniscient"],
                },
                "protagonistName": _text("Name to use when converting from first person"),
            },
            "required": ["text", "targetPOV"],
        },
    )


def _create_change_tense_tool() -> ToolDefinition:
    return ToolDefinition(
        name="change_tense",
        description="Change the tense of a text (past, present, future)",
        category=ToolCategory.EDITING,
        parameters={
            "type": "object",
            "properties": {
                "text": _text("The text to transform"),
                "targetTense": {"type": "string", "description": "The target tense", "enum": ["past", "present", "future"]},
            },
            "required": ["text", "targetTense"],
        },
    )


def _create_simplify_text_tool() -> ToolDefinition:
    return ToolDefinition(
        name="simplify_text",
        description="Simplify complex text for better readability",
        category=ToolCategory.EDITING,
        parameters={
            "type": "object",
            "properties": {
                "text": _text("The text to simplify"),
                "targetLevel": {
                    "type": "string",
                    "description": "Target reading level",
                    "enum": ["elementary", "middle-school", "high-school", "general-adult"],
                },
            },
            "required": ["text"],
        },
    )


def _create_intensify_emotion_tool() -> ToolDefinition:
    return ToolDefinition(
        name="intensify_emotion",
        description="Intensify or reduce the emotional intensity of text",
        category=ToolCategory.EDITING,
        parameters={
            "type": "object",
            "properties": {
                "text": _text("The text to modify"),
                "emotion": {
                    "type": "string",
                    "description": "The emotion to intensify",
                    "enum": ["tension", "joy", "sadness", "fear", "anger", "love", "surprise"],
                },
                "intensity": {
                    "type": "string",
                    "description": "How much to adjust",
                    "enum": ["reduce", "subtle", "moderate", "intense", "extreme"],
                },
            },
            "required": ["text", "emotion", "intensity"],
        },
    )


def _create_translate_tool() -> ToolDefinition:
    return ToolDefinition(
        name="translate",
        description="Translate text to another language while preserving literary style",
        category=ToolCategory.EDITING,
        parameters={
            "type": "object",
            "properties": {
                "text": _text("The text to translate"),
                "targetLanguage": {
                    "type": "string",
                    "description": "The target language",
                    "enum": ["en", "tr", "de", "fr", "es", "it", "pt", "ru", "ja", "zh"],
                },
                "preserveNames": {
                    "type": "boolean",
                    "description": "Whether to keep character/place names untranslated",
                    "default": True,
                },
            },
            "required": ["text", "targetLanguage"],
        },
    )


def _create_add_descriptions_tool() -> ToolDefinition:
    return ToolDefinition(
        name="add_descriptions",
        description="Add sensory descriptions to text (sight, sound, smell, etc.)",
        category=ToolCategory.EDITING,
        parameters={
            "type": "object",
            "properties": {
                "text": _text("The text to enhance"),
                "senses": {
                    "type": "array",
                    "description": "Which senses to focus on",
                    "items": {"type": "string", "enum": ["sight", "sound", "smell", "touch", "taste"]},
                },
                "density": {"type": "string", "description": "How much description to add", "enum": ["light", "moderate", "rich"]},
            },
            "required": ["text"],
        },
    )


def _create_remove_filter_words_tool() -> ToolDefinition:
    return ToolDefinition(
        name="remove_filter_words",
        description='Remove filter words and strengthen prose (e.g., "seemed", "felt", "appeared")',
        category=ToolCategory.EDITING,
        parameters={
            "type": "object",
            "properties": {
                "text": _text("The text to improve"),
                "aggressive": {
                    "type": "boolean",
                    "description": "Whether to aggressively remove all filter words or be conservative",
                    "default": False,
                },
            },
            "required": ["text"],
        },
    )


def get_editing_tools() -> list[ToolDefinition]:
    """Get the editing tool definitions in catalog order."""
    return [
        _create_proofread_tool(),
        _create_adapt_style_tool(),
        _create_change_pov_tool(),
        _create_change_tense_tool(),
        _create_simplify_text_tool(),
        _create_intensify_emotion_tool(),
        _create_translate_tool(),
        _create_add_descriptions_tool(),
        _create_remove_filter_words_tool(),
    ]
