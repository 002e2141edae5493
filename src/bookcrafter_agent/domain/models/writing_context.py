"""Editor context handed to the model alongside a prompt."""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class CurrentChapter:
    """The chapter open in the editor."""

    book_slug: str
    chapter_slug: str
    title: str
    content: str = ""


@dataclass
class TextSelection:
    """Text the author has selected in the editor."""

    text: str
    start: int = 0
    end: int = 0


@dataclass
class EntityField:
    name: str
    value: str


@dataclass
class EntityReference:
    """A character, place or custom entity summarized for the prompt."""

    slug: str
    name: str
    fields: list[EntityField] = field(default_factory=list)


@dataclass
class WritingContext:
    """What the author is looking at when the prompt is sent.

    Attributes:
        current_chapter: Active chapter, if any
        selection: Current text selection, if any
        entities: Entities made available to the model
    """

    current_chapter: CurrentChapter | None = None
    selection: TextSelection | None = None
    entities: list[EntityReference] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return self.current_chapter is None and self.selection is None and not self.entities

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        result: dict[str, Any] = {}
        if self.current_chapter:
            result["current_chapter"] = {
                "book_slug": self.current_chapter.book_slug,
                "chapter_slug": self.current_chapter.chapter_slug,
                "title": self.current_chapter.title,
                "content": self.current_chapter.content,
            }
        if self.selection:
            result["selection"] = {"text": self.selection.text, "start": self.selection.start, "end": self.selection.end}
        if self.entities:
            result["entities"] = [
                {"slug": e.slug, "name": e.name, "fields": [{"name": f.name, "value": f.value} for f in e.fields]}
                for e in self.entities
            ]
        return result
