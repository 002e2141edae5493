"""Store Access contract consumed by the tool executor.

The document/entity data layer lives outside this package. The executor only
sees it through this protocol; every method may be synchronous or return an
awaitable. Records are plain mappings:

    book    {"slug", "title", "chapters": [chapter, ...]}
    chapter {"slug", "title", "content"}
    entity  {"slug", "name", "type", "fields": [{"name", "value"}, ...]}
"""

import inspect
from collections.abc import Awaitable, Mapping
from typing import Any, Protocol, TypeVar, Union, runtime_checkable

T = TypeVar("T")

MaybeAwaitable = Union[T, Awaitable[T]]


@runtime_checkable
class StoreAccess(Protocol):
    """Read/write operations on books, chapters and entities."""

    # Books
    def get_books(self) -> MaybeAwaitable[Mapping[str, Any]]: ...

    def get_book(self, slug: str) -> MaybeAwaitable[Mapping[str, Any] | None]: ...

    def get_chapter(self, book_slug: str, chapter_slug: str) -> MaybeAwaitable[Mapping[str, Any] | None]: ...

    def add_chapter(self, book_slug: str, chapter: Mapping[str, Any]) -> MaybeAwaitable[None]: ...

    def update_chapter(self, book_slug: str, chapter_slug: str, content: str) -> MaybeAwaitable[None]: ...

    def delete_chapter(self, book_slug: str, chapter_slug: str) -> MaybeAwaitable[None]: ...

    # Entities
    def get_entities(self) -> MaybeAwaitable[Mapping[str, Any]]: ...

    def get_entity(self, slug: str) -> MaybeAwaitable[Mapping[str, Any] | None]: ...

    def add_entity(self, entity: Mapping[str, Any]) -> MaybeAwaitable[None]: ...

    def update_entity(self, slug: str, updates: Mapping[str, Any]) -> MaybeAwaitable[None]: ...

    def delete_entity(self, slug: str) -> MaybeAwaitable[None]: ...


async def resolve(value: "T | Awaitable[T]") -> T:
    """Await the value if the store returned an awaitable."""
    if inspect.isawaitable(value):
        return await value
    return value
