"""Tool catalog entry model."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ToolCategory(str, Enum):
    """Functional grouping of catalog tools."""

    FILE = "file"
    ANALYSIS = "analysis"
    GENERATION = "generation"
    EDITING = "editing"


@dataclass(frozen=True)
class ToolDefinition:
    """
    A named operation the model may request.

    The parameters are a JSON-schema object (``type: object``, ``properties``,
    optional ``required``) used both to describe the tool to the backends and
    to show the arguments to a human at approval time.
    """

    name: str
    description: str
    category: ToolCategory
    requires_approval: bool = False
    parameters: dict[str, Any] = field(default_factory=lambda: {"type": "object", "properties": {}})

    @property
    def properties(self) -> dict[str, Any]:
        return self.parameters.get("properties", {})

    @property
    def required(self) -> list[str]:
        return list(self.parameters.get("required", []))

    def _json_schema(self) -> dict[str, Any]:
        schema: dict[str, Any] = {"type": "object", "properties": self.properties}
        if self.required:
            schema["required"] = self.required
        return schema

    def to_openai_format(self) -> dict[str, Any]:
        """Convert to the OpenAI function-calling tool shape."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self._json_schema(),
            },
        }

    def to_ollama_format(self) -> dict[str, Any]:
        """Convert to the Ollama tool shape (same as OpenAI's)."""
        return self.to_openai_format()

    def to_anthropic_format(self) -> dict[str, Any]:
        """Convert to the Anthropic tool shape."""
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self._json_schema(),
        }

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "name": self.name,
            "description": self.description,
            "category": self.category.value,
            "requires_approval": self.requires_approval,
            "parameters": self.parameters,
        }
