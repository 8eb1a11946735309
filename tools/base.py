"""
Tool base class and common types.

Every genre-analysis tool subclasses GenreTool and implements execute().
The registry and the /tools HTTP boundary only ever see this interface.

Design:
    - Validation lives on ToolParameter so each tool declares its contract
      once and __call__ enforces it before execute() runs.
    - Tools never raise to the caller: __call__ folds every failure into a
      ToolResult with success=False.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolParameter:
    """
    Declared input of a tool.

    Attributes:
        name: Keyword the caller passes.
        type: Expected Python type (str, int, float, bool).
        description: What the value means, shown in /tools/list.
        required: Whether the caller must supply it.
        default: Value execute() falls back to when omitted.
        minimum: Inclusive lower bound for numeric values.
        maximum: Inclusive upper bound for numeric values.
    """

    name: str
    type: type
    description: str
    required: bool = True
    default: Any = None
    minimum: float | None = None
    maximum: float | None = None

    def _type_matches(self, value: Any) -> bool:
        # bool is an int subclass; never let True pass as a number
        if isinstance(value, bool) and self.type is not bool:
            return False
        if self.type is float:
            return isinstance(value, (int, float))
        return isinstance(value, self.type)

    def validate(self, value: Any) -> tuple[bool, str | None]:
        """
        Check one supplied value against this parameter.

        Returns:
            (is_valid, error_message). error_message is None when valid.
        """
        if value is None:
            if self.required:
                return False, f"Required parameter '{self.name}' is missing"
            return True, None

        if not self._type_matches(value):
            return (
                False,
                f"Parameter '{self.name}' must be {self.type.__name__}, got {type(value).__name__}",
            )

        if self.minimum is not None and value < self.minimum:
            return False, f"Parameter '{self.name}' must be >= {self.minimum}, got {value}"
        if self.maximum is not None and value > self.maximum:
            return False, f"Parameter '{self.name}' must be <= {self.maximum}, got {value}"

        return True, None


@dataclass(frozen=True)
class ToolResult:
    """
    Outcome of a tool call.

    Attributes:
        success: Whether the tool produced data.
        data: JSON-serializable payload when success=True.
        error: Human-readable reason when success=False.
        metadata: Timing, adapter handling and similar side information.
    """

    success: bool
    data: Any = None
    error: str | None = None
    metadata: dict[str, Any] | None = None


class GenreTool(ABC):
    """
    Abstract base class for genre-analysis tools.

    Subclasses provide:
        - name: unique identifier (lowercase, underscores)
        - description: when to call the tool and what it returns
        - parameters: list of ToolParameter specs
        - execute(): the work itself, called with validated kwargs

    Example:
        class ClassifyGenre(GenreTool):
            @property
            def name(self) -> str:
                return "classify_genre"

            def execute(self, **kwargs) -> ToolResult:
                return ToolResult(success=True, data={"genre": "Reggae"})
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique tool identifier."""

    @property
    @abstractmethod
    def description(self) -> str:
        """What the tool does and when a caller should pick it."""

    @property
    @abstractmethod
    def parameters(self) -> list[ToolParameter]:
        """Accepted parameters, required ones first."""

    def validate_inputs(self, **kwargs: Any) -> tuple[bool, str | None]:
        """Validate every declared parameter; unknown keys are rejected."""
        declared = {p.name for p in self.parameters}
        unknown = sorted(set(kwargs) - declared)
        if unknown:
            return False, f"Unknown parameter(s): {', '.join(unknown)}"

        for param in self.parameters:
            is_valid, error = param.validate(kwargs.get(param.name))
            if not is_valid:
                return False, error

        return True, None

    @abstractmethod
    def execute(self, **kwargs: Any) -> ToolResult:
        """Run the tool with already-validated parameters."""

    def __call__(self, **kwargs: Any) -> ToolResult:
        """
        Validate then execute.

        Returns:
            ToolResult. Validation errors and unexpected exceptions both
            come back as success=False.
        """
        is_valid, error = self.validate_inputs(**kwargs)
        if not is_valid:
            return ToolResult(success=False, error=error)

        try:
            return self.execute(**kwargs)
        except Exception as exc:
            logger.exception("Tool '%s' failed", self.name)
            return ToolResult(success=False, error=f"Tool execution failed: {exc}")

    def to_dict(self) -> dict[str, Any]:
        """Serialize name, description and parameter schema for /tools/list."""
        return {
            "name": self.name,
            "description": self.description,
            "parameters": [
                {
                    "name": p.name,
                    "type": p.type.__name__,
                    "description": p.description,
                    "required": p.required,
                    "default": p.default,
                    "minimum": p.minimum,
                    "maximum": p.maximum,
                }
                for p in self.parameters
            ],
        }
