"""
Tool registry with automatic discovery.

Every concrete GenreTool found under the `tools` package is instantiated
and registered by name. Tool modules live in namespace sub-directories
(tools/music/ has no __init__.py), so discovery walks the source tree
itself instead of relying on pkgutil package detection.
"""

from __future__ import annotations

import importlib
import inspect
import logging
from pathlib import Path

from tools.base import GenreTool

logger = logging.getLogger(__name__)

# Infrastructure modules that never define tools
_SKIP_MODULES: frozenset[str] = frozenset({"base", "registry"})


class ToolRegistry:
    """
    Name → tool lookup.

    Usage:
        registry = ToolRegistry()
        registry.discover()

        tool = registry.get("classify_genre")
        result = tool(file_path="/path/to/clip.wav")
    """

    def __init__(self) -> None:
        self._tools: dict[str, GenreTool] = {}

    def register(self, tool: GenreTool) -> None:
        """
        Register a tool instance.

        Raises:
            ValueError: If a tool with the same name is already registered.
        """
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' is already registered")
        self._tools[tool.name] = tool

    def get(self, name: str) -> GenreTool | None:
        return self._tools.get(name)

    def list_tools(self) -> list[dict]:
        """Serialized tools, sorted by name."""
        return [self._tools[name].to_dict() for name in sorted(self._tools)]

    def _module_names(self, package_name: str, roots: list[str]) -> list[str]:
        names: set[str] = set()
        for root in roots:
            root_path = Path(root)
            for py_file in root_path.rglob("*.py"):
                rel = py_file.relative_to(root_path).with_suffix("")
                parts = rel.parts
                if parts[-1] == "__init__" or parts[-1] in _SKIP_MODULES:
                    continue
                # Names with spaces or dashes cannot be imported
                if not all(part.isidentifier() for part in parts):
                    continue
                names.add(".".join((package_name, *parts)))
        return sorted(names)

    def discover(self, package_name: str = "tools") -> int:
        """
        Import every module under `package_name` and register its tools.

        Args:
            package_name: Package to scan.

        Returns:
            Number of tools registered by this call.
        """
        try:
            package = importlib.import_module(package_name)
        except ImportError:
            return 0

        if not hasattr(package, "__path__"):
            return 0

        count = 0
        for module_name in self._module_names(package_name, list(package.__path__)):
            try:
                module = importlib.import_module(module_name)
            except ImportError as exc:
                logger.warning("Skipping tool module %s: %s", module_name, exc)
                continue

            for _name, obj in inspect.getmembers(module, inspect.isclass):
                if obj is GenreTool or not issubclass(obj, GenreTool) or inspect.isabstract(obj):
                    continue
                # Imported names show up in several modules; register at home only
                if obj.__module__ != module.__name__:
                    continue
                self.register(obj())
                count += 1

        return count

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools


_registry: ToolRegistry | None = None


def get_registry() -> ToolRegistry:
    """Global registry singleton, discovered on first call."""
    global _registry  # noqa: PLW0603
    if _registry is None:
        _registry = ToolRegistry()
        _registry.discover()
    return _registry
