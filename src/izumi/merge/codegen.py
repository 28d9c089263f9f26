"""
Naming and import helpers shared by the generated units.
"""

from __future__ import annotations

import keyword
import re
from collections.abc import Iterable

_WORD_BOUNDARY = re.compile(r"(.)([A-Z][a-z]+)")
_LOWER_UPPER = re.compile(r"([a-z0-9])([A-Z])")
_NON_IDENTIFIER = re.compile(r"\W")
_UNDERSCORES = re.compile(r"_+")


def split_dotted(name: str) -> tuple[str, str]:
    """Split ``pkg.mod.Name`` into ``("pkg.mod", "Name")``; builtins have no module."""
    module, _, symbol = name.rpartition(".")
    return module, symbol


def snake_case(name: str) -> str:
    """``AppComponent_Merged`` -> ``app_component_merged``."""
    result = _WORD_BOUNDARY.sub(r"\1_\2", name)
    result = _LOWER_UPPER.sub(r"\1_\2", result)
    return _UNDERSCORES.sub("_", result).strip("_").lower()


def camel_case(text: str) -> str:
    """``db-host`` -> ``DbHost``; already camel-cased words keep their inner capitals."""
    words = [word for word in re.split(r"[^0-9A-Za-z]+", text) if word]
    return "".join(word[0].upper() + word[1:] for word in words)


def identifier(text: str) -> str:
    """Turn ``text`` into a valid, non-keyword Python identifier."""
    result = _NON_IDENTIFIER.sub("_", text) or "_"
    if result[0].isdigit():
        result = f"_{result}"
    if keyword.iskeyword(result):
        result = f"{result}_"
    return result


class NameAllocator:
    """Hands out unique names, suffixing ``_2``, ``_3``... on clashes."""

    def __init__(self, reserved: Iterable[str] = ()):
        self._taken = set(reserved)

    def allocate(self, base: str) -> str:
        name = base
        counter = 2
        while name in self._taken:
            name = f"{base}_{counter}"
            counter += 1
        self._taken.add(name)
        return name

    def __contains__(self, name: object) -> bool:
        return name in self._taken

    def names(self) -> frozenset[str]:
        return frozenset(self._taken)


class ImportTable:
    """
    Collects the imports of one generated unit.

    Every imported symbol gets a local name; when two symbols share a simple
    name, or a symbol clashes with a reserved name, the later one is aliased
    ``<module_segment>_<Name>``. Aliases depend only on the order of ``add()``
    calls, and the rendered block is sorted, so the output is deterministic.
    """

    def __init__(self, reserved: Iterable[str] = ()):
        self._locals = NameAllocator(reserved)
        self._by_target: dict[str, str] = {}
        self._imports: dict[str, dict[str, str]] = {}
        self._builtins: set[str] = set()

    def add(self, dotted_name: str) -> str:
        """Import ``dotted_name`` and return the local name to refer to it by."""
        if dotted_name in self._by_target:
            return self._by_target[dotted_name]

        module, symbol = split_dotted(dotted_name)
        if not module:
            # Builtins such as ``int`` need no import
            self._by_target[dotted_name] = symbol
            self._builtins.add(symbol)
            return symbol

        local = symbol
        if symbol in self._locals:
            qualifier = identifier(module.rsplit(".", 1)[-1])
            local = self._locals.allocate(f"{qualifier}_{symbol}")
        else:
            self._locals.allocate(symbol)

        self._by_target[dotted_name] = local
        self._imports.setdefault(module, {})[symbol] = local
        return local

    def local_names(self) -> frozenset[str]:
        """Names already taken in the unit: imports, builtins in use and reserved names."""
        return self._locals.names() | self._builtins

    def __bool__(self) -> bool:
        return bool(self._imports)

    def render(self) -> list[str]:
        """Import statements, one per module, sorted by module and symbol."""
        lines: list[str] = []
        for module in sorted(self._imports):
            names = []
            for symbol, local in sorted(self._imports[module].items()):
                names.append(symbol if symbol == local else f"{symbol} as {local}")
            joined = ", ".join(names)
            line = f"from {module} import {joined}"
            if len(line) > 100:
                body = "".join(f"    {name},\n" for name in names)
                line = f"from {module} import (\n{body})"
            lines.append(line)
        return lines
