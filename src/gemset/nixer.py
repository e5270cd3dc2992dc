"""Rendering of plain Python values as a Nix expression."""
from __future__ import annotations

import re
from pathlib import PurePath
from typing import Any

_IDENTIFIER = re.compile(r"^[a-zA-Z_-]+[a-zA-Z0-9_'-]*$")
_KEYWORDS = frozenset({"assert", "else", "if", "in", "inherit", "let", "or", "rec", "then", "with"})
INDENT = "  "


def serialize_key(key: Any) -> str:
    text = str(key)
    if _IDENTIFIER.match(text) and text not in _KEYWORDS:
        return text
    return serialize_string(text)


def serialize_string(text: str) -> str:
    escaped = (
        text.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("${", "\\${")
        .replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
    )
    return f'"{escaped}"'


def serialize_path(path: PurePath) -> str:
    text = path.as_posix()
    if "/" not in text:
        text = "./" + text
    return text


def serialize(obj: Any, level: int = 0) -> str:
    """Render ``obj`` as Nix.

    Mappings become attribute sets with sorted keys, sequences become lists,
    ``PurePath`` values become path literals.

    Raises:
        TypeError: For values without a Nix counterpart.
    """
    if isinstance(obj, bool):
        return "true" if obj else "false"
    if obj is None:
        return "null"
    if isinstance(obj, dict):
        if not obj:
            return "{ }"
        pad = INDENT * (level + 1)
        lines = ["{"]
        for key in sorted(obj, key=str):
            lines.append(f"{pad}{serialize_key(key)} = {serialize(obj[key], level + 1)};")
        lines.append(INDENT * level + "}")
        return "\n".join(lines)
    if isinstance(obj, (list, tuple)):
        return "[" + " ".join(serialize(item, level) for item in obj) + "]"
    if isinstance(obj, str):
        return serialize_string(obj)
    if isinstance(obj, PurePath):
        return serialize_path(obj)
    if isinstance(obj, (int, float)):
        return str(obj)
    raise TypeError(f"Cannot convert {type(obj).__name__} to nix expression")
