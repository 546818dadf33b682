# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_harness

import re

BRACKET_LANGUAGES = frozenset(
    {
        "javascript",
        "typescript",
        "java",
        "c",
        "cpp",
        "csharp",
        "go",
        "rust",
        "kotlin",
        "swift",
        "php",
        "json",
    }
)

_PAIRS = {")": "(", "]": "[", "}": "{"}
_QUOTES = frozenset({'"', "'", "`"})

# A Rust quote opens a char literal only when one (possibly escaped) char and a
# closing quote follow; otherwise it marks a lifetime or loop label.
_RUST_CHAR = re.compile(r"'(?:\\(?:u\{[0-9a-fA-F]{1,6}\}|x[0-9a-fA-F]{2}|[^\n])|[^'\\\n])'")


def is_bracket_language(language: str) -> bool:
    return language.lower() in BRACKET_LANGUAGES


def validate_syntax(code: str, language: str = "javascript") -> bool:
    """Cheap pre-screen that an artifact's brackets are balanced.

    Empty content is never valid. For bracket-delimited languages, ``()``, ``[]``
    and ``{}`` must nest correctly; string literals and C-style comments are
    skipped. In Rust, lifetimes such as ``'a`` are not taken for char literals.
    Other languages are accepted as-is.

    Args:
        code: The artifact source.
        language: The artifact language.

    Returns:
        bool: True if the artifact passes the guard.
    """
    if not code.strip():
        return False

    if not is_bracket_language(language):
        return True

    rust = language.lower() == "rust"
    stack: list[str] = []
    i = 0
    length = len(code)
    while i < length:
        char = code[i]
        nxt = code[i + 1] if i + 1 < length else ""

        if char == "/" and nxt == "/":
            newline = code.find("\n", i)
            i = length if newline == -1 else newline + 1
            continue
        if char == "/" and nxt == "*":
            end = code.find("*/", i + 2)
            i = length if end == -1 else end + 2
            continue
        if rust and char == "'":
            literal = _RUST_CHAR.match(code, i)
            i = literal.end() if literal else i + 1
            continue
        if char in _QUOTES:
            i = _skip_string(code, i)
            continue

        if char in "([{":
            stack.append(char)
        elif char in _PAIRS:
            if not stack or stack.pop() != _PAIRS[char]:
                return False
        i += 1

    return not stack


def _skip_string(code: str, start: int) -> int:
    """Return the index just past the string literal opening at ``start``."""
    quote = code[start]
    i = start + 1
    while i < len(code):
        char = code[i]
        if char == "\\":
            i += 2
            continue
        if char == quote:
            return i + 1
        # Only template literals may span lines.
        if char == "\n" and quote != "`":
            return i + 1
        i += 1
    return len(code)
