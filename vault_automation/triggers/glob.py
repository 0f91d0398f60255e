"""
Glob matching for vault paths.

Supported syntax:
    *        any characters except ``/``
    **       any characters including ``/``; ``**/`` also matches no folder
    ?        one character except ``/``
    {a,b}    alternatives (may nest and contain other glob syntax)
    [abc]    character class, ranges like ``[a-z]``, negation with ``[!abc]``

Patterns are anchored: they must match the whole path.
"""

import logging
import re
from functools import lru_cache
from typing import List, Optional, Pattern

logger = logging.getLogger(__name__)


def _find_closing(pattern: str, start: int, open_char: str, close_char: str) -> int:
    """Index of the bracket closing the one at ``start``, or -1."""
    depth = 0
    for i in range(start, len(pattern)):
        if pattern[i] == open_char:
            depth += 1
        elif pattern[i] == close_char:
            depth -= 1
            if depth == 0:
                return i
    return -1


def _split_alternatives(body: str) -> List[str]:
    """Split brace content on commas that are not inside nested braces."""
    parts, depth, current = [], 0, []
    for char in body:
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
        if char == "," and depth == 0:
            parts.append("".join(current))
            current = []
        else:
            current.append(char)
    parts.append("".join(current))
    return [part.strip() for part in parts]


def _translate_class(body: str) -> str:
    negate = body.startswith("!") or body.startswith("^")
    if negate:
        body = body[1:]
    body = body.replace("\\", "\\\\")
    return f"[^{body}]" if negate else f"[{body}]"


def translate(pattern: str) -> str:
    """Translate a glob into an (unanchored) regular expression."""
    out: List[str] = []
    i = 0
    while i < len(pattern):
        char = pattern[i]

        if char == "*":
            if pattern.startswith("**", i):
                i += 2
                if pattern.startswith("/", i):
                    out.append("(?:.*/)?")
                    i += 1
                else:
                    out.append(".*")
                continue
            out.append("[^/]*")

        elif char == "?":
            out.append("[^/]")

        elif char == "{":
            end = _find_closing(pattern, i, "{", "}")
            if end == -1:
                out.append(re.escape(char))
            else:
                alternatives = _split_alternatives(pattern[i + 1 : end])
                out.append("(?:" + "|".join(translate(alt) for alt in alternatives) + ")")
                i = end

        elif char == "[":
            # A ']' right after '[' or '[!' is part of the class
            search_from = i + 1
            if pattern.startswith("!", search_from):
                search_from += 1
            if pattern.startswith("]", search_from):
                search_from += 1
            end = pattern.find("]", search_from)
            if end == -1:
                out.append(re.escape(char))
            else:
                out.append(_translate_class(pattern[i + 1 : end]))
                i = end

        else:
            out.append(re.escape(char))

        i += 1
    return "".join(out)


@lru_cache(maxsize=256)
def compile_pattern(pattern: str) -> Optional[Pattern[str]]:
    """Compile a glob; returns None when it produces an invalid expression."""
    try:
        return re.compile(f"^{translate(pattern)}$")
    except re.error as e:
        logger.warning(f"Invalid file pattern '{pattern}': {e}")
        return None


def match_file_pattern(pattern: str, path: str) -> bool:
    """
    Check whether ``path`` matches the glob ``pattern``.

    Examples:
        >>> match_file_pattern("journal/*.md", "journal/2024-01-01.md")
        True
        >>> match_file_pattern("*.md", "journal/2024-01-01.md")
        False
    """
    compiled = compile_pattern(pattern)
    if compiled is None:
        return False
    return compiled.match(path) is not None
