from __future__ import annotations

import fnmatch
import re
from collections.abc import Iterable

_BRACE_RE = re.compile(r"\{([^{}]*,[^{}]*)\}")


def normalize_path(path: str) -> str:
    p = path.replace("\\", "/")
    while p.startswith("./"):
        p = p[2:]
    return p.lstrip("/")


def expand_braces(pattern: str) -> list[str]:
    m = _BRACE_RE.search(pattern)
    if m is None:
        return [pattern]
    head, tail = pattern[: m.start()], pattern[m.end() :]
    expanded: list[str] = []
    for alt in m.group(1).split(","):
        expanded.extend(expand_braces(head + alt + tail))
    return expanded


def _match_segments(parts: list[str], pats: list[str]) -> bool:
    if not pats:
        return not parts
    head, rest = pats[0], pats[1:]
    if head == "**":
        return any(_match_segments(parts[i:], rest) for i in range(len(parts) + 1))
    if not parts:
        return False
    return fnmatch.fnmatchcase(parts[0], head) and _match_segments(parts[1:], rest)


def glob_match(path: str, pattern: str) -> bool:
    """Match a slash-separated path against a glob where `**` spans directories."""
    parts = [s for s in normalize_path(path).split("/") if s]
    for expanded in expand_braces(pattern):
        pats = [s for s in normalize_path(expanded).split("/") if s]
        if _match_segments(parts, pats):
            return True
    return False


def should_process(path: str, include: Iterable[str], exclude: Iterable[str]) -> bool:
    if not any(glob_match(path, pattern) for pattern in include):
        return False
    return not any(glob_match(path, pattern) for pattern in exclude)
