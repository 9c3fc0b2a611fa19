"""Glob patterns with a recursive "super asterisk".

Patterns follow unix glob rules with one addition: ``**`` matches any number
of characters including directory separators. For example:

    /var/log/**.log      every .log file below /var/log, at any depth
    /var/log/*/*.log     .log files exactly one directory below /var/log
    /var/log/apache.log  just that file

Supported syntax: ``*``, ``**``, ``?``, ``[abc]``, ``[!abc]``, ``[a-z]`` and
``{alt1,alt2}``. A backslash escapes the next character.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass

from fileexec.errors import GlobCompileError

_META = set("*?[{")


def has_meta(pattern: str) -> bool:
    """True if the pattern contains any glob metacharacter."""
    return any(ch in _META for ch in pattern)


def _translate(pattern: str) -> str:
    """Translate a glob pattern into a regular expression body.

    Raises:
        GlobCompileError: On unterminated ``[`` or ``{`` groups, or a
            trailing escape.
    """
    out: list[str] = []
    i = 0
    n = len(pattern)
    depth = 0  # open {...} groups

    while i < n:
        ch = pattern[i]
        if ch == "\\":
            if i + 1 >= n:
                raise GlobCompileError(pattern, "trailing escape character")
            out.append(re.escape(pattern[i + 1]))
            i += 2
            continue
        if ch == "*":
            if i + 1 < n and pattern[i + 1] == "*":
                out.append(".*")
                i += 2
            else:
                out.append("[^/]*")
                i += 1
            continue
        if ch == "?":
            out.append("[^/]")
        elif ch == "[":
            end = pattern.find("]", i + 2 if i + 1 < n and pattern[i + 1] in "!^" else i + 1)
            if end == -1:
                raise GlobCompileError(pattern, f"unterminated character class at {i}")
            body = pattern[i + 1 : end]
            negate = body[:1] in ("!", "^")
            if negate:
                body = body[1:]
            if not body:
                raise GlobCompileError(pattern, f"empty character class at {i}")
            body = body.replace("\\", "\\\\")
            out.append(f"[^/{body}]" if negate else f"[{body}]")
            i = end + 1
            continue
        elif ch == "{":
            out.append("(?:")
            depth += 1
        elif ch == "}" and depth:
            out.append(")")
            depth -= 1
        elif ch == "," and depth:
            out.append("|")
        else:
            out.append(re.escape(ch))
        i += 1

    if depth:
        raise GlobCompileError(pattern, "unterminated alternative group")
    return "".join(out)


def _static_root(pattern: str) -> str:
    """Longest leading directory of the pattern with no metacharacters."""
    parts = pattern.split("/")
    static: list[str] = []
    for part in parts[:-1]:
        if has_meta(part) or "\\" in part:
            break
        static.append(part)
    if not static:
        return "." if not pattern.startswith("/") else "/"
    root = "/".join(static)
    return root or "/"


@dataclass(frozen=True)
class GlobPath:
    """A compiled watch pattern.

    Attributes:
        pattern: The pattern as configured (separators normalized to ``/``).
        root: Directory the filesystem walk starts from.
        regex: Compiled matcher for full paths below root.
        max_depth: Directory levels below root that can match, or None when
            the pattern contains ``**``.
    """

    pattern: str
    root: str
    regex: re.Pattern[str] | None
    max_depth: int | None

    def match(self) -> list[str]:
        """Return all regular files currently matching, sorted."""
        if self.regex is None:
            return [self.pattern] if os.path.isfile(self.pattern) else []

        if not os.path.isdir(self.root):
            return []

        matches: list[str] = []
        root_depth = _depth(self.root)
        for dirpath, dirnames, filenames in os.walk(self.root):
            dirpath = dirpath.replace(os.sep, "/")
            if self.root == "." and dirpath.startswith("./"):
                dirpath = dirpath[2:]
            if self.max_depth is not None:
                level = _depth(dirpath) - root_depth
                if level >= self.max_depth:
                    dirnames[:] = []
            for filename in filenames:
                candidate = _join(dirpath, filename)
                if self.regex.fullmatch(candidate):
                    matches.append(candidate)
        matches.sort()
        return matches


def _depth(path: str) -> int:
    if path in (".", "/"):
        return 0
    return path.strip("/").count("/") + 1


def _join(dirpath: str, name: str) -> str:
    if dirpath == ".":
        return name
    if dirpath.endswith("/"):
        return dirpath + name
    return f"{dirpath}/{name}"


def compile_glob(pattern: str) -> GlobPath:
    """Compile a watch pattern.

    Args:
        pattern: Glob pattern, absolute or relative to the working directory.

    Returns:
        A GlobPath whose ``match()`` expands the pattern against the filesystem.

    Raises:
        GlobCompileError: If the pattern is empty or malformed.
    """
    if not pattern:
        raise GlobCompileError(pattern, "empty pattern")

    normalized = pattern.replace(os.sep, "/") if os.sep != "/" else pattern
    if normalized.startswith("./"):
        normalized = normalized[2:]

    body = _translate(normalized)
    if not has_meta(normalized):
        return GlobPath(pattern=normalized, root=os.path.dirname(normalized) or ".", regex=None, max_depth=None)

    regex = re.compile(body)
    root = _static_root(normalized)
    if "**" in normalized:
        max_depth = None
    else:
        remainder = normalized[len(root):] if root not in (".", "/") else normalized
        max_depth = remainder.strip("/").count("/")
    return GlobPath(pattern=normalized, root=root, regex=regex, max_depth=max_depth)
