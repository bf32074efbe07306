from __future__ import annotations

from pathlib import PurePath
import re
from typing import FrozenSet, List, NamedTuple, Pattern


PYTHON_SUFFIXES = frozenset({".py", ".pyw", ".pyi"})
HASH_COMMENT_SUFFIXES = frozenset(
    {".py", ".pyw", ".pyi", ".sh", ".bash", ".zsh", ".rb", ".yml", ".yaml", ".toml", ".env", ".r", ".pl"}
)

ENV_LOOKBACK = 20
_ENV_REFERENCE_RE = re.compile(r"process\.env\.|ENV\[|getenv\(|os\.environ|import\.meta\.env", re.IGNORECASE)

# A "#" only starts a comment at the beginning of a line or after whitespace.
_COMMENT_MARKER_RE = re.compile(r"//|/\*|(?:^|(?<=\s))#")
_QUOTES = ("'", '"', "`")
_STRING_PREFIX_CHARS = "rRbBfFuU"

_TEST_PATH_HINTS = ("test", "spec", "mock", "fixture")
_EXAMPLE_LINE_HINTS = ("example", "sample")


class LinePattern(NamedTuple):
    name: str
    regex: Pattern[str]
    message: str = ""
    # External config variable a matched literal is replaced with.
    variable: str = ""
    only: FrozenSet[str] = frozenset()
    skip: FrozenSet[str] = frozenset()

    def applies_to(self, path: str) -> bool:
        suffix = PurePath(path).suffix.lower()
        if self.only and suffix not in self.only:
            return False
        return suffix not in self.skip


def split_lines(text: str) -> List[str]:
    return text.split("\n")


def _outside_string(prefix: str) -> bool:
    return all(prefix.count(q) % 2 == 0 for q in _QUOTES)


def comment_start(line: str) -> int:
    """Index at which a comment starts on ``line``, or -1."""
    stripped = line.lstrip()
    if stripped.startswith(("*", "/*")):
        return len(line) - len(stripped)
    for marker in _COMMENT_MARKER_RE.finditer(line):
        if _outside_string(line[: marker.start()]):
            return marker.start()
    return -1


def is_in_comment(line: str, index: int) -> bool:
    start = comment_start(line)
    return start != -1 and start < index


def is_comment_line(line: str) -> bool:
    return line.strip().startswith(("//", "#", "*", "/*"))


def is_in_string(line: str, index: int) -> bool:
    before = line[:index]
    return before.count("'") % 2 == 1 or before.count('"') % 2 == 1


def is_env_reference(line: str, index: int) -> bool:
    before = line[max(0, index - ENV_LOOKBACK) : index]
    return bool(_ENV_REFERENCE_RE.search(before))


def is_test_context(path: str, line: str) -> bool:
    lowered_path = path.lower()
    lowered_line = line.lower()
    return any(hint in lowered_path for hint in _TEST_PATH_HINTS) or any(
        hint in lowered_line for hint in _EXAMPLE_LINE_HINTS
    )


def is_annotated(line: str) -> bool:
    """True once a line carries one of our SECURITY review comments."""
    start = comment_start(line)
    return start != -1 and "SECURITY" in line[start:]


def comment_prefix(path: str) -> str:
    pure = PurePath(path)
    if pure.suffix.lower() in HASH_COMMENT_SUFFIXES or pure.name.lower().startswith(".env"):
        return "#"
    return "//"


def config_reference(variable: str, path: str) -> str:
    suffix = PurePath(path).suffix.lower()
    if suffix in PYTHON_SUFFIXES:
        return f'os.environ["{variable}"]'
    if suffix == ".rb":
        return f'ENV["{variable}"]'
    return f"process.env.{variable}"


def excerpt(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


def indent_of(line: str) -> str:
    return line[: len(line) - len(line.lstrip())]


def keep_cr(old_line: str, new_line: str) -> str:
    if old_line.endswith("\r") and not new_line.endswith("\r"):
        return new_line + "\r"
    return new_line


def with_line(lines: List[str], index: int, new_line: str) -> str:
    """Reassemble the whole file with ``lines[index]`` replaced."""
    updated = list(lines)
    updated[index] = keep_cr(updated[index], new_line)
    return "\n".join(updated)


def with_span(lines: List[str], index: int, start: int, end: int, replacement: str) -> str:
    line = lines[index]
    return with_line(lines, index, line[:start] + replacement + line[end:])


def with_reference(lines: List[str], index: int, start: int, end: int, reference: str) -> str:
    """Swap a literal for a config reference, taking its quotes along when it fills the literal."""
    line = lines[index]
    if 0 < start and end < len(line) and line[start - 1] in _QUOTES and line[end] == line[start - 1]:
        start -= 1
        end += 1
        prefix_start = start
        while prefix_start > 0 and start - prefix_start < 2 and line[prefix_start - 1] in _STRING_PREFIX_CHARS:
            prefix_start -= 1
        if prefix_start < start and (prefix_start == 0 or not _is_word_char(line[prefix_start - 1])):
            start = prefix_start
    return with_span(lines, index, start, end, reference)


def _is_word_char(char: str) -> bool:
    return char.isalnum() or char == "_"


def annotate(line: str, prefix: str, note: str) -> str:
    body = line.rstrip("\r")
    return f"{body}  {prefix} {note}"


def comment_out(line: str, prefix: str, note: str) -> str:
    return f"{indent_of(line)}{prefix} {note}: {line.strip()}"
