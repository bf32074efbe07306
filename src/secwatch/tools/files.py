from __future__ import annotations

from pathlib import Path
from typing import List

IGNORE_DIRS = {
    ".git",
    ".venv",
    "__pycache__",
    "dist",
    "build",
    "node_modules",
    ".next",
    "coverage",
    ".cache",
    ".pytest_cache",
    ".mypy_cache",
    ".ruff_cache",
}

IGNORE_SUFFIXES = (".log",)

SKIP_EXTENSIONS = (
    ".png", ".jpg", ".jpeg", ".gif", ".ico", ".svg",
    ".woff", ".woff2", ".ttf", ".eot",
    ".mp3", ".mp4", ".wav", ".avi",
    ".zip", ".tar", ".gz", ".rar",
    ".pdf", ".doc", ".docx",
    ".lock", ".map",
)

# Example configs are meant to be committed.
EXAMPLE_CONFIG_SUFFIXES = (".env.example", ".env.sample", ".env.template")


def should_skip_file(path: str) -> bool:
    lowered = path.lower()
    return lowered.endswith(SKIP_EXTENSIONS) or lowered.endswith(EXAMPLE_CONFIG_SUFFIXES)


def is_ignored(path: Path) -> bool:
    return any(part in IGNORE_DIRS for part in path.parts) or path.name.endswith(IGNORE_SUFFIXES)


def list_source_files(root: Path) -> List[Path]:
    if root.is_file():
        return [root]
    files: List[Path] = []
    for path in root.rglob("*"):
        if not path.is_file() or is_ignored(path.relative_to(root)):
            continue
        if should_skip_file(str(path)):
            continue
        files.append(path)
    return sorted(files)


def read_text(path: Path) -> str:
    # Decoded from raw bytes so line endings survive untouched; the fixer
    # compares these strings exactly.
    return path.read_bytes().decode("utf-8")


def write_text(path: Path, content: str) -> None:
    path.write_bytes(content.encode("utf-8"))
