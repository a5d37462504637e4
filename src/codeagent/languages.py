"""Supported languages, file extensions and default exclusion globs.

The registry decides which files the indexer embeds and which documents the
completion pipeline serves. Extensions are stored without the leading dot.
"""

from __future__ import annotations

import fnmatch
from dataclasses import dataclass
from pathlib import Path, PurePath


@dataclass(frozen=True)
class Language:
    id: str
    extensions: tuple[str, ...]


LANGUAGES: tuple[Language, ...] = (
    Language("javascript", (".js", ".jsx", ".mjs", ".cjs")),
    Language("typescript", (".ts", ".tsx")),
    Language("python", (".py",)),
    Language("php", (".php",)),
    Language("vue", (".vue",)),
)

# Unique, order-preserving, dot-less.
SUPPORTED_EXTENSIONS: tuple[str, ...] = tuple(
    dict.fromkeys(ext.lstrip(".") for lang in LANGUAGES for ext in lang.extensions)
)

# Directory names pruned during enumeration: dependencies, version control,
# build output, coverage, virtualenvs and test trees.
EXCLUDED_DIRS: frozenset[str] = frozenset(
    [
        "node_modules",
        ".git",
        "dist",
        "build",
        "coverage",
        "out",
        ".venv",
        "venv",
        "__pycache__",
        "tests",
        "test",
        "__tests__",
    ]
)

EXCLUDE_GLOBS: tuple[str, ...] = tuple(f"**/{name}/**" for name in sorted(EXCLUDED_DIRS))


def is_supported(path: str | PurePath) -> bool:
    """Return True if *path* has one of the supported extensions."""
    return PurePath(path).suffix.lower().lstrip(".") in SUPPORTED_EXTENSIONS


def language_for(path: str | PurePath) -> str | None:
    """Return the language id for *path*, or None if unsupported."""
    suffix = PurePath(path).suffix.lower()
    for lang in LANGUAGES:
        if suffix in lang.extensions:
            return lang.id
    return None


def is_excluded(path: str | PurePath, root: str | PurePath, extra: tuple[str, ...] = ()) -> bool:
    """Return True if *path* (relative to *root*) falls under an excluded directory.

    *extra* holds additional fnmatch patterns from the project config; they are
    matched against the root-relative POSIX path and against each path part.
    """
    try:
        rel = PurePath(path).relative_to(root)
    except ValueError:
        rel = PurePath(path)
    parts = rel.parts[:-1]
    if any(part in EXCLUDED_DIRS for part in parts):
        return True
    rel_posix = rel.as_posix()
    for pattern in extra:
        if fnmatch.fnmatch(rel_posix, pattern):
            return True
        if any(fnmatch.fnmatch(part, pattern) for part in rel.parts):
            return True
    return False


def iter_source_files(root: Path, extra_excludes: tuple[str, ...] = ()) -> list[Path]:
    """Return eligible files under *root* in deterministic (sorted) order."""
    files: list[Path] = []
    _scan_dir(root, root, extra_excludes, files)
    return files


def _scan_dir(directory: Path, root: Path, extra: tuple[str, ...], out: list[Path]) -> None:
    try:
        entries = sorted(directory.iterdir())
    except (PermissionError, FileNotFoundError):
        return
    for entry in entries:
        if entry.is_dir():
            if entry.is_symlink() or entry.name in EXCLUDED_DIRS or is_excluded(entry / "_", root, extra):
                continue
            _scan_dir(entry, root, extra, out)
        elif entry.is_file() and is_supported(entry) and not is_excluded(entry, root, extra):
            out.append(entry)
