"""Basename index of markdown files for short-name link resolution.

Lets a link like [text](architecture.md) resolve even when the file lives in
another directory, as long as exactly one file with that name exists in scope.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path

from .config import MARKDOWN_EXTENSION

log = logging.getLogger(__name__)

# (pattern, replacement) pairs for misspellings seen in real link text
TYPO_CORRECTIONS = [
    (re.compile(r"verson"), "version"),
    (re.compile(r"architeture"), "architecture"),
    (re.compile(r"managment"), "management"),
]


@dataclass
class ScanStats:
    total_files: int
    duplicates: int
    scope_folder: str
    real_scope_folder: str


@dataclass
class FileResolution:
    """Outcome of FileCache.resolve.

    ``reason`` is one of "duplicate", "duplicate_fuzzy" or "not_found" when
    ``found`` is False.
    """

    found: bool
    path: str | None = None
    reason: str | None = None
    message: str | None = None
    fuzzy_match: bool = False
    corrected_filename: str | None = None


@dataclass
class CachedFile:
    filename: str
    path: str
    is_duplicate: bool


def _duplicate_message(filename: str) -> str:
    return f'Multiple files named "{filename}" found in scope. Use relative path for disambiguation.'


class FileCache:
    """In-memory basename -> path index over one scope folder.

    Example:
        cache = FileCache()
        cache.scan("/project/docs")
        cache.resolve("architecture.md").path
        # '/project/docs/design/architecture.md'
    """

    def __init__(self) -> None:
        self._files: dict[str, str] = {}
        self._duplicates: set[str] = set()
        self.scope_folder: str | None = None

    def scan(self, scope_folder: str | Path) -> ScanStats:
        """Index every markdown file under scope_folder, replacing any earlier scan.

        The folder is resolved through symlinks first and only the real
        location is walked, so a symlinked tree is not indexed twice.
        """
        self._files.clear()
        self._duplicates.clear()

        absolute = os.path.abspath(scope_folder)
        try:
            real = os.path.realpath(absolute, strict=True)
        except OSError:
            real = absolute

        self.scope_folder = real
        self._scan_directory(real)

        if self._duplicates:
            log.warning("Duplicate filenames in scope: %s", ", ".join(sorted(self._duplicates)))

        log.debug("Indexed %d files under %s", len(self._files), real)
        return ScanStats(
            total_files=len(self._files),
            duplicates=len(self._duplicates),
            scope_folder=absolute,
            real_scope_folder=real,
        )

    def _scan_directory(self, root: str) -> None:
        def on_error(error: OSError) -> None:
            log.warning("Could not read directory %s: %s", error.filename, error.strerror)

        for dirpath, dirnames, filenames in os.walk(root, onerror=on_error, followlinks=True):
            # Prune hidden directories (.git, .obsidian, ...) in place
            dirnames[:] = sorted(d for d in dirnames if not d.startswith("."))
            for filename in sorted(filenames):
                if filename.endswith(MARKDOWN_EXTENSION):
                    self._add(filename, os.path.join(dirpath, filename))

    def _add(self, filename: str, path: str) -> None:
        if filename in self._files:
            self._duplicates.add(filename)
        else:
            self._files[filename] = path

    def _lookup(self, filename: str) -> FileResolution | None:
        if filename not in self._files:
            return None
        if filename in self._duplicates:
            return FileResolution(found=False, reason="duplicate", message=_duplicate_message(filename))
        return FileResolution(found=True, path=self._files[filename])

    def resolve(self, filename: str) -> FileResolution:
        """Resolve a bare filename to a single indexed path.

        Tries the exact name, the name with ``.md`` added, then fuzzy
        corrections. Ambiguous names never resolve.
        """
        exact = self._lookup(filename)
        if exact:
            return exact

        stem = filename[: -len(MARKDOWN_EXTENSION)] if filename.endswith(MARKDOWN_EXTENSION) else filename
        with_extension = self._lookup(stem + MARKDOWN_EXTENSION)
        if with_extension:
            return with_extension

        fuzzy = self._find_fuzzy_match(filename)
        if fuzzy:
            return fuzzy

        return FileResolution(
            found=False,
            reason="not_found",
            message=f'File "{filename}" not found in scope folder.',
        )

    def _fuzzy_hit(self, corrected: str, message: str, ambiguous_message: str) -> FileResolution:
        if corrected in self._duplicates:
            return FileResolution(found=False, reason="duplicate_fuzzy", message=ambiguous_message)
        return FileResolution(
            found=True,
            path=self._files[corrected],
            fuzzy_match=True,
            corrected_filename=corrected,
            message=message,
        )

    def _find_fuzzy_match(self, filename: str) -> FileResolution | None:
        # file.md.md -> file.md
        if filename.endswith(".md.md"):
            fixed = filename[: -len(".md")]
            if fixed in self._files:
                return self._fuzzy_hit(
                    fixed,
                    f'Auto-corrected double extension: "{filename}" -> "{fixed}"',
                    f'Found potential match "{fixed}" (corrected double .md extension), '
                    "but multiple files with this name exist. Use relative path for disambiguation.",
                )

        for pattern, replacement in TYPO_CORRECTIONS:
            if not pattern.search(filename):
                continue
            corrected = pattern.sub(replacement, filename)
            if corrected in self._files:
                return self._fuzzy_hit(
                    corrected,
                    f'Auto-corrected typo: "{filename}" -> "{corrected}"',
                    f'Found potential typo correction "{corrected}", '
                    "but multiple files with this name exist. Use relative path for disambiguation.",
                )

        wanted = filename if filename.endswith(MARKDOWN_EXTENSION) else filename + MARKDOWN_EXTENSION
        case_matches = [name for name in self._files if name.lower() == wanted.lower()]
        if len(case_matches) == 1:
            return self._fuzzy_hit(
                case_matches[0],
                f'Case-insensitive match: "{filename}" -> "{case_matches[0]}"',
                f'Found case-insensitive match "{case_matches[0]}", '
                "but multiple files with this name exist. Use relative path for disambiguation.",
            )

        if "arch-" in filename or "architecture" in filename:
            base = re.sub(r"\.md$", "", re.sub(r"^arch-", "", filename))
            for name in self._files:
                if name in self._duplicates or "arch" not in name:
                    continue
                target = re.sub(r"\.md$", "", re.sub(r"^arch.*?-", "", name))
                if base in target or target in base:
                    return self._fuzzy_hit(
                        name,
                        f'Found similar architecture file: "{filename}" -> "{name}"',
                        _duplicate_message(name),
                    )

        return None

    def all_files(self) -> list[CachedFile]:
        return [
            CachedFile(filename=name, path=path, is_duplicate=name in self._duplicates)
            for name, path in self._files.items()
        ]

    def stats(self) -> dict[str, object]:
        return {
            "total_files": len(self._files),
            "duplicate_count": len(self._duplicates),
            "duplicates": sorted(self._duplicates),
        }
