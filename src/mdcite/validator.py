"""Citation validation.

Checks that every link in a markdown file points at an existing file and, when
it carries an anchor, at an existing heading or block in that file. Outcomes
are written onto the parser's LinkObjects in place.
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import quote, unquote

from .config import (
    CARET_SYNTAX_EXAMPLES,
    CARET_SYNTAX_PATTERN,
    EMPHASIS_MARKED_EXAMPLES,
    EMPHASIS_MARKED_PATTERN,
    MAX_LISTED_ANCHORS,
    MAX_SUGGESTED_ANCHORS,
)
from .document import ParsedDocument
from .file_cache import FileCache
from .models import (
    ErrorValidation,
    HeaderAnchor,
    LinkObject,
    PathConversion,
    ValidationMetadata,
    ValidationResult,
    ValidationSummary,
    ValidValidation,
    WarningValidation,
)
from .parsed_cache import ParsedFileCache
from .parser import ParseError, link_target_path

log = logging.getLogger(__name__)

# "Folder/Sub/note.md": a path written relative to the vault root
VAULT_PATH_PATTERN = re.compile(r"^[A-Za-z0-9_-]+/")

# Pattern classes, checked in this order
CARET_SYNTAX = "caret"
EMPHASIS_MARKED = "emphasis"
CROSS_DOCUMENT = "cross-document"
SAME_DOCUMENT = "same-document"


@dataclass
class AnchorCheck:
    """Result of looking an anchor up in a target document."""

    valid: bool
    suggestion: str | None = None
    matched_as: str | None = None


def _is_file(path: str) -> bool:
    try:
        return os.path.isfile(path)
    except (OSError, ValueError):
        return False


def _safe_realpath(path: str) -> str:
    try:
        return os.path.realpath(path, strict=True)
    except OSError:
        return path


def clean_markdown(text: str | None) -> str:
    """Strip inline markdown (code, bold, italic, highlight, links) for comparison."""
    if not text:
        return ""
    text = text.replace("`", "").replace("**", "").replace("*", "")
    text = re.sub(r"==([^=]+)==", r"\1", text)
    text = re.sub(r"\[([^\]]+)\]\([^)]+\)", r"\1", text)
    return text.strip()


def _decode(text: str) -> str:
    try:
        return unquote(text, errors="strict")
    except UnicodeDecodeError:
        return text


class CitationValidator:
    """Validates links against the files and anchors they reference.

    Args:
        parsed_file_cache: Shared cache, so each target is parsed once per run.
        file_cache: Optional basename index for short-name links. Without it,
            only relative, vault-absolute and symlink-relative paths resolve.
    """

    def __init__(self, parsed_file_cache: ParsedFileCache, file_cache: FileCache | None = None) -> None:
        self.parsed_file_cache = parsed_file_cache
        self.file_cache = file_cache

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    async def validate_file(self, source_path: str | Path) -> ValidationResult:
        """Validate every link in source_path.

        Each of the document's LinkObjects gets its ``validation`` set in place;
        the returned summary is counted from those same objects.

        Raises:
            ParseError: If source_path does not exist or cannot be read.
        """
        path = os.path.abspath(source_path)
        if not _is_file(path):
            raise ParseError(Path(path), "File not found")

        document = await self.parsed_file_cache.resolve(path)
        links = document.get_links()

        results = await asyncio.gather(*(self.validate_single_citation(link, path) for link in links))
        for link, validation in zip(links, results):
            link.validation = validation

        summary = ValidationSummary.from_links(links)
        log.debug(
            "Validated %s: %d links, %d errors, %d warnings",
            path,
            summary.total,
            summary.errors,
            summary.warnings,
        )
        return ValidationResult(summary=summary, links=links)

    async def validate_single_citation(
        self, link: LinkObject, context_file: str | Path | None = None
    ) -> ValidationMetadata:
        """Validate one link and return its outcome.

        The link itself is not enriched here, except that a target found
        somewhere other than its written location gets ``target.path.absolute``
        updated to the file actually found.

        Args:
            link: Parsed or synthetic link.
            context_file: File the link appears in; defaults to
                ``link.source_path``. Links without either resolve relative
                to the working directory.
        """
        source = context_file or link.source_path
        source_file = os.path.abspath(source) if source else None

        pattern = self._classify(link)
        if pattern == CARET_SYNTAX:
            return self._validate_caret(link)
        if pattern == EMPHASIS_MARKED:
            malformed = self._check_emphasis(link.target.anchor or "")
            if malformed is not None:
                return malformed
            if link.scope == "internal":
                return await self._validate_same_document(link, source_file)
            return await self._validate_cross_document(link, source_file)
        if pattern == CROSS_DOCUMENT:
            return await self._validate_cross_document(link, source_file)
        return await self._validate_same_document(link, source_file)

    # -------------------------------------------------------------------------
    # Pattern classification
    # -------------------------------------------------------------------------

    @staticmethod
    def _classify(link: LinkObject) -> str:
        if link.scope == "internal" and link.anchor_type == "block" and link.full_match.startswith("^"):
            return CARET_SYNTAX
        anchor = link.target.anchor or ""
        if anchor.startswith("==") or anchor.endswith("=="):
            return EMPHASIS_MARKED
        if link.scope == "cross-document":
            return CROSS_DOCUMENT
        return SAME_DOCUMENT

    @staticmethod
    def _validate_caret(link: LinkObject) -> ValidationMetadata:
        anchor = link.target.anchor or link.full_match
        candidate = anchor if anchor.startswith("^") else f"^{anchor}"
        if CARET_SYNTAX_PATTERN.match(candidate):
            return ValidValidation()
        return ErrorValidation(
            error=f"Invalid caret pattern: {candidate}",
            suggestion=f"Use format: {', '.join(CARET_SYNTAX_EXAMPLES)}",
        )

    @staticmethod
    def _check_emphasis(anchor: str) -> ErrorValidation | None:
        """None when the anchor is a well-formed ==**text**== marker."""
        if EMPHASIS_MARKED_PATTERN.match(anchor):
            return None
        if "**" not in anchor:
            return ErrorValidation(
                error="Malformed emphasis anchor - missing ** markers",
                suggestion=f"Use format: ==**ComponentName**== (found: {anchor})",
            )
        if not anchor.startswith("==**") or not anchor.endswith("**=="):
            return ErrorValidation(
                error="Malformed emphasis anchor - incorrect marker placement",
                suggestion=f"Use format: ==**ComponentName**== (found: {anchor})",
            )
        return ErrorValidation(
            error="Invalid emphasis pattern",
            suggestion=f"Use format: {', '.join(EMPHASIS_MARKED_EXAMPLES)}",
        )

    # -------------------------------------------------------------------------
    # Same-document anchors
    # -------------------------------------------------------------------------

    async def _validate_same_document(self, link: LinkObject, source_file: str | None) -> ValidationMetadata:
        anchor = link.target.anchor
        if not anchor:
            return ErrorValidation(error="Link has neither a target file nor an anchor")
        if source_file is None:
            return ErrorValidation(
                error=f"Anchor not found: #{anchor}",
                suggestion="Same-document anchors need a source file to validate against",
            )

        check = await self._check_anchor(anchor, source_file)
        if check.valid:
            return ValidValidation()
        return ErrorValidation(error=f"Anchor not found: #{anchor}", suggestion=check.suggestion)

    # -------------------------------------------------------------------------
    # Cross-document links
    # -------------------------------------------------------------------------

    async def _validate_cross_document(self, link: LinkObject, source_file: str | None) -> ValidationMetadata:
        raw = link_target_path(link)
        if not raw:
            return ErrorValidation(error="Link has no target path")

        source_dir = os.path.dirname(source_file) if source_file else os.getcwd()
        target, note = self._resolve_target(raw, source_file, source_dir)

        if target is None:
            return self._file_not_found(link, raw, source_file, source_dir)

        link.target.path.absolute = target

        anchor = link.target.anchor
        if anchor:
            check = await self._check_anchor(anchor, target)
            if not check.valid:
                message = f"Anchor not found: #{anchor}"
                if note:
                    message = f"{note}. {message}"
                return ErrorValidation(error=message, suggestion=check.suggestion)

        if note is None:
            return ValidValidation()

        original = f"{link.target.path.raw}#{anchor}" if anchor else (link.target.path.raw or raw)
        recommended = os.path.relpath(target, source_dir).replace(os.sep, "/")
        if anchor:
            recommended = f"{recommended}#{anchor}"
        return WarningValidation(
            error=note,
            suggestion=f"Use relative path: {recommended}",
            path_conversion=PathConversion(original=original, recommended=recommended),
        )

    def _resolve_target(self, raw: str, source_file: str | None, source_dir: str) -> tuple[str | None, str | None]:
        """Find the file a link path refers to.

        Returns:
            (path, note): note is None when the file sits where the link says,
            otherwise it describes how the file was found. path is None when
            nothing matched.
        """
        decoded = _decode(raw)

        # Written location, decoded then as-is
        for candidate in dict.fromkeys((decoded, raw)):
            standard = os.path.normpath(os.path.join(source_dir, candidate))
            if _is_file(standard):
                return standard, None

        if VAULT_PATH_PATTERN.match(decoded) and not os.path.isabs(decoded):
            vault_path = self._resolve_vault_path(decoded, source_dir)
            if vault_path:
                return vault_path, f"Resolved as vault-absolute path: {vault_path}"

        if source_file:
            real_source = _safe_realpath(source_file)
            if real_source != source_file:
                real_dir = os.path.dirname(real_source)
                for candidate in dict.fromkeys((decoded, raw)):
                    resolved = os.path.normpath(os.path.join(real_dir, candidate))
                    if _is_file(resolved):
                        return resolved, f"Resolved via symlink target directory: {resolved}"

        if self.file_cache is not None:
            filename = decoded.rsplit("/", 1)[-1]
            resolution = self.file_cache.resolve(filename)
            if resolution.found and resolution.path and _is_file(resolution.path):
                same_directory = _safe_realpath(os.path.dirname(resolution.path)) == _safe_realpath(source_dir)
                if same_directory and not resolution.fuzzy_match:
                    return resolution.path, None

                if same_directory:
                    note = f"Found via file cache: {resolution.path}"
                else:
                    note = f"Found via file cache in different directory: {resolution.path}"
                if resolution.fuzzy_match and resolution.message:
                    note = f"{note} ({resolution.message})"
                return resolution.path, note

        return None, None

    def _resolve_vault_path(self, vault_path: str, source_dir: str) -> str | None:
        roots = []
        if self.file_cache is not None and self.file_cache.scope_folder:
            roots.append(self.file_cache.scope_folder)

        current = source_dir
        while True:
            roots.append(current)
            parent = os.path.dirname(current)
            if parent == current:
                break
            current = parent

        for root in dict.fromkeys(roots):
            candidate = os.path.normpath(os.path.join(root, vault_path))
            if _is_file(candidate):
                return candidate
        return None

    def _file_not_found(
        self, link: LinkObject, raw: str, source_file: str | None, source_dir: str
    ) -> ErrorValidation:
        debug_info = self._debug_info(raw, source_file, source_dir)
        error = f"File not found: {link.target.path.raw or raw}"

        if self.file_cache is not None:
            filename = _decode(raw).rsplit("/", 1)[-1]
            resolution = self.file_cache.resolve(filename)
            if resolution.reason in ("duplicate", "duplicate_fuzzy"):
                return ErrorValidation(error=error, suggestion=f"{resolution.message} {debug_info}")
            if resolution.reason == "not_found":
                return ErrorValidation(
                    error=error,
                    suggestion=f'File "{filename}" not found in scope folder. {debug_info}',
                )

        return ErrorValidation(error=error, suggestion=f"Check if file exists or fix path. {debug_info}")

    @staticmethod
    def _debug_info(raw: str, source_file: str | None, source_dir: str) -> str:
        parts = []
        real_source = _safe_realpath(source_file) if source_file else None
        is_symlink = source_file is not None and real_source != source_file

        if is_symlink:
            parts.append(f"Source via symlink: {source_file} -> {real_source}")
        parts.append(f"Tried: {os.path.normpath(os.path.join(source_dir, _decode(raw)))}")
        if is_symlink:
            real_dir = os.path.dirname(real_source)
            parts.append(f"Symlink-resolved: {os.path.normpath(os.path.join(real_dir, _decode(raw)))}")
        if VAULT_PATH_PATTERN.match(raw):
            parts.append("Detected vault-absolute path format")
        return "; ".join(parts)

    # -------------------------------------------------------------------------
    # Anchor lookup
    # -------------------------------------------------------------------------

    async def _check_anchor(self, anchor: str, target_file: str) -> AnchorCheck:
        try:
            document = await self.parsed_file_cache.resolve(target_file)
        except ParseError as e:
            return AnchorCheck(False, f"Error reading target file: {e.message}")

        if document.has_anchor(anchor):
            better = self._kebab_case_alternative(anchor, document)
            if better:
                return AnchorCheck(False, f"Use raw header format for better Obsidian compatibility: #{better}")
            return AnchorCheck(True, matched_as="exact")

        if "%20" in anchor and document.has_anchor(_decode(anchor)):
            return AnchorCheck(True, matched_as="decoded")

        if anchor.startswith("^") and document.has_anchor(anchor[1:]):
            return AnchorCheck(True, matched_as="block-ref")

        flexible = self._flexible_match(anchor, document)
        if flexible:
            return AnchorCheck(True, matched_as=flexible)

        better = self._kebab_case_alternative(anchor, document)
        if better:
            return AnchorCheck(False, f"Use raw header format for better Obsidian compatibility: #{better}")

        return AnchorCheck(False, self._anchor_suggestions(anchor, document))

    @staticmethod
    def _flexible_match(anchor: str, document: ParsedDocument) -> str | None:
        """Match ignoring url-encoding and inline markdown; returns how it matched."""
        search = _decode(anchor)
        cleaned_search = clean_markdown(search)

        for candidate in document.data.anchors:
            anchor_id = candidate.id
            raw_text = candidate.raw_text

            if anchor_id == search:
                return "exact"
            if raw_text is not None and raw_text == search:
                return "raw-text"
            if len(search) > 1 and search.startswith("`") and search.endswith("`"):
                unwrapped = search[1:-1]
                if unwrapped in (raw_text, anchor_id):
                    return "backtick-unwrapped"
            if raw_text and "`" in raw_text and raw_text == f"`{search}`":
                return "backtick-wrapped"
            if clean_markdown(raw_text or anchor_id) == cleaned_search:
                return "markdown-cleaned"
        return None

    @staticmethod
    def _kebab_case_alternative(anchor: str, document: ParsedDocument) -> str | None:
        """Url-encoded heading text for a GitHub-style kebab-case anchor."""
        for header in document.header_anchors():
            kebab = re.sub(r"\s+", "-", header.raw_text.lower())
            if kebab != anchor:
                continue
            suggestion = quote(header.id, safe="!*()")
            if suggestion != anchor:
                return suggestion
        return None

    @staticmethod
    def _anchor_suggestions(anchor: str, document: ParsedDocument) -> str:
        similar = document.find_similar_anchors(anchor)
        headers = [
            f'"{a.raw_text}" -> #{a.id}' for a in document.data.anchors if isinstance(a, HeaderAnchor)
        ][:MAX_LISTED_ANCHORS]
        blocks = [f"^{a.id}" for a in document.data.anchors if a.anchor_type == "block"][:MAX_LISTED_ANCHORS]

        parts = []
        if similar:
            parts.append(f"Available anchors: {', '.join(similar[:MAX_SUGGESTED_ANCHORS])}")
        if headers:
            parts.append(f"Available headers: {', '.join(headers)}")
        if blocks:
            parts.append(f"Available block refs: {', '.join(blocks)}")
        return "; ".join(parts) if parts else "No similar anchors found"
