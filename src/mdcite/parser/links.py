"""Outgoing link extraction.

Recognised syntax:
- markdown links: [text](path.md#anchor), [text](#anchor), [text](dir/file)
- wiki links: [[path#anchor|alias]], [[#anchor]], [[path]]
- citations: [cite: path]
- caret references: ^block-id, ^FR1

Links inside code blocks, inline code spans and frontmatter are ignored.
"""

from __future__ import annotations

import os
import re
from urllib.parse import unquote

from ..config import MARKDOWN_EXTENSION
from ..models import ExtractionMarker, LinkObject, LinkScope, LinkType

# Destination allows spaces and colons (Obsidian writes raw heading text in
# anchors) and up to two levels of nested parentheses.
MARKDOWN_LINK_PATTERN = re.compile(
    r"(?<!!)\[(?P<text>[^\]]*)\]\((?P<dest>(?:[^()\n]|\((?:[^()\n]|\([^()\n]*\))*\))*)\)"
)

WIKI_LINK_PATTERN = re.compile(r"(?<!!)\[\[(?P<target>[^\]|]*)(?:\|(?P<alias>[^\]]*))?\]\]")

CITE_PATTERN = re.compile(r"\[cite:\s*(?P<path>[^\]]+)\]")

# Not preceded by a word character (x^2) or '#' (anchor part of a link)
CARET_PATTERN = re.compile(r"(?<![\w^#])\^(?P<id>[A-Za-z0-9_-]+)")

# ^14.0.1 in a dependency list is a version range, not a block reference
SEMVER_TAIL_PATTERN = re.compile(r"\.\d")

URL_SCHEME_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]+:")

LINK_TITLE_PATTERN = re.compile(r"""^(?P<url>.*?)\s+(?:"[^"]*"|'[^']*')$""")

INLINE_CODE_PATTERN = re.compile(r"(?<!`)(`+)(?!`)(.+?)(?<!`)\1(?!`)")

MARKER_PATTERN = re.compile(r"\s*(%%(.+?)%%|<!--\s*(.+?)\s*-->)")

# A file extension starts with a letter, so "Release v1.5" is still a note name
FILE_EXTENSION_PATTERN = re.compile(r"\.[A-Za-z][A-Za-z0-9]{0,4}$")


def determine_anchor_type(anchor: str | None) -> str | None:
    """Classify an anchor as "block" (^id) or "header"; None when absent."""
    if not anchor:
        return None
    if anchor.startswith("^"):
        return "block"
    return "header"


def wiki_target_path(raw_path: str) -> str:
    """Return the file a wiki link points at: [[Note]] means Note.md."""
    name = raw_path.rstrip("/").rsplit("/", 1)[-1]
    if FILE_EXTENSION_PATTERN.search(name):
        return raw_path
    return raw_path + MARKDOWN_EXTENSION


def link_target_path(link: LinkObject) -> str | None:
    """The path text that should be resolved on disk for a link."""
    raw = link.target.path.raw
    if not raw:
        return None
    if link.link_type == "wiki":
        return wiki_target_path(raw)
    return raw


def resolve_path(raw_path: str, source_path: str | None) -> str | None:
    """Resolve a link path against the source file's directory.

    Percent-encoding is decoded first (file%20name.md -> file name.md).
    """
    if not raw_path:
        return None
    decoded = unquote(raw_path)
    if os.path.isabs(decoded):
        return os.path.normpath(decoded)
    if not source_path:
        return None
    return os.path.normpath(os.path.join(os.path.dirname(source_path), decoded))


def detect_extraction_marker(line: str, link_end: int) -> ExtractionMarker | None:
    """Find a %%marker%% or <!-- marker --> directly after a link.

    Only whitespace may separate the link from the marker.
    """
    match = MARKER_PATTERN.match(line, link_end)
    if not match:
        return None
    return ExtractionMarker(
        full_match=match.group(1),
        inner_text=(match.group(2) or match.group(3) or "").strip(),
    )


def create_link_object(
    *,
    link_type: LinkType,
    scope: LinkScope,
    anchor: str | None,
    raw_path: str | None,
    source_path: str | None,
    text: str | None,
    full_match: str,
    line: int,
    column: int,
    extraction_marker: ExtractionMarker | None = None,
) -> LinkObject:
    """Build a LinkObject with resolved absolute/relative target paths."""
    absolute = None
    relative = None
    if raw_path:
        target_path = wiki_target_path(raw_path) if link_type == "wiki" else raw_path
        absolute = resolve_path(target_path, source_path)
        if absolute and source_path:
            try:
                relative = os.path.relpath(absolute, os.path.dirname(source_path))
            except ValueError:
                # Different drives on Windows
                relative = None

    return LinkObject.model_validate(
        {
            "link_type": link_type,
            "scope": scope,
            "anchor_type": determine_anchor_type(anchor),
            "source_path": source_path,
            "target": {
                "path": {"raw": raw_path, "absolute": absolute, "relative": relative},
                "anchor": anchor,
            },
            "text": text,
            "full_match": full_match,
            "line": line,
            "column": column,
            "extraction_marker": extraction_marker,
        }
    )


def inline_code_spans(line: str) -> list[tuple[int, int]]:
    """(start, end) column ranges of `code` spans in a line."""
    return [match.span() for match in INLINE_CODE_PATTERN.finditer(line)]


def _overlaps(start: int, end: int, spans: list[tuple[int, int]]) -> bool:
    return any(start < span_end and span_start < end for span_start, span_end in spans)


def _split_destination(dest: str) -> str:
    """Strip <...> wrapping and an optional "title" from a link destination."""
    dest = dest.strip()
    if dest.startswith("<") and ">" in dest:
        return dest[1 : dest.index(">")]
    titled = LINK_TITLE_PATTERN.match(dest)
    if titled:
        return titled.group("url")
    return dest


def _split_anchor(target: str) -> tuple[str, str | None]:
    path, _, anchor = target.partition("#")
    return path.strip(), (anchor or None)


def _markdown_links(line: str, line_no: int, source_path: str, taken: list[tuple[int, int]]) -> list[LinkObject]:
    links = []
    for match in MARKDOWN_LINK_PATTERN.finditer(line):
        start, end = match.span()
        if _overlaps(start, end, taken):
            continue

        dest = _split_destination(match.group("dest"))
        if not dest or (not dest.startswith("#") and URL_SCHEME_PATTERN.match(dest)):
            continue

        raw_path, anchor = _split_anchor(dest)
        if not raw_path and not anchor:
            continue

        taken.append((start, end))
        links.append(
            create_link_object(
                link_type="markdown",
                scope="cross-document" if raw_path else "internal",
                anchor=anchor,
                raw_path=raw_path or None,
                source_path=source_path,
                text=match.group("text"),
                full_match=match.group(0),
                line=line_no,
                column=start,
                extraction_marker=detect_extraction_marker(line, end),
            )
        )
    return links


def _wiki_links(line: str, line_no: int, source_path: str, taken: list[tuple[int, int]]) -> list[LinkObject]:
    links = []
    for match in WIKI_LINK_PATTERN.finditer(line):
        start, end = match.span()
        if _overlaps(start, end, taken):
            continue

        raw_path, anchor = _split_anchor(match.group("target"))
        if not raw_path and not anchor:
            continue

        alias = match.group("alias")
        taken.append((start, end))
        links.append(
            create_link_object(
                link_type="wiki",
                scope="cross-document" if raw_path else "internal",
                anchor=anchor,
                raw_path=raw_path or None,
                source_path=source_path,
                text=alias.strip() if alias else match.group("target"),
                full_match=match.group(0),
                line=line_no,
                column=start,
                extraction_marker=detect_extraction_marker(line, end),
            )
        )
    return links


def _cite_links(line: str, line_no: int, source_path: str, taken: list[tuple[int, int]]) -> list[LinkObject]:
    links = []
    for match in CITE_PATTERN.finditer(line):
        start, end = match.span()
        if _overlaps(start, end, taken):
            continue

        raw_path = match.group("path").strip()
        taken.append((start, end))
        links.append(
            create_link_object(
                link_type="markdown",
                scope="cross-document",
                anchor=None,
                raw_path=raw_path,
                source_path=source_path,
                text=f"cite: {raw_path}",
                full_match=match.group(0),
                line=line_no,
                column=start,
                extraction_marker=detect_extraction_marker(line, end),
            )
        )
    return links


def _caret_links(line: str, line_no: int, source_path: str, taken: list[tuple[int, int]]) -> list[LinkObject]:
    links = []
    for match in CARET_PATTERN.finditer(line):
        start, end = match.span()
        if _overlaps(start, end, taken) or SEMVER_TAIL_PATTERN.match(line, end):
            continue

        links.append(
            create_link_object(
                link_type="markdown",
                scope="internal",
                anchor=match.group(0),
                raw_path=None,
                source_path=source_path,
                text=None,
                full_match=match.group(0),
                line=line_no,
                column=start,
                extraction_marker=detect_extraction_marker(line, end),
            )
        )
    return links


def extract_links(lines: list[str], source_path: str, excluded_lines: set[int] | None = None) -> list[LinkObject]:
    """Extract all outgoing links from markdown source lines.

    Args:
        lines: Source split into lines.
        source_path: Path of the file being parsed; relative targets resolve
            against its directory.
        excluded_lines: 0-based line numbers to skip (code blocks, frontmatter).

    Returns:
        LinkObjects in document order (line, then column).
    """
    excluded = excluded_lines or set()
    links: list[LinkObject] = []

    for index, line in enumerate(lines):
        if index in excluded:
            continue

        line_no = index + 1
        # Code spans are claimed first so nothing inside them becomes a link
        taken = inline_code_spans(line)
        links.extend(_markdown_links(line, line_no, source_path, taken))
        links.extend(_wiki_links(line, line_no, source_path, taken))
        links.extend(_cite_links(line, line_no, source_path, taken))
        links.extend(_caret_links(line, line_no, source_path, taken))

    links.sort(key=lambda link: (link.line, link.column))
    return links
