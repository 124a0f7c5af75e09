"""Anchor definitions: heading anchors and explicit block ids."""

import re

from ..models import AnchorObject, BlockAnchor, HeaderAnchor, HeadingObject
from .links import SEMVER_TAIL_PATTERN, inline_code_spans

# ^block-id, anywhere on a line. Not after '#' so [x](#^ref) stays a reference.
BLOCK_ID_PATTERN = re.compile(r"(?<![\w#^])\^(?P<id>[A-Za-z0-9_-]+)")

EMPHASIS_ANCHOR_PATTERN = re.compile(r"==\*\*(?P<id>[^*]+)\*\*==")

# "Title {#custom-id}" on a heading, "{#custom-id}" elsewhere
EXPLICIT_HEADING_ID_PATTERN = re.compile(r"^(?P<title>.+?)\s*\{#(?P<id>[^}]+)\}$")
EXPLICIT_ID_PATTERN = re.compile(r"\{#(?P<id>[^}\s]+)\}")


def url_encode_heading(text: str) -> str:
    """Obsidian form of a heading anchor: colons dropped, spaces as %20."""
    return re.sub(r"\s+", "%20", text.replace(":", ""))


def _header_anchor(heading: HeadingObject, line: str) -> HeaderAnchor:
    explicit = EXPLICIT_HEADING_ID_PATTERN.match(heading.text)
    if explicit:
        custom = explicit.group("id")
        return HeaderAnchor(
            id=custom,
            url_encoded_id=custom,
            raw_text=explicit.group("title").strip(),
            full_match=line,
            line=heading.line,
        )
    return HeaderAnchor(
        id=heading.text,
        url_encoded_id=url_encode_heading(heading.text),
        raw_text=heading.text,
        full_match=line,
        line=heading.line,
    )


def _block_anchors(line: str, line_no: int, is_heading: bool) -> list[BlockAnchor]:
    code = inline_code_spans(line)

    def in_code(pos: int) -> bool:
        return any(start <= pos < end for start, end in code)

    anchors = []
    for match in BLOCK_ID_PATTERN.finditer(line):
        if in_code(match.start()) or SEMVER_TAIL_PATTERN.match(line, match.end()):
            continue
        anchors.append(
            BlockAnchor(id=match.group("id"), full_match=match.group(0), line=line_no, column=match.start())
        )

    for match in EMPHASIS_ANCHOR_PATTERN.finditer(line):
        if in_code(match.start()):
            continue
        anchors.append(
            BlockAnchor(id=match.group("id"), full_match=match.group(0), line=line_no, column=match.start())
        )

    # On headings {#id} is the header anchor's id, handled separately
    if not is_heading:
        for match in EXPLICIT_ID_PATTERN.finditer(line):
            if in_code(match.start()):
                continue
            anchors.append(
                BlockAnchor(id=match.group("id"), full_match=match.group(0), line=line_no, column=match.start())
            )

    return anchors


def extract_anchors(
    lines: list[str],
    headings: list[HeadingObject],
    excluded_lines: set[int] | None = None,
) -> list[AnchorObject]:
    """Collect every anchor a link can point at.

    Each heading yields exactly one HeaderAnchor carrying both its raw id and
    the Obsidian URL-encoded id. Block anchors come from ``^id`` markers,
    ``==**text**==`` emphasis and ``{#id}`` outside headings.

    Args:
        lines: Source split into lines.
        headings: Output of extract_headings for the same source.
        excluded_lines: 0-based line numbers to skip (code blocks, frontmatter).

    Returns:
        Anchors ordered by (line, column).
    """
    excluded = excluded_lines or set()
    heading_lines = {heading.line for heading in headings}

    anchors: list[AnchorObject] = [_header_anchor(h, lines[h.line - 1]) for h in headings]

    for index, line in enumerate(lines):
        if index in excluded:
            continue
        line_no = index + 1
        anchors.extend(_block_anchors(line, line_no, line_no in heading_lines))

    anchors.sort(key=lambda anchor: (anchor.line, anchor.column))
    return anchors
