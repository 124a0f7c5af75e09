"""Query facade over one file's parser output."""

from __future__ import annotations

import difflib
from urllib.parse import unquote

from markdown_it.token import Token

from .config import MAX_SIMILAR_ANCHORS, SIMILAR_ANCHOR_MIN_SCORE
from .models import HeaderAnchor, HeadingObject, LinkObject, ParserOutput
from .parser.markdown import NEWLINE_PATTERN

# Block tokens an anchor line can belong to, innermost wins
BLOCK_CONTAINER_TYPES = frozenset({"paragraph_open", "heading_open"})


def similarity(a: str, b: str) -> float:
    """Case-insensitive similarity ratio in [0, 1]."""
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0
    return difflib.SequenceMatcher(None, a.lower(), b.lower()).ratio()


class ParsedDocument:
    """Read-only view of a parsed markdown file.

    Consumers (validator, extractor) go through these queries instead of
    walking ``ParserOutput`` themselves.
    """

    def __init__(self, output: ParserOutput) -> None:
        self._data = output
        self._anchor_ids: list[str] | None = None
        self._lines: list[str] | None = None

    @property
    def data(self) -> ParserOutput:
        return self._data

    @property
    def file_path(self) -> str:
        return self._data.file_path

    @property
    def lines(self) -> list[str]:
        if self._lines is None:
            self._lines = NEWLINE_PATTERN.split(self._data.content)
        return self._lines

    # -------------------------------------------------------------------------
    # Anchors
    # -------------------------------------------------------------------------

    def has_anchor(self, anchor_id: str) -> bool:
        """True if any anchor's id, or header url-encoded id, equals anchor_id."""
        for anchor in self._data.anchors:
            if anchor.id == anchor_id:
                return True
            if isinstance(anchor, HeaderAnchor) and anchor.url_encoded_id == anchor_id:
                return True
        return False

    def get_anchor_ids(self) -> list[str]:
        """Every anchor id, plus url-encoded header ids that differ from the id."""
        if self._anchor_ids is None:
            ids: dict[str, None] = {}
            for anchor in self._data.anchors:
                ids[anchor.id] = None
                if isinstance(anchor, HeaderAnchor) and anchor.url_encoded_id != anchor.id:
                    ids[anchor.url_encoded_id] = None
            self._anchor_ids = list(ids)
        return self._anchor_ids

    def find_similar_anchors(self, anchor_id: str) -> list[str]:
        """Anchor ids resembling anchor_id, best first."""
        scored = []
        for candidate in self.get_anchor_ids():
            score = similarity(anchor_id, candidate)
            if score > SIMILAR_ANCHOR_MIN_SCORE:
                scored.append((score, candidate))
        # Stable sort keeps document order between equal scores
        scored.sort(key=lambda pair: pair[0], reverse=True)
        return [candidate for _score, candidate in scored[:MAX_SIMILAR_ANCHORS]]

    def header_anchors(self) -> list[HeaderAnchor]:
        return [anchor for anchor in self._data.anchors if isinstance(anchor, HeaderAnchor)]

    def find_header_anchor(self, anchor_id: str) -> HeaderAnchor | None:
        """Header anchor matching anchor_id as raw, url-encoded or %-decoded text."""
        decoded = unquote(anchor_id)
        for anchor in self.header_anchors():
            if anchor_id in (anchor.id, anchor.url_encoded_id) or decoded == anchor.id:
                return anchor
        return None

    def heading_for_anchor(self, anchor_id: str) -> HeadingObject | None:
        """The heading a header anchor was derived from.

        Url-encoded ids drop colons, so the heading text cannot be recovered
        from the anchor alone.
        """
        anchor = self.find_header_anchor(anchor_id)
        if anchor is None:
            return None
        for heading in self._data.headings:
            if heading.line == anchor.line:
                return heading
        return None

    # -------------------------------------------------------------------------
    # Links
    # -------------------------------------------------------------------------

    def get_links(self) -> list[LinkObject]:
        return self._data.links

    # -------------------------------------------------------------------------
    # Content extraction
    # -------------------------------------------------------------------------

    def extract_full_content(self) -> str:
        return self._data.content

    def extract_section(self, heading_text: str, level: int | None = None) -> str | None:
        """Extract a heading and everything under it.

        The section runs from the heading line up to (not including) the next
        heading of the same or a shallower level, or to the end of the file.

        Args:
            heading_text: Exact heading text (case-sensitive).
            level: Heading level to match; any level when None.

        Returns:
            Section markdown, or None if no such heading exists.
        """
        headings = self._data.headings
        index = next(
            (
                i
                for i, heading in enumerate(headings)
                if heading.text == heading_text and (level is None or heading.level == level)
            ),
            None,
        )
        if index is None:
            return None

        target = headings[index]
        end_line = len(self.lines) + 1
        for heading in headings[index + 1 :]:
            if heading.level <= target.level:
                end_line = heading.line
                break

        section = self.lines[target.line - 1 : end_line - 1]
        while section and not section[-1].strip():
            section.pop()
        return "\n".join(section)

    def extract_block(self, anchor_id: str) -> str | None:
        """Extract the block a block anchor belongs to.

        That is the innermost list item containing the anchor line, else its
        paragraph or heading. An anchor alone on its own line after a blank
        line labels the preceding block, as in Obsidian.

        Args:
            anchor_id: Block id without the ``^`` prefix.
        """
        anchor = next(
            (a for a in self._data.anchors if a.anchor_type == "block" and a.id == anchor_id),
            None,
        )
        if anchor is None:
            return None

        index = anchor.line - 1
        if not 0 <= index < len(self.lines):
            return None

        span = self._enclosing_block(index)
        if span == (index, index + 1) and self.lines[index].strip() == anchor.full_match:
            previous = self._previous_block(index)
            if previous is not None:
                span = (previous[0], index + 1)

        if span is None:
            return self.lines[index]

        start, end = span
        block = self.lines[start:end]
        while block and not block[-1].strip():
            block.pop()
        return "\n".join(block)

    def _enclosing_block(self, index: int) -> tuple[int, int] | None:
        list_items: list[tuple[int, int]] = []
        blocks: list[tuple[int, int]] = []
        for token in self._data.tokens:
            if token.map is None or not token.map[0] <= index < token.map[1]:
                continue
            if token.type == "list_item_open":
                list_items.append(tuple(token.map))
            elif token.type in BLOCK_CONTAINER_TYPES:
                blocks.append(tuple(token.map))

        candidates = list_items or blocks
        if not candidates:
            return None
        return min(candidates, key=lambda span: span[1] - span[0])

    def _previous_block(self, index: int) -> tuple[int, int] | None:
        """Top-level block ending closest above line index, blank lines allowed between."""
        best: Token | None = None
        for token in self._data.tokens:
            if token.level != 0 or token.map is None or token.nesting == -1:
                continue
            if token.map[1] <= index and (best is None or token.map[1] > best.map[1]):
                best = token
        if best is None:
            return None
        if any(line.strip() for line in self.lines[best.map[1] : index]):
            return None
        return best.map[0], best.map[1]
