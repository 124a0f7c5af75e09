"""Markdown parsing with YAML frontmatter support."""

import logging
import re
from collections.abc import Callable
from pathlib import Path
from typing import Any

import frontmatter
from markdown_it import MarkdownIt
from markdown_it.token import Token

from ..models import HeadingObject, ParserOutput
from .anchors import extract_anchors
from .links import extract_links

log = logging.getLogger(__name__)

# markdown-it normalizes all three line endings to \n before computing token.map,
# so splitting the same way keeps line numbers aligned with the tokens.
NEWLINE_PATTERN = re.compile(r"\r\n|\r|\n")

# Block tokens whose lines never contain links or anchors
CODE_TOKEN_TYPES = frozenset({"fence", "code_block"})

# Cached tokenizer (CommonMark + GFM tables)
_markdown: MarkdownIt | None = None


def _get_markdown() -> MarkdownIt:
    global _markdown
    if _markdown is None:
        _markdown = MarkdownIt("commonmark").enable("table")
    return _markdown


class ParseError(Exception):
    """Raised when a markdown file cannot be read."""

    def __init__(self, path: Path, message: str) -> None:
        self.path = path
        self.message = message
        super().__init__(f"{path}: {message}")


def _read_utf8(path: Path) -> str:
    return path.read_text(encoding="utf-8")


def _frontmatter_span(lines: list[str]) -> int:
    """Return how many leading lines a YAML frontmatter block occupies (0 if none)."""
    if not lines or lines[0].strip() != "---":
        return 0
    for i in range(1, len(lines)):
        if lines[i].strip() in ("---", "..."):
            return i + 1
    # Unterminated block: treat as ordinary markdown
    return 0


def _load_frontmatter(content: str, file_path: str) -> dict[str, Any]:
    try:
        post = frontmatter.loads(content)
    except Exception as e:
        log.debug("Ignoring unparseable frontmatter in %s: %s", file_path, e)
        return {}
    return dict(post.metadata)


def _code_lines(tokens: list[Token]) -> set[int]:
    """0-based line numbers covered by fenced or indented code blocks."""
    lines: set[int] = set()
    for token in tokens:
        if token.type in CODE_TOKEN_TYPES and token.map:
            start, end = token.map
            lines.update(range(start, end))
    return lines


def extract_headings(tokens: list[Token], lines: list[str]) -> list[HeadingObject]:
    """Collect headings in document order from a markdown-it token stream.

    The block stream is flat (nesting is expressed by open/close pairs), so a
    single pass also reaches headings inside blockquotes and list items.

    Args:
        tokens: Token stream from MarkdownIt.parse().
        lines: Source lines, used to recover the heading's raw markdown.

    Returns:
        List of HeadingObject with 1-based line numbers.
    """
    headings: list[HeadingObject] = []
    for index, token in enumerate(tokens):
        if token.type != "heading_open" or token.map is None:
            continue
        inline = tokens[index + 1]
        start, end = token.map
        headings.append(
            HeadingObject(
                level=int(token.tag[1:]),
                text=inline.content,
                raw="\n".join(lines[start:end]),
                line=start + 1,
            )
        )
    return headings


class MarkdownParser:
    """Parses markdown files into links, headings and anchors.

    Standard markdown tokenization is delegated to markdown-it-py; the
    Obsidian-specific syntax (wiki links, caret references, block ids,
    emphasis-marked anchors) is recognised line by line on top of it.

    The file reader is injected so tests can parse without touching disk:

        parser = MarkdownParser(read_text=lambda path: "# Title")
        output = parser.parse_file(Path("/vault/note.md"))
    """

    def __init__(self, read_text: Callable[[Path], str] | None = None) -> None:
        self._read_text = read_text or _read_utf8

    def parse_file(self, file_path: Path | str) -> ParserOutput:
        """Read and parse one markdown file.

        Args:
            file_path: Path to the markdown file. Relative link targets are
                resolved against its directory.

        Returns:
            ParserOutput for the file.

        Raises:
            ParseError: If the file cannot be read or decoded.
        """
        path = Path(file_path)
        try:
            content = self._read_text(path)
        except FileNotFoundError as e:
            raise ParseError(path, "File does not exist") from e
        except (OSError, UnicodeDecodeError) as e:
            raise ParseError(path, f"Failed to read file: {e}") from e

        return self.parse_content(content, str(path))

    def parse_content(self, content: str, file_path: str) -> ParserOutput:
        """Parse already-loaded markdown content. Pure function of its inputs."""
        lines = NEWLINE_PATTERN.split(content)

        span = _frontmatter_span(lines)
        metadata = _load_frontmatter(content, file_path) if span else {}
        # A leading --- block that is not a YAML mapping is ordinary markdown
        if not metadata:
            span = 0

        # Blank the frontmatter so it cannot tokenize as a setext heading,
        # keeping every other line at its original index.
        masked = [""] * span + lines[span:]
        tokens = _get_markdown().parse("\n".join(masked))

        excluded = set(range(span)) | _code_lines(tokens)
        headings = extract_headings(tokens, lines)

        return ParserOutput(
            file_path=file_path,
            content=content,
            tokens=tokens,
            links=extract_links(lines, file_path, excluded),
            headings=headings,
            anchors=extract_anchors(lines, headings, excluded),
            frontmatter=metadata,
        )
