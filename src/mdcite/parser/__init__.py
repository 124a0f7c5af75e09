"""Markdown parsing: links, headings and anchors."""

from .anchors import extract_anchors, url_encode_heading
from .links import create_link_object, extract_links, link_target_path
from .markdown import MarkdownParser, ParseError, extract_headings

__all__ = [
    "MarkdownParser",
    "ParseError",
    "create_link_object",
    "extract_anchors",
    "extract_headings",
    "extract_links",
    "link_target_path",
    "url_encode_heading",
]
