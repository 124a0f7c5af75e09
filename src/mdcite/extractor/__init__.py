"""Content extraction for validated links."""

from .content import (
    ContentExtractor,
    ExtractionError,
    decode_url_anchor,
    extract_links_content,
    generate_content_id,
    normalize_block_id,
)
from .strategies import (
    CliFlagStrategy,
    ExtractionStrategy,
    ForceMarkerStrategy,
    SectionLinkStrategy,
    StopMarkerStrategy,
    analyze_eligibility,
    default_strategies,
)

__all__ = [
    "CliFlagStrategy",
    "ContentExtractor",
    "ExtractionError",
    "ExtractionStrategy",
    "ForceMarkerStrategy",
    "SectionLinkStrategy",
    "StopMarkerStrategy",
    "analyze_eligibility",
    "decode_url_anchor",
    "default_strategies",
    "extract_links_content",
    "generate_content_id",
    "normalize_block_id",
]
