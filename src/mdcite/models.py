"""Pydantic models for parsed documents, validation and extraction results."""

from typing import Annotated, Any, Literal

from markdown_it.token import Token
from pydantic import BaseModel, ConfigDict, Field, field_serializer

LinkType = Literal["markdown", "wiki"]
LinkScope = Literal["internal", "cross-document"]
AnchorType = Literal["header", "block"]
ValidationStatus = Literal["valid", "warning", "error"]

# Canonical outcome of one processed link during extraction.
LinkOutcome = Literal["skipped", "extracted", "failed"]


# =============================================================================
# Parser output
# =============================================================================


class ExtractionMarker(BaseModel):
    """A %%marker%% or <!-- marker --> written right after a link."""

    full_match: str  # Marker including delimiters
    inner_text: str  # Trimmed text between delimiters


class TargetPath(BaseModel):
    raw: str | None = None  # Path exactly as written in the link
    absolute: str | None = None
    relative: str | None = None  # Relative to the source file's directory


class LinkTarget(BaseModel):
    path: TargetPath = Field(default_factory=TargetPath)
    anchor: str | None = None


class ValidValidation(BaseModel):
    status: Literal["valid"] = "valid"


class PathConversion(BaseModel):
    """Suggested rewrite of a link path that only resolved indirectly."""

    type: Literal["path-conversion"] = "path-conversion"
    original: str
    recommended: str


class ErrorValidation(BaseModel):
    status: Literal["error"] = "error"
    error: str
    suggestion: str | None = None
    path_conversion: PathConversion | None = None


class WarningValidation(BaseModel):
    status: Literal["warning"] = "warning"
    error: str
    suggestion: str | None = None
    path_conversion: PathConversion | None = None


ValidationMetadata = Annotated[
    ValidValidation | ErrorValidation | WarningValidation,
    Field(discriminator="status"),
]


class LinkObject(BaseModel):
    """One outgoing reference found in a markdown file.

    Created by the parser (or LinkObjectFactory for synthetic links) and later
    enriched in place: CitationValidator assigns ``validation`` directly on
    this object rather than wrapping it.
    """

    link_type: LinkType
    scope: LinkScope
    anchor_type: AnchorType | None = None
    source_path: str | None = None  # Absolute path of the file containing the link
    target: LinkTarget = Field(default_factory=LinkTarget)
    text: str | None = None
    full_match: str
    line: int  # 1-based; 0 for synthetic links
    column: int  # 0-based
    extraction_marker: ExtractionMarker | None = None
    validation: ValidationMetadata | None = None


class HeadingObject(BaseModel):
    level: int
    text: str
    raw: str
    line: int  # 1-based line of the heading


class HeaderAnchor(BaseModel):
    """Anchor derived from a heading.

    ``url_encoded_id`` is always set, even when equal to ``id``.
    """

    anchor_type: Literal["header"] = "header"
    id: str
    url_encoded_id: str
    raw_text: str
    full_match: str
    line: int
    column: int = 0


class BlockAnchor(BaseModel):
    """Explicit block anchor: ^id, ==**text**== or {#id}."""

    anchor_type: Literal["block"] = "block"
    id: str
    raw_text: None = None
    full_match: str
    line: int
    column: int


AnchorObject = Annotated[HeaderAnchor | BlockAnchor, Field(discriminator="anchor_type")]


class ParserOutput(BaseModel):
    """Complete parse result for one file."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    file_path: str
    content: str
    tokens: list[Token] = Field(default_factory=list)
    links: list[LinkObject] = Field(default_factory=list)
    headings: list[HeadingObject] = Field(default_factory=list)
    anchors: list[AnchorObject] = Field(default_factory=list)
    frontmatter: dict[str, Any] = Field(default_factory=dict)

    @field_serializer("tokens")
    def _serialize_tokens(self, tokens: list[Token]) -> list[dict[str, Any]]:
        return [token.as_dict() for token in tokens]


# =============================================================================
# Validation
# =============================================================================


class ValidationSummary(BaseModel):
    total: int = 0
    valid: int = 0
    warnings: int = 0
    errors: int = 0

    @classmethod
    def from_links(cls, links: list[LinkObject]) -> "ValidationSummary":
        """Count outcomes from already-enriched links."""
        statuses = [link.validation.status for link in links if link.validation is not None]
        return cls(
            total=len(links),
            valid=statuses.count("valid"),
            warnings=statuses.count("warning"),
            errors=statuses.count("error"),
        )


class ValidationResult(BaseModel):
    """Return value of CitationValidator.validate_file.

    ``links`` are the parser's own LinkObjects, each carrying ``validation``.
    """

    summary: ValidationSummary
    links: list[LinkObject]


# =============================================================================
# Extraction
# =============================================================================


class CliFlags(BaseModel):
    full_files: bool = False


class EligibilityDecision(BaseModel):
    eligible: bool
    reason: str


class SourceLinkEntry(BaseModel):
    raw_source_link: str
    source_line: int


class ExtractedContentBlock(BaseModel):
    content: str
    content_length: int
    source_links: list[SourceLinkEntry] | None = None


class FailureDetails(BaseModel):
    reason: str


class ProcessedLinkEntry(BaseModel):
    source_link: LinkObject
    content_id: str | None = None
    status: LinkOutcome
    eligibility_reason: str | None = None
    failure_details: FailureDetails | None = None


class OutgoingLinksReport(BaseModel):
    processed_links: list[ProcessedLinkEntry] = Field(default_factory=list)
    source_file_path: str | None = None


class ExtractionStats(BaseModel):
    total_links: int = 0
    unique_content: int = 0
    duplicate_content_detected: int = 0
    raw_character_length: int = 0  # Every extracted body, duplicates included
    deduped_character_length: int = 0  # Unique bodies only
    characters_saved: int = 0
    compression_ratio: float = 0.0  # saved / raw, 0 when nothing was extracted


class OutgoingLinksExtractedContent(BaseModel):
    """Public output contract of both extraction entry points.

    Serialized ``extracted_content_blocks`` carries a leading
    ``_totalContentCharacterLength`` key next to the content ids.
    """

    extracted_content_blocks: dict[str, ExtractedContentBlock] = Field(default_factory=dict)
    outgoing_links_report: OutgoingLinksReport = Field(default_factory=OutgoingLinksReport)
    stats: ExtractionStats = Field(default_factory=ExtractionStats)

    @property
    def total_content_character_length(self) -> int:
        return sum(block.content_length for block in self.extracted_content_blocks.values())

    @field_serializer("extracted_content_blocks", mode="wrap")
    def _serialize_blocks(self, blocks: dict[str, ExtractedContentBlock], handler) -> dict[str, Any]:
        return {"_totalContentCharacterLength": self.total_content_character_length, **handler(blocks)}
