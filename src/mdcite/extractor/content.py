"""Deduplicated content extraction for validated links."""

from __future__ import annotations

import asyncio
import hashlib
import logging
from pathlib import Path
from urllib.parse import unquote

from ..config import CONTENT_ID_LENGTH, EMPHASIS_MARKED_PATTERN
from ..models import (
    CliFlags,
    EligibilityDecision,
    ExtractedContentBlock,
    ExtractionStats,
    FailureDetails,
    LinkObject,
    OutgoingLinksExtractedContent,
    OutgoingLinksReport,
    ProcessedLinkEntry,
    SourceLinkEntry,
)
from ..parsed_cache import ParsedFileCache
from ..validator import CitationValidator
from .strategies import ExtractionStrategy, analyze_eligibility

log = logging.getLogger(__name__)


class ExtractionError(Exception):
    """Raised when a link's target content cannot be located."""

    pass


def generate_content_id(content: str) -> str:
    """Short SHA-256 hex digest used as the deduplication key."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()[:CONTENT_ID_LENGTH]


def normalize_block_id(anchor: str | None) -> str | None:
    """Strip the leading ^ from a block reference."""
    if anchor and anchor.startswith("^"):
        return anchor[1:]
    return anchor


def decode_url_anchor(anchor: str | None) -> str | None:
    """Percent-decode an anchor, returning it unchanged if it is not valid encoding."""
    if anchor is None:
        return None
    try:
        return unquote(anchor, errors="strict")
    except UnicodeDecodeError:
        return anchor


async def _extract_link(link: LinkObject, parsed_file_cache: ParsedFileCache) -> str:
    target = link.target.path.absolute
    if not target:
        raise ExtractionError("Link has no resolved target path")

    document = await parsed_file_cache.resolve(target)
    anchor = link.target.anchor

    if link.anchor_type == "header":
        heading = document.heading_for_anchor(anchor or "")
        if heading is not None:
            section = document.extract_section(heading.text, heading.level)
        else:
            decoded = decode_url_anchor(anchor) or ""
            section = document.extract_section(decoded)
            emphasis = EMPHASIS_MARKED_PATTERN.match(decoded)
            if section is None and emphasis:
                section = document.extract_block(decoded[4:-4])
        if section is None:
            raise ExtractionError(f"Heading not found: {decode_url_anchor(anchor)}")
        return section

    if link.anchor_type == "block":
        block_id = normalize_block_id(anchor)
        block = document.extract_block(block_id or "")
        if block is None:
            raise ExtractionError(f"Block not found: {block_id}")
        return block

    return document.extract_full_content()


async def _extract_or_error(link: LinkObject, parsed_file_cache: ParsedFileCache) -> str | Exception:
    try:
        return await _extract_link(link, parsed_file_cache)
    except Exception as e:
        log.debug("Extraction failed for %s: %s", link.full_match, e)
        return e


async def _extract_enriched_links(
    links: list[LinkObject],
    cli_flags: CliFlags,
    parsed_file_cache: ParsedFileCache,
    strategies: list[ExtractionStrategy],
    source_file_path: str | None = None,
) -> OutgoingLinksExtractedContent:
    """Shared core of both extraction entry points.

    Target content is fetched concurrently; deduplication then runs as one
    in-order pass so block ownership and source_links order follow the
    document.
    """
    cross_document = [link for link in links if link.scope != "internal"]

    processed: list[ProcessedLinkEntry | None] = []
    eligible: list[tuple[int, LinkObject, EligibilityDecision]] = []

    for link in cross_document:
        if link.validation is not None and link.validation.status == "error":
            processed.append(
                ProcessedLinkEntry(
                    source_link=link,
                    status="skipped",
                    failure_details=FailureDetails(reason=f"Link failed validation: {link.validation.error}"),
                )
            )
            continue

        decision = analyze_eligibility(link, cli_flags, strategies)
        if not decision.eligible:
            processed.append(
                ProcessedLinkEntry(
                    source_link=link,
                    status="skipped",
                    failure_details=FailureDetails(reason=f"Link not eligible: {decision.reason}"),
                )
            )
            continue

        eligible.append((len(processed), link, decision))
        processed.append(None)

    contents = await asyncio.gather(*(_extract_or_error(link, parsed_file_cache) for _, link, _ in eligible))

    blocks: dict[str, ExtractedContentBlock] = {}
    stats = ExtractionStats(total_links=len(cross_document))

    for (slot, link, decision), content in zip(eligible, contents):
        if isinstance(content, Exception):
            processed[slot] = ProcessedLinkEntry(
                source_link=link,
                status="failed",
                failure_details=FailureDetails(reason=f"Extraction failed: {content}"),
            )
            continue

        content_id = generate_content_id(content)
        stats.raw_character_length += len(content)

        block = blocks.get(content_id)
        if block is None:
            block = ExtractedContentBlock(content=content, content_length=len(content), source_links=[])
            blocks[content_id] = block
            stats.unique_content += 1
        else:
            stats.duplicate_content_detected += 1

        block.source_links.append(SourceLinkEntry(raw_source_link=link.full_match, source_line=link.line))
        processed[slot] = ProcessedLinkEntry(
            source_link=link,
            content_id=content_id,
            status="extracted",
            eligibility_reason=decision.reason,
        )

    stats.deduped_character_length = sum(block.content_length for block in blocks.values())
    stats.characters_saved = stats.raw_character_length - stats.deduped_character_length
    if stats.raw_character_length:
        stats.compression_ratio = stats.characters_saved / stats.raw_character_length

    return OutgoingLinksExtractedContent(
        extracted_content_blocks=blocks,
        outgoing_links_report=OutgoingLinksReport(
            processed_links=[entry for entry in processed if entry is not None],
            source_file_path=source_file_path,
        ),
        stats=stats,
    )


async def extract_links_content(
    source_file: str | Path,
    cli_flags: CliFlags,
    *,
    parsed_file_cache: ParsedFileCache,
    citation_validator: CitationValidator,
    eligibility_strategies: list[ExtractionStrategy],
) -> OutgoingLinksExtractedContent:
    """Validate every link in source_file, then extract content for eligible ones.

    Raises:
        ParseError: If source_file cannot be read.
    """
    result = await citation_validator.validate_file(source_file)
    return await _extract_enriched_links(
        result.links,
        cli_flags,
        parsed_file_cache,
        eligibility_strategies,
        source_file_path=str(source_file),
    )


class ContentExtractor:
    """Extraction entry points bound to a strategy chain and shared caches."""

    def __init__(
        self,
        eligibility_strategies: list[ExtractionStrategy],
        parsed_file_cache: ParsedFileCache,
        citation_validator: CitationValidator,
    ) -> None:
        self.eligibility_strategies = eligibility_strategies
        self.parsed_file_cache = parsed_file_cache
        self.citation_validator = citation_validator

    def analyze_eligibility(self, link: LinkObject, cli_flags: CliFlags) -> EligibilityDecision:
        return analyze_eligibility(link, cli_flags, self.eligibility_strategies)

    async def extract_links_content(self, source_file: str | Path, cli_flags: CliFlags) -> OutgoingLinksExtractedContent:
        return await extract_links_content(
            source_file,
            cli_flags,
            parsed_file_cache=self.parsed_file_cache,
            citation_validator=self.citation_validator,
            eligibility_strategies=self.eligibility_strategies,
        )

    async def extract_content(self, enriched_links: list[LinkObject], cli_flags: CliFlags) -> OutgoingLinksExtractedContent:
        """Extract from links that were already validated (e.g. synthetic links)."""
        return await _extract_enriched_links(
            enriched_links,
            cli_flags,
            self.parsed_file_cache,
            self.eligibility_strategies,
        )
