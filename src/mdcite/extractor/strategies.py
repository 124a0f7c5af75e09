"""Eligibility strategies deciding which links get their content extracted.

Strategies are consulted in order; the first one returning a decision wins.
"""

from __future__ import annotations

from ..config import FORCE_EXTRACT_MARKER, STOP_EXTRACT_MARKER
from ..models import CliFlags, EligibilityDecision, LinkObject


def _marker(link: LinkObject) -> str | None:
    return link.extraction_marker.inner_text if link.extraction_marker else None


class ExtractionStrategy:
    """Base strategy. Returns None to defer to the next strategy."""

    def get_decision(self, link: LinkObject, cli_flags: CliFlags) -> EligibilityDecision | None:
        return None


class StopMarkerStrategy(ExtractionStrategy):
    def get_decision(self, link: LinkObject, cli_flags: CliFlags) -> EligibilityDecision | None:
        if _marker(link) == STOP_EXTRACT_MARKER:
            return EligibilityDecision(eligible=False, reason="stop-extract-link marker prevents extraction")
        return None


class ForceMarkerStrategy(ExtractionStrategy):
    def get_decision(self, link: LinkObject, cli_flags: CliFlags) -> EligibilityDecision | None:
        if _marker(link) == FORCE_EXTRACT_MARKER:
            return EligibilityDecision(eligible=True, reason="force-extract overrides defaults")
        return None


class SectionLinkStrategy(ExtractionStrategy):
    """Links to a heading or block are extracted by default."""

    def get_decision(self, link: LinkObject, cli_flags: CliFlags) -> EligibilityDecision | None:
        if link.anchor_type is not None:
            return EligibilityDecision(eligible=True, reason="Markdown anchor links eligible by default")
        return None


class CliFlagStrategy(ExtractionStrategy):
    """Terminal strategy for whole-file links: always decides."""

    def get_decision(self, link: LinkObject, cli_flags: CliFlags) -> EligibilityDecision | None:
        if cli_flags.full_files:
            return EligibilityDecision(eligible=True, reason="CLI flag --full-files forces extraction")
        return EligibilityDecision(eligible=False, reason="Full-file link ineligible without --full-files flag")


def default_strategies() -> list[ExtractionStrategy]:
    """Stop marker, force marker, section link, then the CLI flag."""
    return [
        StopMarkerStrategy(),
        ForceMarkerStrategy(),
        SectionLinkStrategy(),
        CliFlagStrategy(),
    ]


def analyze_eligibility(
    link: LinkObject,
    cli_flags: CliFlags,
    strategies: list[ExtractionStrategy],
) -> EligibilityDecision:
    for strategy in strategies:
        decision = strategy.get_decision(link, cli_flags)
        if decision is not None:
            return decision
    return EligibilityDecision(eligible=False, reason="No strategy matched")
