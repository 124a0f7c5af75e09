"""Tests for extraction eligibility strategies."""

import pytest

from mdcite.extractor import (
    CliFlagStrategy,
    ExtractionStrategy,
    ForceMarkerStrategy,
    SectionLinkStrategy,
    StopMarkerStrategy,
    analyze_eligibility,
    default_strategies,
)
from mdcite.models import CliFlags, ExtractionMarker, LinkObject
from mdcite.parser import create_link_object


def make_link(anchor: str | None = None, marker: str | None = None) -> LinkObject:
    full_match = f"[t](target.md#{anchor})" if anchor else "[t](target.md)"
    extraction_marker = None
    if marker:
        extraction_marker = ExtractionMarker(full_match=f"%%{marker}%%", inner_text=marker)
    return create_link_object(
        link_type="markdown",
        scope="cross-document",
        anchor=anchor,
        raw_path="target.md",
        source_path="/vault/source.md",
        text="t",
        full_match=full_match,
        line=1,
        column=0,
        extraction_marker=extraction_marker,
    )


class TestIndividualStrategies:
    def test_stop_marker(self):
        decision = StopMarkerStrategy().get_decision(make_link("Intro", "stop-extract-link"), CliFlags())

        assert decision.eligible is False
        assert decision.reason == "stop-extract-link marker prevents extraction"

    def test_stop_marker_defers_without_marker(self):
        assert StopMarkerStrategy().get_decision(make_link("Intro"), CliFlags()) is None

    def test_force_marker(self):
        decision = ForceMarkerStrategy().get_decision(make_link(marker="force-extract"), CliFlags())

        assert decision.eligible is True

    def test_section_link_header_and_block(self):
        strategy = SectionLinkStrategy()

        assert strategy.get_decision(make_link("Intro"), CliFlags()).eligible is True
        assert strategy.get_decision(make_link("^block"), CliFlags()).eligible is True
        assert strategy.get_decision(make_link(), CliFlags()) is None

    def test_cli_flag_always_decides(self):
        strategy = CliFlagStrategy()

        assert strategy.get_decision(make_link(), CliFlags()).eligible is False
        assert strategy.get_decision(make_link(), CliFlags(full_files=True)).eligible is True

    def test_base_strategy_defers(self):
        assert ExtractionStrategy().get_decision(make_link(), CliFlags()) is None


class TestChainPrecedence:
    """First decision in chain order wins."""

    @pytest.mark.parametrize(
        "anchor,marker,full_files,eligible",
        [
            ("Intro", None, False, True),
            (None, None, False, False),
            (None, None, True, True),
            (None, "force-extract", False, True),
            ("Intro", "stop-extract-link", False, False),
            (None, "stop-extract-link", True, False),
            ("Intro", "some-other-note", False, True),
        ],
    )
    def test_default_chain(self, anchor, marker, full_files, eligible):
        decision = analyze_eligibility(
            make_link(anchor, marker), CliFlags(full_files=full_files), default_strategies()
        )

        assert decision.eligible is eligible

    def test_empty_chain(self):
        decision = analyze_eligibility(make_link("Intro"), CliFlags(), [])

        assert decision.eligible is False
        assert decision.reason == "No strategy matched"

    def test_default_order(self):
        assert [type(strategy) for strategy in default_strategies()] == [
            StopMarkerStrategy,
            ForceMarkerStrategy,
            SectionLinkStrategy,
            CliFlagStrategy,
        ]
