"""Tests for CitationValidator."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from conftest import write_note
from mdcite.file_cache import FileCache
from mdcite.link_factory import LinkObjectFactory
from mdcite.parsed_cache import ParsedFileCache
from mdcite.parser import ParseError
from mdcite.validator import CitationValidator


async def validate_note(validator: CitationValidator, vault: Path, rel_path: str, content: str):
    note = write_note(vault, rel_path, content)
    return await validator.validate_file(note)


# =============================================================================
# validate_file
# =============================================================================


class TestValidateFile:
    @pytest.mark.asyncio
    async def test_summary_and_enrichment(self, sample_vault: Path, validator: CitationValidator):
        """Valid, missing-anchor and block links are counted and enriched in place."""
        result = await validator.validate_file(sample_vault / "guide.md")

        assert result.summary.total == 3
        assert result.summary.valid == 2
        assert result.summary.errors == 1
        assert result.summary.warnings == 0

        intro, nope, block = result.links
        assert intro.validation.status == "valid"
        assert block.validation.status == "valid"
        assert nope.validation.status == "error"
        assert nope.validation.error == "Anchor not found: #Nope"
        assert "Intro" in nope.validation.suggestion

    @pytest.mark.asyncio
    async def test_links_are_the_parsed_objects(
        self, sample_vault: Path, validator: CitationValidator, parsed_file_cache: ParsedFileCache
    ):
        guide = sample_vault / "guide.md"
        result = await validator.validate_file(guide)
        document = await parsed_file_cache.resolve(guide)

        assert result.links[0] is document.get_links()[0]

    @pytest.mark.asyncio
    async def test_repeated_validation_is_stable(self, sample_vault: Path, validator: CitationValidator):
        """Links are enriched in place, so the first result is snapshotted before re-running."""
        first = (await validator.validate_file(sample_vault / "guide.md")).model_dump()
        second = (await validator.validate_file(sample_vault / "guide.md")).model_dump()

        assert second == first

    @pytest.mark.asyncio
    async def test_file_without_links(self, vault: Path, validator: CitationValidator):
        result = await validate_note(validator, vault, "plain.md", "# Plain\n\nNo links.\n")

        assert result.summary.total == 0
        assert result.links == []

    @pytest.mark.asyncio
    async def test_missing_source_raises(self, vault: Path, validator: CitationValidator):
        with pytest.raises(ParseError):
            await validator.validate_file(vault / "missing.md")


# =============================================================================
# Anchors
# =============================================================================


class TestAnchorValidation:
    @pytest.mark.asyncio
    async def test_encoded_and_raw_anchor_forms(self, sample_vault: Path, validator: CitationValidator):
        """Obsidian %20 form and raw heading text with a colon both resolve."""
        result = await validate_note(
            validator,
            sample_vault,
            "forms.md",
            "[a](reference.md#Setup%20Local) [b](reference.md#Setup: Local)\n",
        )

        assert [link.validation.status for link in result.links] == ["valid", "valid"]

    @pytest.mark.asyncio
    async def test_wiki_link_anchor(self, sample_vault: Path, validator: CitationValidator):
        result = await validate_note(validator, sample_vault, "wiki.md", "[[reference#Intro]] [[reference#Ghost]]\n")

        assert [link.validation.status for link in result.links] == ["valid", "error"]

    @pytest.mark.asyncio
    async def test_kebab_case_anchor_suggests_heading_text(self, sample_vault: Path, validator: CitationValidator):
        result = await validate_note(validator, sample_vault, "kebab.md", "[a](reference.md#appendix)\n")

        validation = result.links[0].validation
        assert validation.status == "error"
        assert "Use raw header format" in validation.suggestion
        assert "#Appendix" in validation.suggestion

    @pytest.mark.asyncio
    async def test_markdown_formatting_ignored(self, vault: Path, validator: CitationValidator):
        """Anchors match headings regardless of inline markdown."""
        write_note(vault, "styled.md", "# Styled\n\n## The **Bold** Part\n\n## `config.py` Options\n")

        result = await validate_note(
            validator,
            vault,
            "links.md",
            "[a](styled.md#The Bold Part) [b](styled.md#config.py Options)\n",
        )

        assert [link.validation.status for link in result.links] == ["valid", "valid"]

    @pytest.mark.asyncio
    async def test_no_similar_anchors(self, vault: Path, validator: CitationValidator):
        write_note(vault, "empty.md", "Just text.\n")

        result = await validate_note(validator, vault, "links.md", "[a](empty.md#Anything)\n")

        assert result.links[0].validation.suggestion == "No similar anchors found"

    @pytest.mark.asyncio
    async def test_same_document_anchors(self, vault: Path, validator: CitationValidator):
        result = await validate_note(
            validator, vault, "self.md", "# Top\n\n[up](#Top) [bad](#Missing) [[#Top]]\n"
        )

        assert [link.validation.status for link in result.links] == ["valid", "error", "valid"]

    @pytest.mark.asyncio
    async def test_emphasis_anchor(self, vault: Path, validator: CitationValidator):
        write_note(vault, "components.md", "==**Parser**== reads files.\n")

        result = await validate_note(
            validator,
            vault,
            "links.md",
            "[ok](components.md#==**Parser**==) [bad](components.md#==Parser==)\n",
        )

        ok, bad = result.links
        assert ok.validation.status == "valid"
        assert bad.validation.status == "error"
        assert bad.validation.error == "Malformed emphasis anchor - missing ** markers"


# =============================================================================
# Caret references
# =============================================================================


class TestCaretValidation:
    @pytest.mark.asyncio
    async def test_caret_patterns(self, vault: Path, validator: CitationValidator):
        result = await validate_note(
            validator, vault, "reqs.md", "Covers ^FR1 and ^US1-4bT1-1 but not ^bad_id here\n"
        )

        statuses = {link.full_match: link.validation for link in result.links}
        assert statuses["^FR1"].status == "valid"
        assert statuses["^US1-4bT1-1"].status == "valid"
        assert statuses["^bad_id"].status == "error"
        assert statuses["^bad_id"].error == "Invalid caret pattern: ^bad_id"


# =============================================================================
# File resolution
# =============================================================================


class TestFileResolution:
    @pytest.mark.asyncio
    async def test_missing_file(self, vault: Path, validator: CitationValidator):
        result = await validate_note(validator, vault, "links.md", "[m](missing.md)\n")

        validation = result.links[0].validation
        assert validation.status == "error"
        assert validation.error == "File not found: missing.md"
        assert "Check if file exists" in validation.suggestion
        assert "Tried:" in validation.suggestion

    @pytest.mark.asyncio
    async def test_basename_resolution_warns_with_conversion(
        self, sample_vault: Path, scoped_validator: CitationValidator
    ):
        """A short name found elsewhere in scope is a warning with the relative form."""
        result = await validate_note(scoped_validator, sample_vault, "short.md", "[leaf](leaf.md#Leaf)\n")

        link = result.links[0]
        assert link.validation.status == "warning"
        assert link.validation.path_conversion.original == "leaf.md#Leaf"
        assert link.validation.path_conversion.recommended == "notes/deep/leaf.md#Leaf"
        expected = os.path.join(os.path.realpath(sample_vault), "notes", "deep", "leaf.md")
        assert link.target.path.absolute == expected

    @pytest.mark.asyncio
    async def test_file_cache_hit_in_same_directory_is_valid(self, vault: Path, parsed_file_cache: ParsedFileCache):
        """[a](note) finding the sibling note.md is not a different-directory resolution."""
        write_note(vault, "note.md", "# Note\n")
        write_note(vault, "source.md", "[a](note)\n")
        file_cache = FileCache()
        file_cache.scan(vault)
        validator = CitationValidator(parsed_file_cache, file_cache)

        result = await validator.validate_file(vault / "source.md")

        validation = result.links[0].validation
        assert validation.status == "valid"
        assert result.links[0].target.path.absolute == os.path.join(os.path.realpath(vault), "note.md")

    @pytest.mark.asyncio
    async def test_fuzzy_hit_in_same_directory_warns_without_directory_claim(
        self, vault: Path, parsed_file_cache: ParsedFileCache
    ):
        write_note(vault, "README.md", "# Readme\n")
        write_note(vault, "source.md", "[r](readme.md)\n")
        file_cache = FileCache()
        file_cache.scan(vault)
        validator = CitationValidator(parsed_file_cache, file_cache)

        result = await validator.validate_file(vault / "source.md")

        validation = result.links[0].validation
        assert validation.status == "warning"
        assert validation.error.startswith("Found via file cache: ")
        assert "different directory" not in validation.error
        assert validation.path_conversion.recommended == "README.md"

    @pytest.mark.asyncio
    async def test_basename_resolution_with_bad_anchor_is_error(
        self, sample_vault: Path, scoped_validator: CitationValidator
    ):
        result = await validate_note(scoped_validator, sample_vault, "short.md", "[leaf](leaf.md#Nope)\n")

        validation = result.links[0].validation
        assert validation.status == "error"
        assert validation.error.startswith("Found via file cache in different directory")
        assert validation.error.endswith("Anchor not found: #Nope")

    @pytest.mark.asyncio
    async def test_ambiguous_basename_is_error(self, vault: Path, parsed_file_cache: ParsedFileCache):
        write_note(vault, "a/foo.md", "# Foo A\n")
        write_note(vault, "b/foo.md", "# Foo B\n")
        file_cache = FileCache()
        file_cache.scan(vault)
        validator = CitationValidator(parsed_file_cache, file_cache)

        result = await validate_note(validator, vault, "root.md", "[f](foo.md)\n")

        validation = result.links[0].validation
        assert validation.status == "error"
        assert 'Multiple files named "foo.md"' in validation.suggestion

    @pytest.mark.asyncio
    async def test_vault_absolute_path(self, vault: Path, validator: CitationValidator):
        """Folder/... paths resolve against an ancestor of the source directory."""
        write_note(vault, "notes/other.md", "# Other\n")

        result = await validate_note(validator, vault, "notes/deep/leaf.md", "[o](notes/other.md#Other)\n")

        validation = result.links[0].validation
        assert validation.status == "warning"
        assert validation.path_conversion.recommended == "../other.md#Other"

    @pytest.mark.asyncio
    async def test_symlinked_source_directory(self, vault: Path, tmp_path: Path, validator: CitationValidator):
        """Links written relative to a symlinked note's real directory still resolve."""
        write_note(vault, "real/target.md", "# Target\n")
        write_note(vault, "real/source.md", "[t](target.md)\n")
        linked_dir = tmp_path / "linked"
        linked_dir.mkdir()
        (linked_dir / "source.md").symlink_to(vault / "real" / "source.md")

        result = await validator.validate_file(linked_dir / "source.md")

        validation = result.links[0].validation
        assert validation.status == "warning"
        assert "symlink" in validation.error

    @pytest.mark.asyncio
    async def test_wiki_link_without_extension(self, sample_vault: Path, validator: CitationValidator):
        result = await validate_note(validator, sample_vault, "wiki.md", "[[reference]]\n")

        assert result.links[0].validation.status == "valid"

    @pytest.mark.asyncio
    async def test_unreadable_target_anchor_check(self, vault: Path, validator: CitationValidator):
        (vault / "binary.md").write_bytes(b"\x80\xff")

        result = await validate_note(validator, vault, "links.md", "[b](binary.md#Top)\n")

        validation = result.links[0].validation
        assert validation.status == "error"
        assert validation.suggestion.startswith("Error reading target file")


# =============================================================================
# validate_single_citation
# =============================================================================


class TestValidateSingleCitation:
    @pytest.mark.asyncio
    async def test_synthetic_header_link(self, sample_vault: Path, validator: CitationValidator):
        link = LinkObjectFactory().create_header_link(str(sample_vault / "reference.md"), "Intro")

        validation = await validator.validate_single_citation(link)

        assert validation.status == "valid"
        assert link.validation is None

    @pytest.mark.asyncio
    async def test_synthetic_link_relative_to_cwd(self, validator: CitationValidator):
        write_note(Path.cwd(), "local.md", "# Local\n")
        link = LinkObjectFactory().create_header_link("local.md", "Missing")

        validation = await validator.validate_single_citation(link)

        assert validation.status == "error"
        assert validation.error == "Anchor not found: #Missing"
