#!/usr/bin/env python3
"""
mdcite: validate and extract citations between markdown files

Usage:
    mdcite validate notes/design.md              # Check every link
    mdcite validate notes/design.md --json       # Machine-readable report
    mdcite ast notes/design.md                   # Dump parser output
    mdcite extract links notes/design.md         # Content behind eligible links
    mdcite extract header notes/api.md "Setup"   # One section
    mdcite extract file notes/api.md             # A whole file
    mdcite -v validate notes/design.md           # Debug logging on stderr

Exit codes: 0 ok, 1 validation or extraction errors, 2 system error.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, NoReturn

import click

from . import __version__ as MDCITE_VERSION
from ._logging import configure_logging
from .config import ConfigurationError, get_scope_root
from .extractor import ContentExtractor, default_strategies
from .file_cache import FileCache
from .link_factory import LinkObjectFactory
from .models import CliFlags, LinkObject, OutgoingLinksExtractedContent, ValidationSummary
from .parsed_cache import ParsedFileCache
from .parser import MarkdownParser, ParseError
from .validator import CitationValidator

log = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_SYSTEM_ERROR = 2


def run_async(coro):
    """Run async function synchronously."""
    return asyncio.run(coro)


# ─────────────────────────────────────────────────────────────────────────────
# Wiring
# ─────────────────────────────────────────────────────────────────────────────


@dataclass
class Components:
    parser: MarkdownParser
    file_cache: FileCache | None
    parsed_file_cache: ParsedFileCache
    validator: CitationValidator
    extractor: ContentExtractor


def build_components(scope: str | None = None) -> Components:
    """Wire one run's parser, caches, validator and extractor.

    The file cache is only built when a scope folder is given or configured.
    """
    scope_root = Path(scope) if scope else get_scope_root()

    file_cache = None
    if scope_root is not None:
        file_cache = FileCache()
        stats = file_cache.scan(scope_root)
        log.info("Scanned %d files in %s", stats.total_files, stats.real_scope_folder)

    parser = MarkdownParser()
    parsed_file_cache = ParsedFileCache(parser)
    validator = CitationValidator(parsed_file_cache, file_cache)
    extractor = ContentExtractor(default_strategies(), parsed_file_cache, validator)
    return Components(parser, file_cache, parsed_file_cache, validator, extractor)


def _fail(message: str, exit_code: int = EXIT_SYSTEM_ERROR) -> NoReturn:
    click.echo(f"Error: {message}", err=True)
    sys.exit(exit_code)


def _json_dumps(data: Any) -> str:
    return json.dumps(data, indent=2, default=str, ensure_ascii=False)


# ─────────────────────────────────────────────────────────────────────────────
# Validation report formatting
# ─────────────────────────────────────────────────────────────────────────────


def parse_line_range(value: str) -> tuple[int, int]:
    """Parse "START-END" or a single "LINE" into an inclusive range."""
    text = value.strip()
    try:
        if "-" in text:
            start_text, end_text = text.split("-", 1)
            start, end = int(start_text), int(end_text)
        else:
            start = end = int(text)
    except ValueError as e:
        raise click.BadParameter(f"expected START-END or LINE, got {value!r}") from e
    if start < 1 or end < start:
        raise click.BadParameter(f"invalid line range {value!r}")
    return start, end


def format_report(file_path: str, summary: ValidationSummary, links: list[LinkObject]) -> str:
    lines = [
        "Citation Validation Report",
        "==========================",
        "",
        f"File: {file_path}",
        f"Summary: {summary.total} citations, {summary.valid} valid, "
        f"{summary.warnings} warnings, {summary.errors} errors",
    ]

    for status, title in (("error", "ERRORS"), ("warning", "WARNINGS")):
        matching = [link for link in links if link.validation and link.validation.status == status]
        if not matching:
            continue
        lines += ["", f"{title} ({len(matching)})"]
        for link in matching:
            lines.append(f"  Line {link.line}: {link.full_match}")
            lines.append(f"    {link.validation.error}")
            if link.validation.suggestion:
                lines.append(f"    Suggestion: {link.validation.suggestion}")
            if link.validation.path_conversion:
                conversion = link.validation.path_conversion
                lines.append(f"    Path: {conversion.original} -> {conversion.recommended}")

    valid = [link for link in links if link.validation and link.validation.status == "valid"]
    if valid:
        lines += ["", f"VALID CITATIONS ({len(valid)})"]
        lines += [f"  Line {link.line}: {link.full_match}" for link in valid]

    lines.append("")
    lines.append("VALIDATION FAILED" if summary.errors else "ALL CITATIONS VALID")
    return "\n".join(lines)


# ─────────────────────────────────────────────────────────────────────────────
# Main CLI Group
# ─────────────────────────────────────────────────────────────────────────────


@click.group()
@click.version_option(version=MDCITE_VERSION, prog_name="mdcite")
@click.option("-v", "--verbose", is_flag=True, help="Log resolution details to stderr")
def cli(verbose: bool):
    """mdcite: validate and extract citations between markdown files.

    \b
    Link forms understood:
      [text](file.md#Heading)   [text](#Heading)   [[file#^block|alias]]
      [cite: path/to/file.md]   ^FR1

    \b
    Set MDCITE_SCOPE (or a .citeconfig with `scope:`) to resolve short
    filenames anywhere under a vault folder.
    """
    configure_logging(verbose)


@cli.command()
@click.argument("file", type=click.Path())
@click.option("--scope", type=click.Path(file_okay=False), help="Folder to index for short-name resolution")
@click.option("--lines", "line_range", help="Only report links on these lines (START-END or LINE)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def validate(file: str, scope: str | None, line_range: str | None, as_json: bool):
    """Validate every citation in FILE.

    \b
    Examples:
      mdcite validate docs/design.md
      mdcite validate docs/design.md --lines 10-40 --json
    """
    bounds = parse_line_range(line_range) if line_range else None

    try:
        components = build_components(scope)
        result = run_async(components.validator.validate_file(file))
    except (ParseError, ConfigurationError) as e:
        _fail(str(e))

    links = result.links
    summary = result.summary
    if bounds:
        start, end = bounds
        links = [link for link in links if start <= link.line <= end]
        summary = ValidationSummary.from_links(links)

    if as_json:
        payload = {
            "file": str(Path(file).resolve()),
            "summary": summary.model_dump(mode="json"),
            "links": [link.model_dump(mode="json") for link in links],
        }
        click.echo(_json_dumps(payload))
    else:
        click.echo(format_report(str(file), summary, links))

    sys.exit(EXIT_FAILED if summary.errors else EXIT_OK)


@cli.command()
@click.argument("file", type=click.Path())
def ast(file: str):
    """Print the parser output for FILE as JSON."""
    try:
        output = MarkdownParser().parse_file(os.path.abspath(file))
    except ParseError as e:
        _fail(str(e))
    click.echo(_json_dumps(output.model_dump(mode="json")))


# ─────────────────────────────────────────────────────────────────────────────
# Extraction
# ─────────────────────────────────────────────────────────────────────────────


def _emit_extraction(result: OutgoingLinksExtractedContent) -> NoReturn:
    click.echo(_json_dumps(result.model_dump(mode="json")))
    sys.exit(EXIT_OK if result.stats.unique_content > 0 else EXIT_FAILED)


async def _extract_synthetic(components: Components, link: LinkObject, cli_flags: CliFlags):
    validation = await components.validator.validate_single_citation(link)
    link.validation = validation
    if validation.status == "error":
        return None
    return await components.extractor.extract_content([link], cli_flags)


def _run_synthetic(components: Components, link: LinkObject, cli_flags: CliFlags) -> NoReturn:
    try:
        result = run_async(_extract_synthetic(components, link, cli_flags))
    except ParseError as e:
        _fail(str(e))

    if result is None:
        click.echo(f"Validation failed: {link.validation.error}", err=True)
        if link.validation.suggestion:
            click.echo(f"Suggestion: {link.validation.suggestion}", err=True)
        sys.exit(EXIT_FAILED)
    _emit_extraction(result)


@cli.group()
def extract():
    """Extract linked content as deduplicated JSON."""
    pass


@extract.command("links")
@click.argument("source", type=click.Path())
@click.option("--scope", type=click.Path(file_okay=False), help="Folder to index for short-name resolution")
@click.option("--full-files", is_flag=True, help="Also extract links to whole files")
def extract_links(source: str, scope: str | None, full_files: bool):
    """Extract content behind every eligible link in SOURCE.

    \b
    Section and block links are extracted by default. Whole-file links need
    --full-files or a %%force-extract%% marker; %%stop-extract-link%%
    excludes a link.
    """
    try:
        components = build_components(scope)
        result = run_async(components.extractor.extract_links_content(source, CliFlags(full_files=full_files)))
    except (ParseError, ConfigurationError) as e:
        _fail(str(e))
    _emit_extraction(result)


@extract.command("header")
@click.argument("file", type=click.Path())
@click.argument("header")
@click.option("--scope", type=click.Path(file_okay=False), help="Folder to index for short-name resolution")
def extract_header(file: str, header: str, scope: str | None):
    """Extract the section under HEADER in FILE."""
    try:
        components = build_components(scope)
        link = LinkObjectFactory().create_header_link(file, header)
    except (ConfigurationError, ValueError) as e:
        _fail(str(e))
    _run_synthetic(components, link, CliFlags())


@extract.command("file")
@click.argument("file", type=click.Path())
@click.option("--scope", type=click.Path(file_okay=False), help="Folder to index for short-name resolution")
def extract_file(file: str, scope: str | None):
    """Extract the whole of FILE."""
    try:
        components = build_components(scope)
        link = LinkObjectFactory().create_file_link(os.path.abspath(file))
    except (ConfigurationError, ValueError) as e:
        _fail(str(e))
    _run_synthetic(components, link, CliFlags(full_files=True))


def main():
    """Entry point for the mdcite console script."""
    cli()


if __name__ == "__main__":
    main()
