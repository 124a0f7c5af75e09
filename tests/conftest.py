"""Shared test fixtures for the mdcite test suite.

Design:
- vault: isolated markdown vault in a temp directory, no scope configured
- write_note: helper writing a markdown file (parents created)
- runner: CliRunner with MDCITE_* variables cleared
- Async tests: pytest-asyncio, function-scoped loops
"""

from __future__ import annotations

from pathlib import Path
from typing import Generator

import pytest
from click.testing import CliRunner

from mdcite.file_cache import FileCache
from mdcite.parsed_cache import ParsedFileCache
from mdcite.validator import CitationValidator


# ─────────────────────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────────────────────


def write_note(root: Path, rel_path: str, content: str) -> Path:
    """Write a markdown file under root and return its path."""
    path = root / rel_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


# ─────────────────────────────────────────────────────────────────────────────
# Core Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def runner() -> CliRunner:
    """CLI runner with isolated environment."""
    return CliRunner()


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Keep user-level scope settings out of every test.

    Runs each test from an empty working directory so .citeconfig discovery
    cannot reach a real project.
    """
    monkeypatch.delenv("MDCITE_SCOPE", raising=False)
    monkeypatch.delenv("MDCITE_LOG_LEVEL", raising=False)
    workdir = tmp_path / "cwd"
    workdir.mkdir()
    monkeypatch.chdir(workdir)
    yield


@pytest.fixture
def vault(tmp_path: Path) -> Path:
    """Empty vault directory.

    Usage:
        def test_something(vault):
            write_note(vault, "a.md", "# A")
    """
    root = tmp_path / "vault"
    root.mkdir()
    return root


@pytest.fixture
def sample_vault(vault: Path) -> Path:
    """Vault with a small linked document set.

    Creates:
    - guide.md: links to reference.md sections, a block and a missing anchor
    - reference.md: headings, a colon heading and a block anchor
    - notes/deep/leaf.md: only reachable by basename
    """
    write_note(
        vault,
        "reference.md",
        "# Reference\n"
        "\n"
        "## Intro\n"
        "\n"
        "Intro text.\n"
        "\n"
        "## Setup: Local\n"
        "\n"
        "Install it.\n"
        "\n"
        "- first item\n"
        "- tracked item ^tracked\n"
        "\n"
        "## Appendix\n"
        "\n"
        "The end.\n",
    )
    write_note(
        vault,
        "guide.md",
        "# Guide\n"
        "\n"
        "See [intro](reference.md#Intro) and [nope](reference.md#Nope).\n"
        "Block: [item](reference.md#^tracked)\n",
    )
    write_note(vault, "notes/deep/leaf.md", "# Leaf\n\nLeaf body.\n")
    return vault


@pytest.fixture
def parsed_file_cache() -> ParsedFileCache:
    return ParsedFileCache()


@pytest.fixture
def validator(parsed_file_cache: ParsedFileCache) -> CitationValidator:
    """Validator without a file cache (relative paths only)."""
    return CitationValidator(parsed_file_cache)


@pytest.fixture
def scoped_validator(sample_vault: Path, parsed_file_cache: ParsedFileCache) -> CitationValidator:
    """Validator with a file cache scanned over sample_vault."""
    file_cache = FileCache()
    file_cache.scan(sample_vault)
    return CitationValidator(parsed_file_cache, file_cache)
