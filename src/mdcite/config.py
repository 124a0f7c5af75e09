"""Configuration management for mdcite.

This module contains all configurable constants for validation and extraction.
Magic numbers are documented here rather than scattered throughout the codebase.
"""

import os
import re
from pathlib import Path


class ConfigurationError(Exception):
    """Raised when scope configuration is present but unusable."""

    pass


# Name of the per-project config file discovered by walking up from cwd.
CONFIG_FILENAME = ".citeconfig"


def get_scope_root(start_dir: Path | None = None) -> Path | None:
    """Get the scope folder used for filename resolution.

    Discovery order:
    1. MDCITE_SCOPE environment variable (explicit override)
    2. Walk up from start_dir (default cwd) looking for .citeconfig with a scope key
    3. None (no scope; only relative and vault paths resolve)

    Raises:
        ConfigurationError: If MDCITE_SCOPE points at something that is not a directory.
    """
    root = os.environ.get("MDCITE_SCOPE")
    if root:
        scope = Path(root).expanduser()
        if not scope.is_dir():
            raise ConfigurationError(f"MDCITE_SCOPE is not a directory: {root}")
        return scope

    discovered = _discover_project_config(start_dir)
    if discovered:
        _config_path, scope = discovered
        return scope
    return None


def _discover_project_config(start_dir: Path | None = None, max_depth: int = 10) -> tuple[Path, Path] | None:
    """Walk up from start_dir looking for .citeconfig with scope.

    Args:
        start_dir: Directory to start from (defaults to cwd)
        max_depth: Maximum directories to traverse up

    Returns:
        Tuple of (config_path, scope_path) if found, None otherwise.
    """
    import yaml

    current = Path(start_dir or os.getcwd()).resolve()

    for _ in range(max_depth):
        config_file = current / CONFIG_FILENAME
        if config_file.exists():
            try:
                content = config_file.read_text(encoding="utf-8")
                data = yaml.safe_load(content) or {}
                if isinstance(data, dict) and "scope" in data:
                    scope_path = (current / str(data["scope"])).resolve()
                    if scope_path.is_dir():
                        return (config_file, scope_path)
            except (OSError, yaml.YAMLError):
                pass

        parent = current.parent
        if parent == current:  # Reached filesystem root
            break
        current = parent

    return None


# =============================================================================
# Files
# =============================================================================

# Only files with this suffix are indexed by FileCache and treated as link targets
# for wiki links written without an extension.
MARKDOWN_EXTENSION = ".md"


# =============================================================================
# Anchor Suggestions
# =============================================================================

# Minimum difflib similarity ratio (0-1) for an anchor to be suggested.
SIMILAR_ANCHOR_MIN_SCORE = 0.3

# Maximum similar anchors returned by ParsedDocument.find_similar_anchors
MAX_SIMILAR_ANCHORS = 5

# Similar anchors quoted in an error suggestion
MAX_SUGGESTED_ANCHORS = 3

# Available headers / block refs listed in an error suggestion
MAX_LISTED_ANCHORS = 5


# =============================================================================
# Content Extraction
# =============================================================================

# Hex characters of the SHA-256 digest kept as the deduplication key.
# 16 hex chars = 64 bits, collision-free for any realistic vault.
CONTENT_ID_LENGTH = 16

# Inner text of the markers recognised after a link: %%force-extract%%
FORCE_EXTRACT_MARKER = "force-extract"
STOP_EXTRACT_MARKER = "stop-extract-link"


# =============================================================================
# Caret Syntax
# =============================================================================

# Requirement ids (^FR1, ^US1-4bT1-1, ^MVP-P1) and Obsidian block ids
# (^black-box-interfaces). A caret reference must match one of these.
CARET_SYNTAX_PATTERN = re.compile(
    r"^\^([A-Za-z]{2,3}\d+(?:-\d+[a-z]?(?:AC\d+|T\d+(?:-\d+)?)?)?"
    r"|[A-Za-z]+\d+|MVP-P\d+|[a-z][a-z0-9-]+[a-z0-9])$"
)

CARET_SYNTAX_EXAMPLES = [
    "^FR1",
    "^US1-1AC1",
    "^US1-4bT1-1",
    "^NFR2",
    "^MVP-P1",
    "^black-box-interfaces",
]

EMPHASIS_MARKED_PATTERN = re.compile(r"^==\*\*[^*]+\*\*==$")

EMPHASIS_MARKED_EXAMPLES = [
    "==**Component**==",
    "==**Code Processing Application.SetupOrchestrator**==",
]
