"""mdcite: citation validation and content extraction for markdown vaults."""

__version__ = "0.3.0"
