"""Synthetic links for extracting a header or file named on the command line."""

from __future__ import annotations

import os
from pathlib import Path

from .models import LinkObject, LinkTarget, TargetPath


class LinkObjectFactory:
    """Builds unvalidated LinkObjects shaped like the parser's output.

    Synthetic links have no source file (``source_path`` is None) and sit at
    line 0, column 0. Relative paths resolve against the working directory.
    """

    @staticmethod
    def _target_path(target_path: str | Path) -> TargetPath:
        raw = str(target_path)
        absolute = os.path.abspath(raw)
        return TargetPath(raw=raw, absolute=absolute, relative=os.path.relpath(absolute, os.getcwd()))

    def create_header_link(self, target_path: str | Path, header_name: str) -> LinkObject:
        """Link to one heading's section in target_path.

        Raises:
            ValueError: If either argument is empty.
        """
        if not str(target_path or "").strip():
            raise ValueError("target_path cannot be empty")
        if not (header_name or "").strip():
            raise ValueError("header_name cannot be empty")

        return LinkObject(
            link_type="markdown",
            scope="cross-document",
            anchor_type="header",
            source_path=None,
            target=LinkTarget(path=self._target_path(target_path), anchor=header_name),
            text=header_name,
            full_match=f"[{header_name}]({target_path}#{header_name})",
            line=0,
            column=0,
        )

    def create_file_link(self, target_path: str | Path) -> LinkObject:
        """Link to the whole of target_path.

        Raises:
            ValueError: If target_path is empty.
        """
        if not str(target_path or "").strip():
            raise ValueError("target_path cannot be empty")

        name = os.path.basename(str(target_path))
        return LinkObject(
            link_type="markdown",
            scope="cross-document",
            anchor_type=None,
            source_path=None,
            target=LinkTarget(path=self._target_path(target_path), anchor=None),
            text=name,
            full_match=f"[{name}]({target_path})",
            line=0,
            column=0,
        )
