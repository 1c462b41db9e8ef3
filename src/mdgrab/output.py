"""Saving Markdown documents to disk."""

import asyncio
import logging
import re
from pathlib import Path

logger = logging.getLogger(__name__)

_INVALID_FILENAME_CHARS = re.compile(r'[\\/:*?"<>|]')


def sanitize_filename(name: str) -> str:
    """Replace characters that are invalid in filenames with ``_`` and trim."""
    return _INVALID_FILENAME_CHARS.sub("_", name).strip()


def build_filename(title: str, author: str, date: str = "") -> str:
    """
    File name for a downloaded document.

    ``(<date>)<title>_<author>.md`` when a date is known, else
    ``<title>_<author>.md``.
    """
    if date:
        return sanitize_filename(f"({date}){title}_{author}.md")
    return sanitize_filename(f"{title}_{author}.md")


class MarkdownWriter:
    """
    Writes Markdown files into one output directory.

    Example:
        writer = MarkdownWriter(Path("./notes"))
        path = await writer.save(build_filename(title, author, date), markdown)
    """

    def __init__(self, output_dir: Path, dry_run: bool = False):
        """
        Initialize the writer.

        Args:
            output_dir: Directory files are written to (created on first save)
            dry_run: Log instead of writing
        """
        self._output_dir = Path(output_dir)
        self._dry_run = dry_run

    @property
    def output_dir(self) -> Path:
        return self._output_dir

    def _validate_output_path(self, output_path: Path) -> Path:
        """
        Validate that output path is safe.

        Raises:
            ValueError: If the path is outside the output directory
        """
        resolved = output_path.resolve()
        base_resolved = self._output_dir.resolve()
        try:
            resolved.relative_to(base_resolved)
        except ValueError as err:
            raise ValueError(f"Output path {resolved} is outside output directory {base_resolved}") from err
        return resolved

    async def save(self, filename: str, markdown: str) -> Path:
        """
        Write ``markdown`` to ``filename`` inside the output directory.

        Returns:
            Path of the written (or, in dry-run mode, would-be) file
        """
        path = self._validate_output_path(self._output_dir / filename)

        if self._dry_run:
            logger.info(f"[dry-run] Would write {len(markdown)} characters to {path}")
            return path

        path.parent.mkdir(parents=True, exist_ok=True)
        await asyncio.to_thread(path.write_text, markdown, encoding="utf-8")
        logger.debug(f"Saved {path} ({len(markdown)} characters)")
        return path
