"""Local on-disk mirror of the machine-ID list.

The mirror is a plain text file with one ID per line. It is the durable
fallback when the FTP store cannot be reached, so writes always replace the
whole file and a failed write is an error for the caller.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)


class LocalMirrorError(RuntimeError):
    """The mirror file could not be read or written."""


def parse_ids(text: str | None) -> list[str]:
    """Split newline-separated IDs, trimming and dropping blank lines.

    Example:
        >>> parse_ids(" MID-1\\r\\n\\nMID-2 \\n")
        ['MID-1', 'MID-2']
    """
    return [line.strip() for line in (text or "").splitlines() if line.strip()]


def format_ids(ids: list[str]) -> str:
    return "\n".join(ids)


class LocalMirror:
    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def __repr__(self) -> str:
        return f"LocalMirror({str(self.path)!r})"

    def read_all(self) -> list[str]:
        """Return the stored IDs in file order, creating an empty file if needed."""
        try:
            if not self.path.exists():
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self.path.write_text("", encoding="utf-8")
                logger.info("Created empty machine ID file at %s", self.path)
            return parse_ids(self.path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError) as exc:
            raise LocalMirrorError(f"Cannot read {self.path}: {exc}") from exc

    def write_all(self, ids: list[str]) -> None:
        """Replace the file contents with `ids`, one per line.

        The new content is written to a sibling file first and moved into
        place, so readers never see a half-written list.
        """
        tmp = self.path.with_name(f".{self.path.name}.tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(format_ids(ids), encoding="utf-8")
            os.replace(tmp, self.path)
        except OSError as exc:
            try:
                tmp.unlink(missing_ok=True)
            except OSError:
                logger.debug("Could not remove %s", tmp)
            raise LocalMirrorError(f"Cannot write {self.path}: {exc}") from exc
        logger.debug("Wrote %d machine IDs to %s", len(ids), self.path)
