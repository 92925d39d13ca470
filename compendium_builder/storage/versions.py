"""Immutable, monotonically numbered compendium document versions.

WHY: The document is never edited in place. Each applied batch produces
a new full snapshot, so an aborted run can never leave a half-written
document behind and any earlier state can be inspected or re-run.

HOW: Versions are files named compendium_NNN.md in one directory. The
latest version is the highest number. write_next() writes the text to a
hidden temp file first and then hard-links it to the version name. The
link fails if the name is taken, so a version that already exists is
never replaced, and a failed write never leaves a partial version.

RULES:
- File name: compendium_<n>.md, n zero-padded to VERSION_DIGITS
- Numbers beyond the padding width keep growing (compendium_1000.md)
- Non-matching files in the directory are ignored
- read() raises CorruptDocumentError for files that are not UTF-8
- write_next() raises VersionExistsError instead of overwriting
- The temp file is removed whether or not the version was created
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from compendium_builder.config import CONTEXT_WARN_CHARS, VERSION_DIGITS
from compendium_builder.core.indexer import CorruptDocumentError

logger = logging.getLogger(__name__)

_VERSION_RE = re.compile(r"^compendium_(\d+)\.md$")


class VersionExistsError(FileExistsError):
    """Raised when the next version file already exists on disk."""


@dataclass(frozen=True)
class VersionInfo:
    """A version file and its number."""

    path: Path
    version: int

    @property
    def name(self) -> str:
        return self.path.name


def version_filename(version: int) -> str:
    return "compendium_{}.md".format(str(version).zfill(VERSION_DIGITS))


def parse_version_number(path: str | Path) -> Optional[int]:
    """Return the version number encoded in a file name, or None."""
    m = _VERSION_RE.match(Path(path).name)
    return int(m.group(1)) if m else None


class VersionStore:
    """Directory of numbered compendium versions.

    RULES:
    - The directory is created on first write, not on construction
    """

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def list_versions(self) -> List[VersionInfo]:
        """All version files, oldest first."""
        if not self.directory.is_dir():
            return []
        versions = []
        for path in self.directory.iterdir():
            number = parse_version_number(path)
            if number is not None and path.is_file():
                versions.append(VersionInfo(path=path, version=number))
        return sorted(versions, key=lambda v: v.version)

    def latest(self) -> Optional[VersionInfo]:
        versions = self.list_versions()
        return versions[-1] if versions else None

    def read(self, info: Optional[VersionInfo]) -> str:
        """Read a version's text; None (no versions yet) reads as empty.

        Raises:
            CorruptDocumentError: If the file is not valid UTF-8.
        """
        if info is None:
            return ""
        try:
            text = info.path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise CorruptDocumentError(
                "{} is not valid UTF-8: {}".format(info.path, e)
            ) from e
        if len(text) > CONTEXT_WARN_CHARS:
            logger.warning(
                "%s is %d chars (over %d)", info.name, len(text), CONTEXT_WARN_CHARS
            )
        return text

    def next_path(self) -> Path:
        latest = self.latest()
        return self.directory / version_filename((latest.version if latest else 0) + 1)

    def write_next(self, text: str) -> VersionInfo:
        """Persist text as the next version.

        Raises:
            VersionExistsError: If the target file already exists.
        """
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.next_path()
        tmp = path.with_name(".{}.{}.tmp".format(path.name, os.getpid()))
        try:
            with open(tmp, "w", encoding="utf-8", newline="") as f:
                f.write(text)
            os.link(tmp, path)
        except FileExistsError as e:
            raise VersionExistsError("Version file already exists: {}".format(path)) from e
        finally:
            if tmp.exists():
                tmp.unlink()

        info = VersionInfo(path=path, version=parse_version_number(path) or 0)
        logger.info("Saved %s chars=%d", path, len(text))
        return info
