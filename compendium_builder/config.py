"""Configuration constants, text conventions, and .env loading.

WHY: Centralizes all configurable values so they are easy to find,
update, and override. Directory defaults, the document's structural
conventions, and thresholds are plain data, not buried in logic, so
both the CLI and the core read the same values.

HOW: python-dotenv loads the .env file on import. Constants are defined
as module-level strings and ints. Directory and threshold defaults can
be overridden via environment variables; text conventions cannot,
because existing document versions depend on them.

RULES:
- Section headers start with SECTION_PREFIX ("## ")
- Blocks found before any header belong to UNCATEGORIZED_HEADER
- Reply prefaces quote at most REPLY_SNIPPET_CHARS characters
- Version files are compendium_NNN.md with VERSION_DIGITS zero padding
- All directory defaults are relative to the working directory
"""

from __future__ import annotations

import os

from dotenv import load_dotenv

# Load .env from the project root (where the command is run from)
load_dotenv()

# ---------------------------------------------------------------------------
# Document text conventions
# ---------------------------------------------------------------------------

SECTION_PREFIX = "## "
"""Prefix that marks a section header line."""

UNCATEGORIZED_HEADER = "## Uncategorized"
"""Section assigned to blocks that appear before the first header."""

REPLY_SNIPPET_CHARS = 60
"""Maximum characters of the replied-to content quoted in a reply preface."""

UNKNOWN_DATE = "UNKNOWN-DATE"
"""Date label used when a message carries no timestamp."""

VERSION_DIGITS = 3
"""Zero padding for compendium_NNN.md version numbers."""

SNAPSHOT_DIGITS = 4
"""Zero padding for topic snapshot files (NNNN.json)."""

# ---------------------------------------------------------------------------
# Directory defaults
# ---------------------------------------------------------------------------

COMPENDIUM_VERSIONS_DIR = os.getenv("COMPENDIUM_VERSIONS_DIR", "./compendium_versions")
TOPICS_DIR = os.getenv("TOPICS_DIR", "./structured_topics")
SNAPSHOTS_DIR = os.getenv("SNAPSHOTS_DIR", "./structured_topics_versions")

# ---------------------------------------------------------------------------
# Runtime settings
# ---------------------------------------------------------------------------

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
CONTEXT_WARN_CHARS = int(os.getenv("CONTEXT_WARN_CHARS", "3000000"))


def normalize_section_name(name: str | None) -> str | None:
    """Turn an operation's section name into the exact header line.

    WHY: Curation payloads name sections either bare ("Food") or with
    the markdown prefix ("## Food"). Both must address the same header.

    HOW: Strip whitespace and any leading '#' characters, then prepend
    SECTION_PREFIX.

    RULES:
    - "Food", "## Food" and "  ##Food " all map to "## Food"
    - Returns None when nothing is left (malformed name)
    """
    if name is None:
        return None
    bare = str(name).strip().lstrip("#").strip()
    if not bare:
        return None
    return SECTION_PREFIX + bare
