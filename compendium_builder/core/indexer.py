"""Document indexing: section headers, block anchors, and block parsing.

WHY: The compendium is a plain markdown document that grows one batch at
a time. Before a batch can be applied, the applier needs to know where
every section header and every block anchor sits. Downstream tooling
(topic structuring) needs the reverse: the document read back into
individual blocks with their section, date and author.

HOW: The text is split into lines once. A single pass records header
lines (prefix "## ") and anchor lines (a trailing "[id]" token), plus the
first line of each block so multi-line blocks can be addressed as a
whole. parse_blocks() walks the same structure and yields ParsedBlock
records in document order.

RULES:
- Header key is the trimmed header line ("## Food")
- Anchor = "[token]" at line end, token without whitespace or brackets
- Header lines never carry anchors; one anchor per line at most
- A block starts at the first non-blank line after the previous header
  or anchor and ends at its anchor line
- Duplicate headers, duplicate anchors or NUL characters mean the
  document is corrupt: CorruptDocumentError, raised before any mutation
- Pure functions: no I/O, no mutation of inputs
"""

from __future__ import annotations

import re
from typing import Dict, List, Optional, Sequence

from compendium_builder.config import SECTION_PREFIX, UNCATEGORIZED_HEADER, UNKNOWN_DATE
from compendium_builder.core.model import DocumentIndex, ParsedBlock

# Identifier token in brackets at the end of a line.
_ANCHOR_RE = re.compile(r"\[([^\[\]\s]+)\]\s*$")

# "[2024-05-01] [author] text" prefix rendered in front of block content;
# the author part is optional.
_BLOCK_PREFIX_RE = re.compile(
    r"^\[(\d{4}-\d{2}-\d{2}|" + re.escape(UNKNOWN_DATE) + r")\]\s+(?:\[([^\]]+)\]\s+)?(.*)$",
    re.DOTALL,
)

# Reply prefaces are markdown quotes directly above the block.
_REPLY_PREFIX = ">"


class CorruptDocumentError(ValueError):
    """Raised when a document violates the structural invariants.

    WHY: Applying a batch to a document with duplicate headers or anchors
    would silently pick one of the duplicates and produce an ambiguous
    next version. The caller must see the problem before any mutation.

    RULES:
    - Message names the offending header/anchor and its line numbers (1-based)
    """


def split_lines(text: str) -> List[str]:
    """Split document text into lines.

    RULES:
    - Split on "\\n" only; a trailing "\\r" is dropped from each line
    - One trailing newline does not produce an extra empty line
    - Empty text has zero lines
    """
    if not text:
        return []
    lines = text.split("\n")
    if text.endswith("\n"):
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


def join_lines(lines: Sequence[str]) -> str:
    """Inverse of split_lines: lines joined with "\\n" plus a trailing newline."""
    if not lines:
        return ""
    return "\n".join(lines) + "\n"


def is_header(line: str) -> bool:
    return line.startswith(SECTION_PREFIX)


def match_anchor(line: str) -> Optional[str]:
    """Return the block id anchored on this line, or None."""
    if is_header(line):
        return None
    m = _ANCHOR_RE.search(line)
    return m.group(1) if m else None


def is_anchor_token(block_id: str) -> bool:
    """True if block_id, written as "[block_id]", reads back as that anchor."""
    return match_anchor("[{}]".format(block_id)) == block_id


def strip_anchor(line: str) -> str:
    """Remove the trailing anchor token from a line."""
    return _ANCHOR_RE.sub("", line)


def build_index(text: str) -> DocumentIndex:
    """Index a document's section headers and block anchors.

    Args:
        text: Full document text.

    Returns:
        DocumentIndex with header, anchor and block-start positions.

    Raises:
        CorruptDocumentError: If the text is not a string, contains NUL
            characters, or repeats a header or an anchor.
    """
    if not isinstance(text, str):
        raise CorruptDocumentError(
            "Document must be text, got {}".format(type(text).__name__)
        )
    if "\x00" in text:
        raise CorruptDocumentError("Document contains NUL characters")
    return index_lines(split_lines(text))


def index_lines(lines: Sequence[str]) -> DocumentIndex:
    """Index already-split document lines. See build_index()."""
    index = DocumentIndex()
    pending_start: Optional[int] = None

    for i, line in enumerate(lines):
        if is_header(line):
            key = line.strip()
            if key in index.sections:
                raise CorruptDocumentError(
                    "Duplicate section header {!r} on lines {} and {}".format(
                        key, index.sections[key] + 1, i + 1
                    )
                )
            index.sections[key] = i
            pending_start = None
            continue

        block_id = match_anchor(line)
        if block_id is not None:
            if block_id in index.anchors:
                raise CorruptDocumentError(
                    "Duplicate block anchor [{}] on lines {} and {}".format(
                        block_id, index.anchors[block_id] + 1, i + 1
                    )
                )
            index.anchors[block_id] = i
            index.block_starts[block_id] = i if pending_start is None else pending_start
            pending_start = None
        elif pending_start is None and line.strip():
            pending_start = i

    return index


def _split_block_prefix(first_line: str):
    """Return (date, author) from a rendered block's first content line."""
    m = _BLOCK_PREFIX_RE.match(first_line)
    if not m:
        return None, None
    return m.group(1), m.group(2)


def parse_blocks(text: str) -> List[ParsedBlock]:
    """Read a document back into its blocks, in document order.

    WHY: Topic structuring works per block (one chat message each),
    grouped by the section the block was filed under.

    HOW: Buffer lines from the first non-blank line after a header or
    anchor up to the next anchor line. The buffered lines (with the anchor
    token removed) form the block's raw text. Lines that are never closed
    by an anchor are not blocks and are dropped.

    RULES:
    - Blocks before any header get section None / UNCATEGORIZED_HEADER
    - date/author come from the first line that is not a reply preface
    """
    blocks: List[ParsedBlock] = []
    section: Optional[str] = None
    buf: List[str] = []

    for line in split_lines(text):
        if is_header(line):
            section = line.strip()[len(SECTION_PREFIX):].strip()
            buf = []
            continue

        if not buf and not line.strip():
            continue
        buf.append(line)

        block_id = match_anchor(line)
        if block_id is None:
            continue

        buf[-1] = strip_anchor(buf[-1])
        first_content = next(
            (b for b in buf if not b.lstrip().startswith(_REPLY_PREFIX)), ""
        )
        date, author = _split_block_prefix(first_content)
        blocks.append(ParsedBlock(
            index=len(blocks),
            block_id=block_id,
            section=section,
            section_header=SECTION_PREFIX + section if section else UNCATEGORIZED_HEADER,
            date=date,
            author=author,
            raw="\n".join(buf),
        ))
        buf = []

    return blocks


def extract_block_content(
    lines: Sequence[str],
    index: DocumentIndex,
    block_id: str,
) -> Optional[str]:
    """Return the bare content of an anchored block, or None if absent.

    Reply prefaces, the "[date] [author]" prefix and the anchor token are
    removed so the result can be quoted in another block's reply preface.
    """
    if block_id not in index.anchors:
        return None
    start = index.block_starts.get(block_id, index.anchors[block_id])
    body = [
        line for line in lines[start:index.anchors[block_id] + 1]
        if not line.lstrip().startswith(_REPLY_PREFIX)
    ]
    if not body:
        return ""
    body[-1] = strip_anchor(body[-1])
    text = "\n".join(body)
    m = _BLOCK_PREFIX_RE.match(text)
    return m.group(3) if m else text


def slugify_section(header: str) -> str:
    """Turn a section header into a file-name slug.

    "## Food & Dining (Jedzenie)" → "food-and-dining-jedzenie"
    """
    norm = str(header or "").strip()
    if norm.startswith(SECTION_PREFIX.strip()):
        norm = norm.lstrip("#")
    norm = norm.strip().lower().replace("&", " and ")
    slug = re.sub(r"[^a-z0-9]+", "-", norm)
    slug = re.sub(r"-+", "-", slug).strip("-")
    return slug or "unknown"


def group_blocks_by_section(blocks: Sequence[ParsedBlock]) -> Dict[str, List[ParsedBlock]]:
    """Group parsed blocks by section header, in first-seen section order."""
    groups: Dict[str, List[ParsedBlock]] = {}
    for block in blocks:
        groups.setdefault(block.section_header, []).append(block)
    return groups
