"""Apply a batch of insertion operations to a compendium document.

WHY: The compendium grows one batch at a time: a curation step decides
which messages to keep and where they belong, and this module places
them. Batches overlap and get re-run, so insertion must be idempotent,
and every operation that does not land must be accounted for.

HOW: The document is split into lines and indexed once. Operations are
applied strictly in list order. Each insertion splices the block's lines
into the line list and shifts every recorded header/anchor position at or
after the insertion point, so later operations in the same batch see
correct positions without re-scanning the document.

RULES:
- Unknown block id → SKIPPED_UNKNOWN (warning), batch continues
- Block id that cannot be written as an anchor token (whitespace,
  brackets, empty) → REJECTED_ID (warning); it could never be found again
- Block already anchored anywhere in the document → SKIPPED_DUPLICATE
  (info), so a block is inserted at most once per document
- Empty/whitespace section name → REJECTED_SECTION (warning)
- Missing section → appended at document end as "", header, ""
- prepend: directly after the header line
- append: directly before the next header (or document end)
- after-anchor: directly after the referenced anchor line; unknown
  reference falls back to append (FALLBACK_APPLIED, warning)
- before-anchor: at the first line of the referenced block; unknown
  reference falls back to prepend (FALLBACK_APPLIED, warning)
- The fallbacks are deliberately asymmetric (after → end, before → start)
- A batch that inserts nothing returns the input text unchanged
"""

from __future__ import annotations

import logging
from typing import List, Mapping, Optional, Sequence, Tuple

from compendium_builder.config import normalize_section_name
from compendium_builder.core.blocks import format_block
from compendium_builder.core.indexer import (
    build_index,
    extract_block_content,
    is_anchor_token,
    is_header,
    join_lines,
    split_lines,
)
from compendium_builder.core.model import (
    ApplyResult,
    DocumentIndex,
    InsertionOperation,
    Message,
    OperationOutcome,
    OutcomeKind,
    PositionKind,
)

logger = logging.getLogger(__name__)


class _WorkingDocument:
    """Mutable line list plus its index, owned by a single apply() call."""

    def __init__(self, text: str) -> None:
        self.index: DocumentIndex = build_index(text)
        self.lines: List[str] = split_lines(text)

    def section_end(self, header_line: int) -> int:
        """Line index of the next header after header_line, or document end."""
        for j in range(header_line + 1, len(self.lines)):
            if is_header(self.lines[j]):
                return j
        return len(self.lines)

    def ensure_section(self, header: str) -> Tuple[int, bool]:
        """Return (header line, created) for a section, appending it if missing."""
        if header in self.index.sections:
            return self.index.sections[header], False
        self.lines.extend(["", header, ""])
        line = len(self.lines) - 2
        self.index.sections[header] = line
        return line, True

    def insert(self, at: int, block_id: str, block_lines: Sequence[str]) -> int:
        """Splice block lines in at ``at``; return the new anchor line."""
        self.lines[at:at] = block_lines
        self.index.shift(at, len(block_lines))
        anchor_line = at + len(block_lines) - 1
        self.index.anchors[block_id] = anchor_line
        self.index.block_starts[block_id] = at
        return anchor_line

    def block_content(self, block_id: str) -> Optional[str]:
        return extract_block_content(self.lines, self.index, block_id)


def _resolve_insert_line(
    doc: _WorkingDocument,
    op: InsertionOperation,
    header_line: int,
) -> Tuple[int, Optional[str]]:
    """Compute the insertion line for an operation.

    Returns:
        (line, fallback_detail). fallback_detail is None when the requested
        position resolved as asked.
    """
    kind = op.position.kind
    ref_id = op.position.ref_id

    if kind is PositionKind.PREPEND:
        return header_line + 1, None

    if kind is PositionKind.AFTER:
        if ref_id in doc.index.anchors:
            return doc.index.anchors[ref_id] + 1, None
        return doc.section_end(header_line), "afterId {} not found, defaulting to append".format(ref_id)

    if kind is PositionKind.BEFORE:
        if ref_id in doc.index.block_starts:
            return doc.index.block_starts[ref_id], None
        return header_line + 1, "beforeId {} not found, defaulting to prepend".format(ref_id)

    return doc.section_end(header_line), None


def apply_operations(
    text: str,
    operations: Sequence[InsertionOperation],
    source: Mapping[str, Message],
) -> ApplyResult:
    """Apply insertion operations to a document, in order.

    WHY: This is the single entry point of the document assembly engine:
    one document version plus one batch in, the next version's text out.

    HOW: See module docstring. The input text is indexed first, so a
    corrupt document raises before anything is inserted.

    Args:
        text: Current document text.
        operations: Batch of operations, applied strictly in order.
        source: Block source mapping block id → Message.

    Returns:
        ApplyResult with the new text and one outcome per operation.

    Raises:
        CorruptDocumentError: If the input document is corrupt.
    """
    doc = _WorkingDocument(text)
    outcomes: List[OperationOutcome] = []
    created: List[str] = []

    for op in operations:
        block_id = str(op.block_id)

        if not is_anchor_token(block_id):
            logger.warning("Block id %r cannot be used as an anchor, rejecting", block_id)
            outcomes.append(OperationOutcome(op, OutcomeKind.REJECTED_ID,
                                             detail="not a valid anchor token"))
            continue

        if block_id not in source:
            logger.warning("Block %s not found in block source, skipping", block_id)
            outcomes.append(OperationOutcome(op, OutcomeKind.SKIPPED_UNKNOWN,
                                             detail="not found in block source"))
            continue

        if block_id in doc.index.anchors:
            logger.info("Block %s already exists in document, skipping", block_id)
            outcomes.append(OperationOutcome(op, OutcomeKind.SKIPPED_DUPLICATE,
                                             detail="already anchored"))
            continue

        header = normalize_section_name(op.section)
        if header is None:
            logger.warning("Block %s has an empty section name, rejecting", block_id)
            outcomes.append(OperationOutcome(op, OutcomeKind.REJECTED_SECTION,
                                             detail="empty section name"))
            continue

        header_line, was_created = doc.ensure_section(header)
        if was_created:
            created.append(header)
            logger.info("Created section: %s", header)

        insert_at, fallback = _resolve_insert_line(doc, op, header_line)
        if fallback:
            logger.warning("Block %s: %s", block_id, fallback)

        block_lines = format_block(source[block_id], source, doc.block_content)
        anchor_line = doc.insert(insert_at, block_id, block_lines)

        outcomes.append(OperationOutcome(
            op,
            OutcomeKind.FALLBACK_APPLIED if fallback else OutcomeKind.INSERTED,
            line=anchor_line,
            detail=fallback or "",
        ))

    result = ApplyResult(text=text, outcomes=outcomes, created_sections=created)
    if result.inserted:
        result.text = join_lines(doc.lines)

    logger.info("Applied operations inserted=%d/%d", result.inserted, result.requested)
    return result
