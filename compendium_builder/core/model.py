"""Dataclasses shared by the indexer, applier, citation resolver and renderer.

WHY: The compendium document is plain text, but every stage of the core
needs structured views of it: where sections and anchors live, which
operation produced which outcome, where citation markers land. Keeping
these types in one module makes them the stable contract between
parsing, applying and formatting.

HOW: Plain dataclasses and str-based enums. Types fall into three groups:
  Block source:  Message (one chat message that can become a block)
  Document side: Position, InsertionOperation, DocumentIndex,
                 ParsedBlock, OutcomeKind, OperationOutcome, ApplyResult
  Citation side: CitationRequest, Entry, CitationRef, CitationGroup,
                 ResolvedCitations, RenderedEntry

RULES:
- Identifiers (message ids, anchor ids) are always strings
- Line indexes are 0-based positions in the document's line list
- Character offsets are 0-based positions in an entry's text
- Reference numbers start at 1
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


# ---------------------------------------------------------------------------
# Block source
# ---------------------------------------------------------------------------


@dataclass
class Message:
    """One message from a slim chat export, the raw material of a block.

    RULES:
    - id: string identifier, becomes the block's anchor token
    - content: free text, may span several lines
    - timestamp: ISO 8601 string or None
    - author: display name or None
    - reply_to: id of the message this one replies to, or None
    """

    id: str
    content: str = ""
    timestamp: Optional[str] = None
    author: Optional[str] = None
    reply_to: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        """Parse a Message from a slim export record.

        Accepts both ``replyTo`` (export key) and ``reply_to``.
        """
        reply_to = data.get("replyTo", data.get("reply_to"))
        author = data.get("author")
        return cls(
            id=str(data["id"]),
            content=str(data.get("content") or ""),
            timestamp=data.get("timestamp"),
            author=str(author) if author else None,
            reply_to=str(reply_to) if reply_to else None,
        )


# ---------------------------------------------------------------------------
# Document side
# ---------------------------------------------------------------------------


class PositionKind(str, enum.Enum):
    """Where an operation places its block relative to the target section."""

    APPEND = "append"
    PREPEND = "prepend"
    AFTER = "after"
    BEFORE = "before"


@dataclass(frozen=True)
class Position:
    """Position descriptor of an insertion operation.

    RULES:
    - ref_id is set only for AFTER and BEFORE
    """

    kind: PositionKind = PositionKind.APPEND
    ref_id: Optional[str] = None

    @classmethod
    def append(cls) -> "Position":
        return cls(PositionKind.APPEND)

    @classmethod
    def prepend(cls) -> "Position":
        return cls(PositionKind.PREPEND)

    @classmethod
    def after(cls, ref_id: str) -> "Position":
        return cls(PositionKind.AFTER, str(ref_id))

    @classmethod
    def before(cls, ref_id: str) -> "Position":
        return cls(PositionKind.BEFORE, str(ref_id))

    def describe(self) -> str:
        if self.ref_id is None:
            return self.kind.value
        return "{}:{}".format(self.kind.value, self.ref_id)


@dataclass(frozen=True)
class InsertionOperation:
    """Place one block into a named section.

    RULES:
    - block_id: identifier looked up in the block source
    - section: section name as supplied (normalized by the applier)
    - position: defaults to append
    """

    block_id: str
    section: str
    position: Position = field(default_factory=Position.append)


@dataclass
class DocumentIndex:
    """Positional index of a document's headers and anchors.

    WHY: The applier needs O(1) lookups of where a section header or a
    block anchor lives, and must keep those positions valid while it
    inserts lines.

    RULES:
    - sections: header line text (trimmed) → line index
    - anchors: block id → line index of the line carrying its anchor
    - block_starts: block id → line index of the block's first line
    - shift() moves every recorded index >= at by count
    """

    sections: Dict[str, int] = field(default_factory=dict)
    anchors: Dict[str, int] = field(default_factory=dict)
    block_starts: Dict[str, int] = field(default_factory=dict)

    def shift(self, at: int, count: int) -> None:
        for table in (self.sections, self.anchors, self.block_starts):
            for key, line in table.items():
                if line >= at:
                    table[key] = line + count


@dataclass
class ParsedBlock:
    """A block read back out of a document version.

    RULES:
    - index: position of the block in document order
    - section: header text without the prefix, or None before any header
    - section_header: full header line ("## Uncategorized" when None)
    - date / author: parsed from the "[YYYY-MM-DD] [author]" prefix, if present
    - raw: block text with the trailing anchor token removed
    """

    index: int
    block_id: str
    section: Optional[str]
    section_header: str
    date: Optional[str]
    author: Optional[str]
    raw: str


class OutcomeKind(str, enum.Enum):
    """Result of applying a single insertion operation."""

    INSERTED = "inserted"
    FALLBACK_APPLIED = "fallback_applied"
    SKIPPED_DUPLICATE = "skipped_duplicate"
    SKIPPED_UNKNOWN = "skipped_unknown"
    REJECTED_SECTION = "rejected_section"
    REJECTED_ID = "rejected_id"

    @property
    def inserted(self) -> bool:
        return self in (OutcomeKind.INSERTED, OutcomeKind.FALLBACK_APPLIED)


@dataclass
class OperationOutcome:
    """What happened to one operation of a batch.

    RULES:
    - line: index of the inserted anchor line, None when nothing was inserted
    - detail: human-readable reason, empty for plain insertions
    """

    operation: InsertionOperation
    kind: OutcomeKind
    line: Optional[int] = None
    detail: str = ""


@dataclass
class ApplyResult:
    """Output of one batch application."""

    text: str
    outcomes: List[OperationOutcome] = field(default_factory=list)
    created_sections: List[str] = field(default_factory=list)

    @property
    def requested(self) -> int:
        return len(self.outcomes)

    @property
    def inserted(self) -> int:
        return sum(1 for o in self.outcomes if o.kind.inserted)

    def count(self, kind: OutcomeKind) -> int:
        return sum(1 for o in self.outcomes if o.kind is kind)


# ---------------------------------------------------------------------------
# Citation side
# ---------------------------------------------------------------------------


@dataclass
class CitationRequest:
    """Attach source identifiers at a character offset of an entry's text.

    at_char is kept as supplied (it may be malformed); the resolver
    decides whether it is usable.
    """

    at_char: Any
    sources: List[str] = field(default_factory=list)


@dataclass
class Entry:
    """A curated entry before footnote rendering."""

    entry_id: str
    text: str
    type: str = "other"
    citation_inserts: List[CitationRequest] = field(default_factory=list)


@dataclass
class CitationRef:
    """One reference number and the sources it cites."""

    number: int
    sources: List[str]


@dataclass
class CitationGroup:
    """All references that land on the same snapped offset, in supplied order."""

    offset: int
    refs: List[CitationRef]

    @property
    def marker(self) -> str:
        return "".join("[{}]".format(ref.number) for ref in self.refs)


@dataclass
class ResolvedCitations:
    """Groups ordered by ascending offset, plus the count of excluded requests."""

    groups: List[CitationGroup] = field(default_factory=list)
    invalid: int = 0


@dataclass
class RenderedEntry:
    """A displayable entry with inline markers and its footnote table.

    RULES:
    - identifier: entry id ("<batch>:<local>")
    - category: entry type (tip, warning, price, ...)
    - footnotes: reference number → de-duplicated source ids
    - Serialized keys follow the topic file format: entryId, type, text,
      footnotes (with string keys)
    """

    identifier: str
    category: str
    text: str
    footnotes: Dict[int, List[str]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entryId": self.identifier,
            "type": self.category,
            "text": self.text,
            "footnotes": {str(n): list(ids) for n, ids in sorted(self.footnotes.items())},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RenderedEntry":
        footnotes = data.get("footnotes") or {}
        return cls(
            identifier=str(data.get("entryId", "")),
            category=str(data.get("type", "other")),
            text=str(data.get("text", "")),
            footnotes={int(k): [str(i) for i in v] for k, v in footnotes.items()},
        )
