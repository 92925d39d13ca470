"""Citation offset resolution: snap, group and number citation requests.

WHY: Curated entries arrive with citation requests at raw character
offsets, and those offsets are often mid-word or mid-sentence. Markers
inserted there would split words ("Ram[1]en"). Wikipedia-style markers
belong at the end of the sentence they support.

HOW: Each valid request is snapped forward to the end of its sentence
(or to the line break / end of text when the sentence never ends).
Requests sharing a snapped offset form one group; reference numbers are
assigned by ascending offset, then by supplied order within the group.

RULES:
- Terminators: ".", "!", "?"; a run of them counts as one sentence end
- After the run, closing characters (quotes, brackets) are skipped
- A terminator run only ends a sentence if followed by whitespace or end
  of text ("3.5" and "e.g.x" do not end sentences)
- The scan always starts at the offset itself, so an offset sitting right
  after a sentence end moves on to the next one
- A line break reached before any sentence end is the snap point
- No sentence end and no line break → end of text
- Invalid requests are excluded and counted, never raised:
  non-integer (or bool) offsets, offsets outside [0, len(text)]
- A request without any non-empty source identifier still gets its
  reference number, with an empty source list
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Sequence, Set

from compendium_builder.core.model import (
    CitationGroup,
    CitationRef,
    CitationRequest,
    Entry,
    ResolvedCitations,
)

_TERMINATORS = frozenset(".!?")
_CLOSERS = frozenset("\"')]}”’»")


def is_valid_offset(at_char: Any, text: str) -> bool:
    """True if at_char is an integer offset within [0, len(text)]."""
    if isinstance(at_char, bool) or not isinstance(at_char, int):
        return False
    return 0 <= at_char <= len(text)


def snap_offset(text: str, at_char: int) -> int:
    """Move an offset forward to the end of its sentence.

    Args:
        text: The entry text.
        at_char: Requested offset; clamped into [0, len(text)].

    Returns:
        Offset just after the sentence terminator run and any closing
        characters, the position of the next line break, or len(text).
    """
    n = len(text)
    i = max(0, min(n, at_char))

    while i < n:
        ch = text[i]
        if ch == "\n":
            return i
        if ch in _TERMINATORS:
            j = i + 1
            while j < n and text[j] in _TERMINATORS:
                j += 1
            while j < n and text[j] in _CLOSERS:
                j += 1
            if j == n or text[j].isspace():
                return j
            i = j
            continue
        i += 1

    return n


def _clean_sources(sources: Iterable[Any]) -> List[str]:
    return [str(s).strip() for s in sources if s is not None and str(s).strip()]


def resolve(text: str, requests: Sequence[CitationRequest]) -> ResolvedCitations:
    """Snap, group and number citation requests for one entry text.

    Args:
        text: The entry text the offsets refer to.
        requests: Citation requests in supplied order.

    Returns:
        ResolvedCitations with groups ordered by ascending offset and the
        number of excluded (invalid) requests.
    """
    grouped: Dict[int, List[List[str]]] = {}
    invalid = 0

    for req in requests:
        if not is_valid_offset(req.at_char, text):
            invalid += 1
            continue
        grouped.setdefault(snap_offset(text, req.at_char), []).append(_clean_sources(req.sources))

    groups: List[CitationGroup] = []
    number = 1
    for offset in sorted(grouped):
        refs = []
        for sources in grouped[offset]:
            refs.append(CitationRef(number=number, sources=sources))
            number += 1
        groups.append(CitationGroup(offset=offset, refs=refs))

    return ResolvedCitations(groups=groups, invalid=invalid)


def count_citation_defects(
    entries: Sequence[Entry],
    known_ids: Optional[Set[str]] = None,
) -> int:
    """Count citation problems across a batch of entries.

    WHY: Curation output is produced by a model and may cite offsets
    outside the text or messages that were never provided. The count is a
    batch-level quality signal; it never blocks rendering.

    RULES:
    - +1 per request whose offset is not a valid integer offset
    - +1 per source identifier not in known_ids (skipped when known_ids is None)
    """
    bad = 0
    for entry in entries:
        for req in entry.citation_inserts:
            if not is_valid_offset(req.at_char, entry.text):
                bad += 1
            if known_ids is None:
                continue
            for source in req.sources:
                if str(source).strip() not in known_ids:
                    bad += 1
    return bad
