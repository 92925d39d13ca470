"""Footnote rendering: inline reference markers plus a footnote table.

WHY: Rendered entries must be readable on their own, with markers like
"[1][2]" at sentence ends and a table mapping each number to the
messages it cites.

HOW: Markers from resolved citation groups are spliced into the text
from the highest offset to the lowest, so earlier offsets stay valid.
Each reference number gets its de-duplicated source list.

RULES:
- Marker for a group = "[n]" for every reference in the group, concatenated
- Footnote sources are de-duplicated, first-seen order preserved
- An entry with no valid requests renders unchanged with an empty table
"""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Tuple

from compendium_builder.core.citations import resolve
from compendium_builder.core.model import CitationGroup, Entry, RenderedEntry, ResolvedCitations


def _dedupe(ids: Sequence[str]) -> List[str]:
    return list(dict.fromkeys(ids))


def render(text: str, groups: Sequence[CitationGroup]) -> Tuple[str, Dict[int, List[str]]]:
    """Insert markers into text and build the footnote table.

    Args:
        text: Original entry text.
        groups: Resolved citation groups (any order).

    Returns:
        (rendered_text, footnotes) where footnotes maps reference number
        to its source identifiers.
    """
    footnotes: Dict[int, List[str]] = {}
    for group in groups:
        for ref in group.refs:
            footnotes[ref.number] = _dedupe(ref.sources)

    rendered = text
    for group in sorted(groups, key=lambda g: g.offset, reverse=True):
        rendered = rendered[:group.offset] + group.marker + rendered[group.offset:]

    return rendered, footnotes


def render_entry(entry: Entry, resolved: Optional[ResolvedCitations] = None) -> RenderedEntry:
    """Render one curated entry, resolving its citations unless already resolved."""
    if resolved is None:
        resolved = resolve(entry.text, entry.citation_inserts)
    text, footnotes = render(entry.text, resolved.groups)
    return RenderedEntry(
        identifier=entry.entry_id,
        category=entry.type or "other",
        text=text,
        footnotes=footnotes,
    )
