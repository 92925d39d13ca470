"""Compendium builder: a growing, sectioned knowledge document from chat messages.

WHY: Long chat exports hold useful knowledge buried in noise. A curation
step picks messages and files them into named sections; this package
turns those decisions into an append-only, idempotently grown markdown
document, and then into structured topic files with Wikipedia-style
footnotes pointing back to the source messages.

HOW: Four layers. ingest (message exports and curation payloads),
core (indexing, block insertion, citation snapping, footnotes),
storage (immutable document versions, topic files and snapshots),
formatters (topic exports). The CLI wires them together.

RULES:
- The core is pure: text and dataclasses in, text and dataclasses out
- Document versions are never edited in place
- Single operations and single citations fail alone, never the batch
"""

__version__ = "0.1.0"
