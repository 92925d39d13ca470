"""Core document assembly and citation rendering.

WHY: The core package holds the only parts of the system with real
invariants: the document indexer, the batch insertion applier, the
citation offset resolver and the footnote renderer. Everything else
(payload parsing, version files, topic files, formatters) feeds this
core or consumes its output.

HOW: model.py defines the shared dataclasses, indexer.py reads document
structure, blocks.py renders block lines, applier.py applies batches,
citations.py snaps and numbers citation requests, footnotes.py renders
markers and footnote tables.

RULES:
- Pure, synchronous transformations over in-memory text; no I/O here
- Per-operation and per-citation problems are outcomes, not exceptions
- The only exception the core raises is CorruptDocumentError
"""
