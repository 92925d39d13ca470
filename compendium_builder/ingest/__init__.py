"""Input adapters: block source loading and curation payload parsing.

WHY: The core consumes plain dataclasses. The data it is fed comes from
slim chat exports (the block source) and from a curation step that emits
JSON payloads (operations and entries). This package turns both into
core types and reports records it cannot use.

HOW: messages.py builds the message index from a slim export.
payloads.py validates payload records with pydantic models.

RULES:
- Invalid records are reported and skipped, never fatal for the batch
- Identifiers are normalized to strings here, once
"""

from compendium_builder.ingest.messages import build_message_index, load_message_index
from compendium_builder.ingest.payloads import (
    PayloadError,
    parse_entries,
    parse_json_object,
    parse_operations,
)

__all__ = [
    "PayloadError",
    "build_message_index",
    "load_message_index",
    "parse_entries",
    "parse_json_object",
    "parse_operations",
]
