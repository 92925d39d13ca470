"""Block source loading from slim chat exports.

WHY: Operations reference blocks only by id; the block content, author,
timestamp and reply reference live in the slim export the curation step
was looking at. The applier needs that export as an id → Message lookup.

HOW: build_message_index() walks {"messages": [...]} and keeps every
record that carries an id. load_message_index() reads the file first.

RULES:
- Records without an id are ignored
- Ids are compared as strings ("123" and 123 are the same message)
- A later record with the same id replaces the earlier one
- A file that is not a JSON object with a "messages" list yields an
  empty index (logged), never an exception
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict

from compendium_builder.core.model import Message

logger = logging.getLogger(__name__)


def build_message_index(data: Any) -> Dict[str, Message]:
    """Build the block source from a parsed slim export.

    Args:
        data: Parsed JSON of a slim export.

    Returns:
        Mapping of message id → Message.
    """
    index: Dict[str, Message] = {}
    messages = data.get("messages") if isinstance(data, dict) else None
    if not isinstance(messages, list):
        logger.warning("Slim export has no messages list")
        return index

    for record in messages:
        if not isinstance(record, dict) or record.get("id") in (None, ""):
            continue
        message = Message.from_dict(record)
        index[message.id] = message
    return index


def load_message_index(path: str | Path) -> Dict[str, Message]:
    """Read a slim export file and build its message index.

    Raises:
        FileNotFoundError: If the file does not exist.
        json.JSONDecodeError: If the file is not valid JSON.
    """
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    index = build_message_index(data)
    logger.info("Loaded %d messages from %s", len(index), path)
    return index
