"""Render a block source message into document lines.

WHY: Every block in the compendium has the same readable shape, dated,
attributed, and terminated by its anchor, so that the document stays
human-readable and machine-indexable at once.

HOW: format_block() produces the list of physical lines for one message:
an optional reply preface, then the content lines, with the anchor token
appended to the last one. The applier inserts these lines verbatim.

RULES:
- First content line: "[YYYY-MM-DD] [author] content" (author optional)
- Missing timestamp → "UNKNOWN-DATE"
- Anchor "[id]" is appended directly to the last content line
- Reply preface: '> In reply to: "<snippet>"' when the replied content is
  known, else "> (Reply to ID: <id>)"
- Content lines starting with the header prefix are escaped with "\\"
  so a block can never create a section
- Inner lines that would read as an anchor get a trailing "\\", so
  only the last line of a block carries an anchor
"""

from __future__ import annotations

import re
from typing import Callable, List, Mapping, Optional

from compendium_builder.config import REPLY_SNIPPET_CHARS, SECTION_PREFIX, UNKNOWN_DATE
from compendium_builder.core.indexer import match_anchor
from compendium_builder.core.model import Message

ReplyLookup = Callable[[str], Optional[str]]


def _date_label(timestamp: Optional[str]) -> str:
    if not timestamp:
        return UNKNOWN_DATE
    return str(timestamp).split("T")[0]


def _escape_line(line: str) -> str:
    if line.lstrip().startswith(SECTION_PREFIX.strip()):
        return "\\" + line.lstrip()
    return line


def reply_snippet(content: str) -> str:
    """First REPLY_SNIPPET_CHARS characters of content on a single line."""
    flat = re.sub(r"\s+", " ", str(content or "")).strip()
    return flat[:REPLY_SNIPPET_CHARS].strip()


def reply_preface(
    reply_to: str,
    source: Mapping[str, Message],
    lookup: Optional[ReplyLookup] = None,
) -> str:
    """Build the quoted preface line for a reply.

    The replied content is taken from the block source first, then from
    ``lookup`` (the current document); without either the light
    "(Reply to ID: ...)" notation is used.
    """
    content: Optional[str] = None
    if reply_to in source:
        content = source[reply_to].content
    elif lookup is not None:
        content = lookup(reply_to)

    if content is None:
        return "> (Reply to ID: {})".format(reply_to)
    return '> In reply to: "{}"'.format(reply_snippet(content))


def format_block(
    message: Message,
    source: Mapping[str, Message],
    lookup: Optional[ReplyLookup] = None,
) -> List[str]:
    """Render one message as document lines.

    Args:
        message: The message to render.
        source: Block source, used to quote the replied-to message.
        lookup: Optional fallback returning the content of a block that is
            already anchored in the document.

    Returns:
        The physical lines of the block; the last one carries the anchor.
    """
    author = "[{}] ".format(message.author) if message.author else ""
    content = message.content.replace("\r\n", "\n").strip()
    text = "[{}] {}{}[{}]".format(_date_label(message.timestamp), author, content, message.id)

    lines = [_escape_line(line) for line in text.split("\n")]
    for i in range(len(lines) - 1):
        if match_anchor(lines[i]) is not None:
            lines[i] += " \\"

    if message.reply_to:
        lines.insert(0, reply_preface(message.reply_to, source, lookup))
    return lines
