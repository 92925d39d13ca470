"""Readable markdown export of a structured topic.

RULES:
- Title line: "## <topic name>"
- One paragraph per entry: the text with its inline markers
- Entries with footnotes get a "Sources:" list, one "[n] id, id" line per
  reference number, in ascending order
- Output suffix: ".md"
"""

from __future__ import annotations

from typing import Sequence

from compendium_builder.config import SECTION_PREFIX
from compendium_builder.core.model import RenderedEntry
from compendium_builder.formatters.base import BaseFormatter, FormatterOutput


def _entry_lines(entry: RenderedEntry) -> list[str]:
    lines = [entry.text.strip()]
    if entry.footnotes:
        lines.append("")
        lines.append("Sources:")
        for number in sorted(entry.footnotes):
            lines.append("[{}] {}".format(number, ", ".join(entry.footnotes[number])).rstrip())
    return lines


class MarkdownFormatter(BaseFormatter):
    """Topic entries as a markdown section with per-entry source lists."""

    @property
    def name(self) -> str:
        return "Markdown"

    def format(self, topic_name: str, entries: Sequence[RenderedEntry]) -> list[FormatterOutput]:
        lines = [SECTION_PREFIX + topic_name.strip()]
        for entry in entries:
            lines.append("")
            lines.extend(_entry_lines(entry))

        return [FormatterOutput(
            suffix=".md",
            content="\n".join(lines) + "\n",
            media_type="text/markdown",
        )]
