"""Topic JSON export, validated against the packaged topic schema.

WHY: Downstream tools (merging, rating, publishing) read the same
{"entries": [...]} shape the topic store writes. Exporting through a
formatter lets a topic be re-emitted, for example after filtering,
without bypassing schema validation.

RULES:
- Output: {"entries": [RenderedEntry.to_dict(), ...]}, indent=2
- Validate output against the schema before returning; raise on failure
- Output suffix: ".json"
"""

from __future__ import annotations

from typing import Sequence

from compendium_builder.core.model import RenderedEntry
from compendium_builder.formatters.base import BaseFormatter, FormatterOutput
from compendium_builder.storage.topics import dump_topic, validate_topic


class TopicJsonFormatter(BaseFormatter):
    """Rendered entries as a schema-valid topic file."""

    @property
    def name(self) -> str:
        return "Topic JSON"

    def format(self, topic_name: str, entries: Sequence[RenderedEntry]) -> list[FormatterOutput]:
        """Serialize entries as a topic object.

        Raises:
            jsonschema.ValidationError: If the generated JSON does not
                match the topic schema.
        """
        output = {"entries": [entry.to_dict() for entry in entries]}
        validate_topic(output)
        return [FormatterOutput(
            suffix=".json",
            content=dump_topic(output),
            media_type="application/json",
        )]
