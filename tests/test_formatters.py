"""Tests for the topic formatters and their registry.

WHY: Exports are the human-facing result of the whole pipeline. The
markdown page must show each entry's markers next to a matching source
list, and the JSON export must stay schema-valid.

RULES:
- Formatters are tested through FORMATTERS, the same way the CLI uses them
"""

import json

import jsonschema
import pytest

from compendium_builder.core.model import RenderedEntry
from compendium_builder.formatters import FORMATTERS
from compendium_builder.formatters.base import BaseFormatter

ENTRIES = [
    RenderedEntry("0:e1", "tip", "Ramen is cheap.[1]", {1: ["1", "3"]}),
    RenderedEntry("0:e2", "other", "No sources here.", {}),
]


class TestRegistry:
    """Formatter lookup by key."""

    def test_keys(self):
        assert sorted(FORMATTERS) == ["markdown", "topic_json"]

    def test_all_are_formatters(self):
        for cls in FORMATTERS.values():
            formatter = cls()
            assert isinstance(formatter, BaseFormatter)
            assert formatter.name

    def test_base_is_abstract(self):
        with pytest.raises(TypeError):
            BaseFormatter()


class TestMarkdownFormatter:
    """Markdown page with per-entry source lists."""

    def test_output(self):
        [output] = FORMATTERS["markdown"]().format("Food", ENTRIES)
        assert output.suffix == ".md"
        assert output.media_type == "text/markdown"
        assert output.content == (
            "## Food\n"
            "\n"
            "Ramen is cheap.[1]\n"
            "\n"
            "Sources:\n"
            "[1] 1, 3\n"
            "\n"
            "No sources here.\n"
        )

    def test_sources_in_numeric_order(self):
        entry = RenderedEntry("0:e1", "tip", "A.[1] B.[2] C.[10]", {10: ["c"], 2: ["b"], 1: ["a"]})
        [output] = FORMATTERS["markdown"]().format("Food", [entry])
        assert output.content.endswith("[1] a\n[2] b\n[10] c\n")

    def test_reference_without_sources(self):
        entry = RenderedEntry("0:e1", "tip", "A.[1] B.[2]", {1: [], 2: ["7"]})
        [output] = FORMATTERS["markdown"]().format("Food", [entry])
        assert output.content.endswith("Sources:\n[1]\n[2] 7\n")

    def test_empty_topic(self):
        [output] = FORMATTERS["markdown"]().format("Food", [])
        assert output.content == "## Food\n"


class TestTopicJsonFormatter:
    """Schema-valid topic JSON."""

    def test_output(self):
        [output] = FORMATTERS["topic_json"]().format("Food", ENTRIES)
        assert output.suffix == ".json"
        assert output.media_type == "application/json"
        data = json.loads(output.content)
        assert [e["entryId"] for e in data["entries"]] == ["0:e1", "0:e2"]
        assert data["entries"][0]["footnotes"] == {"1": ["1", "3"]}

    def test_invalid_entry_raises(self):
        with pytest.raises(jsonschema.ValidationError):
            FORMATTERS["topic_json"]().format("Food", [RenderedEntry("", "tip", "x")])
