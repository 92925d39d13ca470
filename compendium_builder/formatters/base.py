"""Abstract base formatter and output container.

WHY: A structured topic is exported in more than one shape (a readable
markdown page, a validated JSON file). This base class keeps one
interface so the CLI can run any formatter generically.

HOW: BaseFormatter is an ABC with two requirements: a ``name`` property
and a ``format()`` method. FormatterOutput is a plain dataclass that
bundles a file suffix with its content and MIME type.

RULES:
- Subclasses MUST implement ``name`` (human-readable) and ``format()``
- ``format()`` returns a list; formatters may produce several files
- ``suffix`` starts with a hyphen or a dot, e.g. ``".md"``
- The caller is responsible for prepending the topic slug
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Sequence

from compendium_builder.core.model import RenderedEntry


@dataclass
class FormatterOutput:
    """One output file produced by a formatter.

    Attributes:
        suffix: File suffix appended to the topic slug,
                e.g. ``".md"`` → ``"food.md"``.
        content: The file content.
        media_type: MIME type for the content, e.g. ``"text/markdown"``.
    """

    suffix: str
    content: str
    media_type: str


class BaseFormatter(ABC):
    """Abstract base for all topic formatters.

    To add a new output format:
    1. Create a new file in formatters/
    2. Subclass BaseFormatter
    3. Implement format() and name
    4. Register in FORMATTERS dict in formatters/__init__.py
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable format name, e.g. 'Markdown'."""

    @abstractmethod
    def format(self, topic_name: str, entries: Sequence[RenderedEntry]) -> list[FormatterOutput]:
        """Convert a topic's rendered entries into one or more output files.

        Args:
            topic_name: Display name of the topic (section name or slug).
            entries: Rendered entries in topic order.

        Returns:
            List of FormatterOutput objects.
        """
