"""Structured topic files: cumulative entry lists plus numbered snapshots.

WHY: Each compendium section is turned into a topic file of rendered
entries, one curation batch at a time. The topic file is the current
state; every batch also leaves a numbered snapshot so that a bad batch
can be inspected or rolled back by hand.

HOW: Topic files live at <topics_dir>/compendium_<edition>/<slug>.json
and hold {"entries": [...]} with RenderedEntry dicts. append() extends
the list, validates it against topic_schema.json with jsonschema, writes
the topic file, then writes the same object as the next snapshot
<snapshots_dir>/compendium_<edition>/<slug>/NNNN.json.

RULES:
- Entry ids inside a topic are "<batch>:<local>"; local defaults to e<n>
- Merged topic files are renumbered 0:e1 .. 0:eN
- JSON is written UTF-8 with indent=2 and non-ASCII kept as-is
- A topic file that fails the schema is never written
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import replace
from pathlib import Path
from typing import Any, Iterable, Sequence

import jsonschema

from compendium_builder.config import SNAPSHOT_DIGITS
from compendium_builder.core.model import Entry, RenderedEntry

logger = logging.getLogger(__name__)

_SCHEMA_PATH = Path(__file__).resolve().parent / "topic_schema.json"
_SNAPSHOT_RE = re.compile(r"^(\d+)\.json$")


def _load_schema() -> dict[str, Any]:
    """Load the topic JSON schema shipped with the package.

    Cached at module level after first call to avoid repeated I/O.
    """
    with open(_SCHEMA_PATH, encoding="utf-8") as f:
        return json.load(f)


_CACHED_SCHEMA: dict[str, Any] | None = None


def _get_schema() -> dict[str, Any]:
    global _CACHED_SCHEMA
    if _CACHED_SCHEMA is None:
        _CACHED_SCHEMA = _load_schema()
    return _CACHED_SCHEMA


def validate_topic(data: dict[str, Any]) -> None:
    """Validate a topic object.

    Raises:
        jsonschema.ValidationError: If the object does not match the schema.
    """
    jsonschema.validate(instance=data, schema=_get_schema())


def dump_topic(data: dict[str, Any]) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False) + "\n"


def _write_json(path: Path, data: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(dump_topic(data), encoding="utf-8")


# ---------------------------------------------------------------------------
# Entry ids
# ---------------------------------------------------------------------------


def normalize_entry_ids(entries: Sequence[Entry], batch_index: int) -> list[Entry]:
    """Prefix every entry id with its batch index.

    Entries without an id get "e<n>" (1-based position in the batch).
    The input entries are not modified.
    """
    normalized = []
    for i, entry in enumerate(entries, start=1):
        local_id = entry.entry_id.strip() or "e{}".format(i)
        normalized.append(replace(entry, entry_id="{}:{}".format(batch_index, local_id)))
    return normalized


def renumber_entries(entries: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    """Give entry dicts continuous ids 0:e1 .. 0:eN, keeping all other keys."""
    return [
        {**entry, "entryId": "0:e{}".format(i)}
        for i, entry in enumerate(entries, start=1)
    ]


def read_topic_entries(path: str | Path) -> list[dict[str, Any]]:
    """Read the entries list of a topic file; a missing list reads as empty."""
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    entries = data.get("entries") if isinstance(data, dict) else None
    return entries if isinstance(entries, list) else []


def merge_topic_files(paths: Sequence[str | Path]) -> list[dict[str, Any]]:
    """Concatenate the entries of several topic files and renumber them.

    Unreadable files are logged and skipped; the remaining files still merge.
    """
    merged: list[dict[str, Any]] = []
    for path in paths:
        try:
            entries = read_topic_entries(path)
        except (OSError, ValueError) as e:
            logger.error("Skipping %s: %s", path, e)
            continue
        logger.info("Merged %s entries=%d", path, len(entries))
        merged.extend(entries)
    return renumber_entries(merged)


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class TopicStore:
    """Topic files and snapshots for one compendium edition.

    Args:
        topics_dir: Root directory of topic files.
        snapshots_dir: Root directory of numbered snapshots.
        edition: Version number of the compendium the topics come from.
    """

    def __init__(self, topics_dir: str | Path, snapshots_dir: str | Path, edition: int) -> None:
        self.topics_dir = Path(topics_dir)
        self.snapshots_dir = Path(snapshots_dir)
        self.edition = edition

    @property
    def edition_name(self) -> str:
        return "compendium_{}".format(self.edition)

    def topic_path(self, slug: str) -> Path:
        return self.topics_dir / self.edition_name / "{}.json".format(slug)

    def snapshot_dir(self, slug: str) -> Path:
        return self.snapshots_dir / self.edition_name / slug

    def latest_snapshot_number(self, slug: str) -> int:
        directory = self.snapshot_dir(slug)
        if not directory.is_dir():
            return 0
        numbers = [
            int(m.group(1))
            for m in (_SNAPSHOT_RE.match(p.name) for p in directory.iterdir())
            if m
        ]
        return max(numbers, default=0)

    def next_snapshot_path(self, slug: str) -> Path:
        number = self.latest_snapshot_number(slug) + 1
        return self.snapshot_dir(slug) / "{}.json".format(str(number).zfill(SNAPSHOT_DIGITS))

    def load(self, slug: str) -> dict[str, Any]:
        """Current topic object; a topic that does not exist yet is empty."""
        path = self.topic_path(slug)
        if not path.exists():
            return {"entries": []}
        return {"entries": read_topic_entries(path)}

    def append(self, slug: str, rendered: Sequence[RenderedEntry]) -> tuple[Path, Path]:
        """Append rendered entries to a topic and snapshot the result.

        Returns:
            (topic_path, snapshot_path) of the written files.

        Raises:
            jsonschema.ValidationError: If the resulting topic is invalid.
                Nothing is written in that case.
        """
        topic = self.load(slug)
        topic["entries"].extend(entry.to_dict() for entry in rendered)
        validate_topic(topic)

        topic_path = self.topic_path(slug)
        _write_json(topic_path, topic)
        snapshot_path = self.next_snapshot_path(slug)
        _write_json(snapshot_path, topic)

        logger.info(
            "Topic %s entries=%d (+%d) snapshot=%s",
            slug, len(topic["entries"]), len(rendered), snapshot_path.name,
        )
        return topic_path, snapshot_path
