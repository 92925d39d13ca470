"""Persistence for document versions and structured topic files.

WHY: Every batch produces a complete, immutable document snapshot, and
every rendered topic batch is kept both as a cumulative topic file and
as a numbered snapshot. Keeping the file conventions here leaves the
core free of I/O.

HOW: versions.py manages compendium_NNN.md files. topics.py manages
topic JSON files, their snapshots, entry id normalization and merging,
validated against topic_schema.json with jsonschema.

RULES:
- Existing version files are never overwritten
- Topic JSON is validated before it is written
- All files are UTF-8
"""

from compendium_builder.storage.topics import TopicStore
from compendium_builder.storage.versions import VersionInfo, VersionStore

__all__ = ["TopicStore", "VersionInfo", "VersionStore"]
