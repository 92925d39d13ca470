"""Unit tests for document versions and structured topic files.

WHY: Versions are the only persistent state of the compendium and must
never be overwritten. Topic files and snapshots are what downstream
tools read, so they must always match the topic schema.

HOW: Every test works in tmp_path. Version numbering, exclusive-create,
decoding errors, entry id normalization, merging and snapshots are each
checked on disk.
"""

import errno
import json
import logging
import os

import jsonschema
import pytest

from compendium_builder.core.indexer import CorruptDocumentError
from compendium_builder.core.model import Entry, RenderedEntry
from compendium_builder.storage.topics import (
    TopicStore,
    merge_topic_files,
    normalize_entry_ids,
    renumber_entries,
    validate_topic,
)
from compendium_builder.storage.versions import (
    VersionExistsError,
    VersionStore,
    parse_version_number,
    version_filename,
)


def _rendered(entry_id, text="Ramen is cheap.[1]", footnotes=None):
    return RenderedEntry(entry_id, "tip", text, {1: ["1"]} if footnotes is None else footnotes)


def _write_topic(path, entries):
    path.write_text(json.dumps({"entries": entries}), encoding="utf-8")
    return path


class TestVersionNames:
    """compendium_NNN.md naming."""

    def test_padding(self):
        assert version_filename(1) == "compendium_001.md"
        assert version_filename(1000) == "compendium_1000.md"

    def test_parse(self):
        assert parse_version_number("dir/compendium_042.md") == 42
        assert parse_version_number("compendium_abc.md") is None
        assert parse_version_number("notes.md") is None


class TestVersionStore:
    """Immutable, monotonically numbered versions."""

    def test_empty_directory(self, tmp_path):
        store = VersionStore(tmp_path / "versions")
        assert store.latest() is None
        assert store.read(None) == ""
        assert store.next_path().name == "compendium_001.md"

    def test_write_next_increments(self, tmp_path):
        store = VersionStore(tmp_path)
        first = store.write_next("one\n")
        second = store.write_next("two\n")
        assert (first.version, second.version) == (1, 2)
        assert store.latest() == second
        assert store.read(store.latest()) == "two\n"
        assert store.read(first) == "one\n"

    def test_numeric_order(self, tmp_path):
        (tmp_path / "compendium_999.md").write_text("a", encoding="utf-8")
        (tmp_path / "compendium_1000.md").write_text("b", encoding="utf-8")
        (tmp_path / "notes.txt").write_text("c", encoding="utf-8")
        store = VersionStore(tmp_path)
        assert store.latest().version == 1000
        assert store.next_path().name == "compendium_1001.md"

    def test_existing_version_is_never_overwritten(self, tmp_path, monkeypatch):
        store = VersionStore(tmp_path)
        info = store.write_next("original\n")
        monkeypatch.setattr(store, "next_path", lambda: info.path)
        with pytest.raises(VersionExistsError):
            store.write_next("replacement\n")
        assert info.path.read_text(encoding="utf-8") == "original\n"
        assert sorted(p.name for p in tmp_path.iterdir()) == ["compendium_001.md"]

    def test_failed_write_leaves_no_version(self, tmp_path):
        store = VersionStore(tmp_path)
        with pytest.raises(UnicodeEncodeError):
            store.write_next("## Food\nbroken \ud800 surrogate\n")
        assert store.latest() is None
        assert list(tmp_path.iterdir()) == []

    def test_failed_link_leaves_no_version(self, tmp_path, monkeypatch):
        def no_space(src, dst):
            raise OSError(errno.ENOSPC, "No space left on device")

        store = VersionStore(tmp_path)
        store.write_next("one\n")
        monkeypatch.setattr(os, "link", no_space)
        with pytest.raises(OSError):
            store.write_next("two\n")
        assert [v.version for v in store.list_versions()] == [1]
        assert sorted(p.name for p in tmp_path.iterdir()) == ["compendium_001.md"]

    def test_newlines_are_written_verbatim(self, tmp_path):
        store = VersionStore(tmp_path)
        info = store.write_next("a\nb\n")
        assert info.path.read_bytes() == b"a\nb\n"

    def test_invalid_utf8_is_corrupt(self, tmp_path):
        (tmp_path / "compendium_001.md").write_bytes(b"## Food\n\xff\xfe\n")
        store = VersionStore(tmp_path)
        with pytest.raises(CorruptDocumentError):
            store.read(store.latest())

    def test_large_document_warning(self, tmp_path, monkeypatch, caplog):
        monkeypatch.setattr("compendium_builder.storage.versions.CONTEXT_WARN_CHARS", 5)
        store = VersionStore(tmp_path)
        info = store.write_next("more than five chars\n")
        with caplog.at_level(logging.WARNING):
            store.read(info)
        assert "compendium_001.md is 21 chars" in caplog.text


class TestEntryIds:
    """Batch-prefixed and renumbered entry ids."""

    def test_normalize(self):
        entries = [Entry("e1", "a"), Entry("", "b"), Entry(" x ", "c")]
        normalized = normalize_entry_ids(entries, 3)
        assert [e.entry_id for e in normalized] == ["3:e1", "3:e2", "3:x"]
        assert entries[1].entry_id == ""

    def test_renumber_keeps_other_keys(self):
        entries = [{"entryId": "4:e9", "type": "tip", "extra": 1}, {"entryId": "0:e1", "type": "price"}]
        assert renumber_entries(entries) == [
            {"entryId": "0:e1", "type": "tip", "extra": 1},
            {"entryId": "0:e2", "type": "price"},
        ]


class TestMergeTopicFiles:
    """Merging concatenates in file order and renumbers."""

    def test_merge(self, tmp_path):
        a = _write_topic(tmp_path / "a.json", [_rendered("0:e1").to_dict(), _rendered("1:e1").to_dict()])
        b = _write_topic(tmp_path / "b.json", [_rendered("0:e5", text="Sushi.").to_dict()])
        merged = merge_topic_files([a, b])
        assert [e["entryId"] for e in merged] == ["0:e1", "0:e2", "0:e3"]
        assert merged[2]["text"] == "Sushi."

    def test_unreadable_file_is_skipped(self, tmp_path, caplog):
        a = _write_topic(tmp_path / "a.json", [_rendered("0:e1").to_dict()])
        broken = tmp_path / "broken.json"
        broken.write_text("{not json", encoding="utf-8")
        with caplog.at_level(logging.ERROR):
            merged = merge_topic_files([a, tmp_path / "missing.json", broken])
        assert len(merged) == 1
        assert "missing.json" in caplog.text
        assert "broken.json" in caplog.text


class TestTopicStore:
    """Topic files plus numbered snapshots per edition."""

    def test_append_writes_topic_and_snapshot(self, tmp_path):
        store = TopicStore(tmp_path / "topics", tmp_path / "snaps", 7)
        topic_path, snapshot_path = store.append("food", [_rendered("0:e1")])

        assert topic_path == tmp_path / "topics" / "compendium_7" / "food.json"
        assert snapshot_path == tmp_path / "snaps" / "compendium_7" / "food" / "0001.json"
        data = json.loads(topic_path.read_text(encoding="utf-8"))
        assert data == {"entries": [{
            "entryId": "0:e1",
            "type": "tip",
            "text": "Ramen is cheap.[1]",
            "footnotes": {"1": ["1"]},
        }]}
        assert json.loads(snapshot_path.read_text(encoding="utf-8")) == data

    def test_append_is_cumulative(self, tmp_path):
        store = TopicStore(tmp_path / "topics", tmp_path / "snaps", 7)
        store.append("food", [_rendered("0:e1")])
        topic_path, snapshot_path = store.append("food", [_rendered("1:e1"), _rendered("1:e2")])

        assert snapshot_path.name == "0002.json"
        assert store.latest_snapshot_number("food") == 2
        entries = store.load("food")["entries"]
        assert [e["entryId"] for e in entries] == ["0:e1", "1:e1", "1:e2"]

    def test_load_missing_topic(self, tmp_path):
        store = TopicStore(tmp_path / "topics", tmp_path / "snaps", 1)
        assert store.load("nothing") == {"entries": []}

    def test_non_ascii_kept(self, tmp_path):
        store = TopicStore(tmp_path / "topics", tmp_path / "snaps", 1)
        topic_path, _ = store.append("food", [_rendered("0:e1", text="Tanie jedzenie, żółć.")])
        assert "żółć" in topic_path.read_text(encoding="utf-8")

    def test_invalid_entry_is_not_written(self, tmp_path):
        store = TopicStore(tmp_path / "topics", tmp_path / "snaps", 1)
        with pytest.raises(jsonschema.ValidationError):
            store.append("food", [_rendered("")])
        assert not store.topic_path("food").exists()
        assert store.latest_snapshot_number("food") == 0


class TestTopicSchema:
    """The packaged topic schema."""

    def test_valid_topic(self):
        validate_topic({"entries": [_rendered("0:e1").to_dict()]})

    def test_footnote_numbers_start_at_one(self):
        entry = _rendered("0:e1").to_dict()
        entry["footnotes"] = {"0": ["1"]}
        with pytest.raises(jsonschema.ValidationError):
            validate_topic({"entries": [entry]})

    def test_entries_required(self):
        with pytest.raises(jsonschema.ValidationError):
            validate_topic({})
