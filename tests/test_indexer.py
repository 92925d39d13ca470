"""Unit tests for document indexing and block parsing.

WHY: Every batch starts by indexing the current document. A wrong header
or anchor position puts blocks into the wrong section, and a missed
duplicate makes the next version ambiguous.

HOW: Tests cover line splitting, header/anchor recognition, block start
tracking for multi-line blocks, corruption detection, reading blocks back
out of a document, and section slugs.

RULES:
- Documents are built by hand in the exact format the applier writes
- Line indexes in assertions are 0-based
"""

import pytest

from compendium_builder.core.indexer import (
    CorruptDocumentError,
    build_index,
    extract_block_content,
    group_blocks_by_section,
    is_anchor_token,
    join_lines,
    match_anchor,
    parse_blocks,
    slugify_section,
    split_lines,
)


class TestSplitLines:
    """Lines split on newline; one trailing newline adds no empty line."""

    def test_empty_text_has_no_lines(self):
        assert split_lines("") == []

    def test_trailing_newline_is_not_a_line(self):
        assert split_lines("a\nb\n") == ["a", "b"]

    def test_blank_last_line_is_kept(self):
        assert split_lines("a\n\n") == ["a", ""]

    def test_carriage_returns_are_dropped(self):
        assert split_lines("a\r\nb\r\n") == ["a", "b"]

    def test_join_adds_trailing_newline(self):
        assert join_lines(["a", "b"]) == "a\nb\n"
        assert join_lines([]) == ""


class TestAnchors:
    """Anchors are bracketed tokens at the end of non-header lines."""

    def test_trailing_token(self):
        assert match_anchor("[2024-05-01] [ola] Ramen.[123]") == "123"

    def test_trailing_whitespace_allowed(self):
        assert match_anchor("text[abc-1]  ") == "abc-1"

    def test_token_not_at_line_end(self):
        assert match_anchor("[123] text") is None

    def test_token_with_space_is_not_anchor(self):
        assert match_anchor("text[not an id]") is None

    def test_header_line_never_anchors(self):
        assert match_anchor("## Food [123]") is None

    @pytest.mark.parametrize("block_id", ["123", "abc-1", "msg_7"])
    def test_anchor_token(self, block_id):
        assert is_anchor_token(block_id)

    @pytest.mark.parametrize("block_id", ["", "a b", "a]b", "[a", "x\ny"])
    def test_not_anchor_token(self, block_id):
        assert not is_anchor_token(block_id)


class TestBuildIndex:
    """Headers and anchors are recorded with their line positions."""

    def test_sample_document(self, sample_document):
        index = build_index(sample_document)
        assert index.sections == {"## Food": 1, "## Transport": 5}
        assert index.anchors == {"1": 3, "2": 7}
        assert index.block_starts == {"1": 3, "2": 7}

    def test_empty_document(self):
        index = build_index("")
        assert index.sections == {}
        assert index.anchors == {}

    def test_header_key_is_trimmed(self):
        index = build_index("## Food   \n")
        assert "## Food" in index.sections

    def test_multi_line_block_start(self):
        text = (
            "## Food\n"
            "\n"
            '> In reply to: "Ramen"\n'
            "[2024-05-03] [ania] Agreed,\n"
            "the queue is short.[3]\n"
        )
        index = build_index(text)
        assert index.anchors["3"] == 4
        assert index.block_starts["3"] == 2

    def test_consecutive_blocks_start_after_previous_anchor(self):
        text = "## Food\nfirst[1]\nsecond\nline[2]\n"
        index = build_index(text)
        assert index.block_starts == {"1": 1, "2": 2}

    def test_round_trip_reindex(self, sample_document):
        first = build_index(sample_document)
        again = build_index(join_lines(split_lines(sample_document)))
        assert first == again


class TestCorruptDocument:
    """Structural violations are raised before anything else happens."""

    def test_duplicate_header(self):
        with pytest.raises(CorruptDocumentError, match="Duplicate section header"):
            build_index("## Food\na[1]\n## Food\nb[2]\n")

    def test_duplicate_anchor(self):
        with pytest.raises(CorruptDocumentError, match=r"Duplicate block anchor \[1\]"):
            build_index("## Food\na[1]\n## Drinks\nb[1]\n")

    def test_nul_character(self):
        with pytest.raises(CorruptDocumentError):
            build_index("## Food\x00\n")

    def test_not_text(self):
        with pytest.raises(CorruptDocumentError):
            build_index(b"## Food\n")


class TestParseBlocks:
    """Documents read back into blocks with section, date and author."""

    def test_sample_document_blocks(self, sample_document):
        blocks = parse_blocks(sample_document)
        assert [b.block_id for b in blocks] == ["1", "2"]
        food = blocks[0]
        assert food.index == 0
        assert food.section == "Food"
        assert food.section_header == "## Food"
        assert food.date == "2024-05-01"
        assert food.author == "ola"
        assert food.raw == "[2024-05-01] [ola] Ramen at Ichiran is cheap."

    def test_block_without_author(self):
        blocks = parse_blocks("## Food\n[UNKNOWN-DATE] Sushi belt bars close early.[6]\n")
        assert blocks[0].date == "UNKNOWN-DATE"
        assert blocks[0].author is None

    def test_blocks_before_first_header(self):
        blocks = parse_blocks("loose note[9]\n## Food\na[1]\n")
        assert blocks[0].section is None
        assert blocks[0].section_header == "## Uncategorized"
        assert blocks[1].section_header == "## Food"

    def test_reply_preface_belongs_to_block(self):
        text = '## Food\n> In reply to: "Ramen"\n[2024-05-03] [ania] Agreed.[3]\n'
        block = parse_blocks(text)[0]
        assert block.raw.startswith("> In reply to:")
        assert block.author == "ania"

    def test_unclosed_lines_are_dropped(self):
        blocks = parse_blocks("## Food\na[1]\ntrailing text without anchor\n")
        assert len(blocks) == 1

    def test_group_by_section(self, sample_document):
        groups = group_blocks_by_section(parse_blocks(sample_document))
        assert list(groups) == ["## Food", "## Transport"]
        assert [b.block_id for b in groups["## Transport"]] == ["2"]


class TestExtractBlockContent:
    """Bare content of anchored blocks, used for reply quotes."""

    def test_prefix_and_anchor_removed(self, sample_document):
        lines = split_lines(sample_document)
        index = build_index(sample_document)
        assert extract_block_content(lines, index, "1") == "Ramen at Ichiran is cheap."

    def test_unknown_block(self, sample_document):
        lines = split_lines(sample_document)
        index = build_index(sample_document)
        assert extract_block_content(lines, index, "99") is None


class TestSlugifySection:
    """Section headers become file-name slugs."""

    def test_header_with_symbols(self):
        assert slugify_section("## Food & Dining (Jedzenie)") == "food-and-dining-jedzenie"

    def test_bare_name(self):
        assert slugify_section("General Protips") == "general-protips"

    def test_empty(self):
        assert slugify_section("") == "unknown"
