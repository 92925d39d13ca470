"""Shared test fixtures for the compendium_builder test suite.

WHY: The applier, CLI and storage tests all need the same small chat
export and a document built from it. Centralizing them here keeps the
expected document text in one place.

HOW: Pytest fixtures provide the slim export dict, the id → Message
index built from it, and a two-section document whose exact text is
spelled out below.

RULES:
- Message "3" replies to "1"; message "5" spans two lines
- SAMPLE_DOCUMENT uses the same block format the applier writes
"""

import json
from typing import Any, Dict

import pytest

from compendium_builder.ingest import build_message_index


SAMPLE_EXPORT: Dict[str, Any] = {
    "messages": [
        {"id": "1", "content": "Ramen at Ichiran is cheap.", "timestamp": "2024-05-01T10:00:00Z", "author": "ola"},
        {"id": "2", "content": "Get a Suica card at the airport.", "timestamp": "2024-05-02T08:30:00Z", "author": "kuba"},
        {"id": "3", "content": "Agreed, the queue is short at 11.", "timestamp": "2024-05-03T12:00:00Z", "author": "ania", "replyTo": "1"},
        {"id": "4", "content": "Conbini onigiri are great for breakfast.", "timestamp": None, "author": "ola"},
        {"id": "5", "content": "Two tips:\nbuy the JR pass online", "timestamp": "2024-05-05T09:00:00Z", "author": "kuba"},
        {"id": "6", "content": "Sushi belt bars close early.", "timestamp": "2024-05-06T19:00:00Z"},
    ]
}

SAMPLE_DOCUMENT = (
    "\n"
    "## Food\n"
    "\n"
    "[2024-05-01] [ola] Ramen at Ichiran is cheap.[1]\n"
    "\n"
    "## Transport\n"
    "\n"
    "[2024-05-02] [kuba] Get a Suica card at the airport.[2]\n"
)


@pytest.fixture
def sample_export():
    """The slim chat export as a parsed JSON dict."""
    return json.loads(json.dumps(SAMPLE_EXPORT))


@pytest.fixture
def messages(sample_export):
    """id → Message index of the sample export."""
    return build_message_index(sample_export)


@pytest.fixture
def sample_document():
    """Two sections, one block each."""
    return SAMPLE_DOCUMENT


@pytest.fixture
def export_file(tmp_path, sample_export):
    """The sample export written to disk."""
    path = tmp_path / "messages.json"
    path.write_text(json.dumps(sample_export), encoding="utf-8")
    return path
