"""Pydantic models and parsers for curation payloads.

WHY: Operations and entries are produced by an external curation step
(usually a language model) and arrive as JSON text that may be wrapped
in code fences, use either of two key vocabularies, or contain a few
broken records. The core must receive clean dataclasses, and every
record that cannot be used must be reported rather than silently lost.

HOW: The raw text is unwrapped and parsed into a JSON object. Each
record is validated individually with a pydantic model, so one bad
record never sinks the rest of the batch. Valid records are converted
into core dataclasses (InsertionOperation, Entry).

RULES:
- Operation keys: blockIdentifier | messageId, sectionName | category,
  position = "append" | "prepend" | {"afterId": id} | {"beforeId": id}
- Missing position means append
- Empty section names are passed through; the applier rejects them
- Entry keys: entryId, type, text, citationInserts[{atChar, sources}]
- Source keys: identifier | messageId (a bare string is accepted too)
- atChar is kept raw; offset validity is the citation resolver's call
- Numeric identifiers are converted to strings
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, List, Literal, Optional, Tuple, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from compendium_builder.core.model import (
    CitationRequest,
    Entry,
    InsertionOperation,
    Position,
)

logger = logging.getLogger(__name__)

_FENCE_OPEN_RE = re.compile(r"^```[a-zA-Z]*\s*")
_FENCE_CLOSE_RE = re.compile(r"```\s*$")


class PayloadError(ValueError):
    """Raised when a payload cannot be parsed into a JSON object at all.

    RULES:
    - Raised only for whole-payload failures; bad records are reported
      in the parse result instead
    """


def _coerce_id(value: Any) -> Any:
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


# ---------------------------------------------------------------------------
# Raw text handling
# ---------------------------------------------------------------------------


def strip_json_fences(text: str) -> str:
    """Remove a surrounding markdown code fence, if any."""
    t = str(text or "").strip()
    if t.startswith("```"):
        t = _FENCE_CLOSE_RE.sub("", _FENCE_OPEN_RE.sub("", t, count=1)).strip()
    return t


def parse_json_object(text: str) -> dict:
    """Parse model output text into a JSON object.

    HOW: Try the unwrapped text first; on failure, parse the slice between
    the first "{" and the last "}".

    Raises:
        PayloadError: If no JSON object can be recovered.
    """
    cleaned = strip_json_fences(text)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        start = cleaned.find("{")
        end = cleaned.rfind("}")
        if start < 0 or end <= start:
            raise PayloadError("Could not parse JSON object from payload")
        try:
            data = json.loads(cleaned[start:end + 1])
        except json.JSONDecodeError as e:
            raise PayloadError("Could not parse JSON object from payload: {}".format(e)) from e

    if not isinstance(data, dict):
        raise PayloadError("Payload must be a JSON object, got {}".format(type(data).__name__))
    return data


def _as_object(payload: Union[str, dict]) -> dict:
    if isinstance(payload, dict):
        return payload
    return parse_json_object(payload)


def _records(data: dict, key: str) -> list:
    records = data.get(key)
    if not isinstance(records, list):
        raise PayloadError("Payload has no {!r} list".format(key))
    return records


def _describe(e: ValidationError) -> str:
    return "; ".join(
        "{}: {}".format(".".join(str(p) for p in err["loc"]) or "record", err["msg"])
        for err in e.errors()
    )


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


class AfterPosition(BaseModel):
    """Insert directly after an existing block."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    after_id: str = Field(validation_alias=AliasChoices("afterId", "after_id"))

    @field_validator("after_id", mode="before")
    @classmethod
    def coerce_id(cls, value: Any) -> Any:
        return _coerce_id(value)


class BeforePosition(BaseModel):
    """Insert directly before an existing block."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    before_id: str = Field(validation_alias=AliasChoices("beforeId", "before_id"))

    @field_validator("before_id", mode="before")
    @classmethod
    def coerce_id(cls, value: Any) -> Any:
        return _coerce_id(value)


class OperationRecord(BaseModel):
    """One insertion operation as emitted by the curation step."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    block_identifier: str = Field(
        validation_alias=AliasChoices("blockIdentifier", "messageId", "block_id"),
        min_length=1,
        description="Identifier of the message to insert.",
    )
    section_name: str = Field(
        default="",
        validation_alias=AliasChoices("sectionName", "category", "section"),
        description="Target section, with or without the '## ' prefix.",
    )
    position: Union[Literal["append", "prepend"], AfterPosition, BeforePosition] = Field(
        default="append",
        description="Relative position inside the section.",
    )

    @field_validator("block_identifier", mode="before")
    @classmethod
    def coerce_id(cls, value: Any) -> Any:
        return _coerce_id(value)

    def to_operation(self) -> InsertionOperation:
        if isinstance(self.position, AfterPosition):
            position = Position.after(self.position.after_id)
        elif isinstance(self.position, BeforePosition):
            position = Position.before(self.position.before_id)
        elif self.position == "prepend":
            position = Position.prepend()
        else:
            position = Position.append()
        return InsertionOperation(
            block_id=self.block_identifier,
            section=self.section_name,
            position=position,
        )


@dataclass
class ParsedOperations:
    """Valid operations in payload order, plus rejected records.

    rejected holds (record index, reason) pairs.
    """

    operations: List[InsertionOperation] = field(default_factory=list)
    rejected: List[Tuple[int, str]] = field(default_factory=list)
    notes: Optional[str] = None


def parse_operations(payload: Union[str, dict]) -> ParsedOperations:
    """Parse an operations payload into insertion operations.

    Args:
        payload: Raw payload text (possibly fenced) or an already parsed
            object with an "operations" list.

    Returns:
        ParsedOperations; invalid records are logged and listed in
        ``rejected``.

    Raises:
        PayloadError: If the payload is not a JSON object with an
            "operations" list.
    """
    data = _as_object(payload)
    result = ParsedOperations(notes=data.get("notes") if isinstance(data.get("notes"), str) else None)

    for i, record in enumerate(_records(data, "operations")):
        try:
            result.operations.append(OperationRecord.model_validate(record).to_operation())
        except ValidationError as e:
            reason = _describe(e)
            logger.warning("Operation #%d rejected: %s", i, reason)
            result.rejected.append((i, reason))

    return result


# ---------------------------------------------------------------------------
# Entries
# ---------------------------------------------------------------------------


def _wrap_bare_source(value: Any) -> Any:
    if isinstance(value, (str, int)) and not isinstance(value, bool):
        return {"identifier": value}
    return value


class SourceRecord(BaseModel):
    """A cited message."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    identifier: str = Field(
        default="",
        validation_alias=AliasChoices("identifier", "messageId"),
    )

    @field_validator("identifier", mode="before")
    @classmethod
    def coerce_id(cls, value: Any) -> Any:
        return "" if value is None else _coerce_id(value)


class CitationInsertRecord(BaseModel):
    """A citation request: sources to cite at a character offset."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    at_char: Any = Field(default=None, validation_alias=AliasChoices("atChar", "at_char"))
    sources: List[SourceRecord] = Field(default_factory=list)

    @field_validator("sources", mode="before")
    @classmethod
    def wrap_sources(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return []
        return [_wrap_bare_source(v) for v in value]

    def to_request(self) -> CitationRequest:
        return CitationRequest(
            at_char=self.at_char,
            sources=[s.identifier for s in self.sources],
        )


class EntryRecord(BaseModel):
    """One curated entry as emitted by the curation step."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    entry_id: str = Field(default="", validation_alias=AliasChoices("entryId", "entry_id", "id"))
    type: str = Field(default="other")
    text: str
    citation_inserts: List[CitationInsertRecord] = Field(
        default_factory=list,
        validation_alias=AliasChoices("citationInserts", "citation_inserts"),
    )

    @field_validator("entry_id", mode="before")
    @classmethod
    def coerce_id(cls, value: Any) -> Any:
        return _coerce_id(value)

    def to_entry(self) -> Entry:
        return Entry(
            entry_id=self.entry_id.strip(),
            text=self.text,
            type=self.type.strip() or "other",
            citation_inserts=[c.to_request() for c in self.citation_inserts],
        )


@dataclass
class ParsedEntries:
    """Valid entries in payload order, plus rejected records."""

    entries: List[Entry] = field(default_factory=list)
    rejected: List[Tuple[int, str]] = field(default_factory=list)


def parse_entries(payload: Union[str, dict]) -> ParsedEntries:
    """Parse an entries payload into core Entry objects.

    Raises:
        PayloadError: If the payload is not a JSON object with an
            "entries" list.
    """
    data = _as_object(payload)
    result = ParsedEntries()

    for i, record in enumerate(_records(data, "entries")):
        try:
            result.entries.append(EntryRecord.model_validate(record).to_entry())
        except ValidationError as e:
            reason = _describe(e)
            logger.warning("Entry #%d rejected: %s", i, reason)
            result.rejected.append((i, reason))

    return result
