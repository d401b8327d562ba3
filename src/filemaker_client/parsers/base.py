"""Grammar-neutral parse output.

Both the fmresultset XML parser and the Data API JSON parser produce a
``ParsedResponse``; the materializer turns it into layouts and records
without knowing which grammar it came from.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable


@dataclass
class FieldDefinition:
    name: str
    result: str = "text"
    type: str = "normal"
    auto_enter: bool = False
    global_: bool = False
    max_repeat: int = 1
    not_empty: bool = False
    numeric_only: bool = False
    max_characters: int | None = None
    four_digit_year: bool = False
    time_of_day: bool = False
    # Known only from extended info or Data API metadata.
    value_list: str | None = None
    style_type: str | None = None


@dataclass
class ParsedHead:
    layout: str = ""
    database: str = ""
    table: str = ""
    total_count: int = 0


@dataclass
class ParsedFoundSet:
    count: int = 0
    fetch_size: int = 0


@dataclass
class ParsedRecord:
    record_id: str | None = None
    mod_id: str | None = None
    fields: dict[str, list] = field(default_factory=dict)
    children: dict[str, list[ParsedRecord]] = field(default_factory=dict)


@dataclass
class ParsedResponse:
    """Everything a response carried, in one shape for both grammars."""

    head: ParsedHead | None = None
    found_set: ParsedFoundSet = field(default_factory=ParsedFoundSet)
    field_definitions: list[FieldDefinition] = field(default_factory=list)
    related_set_definitions: dict[str, list[FieldDefinition]] = field(default_factory=dict)
    records: list[ParsedRecord] = field(default_factory=list)
    server_version: str | None = None
    # Extended info: value lists and per-field control styles.
    value_lists: dict[str, list[str]] = field(default_factory=dict)
    value_lists_two_fields: dict[str, dict[str, str]] = field(default_factory=dict)
    # field name -> (style type, value list name)
    field_styles: dict[str, tuple[str | None, str | None]] = field(default_factory=dict)
    has_extended_info: bool = False
    # Data API write and script responses carry only these.
    record_id: str | None = None
    mod_id: str | None = None
    script_result: str | None = None
    # Plain name listings (databases, layouts, scripts).
    names: list[str] = field(default_factory=list)
    # Layout this response was last materialized into.
    layout: Any = field(default=None, repr=False, compare=False)

    @property
    def has_metadata(self) -> bool:
        return bool(self.field_definitions or self.related_set_definitions)


@runtime_checkable
class ResponseParser(Protocol):
    """Turns a raw response body into a ``ParsedResponse``.

    Raises ``ParseError`` for malformed input and ``ServerProtocolError``
    for a non-zero FileMaker error code.
    """

    def parse(self, raw: bytes | str) -> ParsedResponse: ...
