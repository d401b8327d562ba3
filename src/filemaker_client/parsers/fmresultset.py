"""Streaming parser for the fmresultset XML grammar.

Driven by ElementTree's push interface: the response is fed in chunks and
a target object receives start, end and character-data events. Memory
stays proportional to the records kept, not to the document text.
"""

from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field

from filemaker_client.constants import MIN_SERVER_VERSION
from filemaker_client.errors import ParseError, ServerProtocolError, VersionMismatchError
from filemaker_client.parsers.base import (
    FieldDefinition,
    ParsedFoundSet,
    ParsedHead,
    ParsedRecord,
    ParsedResponse,
)

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


def local_name(tag: str) -> str:
    """Tag name without its ``{namespace}`` prefix."""
    return tag.rsplit("}", 1)[-1]


def version_tuple(version: str) -> tuple[int, ...]:
    return tuple(int(part) for part in re.findall(r"\d+", version))


def _int(value: str | None, default: int = 0) -> int:
    try:
        return int(value) if value not in (None, "") else default
    except ValueError:
        return default


def field_definition(attrs: dict[str, str]) -> FieldDefinition:
    """Build a definition from ``<field-definition>`` attributes."""
    max_characters = attrs.get("max-characters")
    return FieldDefinition(
        name=attrs.get("name", ""),
        result=attrs.get("result", "text"),
        type=attrs.get("type", "normal"),
        auto_enter=attrs.get("auto-enter") == "yes",
        global_=attrs.get("global") == "yes",
        max_repeat=_int(attrs.get("max-repeat"), 1),
        not_empty=attrs.get("not-empty") == "yes",
        numeric_only=attrs.get("numeric-only") == "yes",
        max_characters=_int(max_characters) if max_characters is not None else None,
        four_digit_year=attrs.get("four-digit-year") == "yes",
        time_of_day=attrs.get("time-of-day") == "yes",
    )


@dataclass
class ParserState:
    """Position of the event handler inside the document."""

    current_record: ParsedRecord | None = None
    parent_record: ParsedRecord | None = None
    current_related_set: str | None = None
    # Open <relatedset-definition> while reading metadata.
    current_definition_set: str | None = None
    current_field: str | None = None
    buffer: list[str] = field(default_factory=list)
    in_data: bool = False


class _ResultSetHandler:
    """ElementTree parser target building a ``ParsedResponse``."""

    def __init__(self) -> None:
        self.response = ParsedResponse()
        self.state = ParserState()
        self.error_code = ""

    def start(self, tag: str, attrs: dict[str, str]) -> None:
        name = local_name(tag)
        state = self.state
        if name == "error":
            self.error_code = attrs.get("code", "")
        elif name == "product":
            self.response.server_version = attrs.get("version")
        elif name == "datasource":
            self.response.head = ParsedHead(
                layout=attrs.get("layout", ""),
                database=attrs.get("database", ""),
                table=attrs.get("table", ""),
                total_count=_int(attrs.get("total-count")),
            )
        elif name == "relatedset-definition":
            state.current_definition_set = attrs.get("table", "")
            self.response.related_set_definitions.setdefault(state.current_definition_set, [])
        elif name == "field-definition":
            definition = field_definition(attrs)
            if state.current_definition_set is not None:
                self.response.related_set_definitions[state.current_definition_set].append(definition)
            else:
                self.response.field_definitions.append(definition)
        elif name == "resultset":
            self.response.found_set = ParsedFoundSet(
                count=_int(attrs.get("count")),
                fetch_size=_int(attrs.get("fetch-size")),
            )
        elif name == "relatedset":
            state.current_related_set = attrs.get("table", "")
            state.parent_record = state.current_record
            state.current_record = None
            if state.parent_record is not None:
                state.parent_record.children.setdefault(state.current_related_set, [])
        elif name == "record":
            state.current_record = ParsedRecord(
                record_id=attrs.get("record-id"),
                mod_id=attrs.get("mod-id"),
            )
        elif name == "field":
            state.current_field = attrs.get("name", "")
            if state.current_record is not None:
                state.current_record.fields.setdefault(state.current_field, [])
        elif name == "data":
            state.buffer = []
            state.in_data = True

    def end(self, tag: str) -> None:
        name = local_name(tag)
        state = self.state
        if name == "relatedset-definition":
            state.current_definition_set = None
        elif name == "relatedset":
            state.current_related_set = None
            state.current_record = state.parent_record
            state.parent_record = None
        elif name == "record":
            record = state.current_record
            if record is None:
                return
            if state.current_related_set is not None and state.parent_record is not None:
                state.parent_record.children[state.current_related_set].append(record)
            else:
                self.response.records.append(record)
            state.current_record = None
        elif name == "field":
            state.current_field = None
        elif name == "data":
            if state.current_record is not None and state.current_field is not None:
                state.current_record.fields[state.current_field].append("".join(state.buffer))
            state.buffer = []
            state.in_data = False

    def data(self, text: str) -> None:
        # Text nodes may arrive split across several events.
        if self.state.in_data:
            self.state.buffer.append(text)

    def close(self) -> ParsedResponse:
        return self.response


class FMResultSetParser:
    """Parser for ``fmresultset.xml`` responses."""

    def __init__(self, min_server_version: str = MIN_SERVER_VERSION, chunk_size: int = CHUNK_SIZE) -> None:
        self.min_server_version = min_server_version
        self.chunk_size = chunk_size

    def parse(self, raw: bytes | str) -> ParsedResponse:
        """Parse a complete response body.

        Raises:
            ParseError: Empty or malformed document.
            ServerProtocolError: The document reports a non-zero error code.
            VersionMismatchError: The server is older than supported.
        """
        if not raw:
            raise ParseError("Did not receive an XML document from the server.")
        handler = _ResultSetHandler()
        parser = ET.XMLParser(target=handler)
        try:
            for start in range(0, len(raw), self.chunk_size):
                parser.feed(raw[start:start + self.chunk_size])
            response = parser.close()
        except ET.ParseError as e:
            line = e.position[0] if getattr(e, "position", None) else None
            raise ParseError(f"XML error: {e}", line=line) from e

        if handler.error_code and handler.error_code != "0":
            code = _int(handler.error_code, -1)
            logger.debug("fmresultset reported error %s", code)
            raise ServerProtocolError(code)

        version = response.server_version
        if version and version_tuple(version) < version_tuple(self.min_server_version):
            raise VersionMismatchError(
                f"This client requires at least version {self.min_server_version} "
                f"of FileMaker Server (detected {version})."
            )
        logger.debug(
            "Parsed %d records, %d fields, %d related sets",
            len(response.records),
            len(response.field_definitions),
            len(response.related_set_definitions),
        )
        return response
