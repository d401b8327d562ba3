"""Parser for the FMPXMLLAYOUT grammar (layout extended info).

Only value lists and per-field control styles are read; everything else
about the layout comes from fmresultset.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET

from filemaker_client.errors import ParseError, ServerProtocolError
from filemaker_client.parsers.base import ParsedHead, ParsedResponse
from filemaker_client.parsers.fmresultset import local_name

logger = logging.getLogger(__name__)


class _LayoutHandler:
    def __init__(self) -> None:
        self.response = ParsedResponse(has_extended_info=True)
        self.error_code = ""
        self._field_name: str | None = None
        self._value_list: str | None = None
        self._display: str | None = None
        self._buffer: list[str] | None = None
        self._in_error = False

    def start(self, tag: str, attrs: dict[str, str]) -> None:
        name = local_name(tag)
        if name == "ERRORCODE":
            self._in_error = True
            self._buffer = []
        elif name == "LAYOUT":
            self.response.head = ParsedHead(
                layout=attrs.get("NAME", ""), database=attrs.get("DATABASE", "")
            )
        elif name == "FIELD":
            self._field_name = attrs.get("NAME", "")
        elif name == "STYLE" and self._field_name is not None:
            self.response.field_styles[self._field_name] = (
                attrs.get("TYPE") or None,
                attrs.get("VALUELIST") or None,
            )
        elif name == "VALUELIST":
            self._value_list = attrs.get("NAME", "")
            self.response.value_lists[self._value_list] = []
            self.response.value_lists_two_fields[self._value_list] = {}
        elif name == "VALUE" and self._value_list is not None:
            self._display = attrs.get("DISPLAY")
            self._buffer = []

    def end(self, tag: str) -> None:
        name = local_name(tag)
        if name == "ERRORCODE":
            self.error_code = "".join(self._buffer or []).strip()
            self._in_error = False
            self._buffer = None
        elif name == "FIELD":
            self._field_name = None
        elif name == "VALUELIST":
            self._value_list = None
        elif name == "VALUE" and self._value_list is not None and self._buffer is not None:
            value = "".join(self._buffer)
            display = self._display if self._display is not None else value
            self.response.value_lists[self._value_list].append(value)
            self.response.value_lists_two_fields[self._value_list][display] = value
            self._buffer = None

    def data(self, text: str) -> None:
        if self._buffer is not None:
            self._buffer.append(text)

    def close(self) -> ParsedResponse:
        return self.response


class FMPXMLLayoutParser:
    """Parser for ``FMPXMLLAYOUT.xml`` responses."""

    def parse(self, raw: bytes | str) -> ParsedResponse:
        if not raw:
            raise ParseError("Did not receive an XML document from the server.")
        handler = _LayoutHandler()
        parser = ET.XMLParser(target=handler)
        try:
            parser.feed(raw)
            response = parser.close()
        except ET.ParseError as e:
            line = e.position[0] if getattr(e, "position", None) else None
            raise ParseError(f"XML error: {e}", line=line) from e
        if handler.error_code and handler.error_code != "0":
            raise ServerProtocolError(int(handler.error_code) if handler.error_code.isdigit() else -1)
        logger.debug(
            "Parsed %d value lists and %d field styles",
            len(response.value_lists),
            len(response.field_styles),
        )
        return response
