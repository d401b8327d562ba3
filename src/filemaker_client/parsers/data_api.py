"""Parser for Data API JSON envelopes.

Record responses (``dataInfo`` + ``data``) and layout metadata responses
(``fieldMetaData`` + ``portalMetaData`` + ``valueLists``) are both mapped
onto ``ParsedResponse`` so the materializer treats them like fmresultset.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from filemaker_client.errors import ParseError, ServerProtocolError
from filemaker_client.parsers.base import (
    FieldDefinition,
    ParsedFoundSet,
    ParsedHead,
    ParsedRecord,
    ParsedResponse,
)

logger = logging.getLogger(__name__)

# Code returned when a find matches nothing; treated as an empty found set.
NO_RECORDS_CODE = 401

_FIELD_KEY = re.compile(r"^(?P<name>.*?)(\((?P<repetition>\d+)\))?$")


def decode(raw: bytes | str) -> dict[str, Any]:
    if not raw:
        raise ParseError("Did not receive a JSON document from the server.")
    try:
        envelope = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ParseError(f"JSON error: {e.msg}", line=e.lineno) from e
    if not isinstance(envelope, dict):
        raise ParseError("Unexpected JSON document: expected an object.")
    return envelope


def envelope_error(envelope: dict[str, Any]) -> tuple[int, str]:
    """Code and message of the first entry of ``messages``."""
    messages = envelope.get("messages") or [{}]
    head = messages[0] if isinstance(messages, list) and messages else {}
    try:
        code = int(head.get("code", 0))
    except (TypeError, ValueError):
        code = -1
    return code, str(head.get("message", ""))


def expand_fields(raw_fields: dict[str, Any]) -> dict[str, list]:
    """``{"Name(2)": v}`` -> ``{"Name": ["", v]}``; repetitions are 1-based on the wire."""
    fields: dict[str, list] = {}
    for key, value in raw_fields.items():
        match = _FIELD_KEY.match(key)
        name = match.group("name")
        repetition = int(match.group("repetition")) - 1 if match.group("repetition") else 0
        values = fields.setdefault(name, [])
        while len(values) <= repetition:
            values.append("")
        values[repetition] = value
    return fields


def _flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.lower() in ("yes", "true", "1")
    return bool(value)


def field_definition(meta: dict[str, Any]) -> FieldDefinition:
    max_characters = meta.get("maxCharacters")
    display_type = meta.get("displayType")
    return FieldDefinition(
        name=meta.get("name", ""),
        result=str(meta.get("result", "text")).lower(),
        type=meta.get("type", "normal"),
        auto_enter=_flag(meta.get("autoEnter")),
        global_=_flag(meta.get("global")),
        max_repeat=int(meta.get("maxRepeat") or 1),
        not_empty=_flag(meta.get("notEmpty")),
        numeric_only=_flag(meta.get("numeric")),
        max_characters=int(max_characters) if max_characters else None,
        four_digit_year=_flag(meta.get("fourDigitYear")),
        time_of_day=_flag(meta.get("timeOfDay")),
        value_list=meta.get("valueList") or None,
        style_type=display_type.upper() if display_type else None,
    )


def _layout_names(entries: list[dict[str, Any]]) -> list[str]:
    names: list[str] = []
    for entry in entries:
        if entry.get("isFolder"):
            names.extend(_layout_names(entry.get("folderLayoutNames", [])))
        elif entry.get("name"):
            names.append(entry["name"])
    return names


def _script_names(entries: list[dict[str, Any]]) -> list[str]:
    names: list[str] = []
    for entry in entries:
        if entry.get("isFolder"):
            names.extend(_script_names(entry.get("folderScriptNames", [])))
        elif entry.get("name"):
            names.append(entry["name"])
    return names


class DataApiParser:
    """Parser for Data API responses."""

    def parse(self, raw: bytes | str) -> ParsedResponse:
        """Parse a Data API envelope.

        Raises:
            ParseError: Empty or malformed JSON.
            ServerProtocolError: The envelope reports an error other than
                "no records match".
        """
        envelope = decode(raw)
        code, message = envelope_error(envelope)
        response = ParsedResponse()
        if code == NO_RECORDS_CODE:
            logger.debug("Data API reported no matching records")
            response.head = ParsedHead()
            return response
        if code != 0:
            raise ServerProtocolError(code, message or None)

        body = envelope.get("response") or {}
        if "dataInfo" in body:
            self._parse_records(body, response)
        if "fieldMetaData" in body:
            self._parse_metadata(body, response)
        if "databases" in body:
            response.names = [db.get("name", "") for db in body["databases"]]
        if "layouts" in body:
            response.names = _layout_names(body["layouts"])
        if "scripts" in body:
            response.names = _script_names(body["scripts"])

        if body.get("recordId") is not None:
            response.record_id = str(body["recordId"])
        if body.get("modId") is not None:
            response.mod_id = str(body["modId"])
        if "scriptResult" in body or "scriptError" in body:
            script_error = int(body.get("scriptError") or 0)
            if script_error:
                raise ServerProtocolError(script_error)
            response.script_result = body.get("scriptResult")
        return response

    def _parse_records(self, body: dict[str, Any], response: ParsedResponse) -> None:
        info = body["dataInfo"]
        response.head = ParsedHead(
            layout=info.get("layout", ""),
            database=info.get("database", ""),
            table=info.get("table", ""),
            total_count=int(info.get("totalRecordCount") or 0),
        )
        response.found_set = ParsedFoundSet(
            count=int(info.get("foundCount") or 0),
            fetch_size=int(info.get("returnedCount") or 0),
        )
        for data in body.get("data", []):
            record = ParsedRecord(
                record_id=str(data.get("recordId")) if data.get("recordId") is not None else None,
                mod_id=str(data.get("modId")) if data.get("modId") is not None else None,
                fields=expand_fields(data.get("fieldData", {})),
            )
            for portal, rows in (data.get("portalData") or {}).items():
                children = record.children.setdefault(portal, [])
                for row in rows:
                    row = dict(row)
                    record_id = row.pop("recordId", None)
                    mod_id = row.pop("modId", None)
                    children.append(
                        ParsedRecord(
                            record_id=str(record_id) if record_id is not None else None,
                            mod_id=str(mod_id) if mod_id is not None else None,
                            fields=expand_fields(row),
                        )
                    )
            response.records.append(record)

    def _parse_metadata(self, body: dict[str, Any], response: ParsedResponse) -> None:
        response.field_definitions = [field_definition(meta) for meta in body["fieldMetaData"]]
        response.related_set_definitions = {
            portal: [field_definition(meta) for meta in fields]
            for portal, fields in (body.get("portalMetaData") or {}).items()
        }
        response.has_extended_info = True
        for definition in response.field_definitions:
            response.field_styles[definition.name] = (definition.style_type, definition.value_list)
        for value_list in body.get("valueLists") or []:
            name = value_list.get("name", "")
            values = response.value_lists.setdefault(name, [])
            two_fields = response.value_lists_two_fields.setdefault(name, {})
            for entry in value_list.get("values", []):
                value = entry.get("value", "")
                values.append(value)
                two_fields[entry.get("displayValue", value)] = value
