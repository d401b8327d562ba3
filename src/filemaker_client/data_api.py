"""Translate CWP style parameters into Data API REST calls.

``translate`` is pure: it inspects which command flag is present in the
flat parameter dict and returns the method, URI template, query string and
JSON body of the equivalent Data API request. Rendering the URI and
sending it is the transport's job.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

from filemaker_client.constants import SORT_ASCEND
from filemaker_client.errors import UnsupportedOperationError

ENDPOINT_DATABASES = "/databases"
ENDPOINT_LAYOUTS = "/databases/{database}/layouts"
ENDPOINT_SCRIPTS = "/databases/{database}/scripts"
ENDPOINT_METADATA = "/databases/{database}/layouts/{layout}"
ENDPOINT_LOGIN = "/databases/{database}/sessions"
ENDPOINT_LOGOUT = "/databases/{database}/sessions/{sessionToken}"
ENDPOINT_FIND = "/databases/{database}/layouts/{layout}/_find"
ENDPOINT_RECORDS = "/databases/{database}/layouts/{layout}/records"
ENDPOINT_RECORD = "/databases/{database}/layouts/{layout}/records/{recordId}"
ENDPOINT_GLOBALS = "/databases/{database}/globals"
ENDPOINT_SCRIPT = "/databases/{database}/layouts/{layout}/script/{scriptName}"

_PORTAL_KEY = re.compile(r"^(?P<table>.+?)::(?P<field>.+)\.(?P<index>\d+)$")
_PORTAL_SUFFIX = re.compile(r"\.\d+$")
_FIRST_REPETITION = re.compile(r"\(1\)$")
_QUERY_INDEX = re.compile(r"^-q(\d+)$")
_QUERY_GROUP = re.compile(r"\(([^)]*)\)")

_SCRIPT_KEYS = (
    ("-script", "script"),
    ("-script.prefind", "script.prerequest"),
    ("-script.presort", "script.presort"),
)


@dataclass
class DataApiQuery:
    """One Data API call, before host and session are applied."""

    method: str
    uri: str
    path_params: dict[str, str] = field(default_factory=dict)
    query_params: dict[str, Any] = field(default_factory=dict)
    body: dict[str, Any] | None = None
    authenticated: bool = True

    def path(self) -> str:
        """URI template with every placeholder URL-encoded and substituted."""
        path = self.uri
        for name, value in self.path_params.items():
            path = path.replace("{" + name + "}", quote(str(value), safe=""))
        return path


def _data_key(name: str) -> str:
    return _FIRST_REPETITION.sub("", name)


def parse_fields(params: dict[str, Any]) -> dict[str, Any]:
    """Plain field values: no ``-`` commands, portal rows or globals."""
    return {
        _data_key(key): value
        for key, value in params.items()
        if not key.startswith("-") and not _PORTAL_SUFFIX.search(key) and not key.endswith(".global")
    }


def parse_global_fields(params: dict[str, Any]) -> dict[str, Any]:
    """``name.global`` parameters, keyed by the bare field name."""
    return {
        _data_key(key[: -len(".global")]): value
        for key, value in params.items()
        if not key.startswith("-") and key.endswith(".global")
    }


def qualify_globals(global_fields: dict[str, Any], table: str) -> dict[str, Any]:
    """Prefix unqualified global field names with ``table::``."""
    return {
        (name if "::" in name else f"{table}::{name}"): value for name, value in global_fields.items()
    }


def parse_portal_fields(params: dict[str, Any]) -> dict[str, list[dict[str, Any]]]:
    """Group ``Table::Field.N`` parameters into portal rows.

    Row ``0`` is a new related record and carries no ``recordId``. The
    portal name is ``-relatedSet`` when given, else the table occurrence
    of the field.
    """
    portals: dict[str, dict[str, dict[str, Any]]] = {}
    for key, value in params.items():
        if key.startswith("-"):
            continue
        match = _PORTAL_KEY.match(key)
        if match is None:
            continue
        portal = params.get("-relatedSet") or match.group("table")
        index = match.group("index")
        rows = portals.setdefault(portal, {})
        if index not in rows:
            rows[index] = {} if index == "0" else {"recordId": index}
        rows[index][_data_key(f"{match.group('table')}::{match.group('field')}")] = value
    return {portal: list(rows.values()) for portal, rows in portals.items()}


def parse_sort(params: dict[str, Any], prefix: str = "") -> dict[str, Any]:
    rules: dict[int, dict[str, str]] = {}
    for key, value in params.items():
        if key.startswith("-sortfield."):
            precedence = int(key[len("-sortfield."):])
            rules[precedence] = {
                "fieldName": value,
                "sortOrder": params.get(f"-sortorder.{precedence}", SORT_ASCEND),
            }
    if not rules:
        return {}
    return {f"{prefix}sort": [rules[p] for p in sorted(rules)]}


def parse_range(params: dict[str, Any], prefix: str = "") -> dict[str, Any]:
    """``-skip``/``-max`` as Data API offset/limit; offsets are 1-based."""
    result: dict[str, Any] = {}
    if params.get("-skip"):
        result[f"{prefix}offset"] = int(params["-skip"]) + 1
    if params.get("-max"):
        result[f"{prefix}limit"] = int(params["-max"])
    return result


def parse_layout_response(params: dict[str, Any]) -> dict[str, Any]:
    if params.get("-lay.response"):
        return {"layout.response": params["-lay.response"]}
    return {}


def parse_scripts(params: dict[str, Any]) -> dict[str, Any]:
    scripts: dict[str, Any] = {}
    for cwp_key, api_key in _SCRIPT_KEYS:
        if params.get(cwp_key):
            scripts[api_key] = params[cwp_key]
            if params.get(f"{cwp_key}.param") is not None:
                scripts[f"{api_key}.param"] = str(params[f"{cwp_key}.param"])
    return scripts


def parse_find(params: dict[str, Any]) -> dict[str, Any]:
    """Criteria of a simple find; ``-lop=or`` puts each criterion in its own request."""
    criteria = parse_fields(params)
    if params.get("-lop") == "or" and len(criteria) > 1:
        return {"query": [{name: value} for name, value in criteria.items()]}
    return {"query": [criteria]}


def parse_find_query(params: dict[str, Any]) -> dict[str, Any]:
    """Rebuild compound find requests from ``-query`` and its ``-qK`` parameters."""
    criteria: dict[str, tuple[str, Any]] = {}
    for key, value in params.items():
        match = _QUERY_INDEX.match(key)
        if match:
            criteria[match.group(1)] = (value, params.get(f"{key}.value", ""))

    queries: list[dict[str, Any]] = []
    for request in str(params.get("-query", "")).split(";"):
        request = request.strip()
        group = _QUERY_GROUP.search(request)
        if group is None:
            continue
        query: dict[str, Any] = {}
        for ref in group.group(1).split(","):
            index = re.sub(r"[^0-9]", "", ref)
            if index in criteria:
                name, value = criteria[index]
                query[name] = value
        if request.startswith("!"):
            query["omit"] = "true"
        queries.append(query)
    return {"query": queries}


def translate(params: dict[str, Any]) -> DataApiQuery:
    """Map flat CWP parameters onto the matching Data API call.

    Raises:
        UnsupportedOperationError: For ``-findany`` and for parameter sets
            with no Data API equivalent.
    """
    path_params = {
        key: str(params[source])
        for key, source in (("database", "-db"), ("layout", "-lay"), ("recordId", "-recid"))
        if params.get(source) is not None
    }

    def query(method: str, uri: str, **kwargs: Any) -> DataApiQuery:
        return DataApiQuery(method, uri, dict(path_params), **kwargs)

    if "-findany" in params:
        raise UnsupportedOperationError("Find any is not supported by the Data API.")

    if "-dbnames" in params:
        return query("GET", ENDPOINT_DATABASES, authenticated=False)
    if "-layoutnames" in params:
        return query("GET", ENDPOINT_LAYOUTS)
    if "-scriptnames" in params:
        return query("GET", ENDPOINT_SCRIPTS)
    if "-view" in params:
        query_params = {"recordId": params["-recid"]} if params.get("-recid") is not None else {}
        return query("GET", ENDPOINT_METADATA, query_params=query_params)

    if "-recid" in params and not any(flag in params for flag in ("-dup", "-edit", "-delete")):
        return query(
            "GET",
            ENDPOINT_RECORD,
            query_params={**parse_layout_response(params), **parse_scripts(params)},
        )

    if "-find" in params:
        body = {
            **parse_range(params),
            **parse_layout_response(params),
            **parse_scripts(params),
            **parse_find(params),
            **parse_sort(params),
        }
        return query("POST", ENDPOINT_FIND, body=body)

    if "-findquery" in params:
        body = {
            **parse_range(params),
            **parse_layout_response(params),
            **parse_scripts(params),
            **parse_find_query(params),
            **parse_sort(params),
        }
        return query("POST", ENDPOINT_FIND, body=body)

    if "-findall" in params:
        query_params = {
            **parse_range(params, "_"),
            **parse_layout_response(params),
            **parse_scripts(params),
        }
        sort = parse_sort(params, "_")
        if sort:
            query_params["_sort"] = json.dumps(sort["_sort"])
        return query("GET", ENDPOINT_RECORDS, query_params=query_params)

    if "-new" in params or "-edit" in params:
        body: dict[str, Any] = {"fieldData": parse_fields(params)}
        portal_data = parse_portal_fields(params)
        if portal_data:
            body["portalData"] = portal_data
        body.update(parse_scripts(params))
        if "-new" in params:
            return query("POST", ENDPOINT_RECORDS, body=body)
        if params.get("-delete.related"):
            body["fieldData"]["deleteRelated"] = [params["-delete.related"]]
        if params.get("-modid") is not None:
            body["modId"] = str(params["-modid"])
        return query("PATCH", ENDPOINT_RECORD, body=body)

    if "-delete" in params:
        return query("DELETE", ENDPOINT_RECORD, query_params=parse_scripts(params))

    if "-dup" in params:
        return query("POST", ENDPOINT_RECORD, body=parse_scripts(params))

    if "-performscript" in params:
        script_query = query("GET", ENDPOINT_SCRIPT)
        script_query.path_params["scriptName"] = str(params.get("-script", ""))
        if params.get("-script.param") is not None:
            script_query.query_params["script.param"] = str(params["-script.param"])
        return script_query

    raise UnsupportedOperationError("The request has no Data API equivalent.")


def global_fields_query(database: str, global_fields: dict[str, Any]) -> DataApiQuery:
    """PATCH request assigning already-qualified global field values."""
    return DataApiQuery(
        "PATCH",
        ENDPOINT_GLOBALS,
        {"database": database},
        body={"globalFields": global_fields},
    )
