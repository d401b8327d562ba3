"""Shared test fixtures for filemaker-client tests.

Canned fmresultset, FMPXMLLAYOUT and Data API payloads for a small
``Contact Detail`` layout, plus fake transports that route requests to
them, so tests run without a live FileMaker Server.
"""

import json
from unittest.mock import MagicMock

import pytest

from filemaker_client.client import FileMaker
from filemaker_client.config import Settings
from filemaker_client.constants import FMPXMLLAYOUT, FMRESULTSET
from filemaker_client.data_api import (
    ENDPOINT_FIND,
    ENDPOINT_GLOBALS,
    ENDPOINT_METADATA,
    ENDPOINT_RECORD,
    ENDPOINT_RECORDS,
)

LAYOUT = "Contact Detail"

METADATA_XML = (
    '<metadata>'
    '<field-definition auto-enter="no" four-digit-year="no" global="no" max-repeat="1" '
    'name="Name" not-empty="yes" numeric-only="no" result="text" time-of-day="no" '
    'type="normal" max-characters="50"/>'
    '<field-definition auto-enter="no" four-digit-year="no" global="no" max-repeat="1" '
    'name="Age" not-empty="no" numeric-only="yes" result="number" time-of-day="no" type="normal"/>'
    '<field-definition auto-enter="no" four-digit-year="no" global="no" max-repeat="1" '
    'name="Birthday" not-empty="no" numeric-only="no" result="date" time-of-day="no" type="normal"/>'
    '<field-definition auto-enter="no" four-digit-year="no" global="no" max-repeat="2" '
    'name="Phone" not-empty="no" numeric-only="no" result="text" time-of-day="no" type="normal"/>'
    '<field-definition auto-enter="yes" four-digit-year="no" global="no" max-repeat="1" '
    'name="Updated" not-empty="no" numeric-only="no" result="timestamp" time-of-day="no" type="normal"/>'
    '<field-definition auto-enter="no" four-digit-year="no" global="no" max-repeat="1" '
    'name="Status" not-empty="no" numeric-only="no" result="text" time-of-day="no" type="normal"/>'
    '<field-definition auto-enter="no" four-digit-year="no" global="yes" max-repeat="1" '
    'name="Session" not-empty="no" numeric-only="no" result="text" time-of-day="no" type="normal"/>'
    '<relatedset-definition table="Orders">'
    '<field-definition auto-enter="no" four-digit-year="no" global="no" max-repeat="1" '
    'name="Orders::Item" not-empty="no" numeric-only="no" result="text" time-of-day="no" type="normal"/>'
    '<field-definition auto-enter="no" four-digit-year="no" global="no" max-repeat="1" '
    'name="Orders::Qty" not-empty="no" numeric-only="yes" result="number" time-of-day="no" type="normal"/>'
    '</relatedset-definition>'
    '</metadata>'
)

RECORD_1_XML = (
    '<record mod-id="3" record-id="1">'
    '<field name="Name"><data>Ada &amp; Co</data></field>'
    '<field name="Age"><data>36</data></field>'
    '<field name="Birthday"><data>12/10/1985</data></field>'
    '<field name="Phone"><data>555-1000</data><data>555-2000</data></field>'
    '<field name="Updated"><data>01/02/2024 10:00:00</data></field>'
    '<field name="Status"><data>A</data></field>'
    '<field name="Session"><data></data></field>'
    '<relatedset count="2" table="Orders">'
    '<record mod-id="1" record-id="10">'
    '<field name="Orders::Item"><data>Widget</data></field>'
    '<field name="Orders::Qty"><data>2</data></field>'
    '</record>'
    '<record mod-id="0" record-id="11">'
    '<field name="Orders::Item"><data>Gadget</data></field>'
    '<field name="Orders::Qty"><data>5</data></field>'
    '</record>'
    '</relatedset>'
    '</record>'
)

RECORD_2_XML = (
    '<record mod-id="0" record-id="2">'
    '<field name="Name"><data>Grace</data></field>'
    '<field name="Age"><data></data></field>'
    '<field name="Birthday"><data></data></field>'
    '<field name="Phone"><data></data><data></data></field>'
    '<field name="Updated"><data></data></field>'
    '<field name="Status"><data></data></field>'
    '<field name="Session"><data></data></field>'
    '<relatedset count="0" table="Orders"/>'
    '</record>'
)


def fmresultset(records: str = "", count: int = 0, fetch_size: int = 0, error: str = "0",
                version: str = "19.4.2.204", total_count: int = 12) -> bytes:
    """Build an fmresultset document around the canned metadata."""
    return (
        '<?xml version="1.0" encoding="UTF-8" standalone="no"?>'
        '<fmresultset xmlns="http://www.filemaker.com/xml/fmresultset" version="1.0">'
        f'<error code="{error}"/>'
        f'<product build="03/15/2022" name="FileMaker Web Publishing Engine" version="{version}"/>'
        f'<datasource database="Contacts" date-format="MM/dd/yyyy" layout="{LAYOUT}" table="Contacts" '
        f'time-format="HH:mm:ss" timestamp-format="MM/dd/yyyy HH:mm:ss" total-count="{total_count}"/>'
        f'{METADATA_XML}'
        f'<resultset count="{count}" fetch-size="{fetch_size}">{records}</resultset>'
        '</fmresultset>'
    ).encode("utf-8")


VIEW_XML = fmresultset()
RESULT_XML = fmresultset(RECORD_1_XML + RECORD_2_XML, count=2, fetch_size=2)
SINGLE_RESULT_XML = fmresultset(RECORD_1_XML, count=1, fetch_size=1)

FMPXMLLAYOUT_XML = (
    '<?xml version="1.0" encoding="UTF-8" standalone="no"?>'
    '<FMPXMLLAYOUT xmlns="http://www.filemaker.com/fmpxmllayout">'
    '<ERRORCODE>0</ERRORCODE>'
    '<PRODUCT BUILD="03/15/2022" NAME="FileMaker Web Publishing Engine" VERSION="19.4.2.204"/>'
    f'<LAYOUT DATABASE="Contacts" NAME="{LAYOUT}">'
    '<FIELD NAME="Name"><STYLE TYPE="EDITTEXT" VALUELIST=""/></FIELD>'
    '<FIELD NAME="Birthday"><STYLE TYPE="CALENDAR" VALUELIST=""/></FIELD>'
    '<FIELD NAME="Status"><STYLE TYPE="POPUPLIST" VALUELIST="Statuses"/></FIELD>'
    '<FIELD NAME="Orders::Item"><STYLE TYPE="EDITTEXT" VALUELIST=""/></FIELD>'
    '<FIELD NAME="Unknown::Field"><STYLE TYPE="EDITTEXT" VALUELIST=""/></FIELD>'
    '</LAYOUT>'
    '<VALUELISTS>'
    '<VALUELIST NAME="Statuses">'
    '<VALUE DISPLAY="Active">A</VALUE>'
    '<VALUE DISPLAY="Inactive">I</VALUE>'
    '</VALUELIST>'
    '</VALUELISTS>'
    '</FMPXMLLAYOUT>'
).encode("utf-8")


def envelope(response: dict | None = None, code: int = 0, message: str = "OK") -> bytes:
    """Build a Data API JSON envelope."""
    return json.dumps(
        {"response": response or {}, "messages": [{"code": str(code), "message": message}]}
    ).encode("utf-8")


def _meta(name: str, result: str = "text", **extra: object) -> dict:
    meta = {
        "name": name,
        "type": "normal",
        "displayType": "editText",
        "result": result,
        "global": False,
        "autoEnter": False,
        "fourDigitYear": False,
        "maxRepeat": 1,
        "maxCharacters": 0,
        "notEmpty": False,
        "numeric": False,
        "timeOfDay": False,
        "repetitionStart": 1,
        "repetitionEnd": 1,
    }
    meta.update(extra)
    return meta


METADATA_JSON = envelope(
    {
        "fieldMetaData": [
            _meta("Name", notEmpty=True, maxCharacters=50),
            _meta("Age", "number", numeric=True),
            _meta("Birthday", "date", displayType="calendar"),
            _meta("Phone", maxRepeat=2),
            _meta("Updated", "timestamp", autoEnter=True),
            _meta("Status", displayType="popupList", valueList="Statuses"),
            _meta("Session", **{"global": True}),
        ],
        "portalMetaData": {
            "Orders": [
                _meta("Orders::Item"),
                _meta("Orders::Qty", "number", numeric=True),
            ]
        },
        "valueLists": [
            {
                "name": "Statuses",
                "type": "customList",
                "values": [
                    {"value": "A", "displayValue": "Active"},
                    {"value": "I", "displayValue": "Inactive"},
                ],
            }
        ],
    }
)

RECORD_1_JSON = {
    "fieldData": {
        "Name": "Ada & Co",
        "Age": 36,
        "Birthday": "12/10/1985",
        "Phone": "555-1000",
        "Phone(2)": "555-2000",
        "Updated": "01/02/2024 10:00:00",
        "Status": "A",
        "Session": "",
    },
    "portalData": {
        "Orders": [
            {"recordId": "10", "Orders::Item": "Widget", "Orders::Qty": 2, "modId": "1"},
            {"recordId": "11", "Orders::Item": "Gadget", "Orders::Qty": 5, "modId": "0"},
        ]
    },
    "recordId": "1",
    "modId": "3",
}

RECORD_2_JSON = {
    "fieldData": {
        "Name": "Grace",
        "Age": "",
        "Birthday": "",
        "Phone": "",
        "Phone(2)": "",
        "Updated": "",
        "Status": "",
        "Session": "",
    },
    "portalData": {"Orders": []},
    "recordId": "2",
    "modId": "0",
}


def records_json(*records: dict, total: int = 12) -> bytes:
    return envelope(
        {
            "dataInfo": {
                "database": "Contacts",
                "layout": LAYOUT,
                "table": "Contacts",
                "totalRecordCount": total,
                "foundCount": len(records),
                "returnedCount": len(records),
            },
            "data": list(records),
        }
    )


RESULT_JSON = records_json(RECORD_1_JSON, RECORD_2_JSON)
SINGLE_RESULT_JSON = records_json(RECORD_1_JSON)


def make_settings(**overrides: object) -> Settings:
    values: dict[str, object] = {
        "fm_host": "fm.example.com",
        "fm_database": "Contacts",
        "fm_username": "admin",
        "fm_password": "secret",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def xml_transport() -> MagicMock:
    """Fake XML transport: ``-view`` returns metadata, other requests ``result_doc``."""
    transport = MagicMock()
    transport.result_doc = RESULT_XML

    def execute(params, grammar=FMRESULTSET):
        if grammar == FMPXMLLAYOUT:
            return FMPXMLLAYOUT_XML
        if "-view" in params:
            return VIEW_XML
        return transport.result_doc

    transport.execute.side_effect = execute
    return transport


@pytest.fixture
def fm(xml_transport: MagicMock) -> FileMaker:
    """XML grammar client over the fake transport."""
    return FileMaker(settings=make_settings(), transport=xml_transport)


def sent_params(transport: MagicMock) -> list[dict]:
    """Parameter dicts sent to a fake XML transport, excluding layout fetches."""
    return [
        call.args[0]
        for call in transport.execute.call_args_list
        if "-view" not in call.args[0]
    ]


@pytest.fixture
def data_api_transport() -> MagicMock:
    """Fake Data API transport routing on (method, uri).

    Assign ``transport.routes[(method, uri)] = bytes`` to override a reply.
    """
    transport = MagicMock()
    transport.routes = {
        ("GET", ENDPOINT_METADATA): METADATA_JSON,
        ("GET", ENDPOINT_RECORDS): SINGLE_RESULT_JSON,
        ("GET", ENDPOINT_RECORD): SINGLE_RESULT_JSON,
        ("POST", ENDPOINT_FIND): RESULT_JSON,
        ("POST", ENDPOINT_RECORDS): envelope({"recordId": "1", "modId": "0"}),
        ("POST", ENDPOINT_RECORD): envelope({"recordId": "1", "modId": "0"}),
        ("PATCH", ENDPOINT_RECORD): envelope({"modId": "4"}),
        ("DELETE", ENDPOINT_RECORD): envelope({}),
        ("PATCH", ENDPOINT_GLOBALS): envelope({}),
    }

    def execute(query):
        return transport.routes[(query.method, query.uri)]

    transport.execute.side_effect = execute
    return transport


@pytest.fixture
def fm_data_api(data_api_transport: MagicMock) -> FileMaker:
    """Data API grammar client over the fake transport."""
    return FileMaker(settings=make_settings(fm_use_data_api=True), transport=data_api_transport)


def sent_queries(transport: MagicMock) -> list:
    return [call.args[0] for call in transport.execute.call_args_list]
