"""Tests for the XML and Data API HTTP transports."""

import json

import httpx
import pytest

from filemaker_client.data_api import ENDPOINT_FIND, ENDPOINT_RECORDS, DataApiQuery
from filemaker_client.errors import ServerProtocolError, TransportError
from filemaker_client.transport import (
    DataApiTransport,
    XmlTransport,
    encode_form,
    footprint,
    handle_request_error,
    strip_prolog_garbage,
)

from conftest import make_settings


def mock_client(handler, base_url: str) -> httpx.Client:
    return httpx.Client(base_url=base_url, transport=httpx.MockTransport(handler))


def json_response(payload: dict, status: int = 200) -> httpx.Response:
    return httpx.Response(status, json=payload)


def ok(response: dict | None = None) -> dict:
    return {"response": response or {}, "messages": [{"code": "0", "message": "OK"}]}


class TestEncoding:
    def test_flags_have_no_value(self) -> None:
        encoded = encode_form({"-db": "Contacts", "-lay": "Contact Detail", "-findall": True})
        assert encoded == "-db=Contacts&-lay=Contact+Detail&-findall"

    def test_none_is_skipped(self) -> None:
        assert encode_form({"-db": "A", "-lay": None}) == "-db=A"

    def test_special_characters(self) -> None:
        assert encode_form({"Name(1)": "a&b=c"}) == "Name%281%29=a%26b%3Dc"

    def test_charset(self) -> None:
        assert encode_form({"Name": "é"}, "iso-8859-1") == "Name=%E9"
        assert encode_form({"Name": "é"}) == "Name=%C3%A9"

    def test_footprint_masks_query_values(self) -> None:
        printed = footprint({"-q1": "Name", "-q1.value": "secret", "-findquery": True})
        assert "secret" not in printed
        assert "-q1=Name" in printed

    def test_strip_prolog_garbage(self) -> None:
        assert strip_prolog_garbage(b"\r\n  <?xml version='1.0'?><a/>") == b"<?xml version='1.0'?><a/>"
        assert strip_prolog_garbage(b"<?xml?><a/>") == b"<?xml?><a/>"
        assert strip_prolog_garbage(b"{}") == b"{}"


class TestHandleRequestError:
    def _status_error(self, status: int) -> httpx.HTTPStatusError:
        request = httpx.Request("POST", "https://fm.example.com/fmi/xml/fmresultset.xml")
        response = httpx.Response(status, text="nope", request=request)
        return httpx.HTTPStatusError("error", request=request, response=response)

    def test_auth_failure(self) -> None:
        with pytest.raises(TransportError, match="Authentication failed for FM user 'admin'") as exc_info:
            handle_request_error(self._status_error(401), make_settings(), "/fmresultset.xml")
        assert exc_info.value.status_code == 401

    def test_not_found(self) -> None:
        with pytest.raises(TransportError, match="web publishing") as exc_info:
            handle_request_error(self._status_error(404), make_settings(), "/fmresultset.xml")
        assert exc_info.value.status_code == 404

    def test_other_status(self) -> None:
        with pytest.raises(TransportError) as exc_info:
            handle_request_error(self._status_error(503), make_settings(), "/fmresultset.xml")
        assert exc_info.value.status_code == 503

    def test_connect_error(self) -> None:
        with pytest.raises(TransportError, match="Cannot connect"):
            handle_request_error(httpx.ConnectError("refused"), make_settings(), "/x")

    def test_timeout(self) -> None:
        with pytest.raises(TransportError, match="timed out"):
            handle_request_error(httpx.ReadTimeout("slow"), make_settings(), "/x")

    def test_non_http_errors_propagate(self) -> None:
        with pytest.raises(KeyError):
            handle_request_error(KeyError("x"), make_settings(), "/x")


class TestXmlTransport:
    def test_posts_form_to_grammar_path(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, content=b"\n<?xml version='1.0'?><fmresultset/>")

        settings = make_settings()
        transport = XmlTransport(settings, mock_client(handler, settings.xml_base_url))
        body = transport.execute({"-db": "Contacts", "-findall": True})
        assert body == b"<?xml version='1.0'?><fmresultset/>"
        assert seen[0].method == "POST"
        assert seen[0].url.path == "/fmi/xml/fmresultset.xml"
        assert seen[0].content == b"-db=Contacts&-findall"

    def test_layout_grammar(self) -> None:
        paths: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            paths.append(request.url.path)
            return httpx.Response(200, content=b"<?xml?><FMPXMLLAYOUT/>")

        settings = make_settings()
        XmlTransport(settings, mock_client(handler, settings.xml_base_url)).execute({"-view": True}, "FMPXMLLAYOUT")
        assert paths == ["/fmi/xml/FMPXMLLAYOUT.xml"]

    def test_http_error(self) -> None:
        settings = make_settings()
        client = mock_client(lambda request: httpx.Response(401), settings.xml_base_url)
        with pytest.raises(TransportError) as exc_info:
            XmlTransport(settings, client).execute({"-dbnames": True})
        assert exc_info.value.status_code == 401

    def test_connection_refused(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        settings = make_settings()
        with pytest.raises(TransportError, match="Cannot connect"):
            XmlTransport(settings, mock_client(handler, settings.xml_base_url)).execute({"-dbnames": True})

    def test_default_client_configuration(self) -> None:
        transport = XmlTransport(make_settings(fm_timeout=5))
        client = transport._get_client()
        assert str(client.base_url) == "https://fm.example.com/fmi/xml/"
        assert client.headers["X-FMI-PE-ExtendedPrivilege"] == "IrG6U+Rx0F5bLIQCUb9gOw=="
        transport.close()
        assert client.is_closed


class FakeDataApi:
    """Records requests and hands out session tokens."""

    def __init__(self, expire_first: bool = False) -> None:
        self.requests: list[httpx.Request] = []
        self.logins = 0
        self.expire_first = expire_first

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path.endswith("/sessions") and request.method == "POST":
            self.logins += 1
            return json_response(ok({"token": f"T{self.logins}"}))
        if "/sessions/" in path:
            return json_response(ok())
        if self.expire_first and request.headers.get("Authorization") == "Bearer T1":
            return json_response({"response": {}, "messages": [{"code": "952", "message": "Invalid token"}]}, 401)
        return json_response(ok({"dataInfo": {}, "data": []}))


def find_query() -> DataApiQuery:
    return DataApiQuery(
        "POST",
        ENDPOINT_FIND,
        {"database": "Contacts", "layout": "Contact Detail"},
        body={"query": [{"Name": "Ada"}]},
    )


class TestDataApiTransport:
    def _transport(self, api: FakeDataApi) -> DataApiTransport:
        settings = make_settings(fm_use_data_api=True)
        return DataApiTransport(settings, mock_client(api, settings.data_api_base_url))

    def test_logs_in_once(self) -> None:
        api = FakeDataApi()
        transport = self._transport(api)
        transport.execute(find_query())
        transport.execute(find_query())
        assert api.logins == 1
        login, first, _ = api.requests
        assert login.url.path == "/fmi/data/vLatest/databases/Contacts/sessions"
        assert login.headers["Authorization"].startswith("Basic ")
        assert first.headers["Authorization"] == "Bearer T1"
        assert first.url.raw_path == b"/fmi/data/vLatest/databases/Contacts/layouts/Contact%20Detail/_find"
        assert json.loads(first.content) == {"query": [{"Name": "Ada"}]}

    def test_relogin_on_invalid_token(self) -> None:
        api = FakeDataApi(expire_first=True)
        transport = self._transport(api)
        body = transport.execute(find_query())
        assert json.loads(body)["messages"][0]["code"] == "0"
        assert api.logins == 2
        assert transport.token == "T2"
        assert api.requests[-1].headers["Authorization"] == "Bearer T2"

    def test_query_params(self) -> None:
        api = FakeDataApi()
        query = DataApiQuery(
            "GET",
            ENDPOINT_RECORDS,
            {"database": "Contacts", "layout": "Contact Detail"},
            query_params={"_limit": 1},
        )
        self._transport(api).execute(query)
        assert api.requests[-1].url.params["_limit"] == "1"
        assert api.requests[-1].content == b""

    def test_unauthenticated_query_skips_login(self) -> None:
        api = FakeDataApi()
        self._transport(api).execute(DataApiQuery("GET", "/databases", authenticated=False))
        assert api.logins == 0
        assert "Authorization" not in api.requests[0].headers

    def test_error_envelope_is_returned(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/sessions"):
                return json_response(ok({"token": "T1"}))
            return json_response({"response": {}, "messages": [{"code": "105", "message": "Layout is missing"}]}, 500)

        settings = make_settings(fm_use_data_api=True)
        transport = DataApiTransport(settings, mock_client(handler, settings.data_api_base_url))
        body = transport.execute(find_query())
        assert json.loads(body)["messages"][0]["code"] == "105"

    def test_non_json_error_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(502, text="Bad gateway")

        settings = make_settings(fm_use_data_api=True)
        transport = DataApiTransport(settings, mock_client(handler, settings.data_api_base_url))
        with pytest.raises(TransportError) as exc_info:
            transport.execute(find_query())
        assert exc_info.value.status_code == 502

    def test_rejected_login(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return json_response({"response": {}, "messages": [{"code": "212", "message": "Invalid user account"}]}, 401)

        settings = make_settings(fm_use_data_api=True)
        transport = DataApiTransport(settings, mock_client(handler, settings.data_api_base_url))
        with pytest.raises(ServerProtocolError) as exc_info:
            transport.login()
        assert exc_info.value.code == 212

    def test_close_logs_out(self) -> None:
        api = FakeDataApi()
        transport = self._transport(api)
        transport.login()
        transport.close()
        assert api.requests[-1].method == "DELETE"
        assert api.requests[-1].url.path.endswith("/sessions/T1")
        assert transport.token is None

    def test_database_name_with_space_in_session_paths(self) -> None:
        api = FakeDataApi()
        settings = make_settings(fm_use_data_api=True, fm_database="Contacts Demo")
        transport = DataApiTransport(settings, mock_client(api, settings.data_api_base_url))
        transport.login()
        transport.close()
        login, logout = api.requests
        assert login.url.raw_path == b"/fmi/data/vLatest/databases/Contacts%20Demo/sessions"
        assert logout.method == "DELETE"
        assert logout.url.raw_path == b"/fmi/data/vLatest/databases/Contacts%20Demo/sessions/T1"
