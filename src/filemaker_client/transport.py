"""HTTP transports for the two FileMaker grammars.

``XmlTransport`` posts CWP parameters to the XML gateway.
``DataApiTransport`` sends translated Data API calls and manages the
session token. Both return the raw response body; parsing happens in the
client.
"""

from __future__ import annotations

import json
import logging
from typing import Any, NoReturn
from urllib.parse import quote_plus

import httpx

from filemaker_client.config import Settings
from filemaker_client.constants import (
    EXTENDED_PRIVILEGE_HEADER,
    EXTENDED_PRIVILEGE_VALUE,
    FMRESULTSET,
)
from filemaker_client.data_api import ENDPOINT_LOGIN, ENDPOINT_LOGOUT, DataApiQuery
from filemaker_client.errors import ServerProtocolError, TransportError
from filemaker_client.parsers.data_api import envelope_error

logger = logging.getLogger(__name__)

# Data API code for an expired or unknown session token.
INVALID_TOKEN_CODE = 952


def encode_form(params: dict[str, Any], charset: str = "utf-8") -> str:
    """URL-encode parameters; flag parameters (``True``) are sent without ``=``."""
    parts = []
    for key, value in params.items():
        if value is None:
            continue
        name = quote_plus(key, encoding=charset)
        if value is True:
            parts.append(name)
        else:
            parts.append(f"{name}={quote_plus(str(value), encoding=charset)}")
    return "&".join(parts)


def footprint(params: dict[str, Any]) -> str:
    """Parameters for logging, with find values masked."""
    masked = {}
    for key, value in params.items():
        if key.startswith("-q") and key.endswith(".value"):
            value = "***"
        masked[key] = value
    return encode_form(masked)


def strip_prolog_garbage(body: bytes) -> bytes:
    """Drop anything the server emitted before the XML declaration."""
    start = body.find(b"<?xml")
    return body[start:] if start > 0 else body


def handle_request_error(e: Exception, settings: Settings, path: str) -> NoReturn:
    """Map httpx errors onto ``TransportError``.

    Raises:
        TransportError: Always; ``status_code`` is set for HTTP errors.
    """
    if isinstance(e, httpx.ConnectError):
        logger.error("Cannot connect to FM Server at %s: %s", settings.fm_host, e)
        raise TransportError(
            f"Cannot connect to FileMaker Server at {settings.fm_host}. "
            "Verify the server is running and accessible."
        ) from e

    if isinstance(e, httpx.TimeoutException):
        logger.error("Request to %s timed out after %ss", path, settings.fm_timeout)
        raise TransportError(f"Request to FileMaker Server timed out: {path}") from e

    if isinstance(e, httpx.HTTPStatusError):
        status = e.response.status_code
        if status == 401:
            logger.error("Authentication failed for user %s", settings.fm_username)
            raise TransportError(
                f"Authentication failed for FM user '{settings.fm_username}'. "
                "Check credentials and extended privileges.",
                status_code=status,
            ) from e
        if status == 404:
            logger.error("Resource not found: %s", path)
            raise TransportError(
                f"Resource not found: '{path}'. Verify that web publishing is enabled.",
                status_code=status,
            ) from e
        logger.error("FM HTTP error %d: %s", status, e.response.text[:500])
        raise TransportError(f"FileMaker Server HTTP error ({status})", status_code=status) from e

    if isinstance(e, httpx.HTTPError):
        logger.error("HTTP error talking to %s: %s", path, e)
        raise TransportError(f"HTTP error talking to FileMaker Server: {e}") from e

    raise e


class XmlTransport:
    """Sends CWP requests to ``/fmi/xml/{grammar}.xml`` with Basic auth."""

    def __init__(self, settings: Settings, client: httpx.Client | None = None) -> None:
        self.settings = settings
        self._client = client

    def _get_client(self) -> httpx.Client:
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                base_url=self.settings.xml_base_url,
                auth=self.settings.basic_auth,
                verify=self.settings.fm_verify_ssl,
                timeout=self.settings.fm_timeout,
                headers={
                    EXTENDED_PRIVILEGE_HEADER: EXTENDED_PRIVILEGE_VALUE,
                    "Content-Type": "application/x-www-form-urlencoded",
                },
            )
        return self._client

    def execute(self, params: dict[str, Any], grammar: str = FMRESULTSET) -> bytes:
        """POST ``params`` and return the XML body.

        Raises:
            TransportError: On connection failure or HTTP error status.
        """
        path = f"/{grammar}.xml"
        logger.info("Perform request: %s%s", self.settings.xml_base_url, path)
        logger.debug("Request parameters: %s", footprint(params))
        client = self._get_client()
        try:
            response = client.post(path, content=encode_form(params, self.settings.fm_charset))
            response.raise_for_status()
        except httpx.HTTPError as e:
            handle_request_error(e, self.settings, path)
        return strip_prolog_garbage(response.content)

    def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            self._client.close()


class DataApiTransport:
    """Sends Data API calls with a bearer session token.

    Logs in on first use and once more if the server reports the token as
    invalid (code 952). Error envelopes are returned to the caller for
    parsing; only non-JSON HTTP failures raise here.
    """

    def __init__(self, settings: Settings, client: httpx.Client | None = None) -> None:
        self.settings = settings
        self._client = client
        self.token: str | None = None

    def _get_client(self) -> httpx.Client:
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                base_url=self.settings.data_api_base_url,
                verify=self.settings.fm_verify_ssl,
                timeout=self.settings.fm_timeout,
                headers={"Accept": "application/json"},
            )
        return self._client

    def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        client = self._get_client()
        try:
            response = client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            handle_request_error(e, self.settings, path)
        if response.status_code >= 400 and not _is_json(response):
            try:
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                handle_request_error(e, self.settings, path)
        return response

    def login(self) -> str:
        """Open a session and remember its token.

        Raises:
            ServerProtocolError: If the server rejects the credentials.
        """
        path = DataApiQuery("POST", ENDPOINT_LOGIN, {"database": self.settings.fm_database}).path()
        logger.info("Opening Data API session on %s", self.settings.fm_database)
        response = self._send("POST", path, auth=self.settings.basic_auth, json={})
        envelope = _envelope(response)
        code, message = envelope_error(envelope)
        if code:
            raise ServerProtocolError(code, message or None)
        token = (envelope.get("response") or {}).get("token") or response.headers.get(
            "X-FM-Data-Access-Token"
        )
        if not token:
            raise TransportError("Data API login returned no session token.")
        self.token = token
        return token

    def logout(self) -> None:
        if self.token is None:
            return
        path = DataApiQuery(
            "DELETE",
            ENDPOINT_LOGOUT,
            {"database": self.settings.fm_database, "sessionToken": self.token},
        ).path()
        try:
            self._send("DELETE", path)
        finally:
            self.token = None

    def _request(self, query: DataApiQuery) -> httpx.Response:
        headers = {}
        if query.authenticated:
            headers["Authorization"] = f"Bearer {self.token}"
        kwargs: dict[str, Any] = {"headers": headers}
        if query.query_params:
            kwargs["params"] = query.query_params
        if query.body is not None or query.method in ("POST", "PATCH"):
            kwargs["json"] = query.body or {}
        return self._send(query.method, query.path(), **kwargs)

    def execute(self, query: DataApiQuery) -> bytes:
        """Send ``query`` and return the JSON body.

        Raises:
            TransportError: On connection failure or a non-JSON HTTP error.
        """
        logger.info("Perform request: %s %s%s", query.method, self.settings.data_api_base_url, query.path())
        logger.debug("Request query=%s body=%s", query.query_params, query.body)
        if query.authenticated and self.token is None:
            self.login()
        response = self._request(query)
        if query.authenticated and envelope_error(_envelope(response))[0] == INVALID_TOKEN_CODE:
            logger.info("Data API session expired, logging in again")
            self.token = None
            self.login()
            response = self._request(query)
        return response.content

    def close(self) -> None:
        try:
            self.logout()
        finally:
            if self._client is not None and not self._client.is_closed:
                self._client.close()


def _is_json(response: httpx.Response) -> bool:
    return "json" in response.headers.get("Content-Type", "")


def _envelope(response: httpx.Response) -> dict[str, Any]:
    try:
        envelope = json.loads(response.content or b"{}")
    except ValueError:
        return {}
    return envelope if isinstance(envelope, dict) else {}

