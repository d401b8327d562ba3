"""The ``FileMaker`` client facade.

Owns the settings, the transport for the configured grammar and a layout
cache. Commands are created through the ``new_*`` factories and call back
into ``execute`` and ``build_result``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any, TypeVar

from filemaker_client import config
from filemaker_client.cache import LayoutCache
from filemaker_client.commands import (
    Add,
    CompoundFind,
    Delete,
    Duplicate,
    Edit,
    Find,
    FindAll,
    FindAny,
    FindRequest,
    PerformScript,
)
from filemaker_client.config import ConnectionConfig, Settings
from filemaker_client.constants import FMPXMLLAYOUT, FMRESULTSET
from filemaker_client.data_api import (
    global_fields_query,
    parse_global_fields,
    qualify_globals,
    translate,
)
from filemaker_client.errors import FileMakerError
from filemaker_client.layout import Layout
from filemaker_client.materializer import RecordFactory, set_extended_info, set_layout, set_result
from filemaker_client.parsers import (
    DataApiParser,
    FMPXMLLayoutParser,
    FMResultSetParser,
    ParsedResponse,
    ResponseParser,
)
from filemaker_client.record import Record
from filemaker_client.result import Result
from filemaker_client.transport import DataApiTransport, XmlTransport

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Parameters only the Data API translator understands.
_DATA_API_ONLY_PARAMS = ("-relatedSet",)


class FileMaker:
    """Connection to one FileMaker database.

    Args:
        database: Database name; overrides ``FM_DATABASE``.
        host: Server URL or host name; overrides ``FM_HOST``.
        username: Account name; overrides ``FM_USERNAME``.
        password: Password; overrides ``FM_PASSWORD``.
        settings: Base settings, defaults to the environment.
        transport: Custom transport (``execute``/``close``), mainly for tests.
        record_class: Factory for records built from responses.
        **options: Any other ``Settings`` field, e.g. ``fm_use_data_api=True``.
    """

    def __init__(
        self,
        database: str | None = None,
        host: str | None = None,
        username: str | None = None,
        password: str | None = None,
        *,
        settings: Settings | None = None,
        transport: Any = None,
        record_class: RecordFactory = Record,
        **options: Any,
    ) -> None:
        base = settings or config.settings
        overrides = {
            key: value
            for key, value in (
                ("fm_database", database),
                ("fm_host", host),
                ("fm_username", username),
                ("fm_password", password),
            )
            if value is not None
        }
        overrides.update(options)
        self.settings = base.model_copy(update=overrides) if overrides else base
        self.record_class = record_class
        self.layout_cache = LayoutCache()
        self._scripts: list[str] | None = None
        if transport is None:
            transport = DataApiTransport(self.settings) if self.uses_data_api else XmlTransport(self.settings)
        self.transport = transport

    @classmethod
    def from_connection(cls, connection: ConnectionConfig, **options: Any) -> FileMaker:
        """Client for a connection found by a ``CredentialProvider``."""
        return cls(settings=connection.to_settings(), **options)

    def __repr__(self) -> str:
        grammar = "data-api" if self.uses_data_api else "xml"
        return f"FileMaker(host={self.settings.fm_host!r}, database={self.settings.fm_database!r}, grammar={grammar})"

    def __enter__(self) -> FileMaker:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self.transport.close()

    @property
    def uses_data_api(self) -> bool:
        return self.settings.fm_use_data_api

    # --- Error handling ---

    def call(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T | FileMakerError:
        """Run ``fn``; with ``fm_error_handling="return"`` errors are returned.

        Lets code written against the return-the-error convention use the
        client without wrapping every call in ``try``.
        """
        try:
            return fn(*args, **kwargs)
        except FileMakerError as e:
            if self.settings.fm_error_handling == "return":
                logger.info("Returning error instead of raising: %s", e)
                return e
            raise

    @staticmethod
    def is_error(value: Any) -> bool:
        return isinstance(value, FileMakerError)

    # --- Request / response plumbing ---

    def parser(self) -> ResponseParser:
        return DataApiParser() if self.uses_data_api else FMResultSetParser()

    def parse_response(self, raw: bytes | str) -> ParsedResponse:
        return self.parser().parse(raw)

    def execute(self, params: dict[str, Any], grammar: str = FMRESULTSET) -> bytes:
        """Send flat request parameters with the configured grammar.

        Under the Data API, ``name.global`` parameters are assigned through
        the globals endpoint before the request and cleared afterwards.
        """
        if not self.uses_data_api:
            request = {k: v for k, v in params.items() if k not in _DATA_API_ONLY_PARAMS}
            return self.transport.execute(request, grammar)

        query = translate(params)
        global_fields = parse_global_fields(params)
        if not global_fields:
            return self.transport.execute(query)

        table = self.get_layout(params["-lay"]).table
        qualified = qualify_globals(global_fields, table)
        database = self.settings.fm_database
        self.transport.execute(global_fields_query(database, qualified))
        try:
            return self.transport.execute(query)
        finally:
            self.transport.execute(global_fields_query(database, {name: "" for name in qualified}))

    def build_result(
        self,
        raw: bytes | str,
        record_factory: RecordFactory | None = None,
        *,
        layout_name: str | None = None,
        reread: bool = False,
        reread_id: str | None = None,
    ) -> Result:
        """Parse a response and materialize its layout and records.

        Data API writes only return ids, so with ``reread`` the affected
        record is fetched again to give the same Result as the XML grammar.
        """
        response = self.parse_response(raw)
        factory = record_factory or self.record_class

        if not self.uses_data_api:
            layout = set_layout(response, Layout(self))
            return set_result(response, layout, factory)

        if reread and layout_name:
            record_id = response.record_id or reread_id
            if record_id:
                return self._find_by_id(layout_name, record_id, factory)

        head = response.head
        if head is None or (not head.layout and not response.records):
            result = Result(self.layout_cache.get(layout_name) if layout_name else None)
            result.script_result = response.script_result
            return result

        layout = self.get_layout(head.layout or layout_name)
        set_layout(response, layout)
        return set_result(response, layout, factory)

    # --- Layouts ---

    def get_layout(self, name: str, record_id: str | None = None) -> Layout:
        """Layout metadata, cached by name unless a record id is given."""
        if record_id is None:
            return self.layout_cache.get_or_populate(name, lambda: self._fetch_layout(name))
        return self._fetch_layout(name, record_id)

    def _view_params(self, name: str, record_id: str | None = None) -> dict[str, Any]:
        request: dict[str, Any] = {"-db": self.settings.fm_database, "-lay": name}
        if record_id is not None:
            request["-recid"] = record_id
        request["-view"] = True
        return request

    def _fetch_layout(self, name: str, record_id: str | None = None) -> Layout:
        logger.debug("Fetching layout %s", name)
        response = self.parse_response(self.execute(self._view_params(name, record_id)))
        layout = set_layout(response, Layout(self, name))
        if self.uses_data_api:
            # Metadata omits the table; read it from a one-record found set.
            layout.name = name
            layout.database = self.settings.fm_database
            probe = {"-db": self.settings.fm_database, "-lay": name, "-findall": True, "-max": 1}
            head = self.parse_response(self.execute(probe)).head
            if head is not None and head.table:
                layout.table = head.table
        return layout

    def load_extended_info(self, layout: Layout, record_id: str | None = None) -> Layout:
        """Fetch value lists and control styles into ``layout``."""
        request = self._view_params(layout.name, record_id)
        if self.uses_data_api:
            response = DataApiParser().parse(self.execute(request))
        else:
            response = FMPXMLLayoutParser().parse(self.execute(request, FMPXMLLAYOUT))
        return set_extended_info(response, layout)

    # --- Listings ---

    def _names(self, request: dict[str, Any], field: str) -> list[str]:
        response = self.parse_response(self.execute(request))
        if self.uses_data_api:
            return response.names
        return [record.fields[field][0] for record in response.records if record.fields.get(field)]

    def list_databases(self) -> list[str]:
        return self._names({"-dbnames": True}, "DATABASE_NAME")

    def list_layouts(self) -> list[str]:
        """Layout names; Data API layout folders are flattened."""
        return self._names({"-db": self.settings.fm_database, "-layoutnames": True}, "LAYOUT_NAME")

    def list_scripts(self) -> list[str]:
        """Script names, fetched once per client; folders are skipped."""
        if self._scripts is None:
            self._scripts = self._names(
                {"-db": self.settings.fm_database, "-scriptnames": True}, "SCRIPT_NAME"
            )
        return self._scripts

    # --- Records ---

    def _find_by_id(self, layout: str, record_id: str, record_factory: RecordFactory) -> Result:
        command = Find(self, layout)
        command.set_record_id(record_id)
        command.set_record_class(record_factory)
        return command.execute()

    def get_record_by_id(self, layout: str, record_id: str | int) -> Any:
        """Fetch one record.

        Raises:
            ServerProtocolError: If the record does not exist (code 101/401).
            CommandError: If the server returned no record.
        """
        return self._find_by_id(layout, str(record_id), self.record_class).get_first_record()

    def create_record(self, layout: str, values: Mapping[str, Any] | None = None) -> Any:
        """New, uncommitted record; call ``commit()`` to save it."""
        record = self.record_class(self.get_layout(layout))
        for name, value in (values or {}).items():
            if isinstance(value, (list, tuple)):
                for repetition, item in enumerate(value):
                    record.set_field(name, item, repetition)
            else:
                record.set_field(name, value)
        return record

    # --- Command factories ---

    def new_add_command(self, layout: str, values: Mapping[str, Any] | None = None) -> Add:
        return Add(self, layout, values)

    def new_edit_command(
        self, layout: str, record_id: str | int | None = None, values: Mapping[str, Any] | None = None
    ) -> Edit:
        return Edit(self, layout, record_id, values)

    def new_delete_command(self, layout: str, record_id: str | int | None = None) -> Delete:
        return Delete(self, layout, record_id)

    def new_duplicate_command(self, layout: str, record_id: str | int | None = None) -> Duplicate:
        return Duplicate(self, layout, record_id)

    def new_find_command(self, layout: str) -> Find:
        return Find(self, layout)

    def new_compound_find_command(self, layout: str) -> CompoundFind:
        return CompoundFind(self, layout)

    def new_find_request(self, layout: str) -> FindRequest:
        return FindRequest(self, layout)

    def new_find_any_command(self, layout: str) -> FindAny:
        return FindAny(self, layout)

    def new_find_all_command(self, layout: str) -> FindAll:
        return FindAll(self, layout)

    def new_perform_script_command(self, layout: str, script: str, parameters: Any = None) -> PerformScript:
        return PerformScript(self, layout, script, parameters)
