"""Commands: the high-level request model.

A command collects state through setters, turns it into flat request
parameters with ``filemaker_client.params`` and hands them to the client,
which picks the grammar and returns a ``Result``.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from datetime import datetime
from typing import TYPE_CHECKING, Any

from filemaker_client import dates, params
from filemaker_client.constants import (
    FIND_AND,
    FIND_OR,
    WIRE_DATE_FORMAT,
    WIRE_TIME_FORMAT,
    WIRE_TIMESTAMP_FORMAT,
)
from filemaker_client.errors import CommandError, ValidationFailure
from filemaker_client.validation import validate_value

if TYPE_CHECKING:
    from filemaker_client.client import FileMaker
    from filemaker_client.layout import Layout
    from filemaker_client.materializer import RecordFactory
    from filemaker_client.result import Result

logger = logging.getLogger(__name__)

_TIMESTAMP_FORMATS = {
    "date": WIRE_DATE_FORMAT,
    "time": WIRE_TIME_FORMAT,
    "timestamp": WIRE_TIMESTAMP_FORMAT,
}


def normalize_values(values: Mapping[str, Any] | None) -> dict[str, dict[int, Any]]:
    """Field values as ``{field: {repetition: value}}``.

    Accepts a scalar (first repetition), a list (one entry per repetition)
    or an already indexed dict for each field.
    """
    normalized: dict[str, dict[int, Any]] = {}
    for name, value in (values or {}).items():
        if isinstance(value, Mapping):
            normalized[name] = {int(rep): v for rep, v in value.items()}
        elif isinstance(value, (list, tuple)):
            normalized[name] = dict(enumerate(value))
        else:
            normalized[name] = {0: value}
    return normalized


class Command(ABC):
    """Base for every command: target layout, scripts, globals, record class."""

    def __init__(self, fm: FileMaker, layout: str) -> None:
        self.fm = fm
        self.layout = layout
        self.record_id: str | None = None
        self._result_layout: str | None = None
        self._script: tuple[str, Any] | None = None
        self._pre_command_script: tuple[str, Any] | None = None
        self._pre_sort_script: tuple[str, Any] | None = None
        self._globals: dict[str, Any] = {}
        self._record_factory: RecordFactory = fm.record_class

    def get_layout(self) -> Layout:
        return self.fm.get_layout(self.layout)

    def set_result_layout(self, layout: str) -> Command:
        """Return records through another layout than the one searched."""
        self._result_layout = layout
        return self

    def set_script(self, name: str, parameters: Any = None) -> Command:
        """Script run after the command."""
        self._script = (name, parameters)
        return self

    def set_pre_command_script(self, name: str, parameters: Any = None) -> Command:
        self._pre_command_script = (name, parameters)
        return self

    def set_pre_sort_script(self, name: str, parameters: Any = None) -> Command:
        self._pre_sort_script = (name, parameters)
        return self

    def set_record_class(self, factory: RecordFactory) -> Command:
        self._record_factory = factory
        return self

    def set_record_id(self, record_id: str | int | None) -> Command:
        self.record_id = str(record_id) if record_id is not None else None
        return self

    def set_global(self, field: str, value: Any) -> Command:
        """Assign a global field for the duration of the request."""
        self._globals[field] = value
        return self

    def validate(self, field_name: str | None = None) -> bool:
        return True

    def command_params(self) -> params.Params:
        return params.command_params(
            self.fm.settings.fm_database,
            self.layout,
            result_layout=self._result_layout,
            script=self._script,
            pre_find_script=self._pre_command_script,
            pre_sort_script=self._pre_sort_script,
            global_fields=self._globals,
        )

    def _run(self, request: params.Params, reread_id: str | None = None, reread: bool = False) -> Result:
        raw = self.fm.execute(request)
        return self.fm.build_result(
            raw,
            self._record_factory,
            layout_name=self.layout,
            reread=reread,
            reread_id=reread_id,
        )

    @abstractmethod
    def execute(self) -> Result:
        """Send the request and return its Result."""


class _FieldCommand(Command):
    """Commands that write field values (Add, Edit)."""

    def __init__(self, fm: FileMaker, layout: str, values: Mapping[str, Any] | None = None) -> None:
        super().__init__(fm, layout)
        self._fields = normalize_values(values)

    def set_field(self, field: str, value: Any, repetition: int = 0) -> Any:
        """Set a field value; dates are converted from ``fm_date_format``.

        Raises:
            FieldNotFoundError: If the field is not on the layout.
            DateFormatError: If a date does not match the configured format.
        """
        definition = self.get_layout().resolve_field(field)
        date_format = self.fm.settings.fm_date_format
        if value and isinstance(value, str) and date_format:
            value = dates.to_wire(value, definition.result, date_format)
        self._fields.setdefault(field, {})[repetition] = value
        return value

    def set_field_from_timestamp(self, field: str, timestamp: float, repetition: int = 0) -> str:
        """Set a date, time or timestamp field from a unix timestamp."""
        definition = self.get_layout().resolve_field(field)
        if definition.result not in _TIMESTAMP_FORMATS:
            raise CommandError("Only time, date, and timestamp fields can be set to the value of a timestamp.")
        value = datetime.fromtimestamp(timestamp).strftime(_TIMESTAMP_FORMATS[definition.result])
        self._fields.setdefault(field, {})[repetition] = value
        return value

    def _fields_to_validate(self, field_name: str | None) -> list[str]:
        return [field_name] if field_name is not None else list(self._fields)

    def validate(self, field_name: str | None = None) -> bool:
        """Pre-validate the values set on this command.

        Raises:
            ValidationFailure: Aggregating every failing field and rule.
        """
        layout = self.get_layout()
        failure = ValidationFailure()
        for name in self._fields_to_validate(field_name):
            field = layout.resolve_field(name)
            repetitions = self._fields.get(name) or {0: None}
            for value in repetitions.values():
                try:
                    validate_value(field, value, failure)
                except ValidationFailure:
                    continue
        if failure.errors:
            raise failure
        return True

    def _prevalidate(self) -> None:
        if self.fm.settings.fm_prevalidate:
            self.validate()


class Add(_FieldCommand):
    """Create a record."""

    def _fields_to_validate(self, field_name: str | None) -> list[str]:
        if field_name is not None:
            return [field_name]
        # A new record must satisfy every layout field, set or not.
        names = self.get_layout().list_fields()
        return names + [name for name in self._fields if name not in names]

    def execute(self) -> Result:
        self._prevalidate()
        request = self.command_params()
        request["-new"] = True
        params.add_field_params(request, self._fields, self.get_layout())
        return self._run(request, reread=True)


class Edit(_FieldCommand):
    """Update fields of an existing record, or delete one of its portal rows."""

    def __init__(
        self,
        fm: FileMaker,
        layout: str,
        record_id: str | int | None = None,
        values: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(fm, layout, values)
        self.set_record_id(record_id)
        self.modification_id: str | None = None
        self.delete_related: str | None = None
        self.related_set: str | None = None

    def set_modification_id(self, modification_id: str | int | None) -> Edit:
        """Fail the edit if the record changed since this modification id."""
        self.modification_id = str(modification_id) if modification_id is not None else None
        return self

    def set_delete_related(self, related_record: str) -> Edit:
        """Delete a portal row, given as ``"Portal.recordId"``."""
        self.delete_related = related_record
        return self

    def set_related_set(self, name: str) -> Edit:
        """Portal that ``Field.N`` values belong to when it differs from the table."""
        self.related_set = name
        return self

    def execute(self) -> Result:
        if self.record_id is None:
            raise CommandError("Edit commands require a record id.")
        if not self._fields and self.delete_related is None:
            raise CommandError("There are no changes to commit.")
        self._prevalidate()
        request = self.command_params()
        request["-edit"] = True
        if self.delete_related is None:
            params.add_field_params(request, self._fields, self.get_layout())
        else:
            request["-delete.related"] = self.delete_related
        if self.related_set:
            request["-relatedSet"] = self.related_set
        request["-recid"] = self.record_id
        if self.modification_id is not None:
            request["-modid"] = self.modification_id
        return self._run(request, reread=True, reread_id=self.record_id)


class Delete(Command):
    def __init__(self, fm: FileMaker, layout: str, record_id: str | int | None = None) -> None:
        super().__init__(fm, layout)
        self.set_record_id(record_id)

    def execute(self) -> Result:
        if self.record_id is None:
            raise CommandError("Delete commands require a record id.")
        request = self.command_params()
        request["-delete"] = True
        request["-recid"] = self.record_id
        return self._run(request)


class Duplicate(Command):
    """Duplicate a record; the result holds the copy."""

    def __init__(self, fm: FileMaker, layout: str, record_id: str | int | None = None) -> None:
        super().__init__(fm, layout)
        self.set_record_id(record_id)

    def execute(self) -> Result:
        if self.record_id is None:
            raise CommandError("Duplicate commands require a record id.")
        request = self.command_params()
        request["-dup"] = True
        request["-recid"] = self.record_id
        return self._run(request, reread=True)


class _FoundSetCommand(Command):
    """Commands returning a found set: sorting, range and portal filters."""

    def __init__(self, fm: FileMaker, layout: str) -> None:
        super().__init__(fm, layout)
        self.sort_rules: dict[int, tuple[str, str | None]] = {}
        self.skip = 0
        self.max_records: int | None = None
        self.related_sets_filter: str | None = None
        self.related_sets_max: int | None = None

    def add_sort_rule(self, field: str, precedence: int, order: str | None = None) -> _FoundSetCommand:
        """Sort by ``field``; precedence 1 sorts first.

        ``order`` is ``ascend``, ``descend`` or the name of a value list.
        """
        if not 1 <= int(precedence) <= 9:
            raise CommandError(f"Sort precedence must be between 1 and 9, got {precedence}.")
        self.sort_rules[int(precedence)] = (field, order)
        return self

    def clear_sort_rules(self) -> _FoundSetCommand:
        self.sort_rules = {}
        return self

    def set_range(self, skip: int = 0, max_records: int | None = None) -> _FoundSetCommand:
        self.skip = skip
        self.max_records = max_records
        return self

    def get_range(self) -> tuple[int, int | None]:
        return self.skip, self.max_records

    def set_related_sets_filters(self, related_sets_filter: str, related_sets_max: int | None = None) -> _FoundSetCommand:
        """Limit portal rows: ``layout`` honours the portal setup, ``none`` returns all."""
        if related_sets_filter not in ("layout", "none"):
            raise CommandError("Related sets filter must be 'layout' or 'none'.")
        self.related_sets_filter = related_sets_filter
        self.related_sets_max = related_sets_max
        return self

    def get_related_sets_filters(self) -> tuple[str | None, int | None]:
        return self.related_sets_filter, self.related_sets_max

    def _found_set_params(self, request: params.Params) -> params.Params:
        params.add_sort_params(request, self.sort_rules)
        params.add_range_params(request, self.skip, self.max_records)
        params.add_related_sets_filter_params(request, self.related_sets_filter, self.related_sets_max)
        return request


def _search_value(fm: FileMaker, layout: Layout, field: str, value: Any) -> Any:
    definition = layout.resolve_field(field)
    settings = fm.settings
    if (
        settings.fm_use_date_format_in_requests
        and settings.fm_date_format
        and isinstance(value, str)
        and definition.result in ("date", "timestamp")
    ):
        return dates.convert_search_criteria(value, settings.fm_date_format, WIRE_DATE_FORMAT)
    return value


class Find(_FoundSetCommand):
    """Find records matching every criterion (or any, with ``or``)."""

    def __init__(self, fm: FileMaker, layout: str) -> None:
        super().__init__(fm, layout)
        self.find_criteria: dict[str, Any] = {}
        self.logical_operator: str | None = None

    def add_find_criterion(self, field: str, value: Any) -> Find:
        """Add ``field`` = ``value``; value may use FileMaker find operators.

        Raises:
            FieldNotFoundError: If the field is not on the layout.
        """
        self.find_criteria[field] = _search_value(self.fm, self.get_layout(), field, value)
        return self

    def clear_find_criteria(self) -> Find:
        self.find_criteria = {}
        return self

    def set_logical_operator(self, operator: str) -> Find:
        if operator not in (FIND_AND, FIND_OR):
            raise CommandError(f"Logical operator must be '{FIND_AND}' or '{FIND_OR}'.")
        self.logical_operator = operator
        return self

    def execute(self) -> Result:
        request = self.command_params()
        params.add_find_params(request, self.find_criteria, self.record_id, self.logical_operator)
        self._found_set_params(request)
        return self._run(request)


class FindAll(_FoundSetCommand):
    def execute(self) -> Result:
        request = self.command_params()
        request["-findall"] = True
        self._found_set_params(request)
        return self._run(request)


class FindAny(Command):
    """Return one random record; not available through the Data API."""

    def execute(self) -> Result:
        request = self.command_params()
        request["-findany"] = True
        return self._run(request)


class FindRequest:
    """One request of a compound find; ``omit`` removes its matches."""

    def __init__(self, fm: FileMaker | None = None, layout: str | None = None) -> None:
        self.fm = fm
        self.layout = layout
        self.find_criteria: dict[str, Any] = {}
        self.omit = False

    def add_find_criterion(self, field: str, value: Any) -> FindRequest:
        if self.fm is not None and self.layout is not None:
            value = _search_value(self.fm, self.fm.get_layout(self.layout), field, value)
        self.find_criteria[field] = value
        return self

    def clear_find_criteria(self) -> FindRequest:
        self.find_criteria = {}
        return self

    def set_omit(self, omit: bool = True) -> FindRequest:
        self.omit = omit
        return self

    def is_empty(self) -> bool:
        return not self.find_criteria


class CompoundFind(_FoundSetCommand):
    """Several find requests OR-ed together, applied in precedence order."""

    def __init__(self, fm: FileMaker, layout: str) -> None:
        super().__init__(fm, layout)
        self.requests: dict[int, FindRequest] = {}

    def add(self, precedence: int, request: FindRequest) -> CompoundFind:
        self.requests[int(precedence)] = request
        return self

    def execute(self) -> Result:
        ordered = [
            (self.requests[p].find_criteria, self.requests[p].omit) for p in sorted(self.requests)
        ]
        request = self.command_params()
        params.add_compound_find_params(request, ordered)
        self._found_set_params(request)
        return self._run(request)


class PerformScript(Command):
    """Run a script in the context of a layout."""

    def __init__(self, fm: FileMaker, layout: str, script: str, parameters: Any = None) -> None:
        super().__init__(fm, layout)
        self.set_script(script, parameters)
        self.skip = 0
        self.max_records: int | None = None

    def set_range(self, skip: int = 0, max_records: int | None = None) -> PerformScript:
        self.skip = skip
        self.max_records = max_records
        return self

    def execute(self) -> Result:
        request = self.command_params()
        request["-performscript" if self.fm.uses_data_api else "-findany"] = True
        params.add_range_params(request, self.skip, self.max_records)
        return self._run(request)
