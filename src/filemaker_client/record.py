"""Records and their portal children."""

from __future__ import annotations

import html
import logging
import re
from datetime import datetime
from typing import TYPE_CHECKING, Any

from filemaker_client import dates
from filemaker_client.constants import (
    WIRE_DATE_FORMAT,
    WIRE_TIME_FORMAT,
    WIRE_TIMESTAMP_FORMAT,
)
from filemaker_client.errors import (
    CommandError,
    DateFormatError,
    RelatedSetNotFoundError,
    ValidationFailure,
)
from filemaker_client.layout import Layout, RelatedSet
from filemaker_client.validation import validate_value

if TYPE_CHECKING:
    from filemaker_client.client import FileMaker
    from filemaker_client.field import Field

logger = logging.getLogger(__name__)

_WIRE_DATE = re.compile(r"\d{2}.\d{2}.\d{4}")


class Record:
    """A record of a layout, or a child record of a portal.

    ``fields`` maps each field name to its repetition values (index 0 is the
    first repetition). Children live in ``related_sets`` keyed by portal
    name; each child keeps a reference to its parent record.
    """

    def __init__(self, layout: Layout | RelatedSet) -> None:
        self.layout = layout
        self.fields: dict[str, list[Any]] = {}
        self.record_id: str | None = None
        self.modification_id: str | None = None
        self.related_sets: dict[str, list[Record]] = {}
        self.related_set_name: str | None = None
        self.deleted = False
        self.parent: Record | None = None
        self._modified: set[tuple[str, int]] = set()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(layout={self.layout.name!r}, record_id={self.record_id!r})"

    @property
    def root_layout(self) -> Layout:
        if isinstance(self.layout, RelatedSet):
            return self.layout.layout
        return self.layout

    @property
    def fm(self) -> FileMaker:
        fm = self.root_layout.fm
        if fm is None:
            raise CommandError("Record is not bound to a FileMaker connection.")
        return fm

    def _qualify(self, name: str) -> str:
        if self.related_set_name and "::" not in name:
            return f"{self.related_set_name}::{name}"
        return name

    def _field_def(self, name: str) -> Field | None:
        return self.layout.fields.get(name)

    def get_fields(self) -> list[str]:
        return self.layout.list_fields()

    def get_field(self, name: str, repetition: int = 0, unencoded: bool = False) -> Any:
        """Return a field value as the caller sees it.

        Values are HTML-escaped unless ``unencoded``. Dates are rendered in
        the configured date format, numbers use ``.`` as decimal mark and
        empty values become None when ``fm_empty_as_null`` is on. Unknown
        fields and repetitions return None.
        """
        name = self._qualify(name)
        if name not in self.fields:
            logger.info("Field '%s' not found.", name)
            return None
        values = self.fields[name]
        if repetition >= len(values):
            logger.info("Repetition %d does not exist for '%s'.", repetition, name)
            return None
        value = values[repetition]

        settings = self.fm.settings
        if (value is None or value == "") and settings.fm_empty_as_null:
            return None
        if not isinstance(value, str):
            return value

        field = self._field_def(name)
        result_type = field.result if field is not None else "text"
        if value and result_type in ("date", "timestamp") and settings.fm_date_format:
            if _WIRE_DATE.match(value):
                try:
                    value = dates.from_wire(value, result_type, settings.fm_date_format)
                except DateFormatError as e:
                    raise DateFormatError(f"{name} could not be converted ({value})") from e
        elif value and result_type == "number":
            value = value.replace(",", ".")
        return value if unencoded else html.escape(value)

    def get_field_unencoded(self, name: str, repetition: int = 0) -> Any:
        return self.get_field(name, repetition, unencoded=True)

    def get_field_as_timestamp(self, name: str, repetition: int = 0) -> int:
        """Return a date, time or timestamp field as a unix timestamp.

        Raises:
            CommandError: If the field is not date-like or cannot be parsed.
        """
        name = self._qualify(name)
        field = self.layout.get_field(name)
        values = self.fields.get(name, [])
        value = values[repetition] if repetition < len(values) else ""
        formats = {
            "date": WIRE_DATE_FORMAT,
            "time": WIRE_TIME_FORMAT,
            "timestamp": WIRE_TIMESTAMP_FORMAT,
        }
        if field.result not in formats:
            raise CommandError("Only time, date, and timestamp fields can be converted to UNIX timestamps.")
        text = str(value)
        fmt = formats[field.result]
        if field.result == "time":
            text, fmt = f"01/01/1970 {text}", WIRE_TIMESTAMP_FORMAT
        try:
            parsed = datetime.strptime(text, fmt)
        except ValueError as e:
            raise CommandError(f"Failed to parse '{value}' as a FileMaker {field.result} value.") from e
        return int(parsed.timestamp())

    def set_field(self, name: str, value: Any, repetition: int = 0) -> Any:
        """Set a field value, converting dates from the configured format.

        Raises:
            FieldNotFoundError: If the field is not on the layout or portal.
        """
        name = self._qualify(name)
        field = self.layout.get_field(name)
        date_format = self.fm.settings.fm_date_format
        if value and isinstance(value, str) and date_format:
            value = dates.to_wire(value, field.result, date_format)
        self._store(name, value, repetition)
        return value

    def set_field_from_timestamp(self, name: str, timestamp: float, repetition: int = 0) -> str:
        name = self._qualify(name)
        field = self.layout.get_field(name)
        formats = {
            "date": WIRE_DATE_FORMAT,
            "time": WIRE_TIME_FORMAT,
            "timestamp": WIRE_TIMESTAMP_FORMAT,
        }
        if field.result not in formats:
            raise CommandError("Only time, date, and timestamp fields can be set to the value of a timestamp.")
        value = datetime.fromtimestamp(timestamp).strftime(formats[field.result])
        self._store(name, value, repetition)
        return value

    def _store(self, name: str, value: Any, repetition: int) -> None:
        values = self.fields.setdefault(name, [])
        while len(values) <= repetition:
            values.append("")
        values[repetition] = value
        self._modified.add((name, repetition))

    def is_modified(self, name: str | None = None) -> bool:
        if name is None:
            return bool(self._modified)
        name = self._qualify(name)
        return any(field == name for field, _ in self._modified)

    def get_related_set(self, name: str) -> list[Record]:
        """Child records of portal ``name``.

        Raises:
            RelatedSetNotFoundError: If the record carries no such portal.
        """
        if name not in self.related_sets:
            raise RelatedSetNotFoundError(name, self.root_layout.name)
        return self.related_sets[name]

    def new_related_record(self, name: str) -> Record:
        """Create a blank child in portal ``name``; ``commit()`` it to save."""
        related_set = self.root_layout.get_related_set(name)
        record = type(self)(related_set)
        record.parent = self
        record.related_set_name = name
        return record

    def get_related_record_by_id(self, name: str, record_id: str) -> Record:
        for record in self.get_related_set(name):
            if str(record.record_id) == str(record_id):
                return record
        raise CommandError(f"Record {record_id} not present in related set '{name}'.")

    def get_field_value_list_two_fields(self, name: str) -> dict[str, str]:
        """Value list of a field as {display value: stored value}."""
        name = self._qualify(name)
        if name not in self.fields:
            logger.info("Field '%s' not found.", name)
            return {}
        layout = self.root_layout
        layout.load_extended_info(self.record_id)
        field = layout.resolve_field(name)
        if field.value_list is None:
            return {}
        return layout.value_lists_two_fields.get(field.value_list, {})

    def validate(self, field_name: str | None = None) -> bool:
        """Pre-validate one field or every field of the layout.

        Raises:
            ValidationFailure: Aggregating every failing field and rule.
        """
        names = [self._qualify(field_name)] if field_name is not None else self.get_fields()
        failure = ValidationFailure()
        for name in names:
            field = self.layout.get_field(name)
            for value in self.fields.get(name) or [None]:
                try:
                    validate_value(field, value, failure)
                except ValidationFailure:
                    continue
        if failure.errors:
            raise failure
        return True

    def commit(self) -> bool:
        """Create or update the record on the server and resync local state.

        Raises:
            CommandError: If the record was deleted, or is a child whose
                parent has not been committed yet.
        """
        if self.deleted:
            raise CommandError("Cannot commit a deleted record.")
        if self.fm.settings.fm_prevalidate:
            self.validate()

        parent = self.parent
        if parent is None:
            return self._commit_edit() if self.record_id else self._commit_add()
        if not parent.record_id:
            raise CommandError(
                "You must commit the parent record first before you can commit its children."
            )
        return self._commit_edit_child(parent) if self.record_id else self._commit_add_child(parent)

    def _modified_values(self, suffix: str = "") -> dict[str, dict[int, Any]]:
        values: dict[str, dict[int, Any]] = {}
        for name, repetition in sorted(self._modified):
            values.setdefault(name + suffix, {})[repetition] = self.fields[name][repetition]
        return values

    def _commit_add(self) -> bool:
        result = self.fm.new_add_command(self.layout.name, self.fields).execute()
        return self._update_from(result.get_first_record())

    def _commit_edit(self) -> bool:
        command = self.fm.new_edit_command(self.layout.name, self.record_id, self._modified_values())
        command.set_modification_id(self.modification_id)
        result = command.execute()
        return self._update_from(result.get_first_record())

    def _commit_add_child(self, parent: Record) -> bool:
        children = {f"{name}.0": list(values) for name, values in self.fields.items()}
        command = self.fm.new_edit_command(parent.root_layout.name, parent.record_id, children)
        command.set_related_set(self.related_set_name)
        result = command.execute()
        related = result.get_first_record().get_related_set(self.related_set_name)
        if not related:
            raise CommandError("Failed to find the new child in the response.")
        parent.related_sets.setdefault(self.related_set_name, []).append(self)
        return self._update_from(related[-1])

    def _commit_edit_child(self, parent: Record) -> bool:
        values = self._modified_values(suffix=f".{self.record_id}")
        command = self.fm.new_edit_command(parent.root_layout.name, parent.record_id, values)
        command.set_related_set(self.related_set_name)
        result = command.execute()
        for record in result.get_first_record().get_related_set(self.related_set_name):
            if str(record.record_id) == str(self.record_id):
                return self._update_from(record)
        raise CommandError("Failed to find the updated child in the response.")

    def delete(self) -> Any:
        """Delete the record on the server; a child is deleted through its parent.

        Raises:
            CommandError: If the record was never committed.
        """
        if not self.record_id:
            raise CommandError("You cannot delete a record that does not exist on the server.")
        parent = self.parent
        if parent is not None:
            command = self.fm.new_edit_command(parent.root_layout.name, parent.record_id)
            command.set_delete_related(f"{self.related_set_name}.{self.record_id}")
            result = command.execute()
            siblings = parent.related_sets.get(self.related_set_name, [])
            if self in siblings:
                siblings.remove(self)
        else:
            result = self.fm.new_delete_command(self.layout.name, self.record_id).execute()
        self.deleted = True
        return result

    def _update_from(self, record: Record) -> bool:
        self.record_id = record.record_id
        self.modification_id = record.modification_id
        self.fields = record.fields
        self.layout = record.layout
        self.related_sets = record.related_sets
        for children in self.related_sets.values():
            for child in children:
                child.parent = self
        self._modified = set()
        return True
