"""Build layouts, fields and records from a ``ParsedResponse``."""

from __future__ import annotations

import logging
from typing import Any, Protocol

from filemaker_client.constants import ValidationRule
from filemaker_client.errors import SchemaError
from filemaker_client.field import Field
from filemaker_client.layout import Layout, RelatedSet
from filemaker_client.parsers.base import FieldDefinition, ParsedRecord, ParsedResponse
from filemaker_client.record import Record
from filemaker_client.result import Result

logger = logging.getLogger(__name__)


class RecordFactory(Protocol):
    """Creates an empty record for a layout or related set.

    The returned object needs ``fields``, ``record_id``,
    ``modification_id``, ``parent``, ``related_set_name`` and
    ``related_sets`` attributes; subclassing ``Record`` is not required.
    """

    def __call__(self, layout: Layout | RelatedSet) -> Any: ...


def build_field(definition: FieldDefinition, owner: Layout | RelatedSet) -> Field:
    """Create a Field and derive its validation rules from the definition."""
    field = Field(owner, definition.name)
    field.auto_entered = definition.auto_enter
    field.global_ = definition.global_
    field.max_repeat = definition.max_repeat
    field.result = definition.result
    field.type = definition.type
    field.value_list = definition.value_list
    field.style_type = definition.style_type

    if definition.not_empty:
        field.add_validation_rule(ValidationRule.NOT_EMPTY)
    if definition.numeric_only:
        field.add_validation_rule(ValidationRule.NUMERIC_ONLY)
    if definition.max_characters is not None:
        field.add_validation_rule(ValidationRule.MAX_CHARACTERS, definition.max_characters)
    if definition.four_digit_year:
        field.add_validation_rule(ValidationRule.FOUR_DIGIT_YEAR)
    if definition.time_of_day:
        field.add_validation_rule(ValidationRule.TIME_OF_DAY)
    if not definition.four_digit_year and definition.result == "timestamp":
        field.add_validation_rule(ValidationRule.TIMESTAMP_FIELD)
    if not definition.four_digit_year and definition.result == "date":
        field.add_validation_rule(ValidationRule.DATE_FIELD)
    if not definition.time_of_day and definition.result == "time":
        field.add_validation_rule(ValidationRule.TIME_FIELD)
    return field


def set_layout(response: ParsedResponse, layout: Layout) -> Layout:
    """Populate ``layout`` from the response; repeated calls are no-ops."""
    if response.layout is layout:
        return layout

    head = response.head
    if head is not None:
        layout.name = head.layout or layout.name
        layout.database = head.database or layout.database
        layout.table = head.table or layout.table

    if response.has_metadata:
        layout.fields = {d.name: build_field(d, layout) for d in response.field_definitions}
        layout.related_sets = {}
        for name, definitions in response.related_set_definitions.items():
            related_set = RelatedSet(layout, name)
            related_set.fields = {d.name: build_field(d, related_set) for d in definitions}
            layout.related_sets[name] = related_set

    if response.has_extended_info:
        set_extended_info(response, layout)

    response.layout = layout
    return layout


def set_extended_info(response: ParsedResponse, layout: Layout) -> Layout:
    """Apply value lists and control styles to an existing layout.

    Styles for fields the layout does not know (portal fields missing from
    the base metadata) are skipped.
    """
    layout.value_lists = dict(response.value_lists)
    layout.value_lists_two_fields = dict(response.value_lists_two_fields)
    for name, (style_type, value_list) in response.field_styles.items():
        try:
            field = layout.resolve_field(name)
        except SchemaError:
            logger.debug("No field '%s' on layout %s for extended info", name, layout.name)
            continue
        field.style_type = style_type
        field.value_list = value_list
    layout.extended_info_loaded = True
    return layout


def _fill(record: Any, parsed: ParsedRecord) -> Any:
    record.fields = parsed.fields
    record.record_id = parsed.record_id
    record.modification_id = parsed.mod_id
    return record


def set_result(
    response: ParsedResponse,
    layout: Layout,
    record_factory: RecordFactory = Record,
) -> Result:
    """Build the Result and its records, linking portal children to parents."""
    result = Result(layout)
    if response.head is not None:
        result.table_record_count = response.head.total_count
    result.found_set_count = response.found_set.count
    result.fetch_count = response.found_set.fetch_size
    result.script_result = response.script_result

    for parsed in response.records:
        record = _fill(record_factory(layout), parsed)
        for set_name, children in parsed.children.items():
            related_set = layout.related_sets.get(set_name)
            if related_set is None:
                logger.info("Related set '%s' missing from layout %s metadata", set_name, layout.name)
                related_set = RelatedSet(layout, set_name)
                layout.related_sets[set_name] = related_set
            record.related_sets[set_name] = []
            for parsed_child in children:
                child = _fill(record_factory(related_set), parsed_child)
                child.parent = record
                child.related_set_name = set_name
                record.related_sets[set_name].append(child)
        result.records.append(record)
    return result
