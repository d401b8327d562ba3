"""Record tools: find, read, create, edit, delete and run scripts.

Each function returns text for the AI client and reports errors as text
instead of raising, so a bad request never breaks the MCP session.
"""

import logging
from typing import Any

from filemaker_client.constants import SORT_ASCEND, SORT_DESCEND
from filemaker_client.errors import FileMakerError, ValidationFailure
from filemaker_client.record import Record
from filemaker_client.result import Result
from filemaker_client.tools.connection import get_client

logger = logging.getLogger(__name__)

MAX_VALUE_LENGTH = 500


def _format_value(value: Any) -> str:
    """Format a field value for display, truncating long text."""
    if value is None:
        return ""
    if isinstance(value, str) and len(value) > MAX_VALUE_LENGTH:
        return value[:MAX_VALUE_LENGTH] + "... [truncated]"
    return str(value)


def format_record(record: Record, indent: str = "  ") -> list[str]:
    """Non-empty fields of a record, then its portal rows."""
    lines = []
    for name, values in record.fields.items():
        for repetition in range(len(values)):
            formatted = _format_value(record.get_field(name, repetition, unencoded=True))
            if not formatted:
                continue
            label = name if repetition == 0 else f"{name}[{repetition + 1}]"
            lines.append(f"{indent}{label}: {formatted}")
    for portal, children in record.related_sets.items():
        if not children:
            continue
        lines.append(f"{indent}{portal} ({len(children)} related):")
        for child in children:
            lines.append(f"{indent}  - recid {child.record_id}")
            lines.extend(format_record(child, indent + "      "))
    return lines


def format_result(result: Result, layout: str) -> str:
    """Format a found set into readable text for the AI client."""
    records = result.get_records()
    if not records:
        return f"No records found in {layout} matching your request."

    lines = [
        f"Found {result.get_found_set_count()} of {result.get_table_record_count()} "
        f"records in {layout} (showing {len(records)}):",
        "",
    ]
    for i, record in enumerate(records, 1):
        lines.append(f"--- Record {i} (recid {record.record_id}, modid {record.modification_id}) ---")
        lines.extend(format_record(record))
        lines.append("")
    if result.script_result is not None:
        lines.append(f"Script result: {result.script_result}")
    return "\n".join(lines).rstrip() + "\n"


def parse_sort(sort: str) -> list[tuple[str, str]]:
    """Parse ``"Name asc, Date desc"`` into (field, order) pairs."""
    rules = []
    for part in sort.split(","):
        part = part.strip()
        if not part:
            continue
        field, _, direction = part.rpartition(" ")
        if direction.lower() in ("asc", "ascend") and field:
            rules.append((field.strip(), SORT_ASCEND))
        elif direction.lower() in ("desc", "descend") and field:
            rules.append((field.strip(), SORT_DESCEND))
        else:
            rules.append((part, SORT_ASCEND))
    return rules


def _error(action: str, layout: str, e: Exception) -> str:
    if isinstance(e, ValidationFailure):
        details = "\n".join(f"  {getattr(err.field, 'name', err.field)}: {err.message}" for err in e.errors)
        return f"Validation failed for {layout}:\n{details}"
    if isinstance(e, FileMakerError):
        logger.warning("Error %s %s: %s", action, layout, e)
        return f"Error {action} {layout}: {e}"
    logger.exception("Unexpected error %s %s", action, layout)
    return f"Error {action} {layout}: {type(e).__name__}: {e}"


def find_records(
    layout: str,
    criteria: dict[str, str] | None = None,
    sort: str = "",
    skip: int = 0,
    max_records: int = 20,
    logical_operator: str = "and",
) -> str:
    """Find records on a layout; without criteria every record is returned."""
    fm = get_client()
    try:
        command = fm.new_find_command(layout) if criteria else fm.new_find_all_command(layout)
        if criteria:
            for field, value in criteria.items():
                command.add_find_criterion(field, value)
            command.set_logical_operator(logical_operator)
        for precedence, (field, order) in enumerate(parse_sort(sort), 1):
            command.add_sort_rule(field, precedence, order)
        command.set_range(skip, max_records)
        return format_result(command.execute(), layout)
    except Exception as e:
        return _error("searching", layout, e)


def get_record(layout: str, record_id: str) -> str:
    fm = get_client()
    try:
        record = fm.get_record_by_id(layout, record_id)
    except Exception as e:
        return _error("reading", layout, e)
    lines = [f"Record {record.record_id} from {layout} (modid {record.modification_id}):", ""]
    lines.extend(format_record(record))
    return "\n".join(lines)


def create_record(layout: str, values: dict[str, Any]) -> str:
    """Create a record, then report the stored field values."""
    fm = get_client()
    try:
        record = fm.create_record(layout, values)
        record.commit()
    except Exception as e:
        return _error("creating a record in", layout, e)
    logger.info("Created record %s in %s", record.record_id, layout)
    lines = [f"Created record {record.record_id} in {layout}:", ""]
    lines.extend(format_record(record))
    return "\n".join(lines)


def edit_record(layout: str, record_id: str, values: dict[str, Any], modification_id: str = "") -> str:
    """Update fields of an existing record.

    Args:
        layout: Layout the fields are on.
        record_id: Internal record id (recid).
        values: Field name to new value.
        modification_id: When given, the edit fails if the record changed since.
    """
    fm = get_client()
    try:
        command = fm.new_edit_command(layout, record_id)
        for field, value in values.items():
            command.set_field(field, value)
        if modification_id:
            command.set_modification_id(modification_id)
        record = command.execute().get_first_record()
    except Exception as e:
        return _error("editing", layout, e)
    lines = [f"Updated record {record.record_id} in {layout} (modid {record.modification_id}):", ""]
    lines.extend(format_record(record))
    return "\n".join(lines)


def delete_record(layout: str, record_id: str) -> str:
    fm = get_client()
    try:
        fm.new_delete_command(layout, record_id).execute()
    except Exception as e:
        return _error("deleting from", layout, e)
    logger.info("Deleted record %s from %s", record_id, layout)
    return f"Deleted record {record_id} from {layout}."


def perform_script(layout: str, script: str, parameter: str = "") -> str:
    """Run a script in the context of ``layout`` and report its result."""
    fm = get_client()
    try:
        result = fm.new_perform_script_command(layout, script, parameter or None).execute()
    except Exception as e:
        return _error(f"running script '{script}' on", layout, e)
    message = f"Script '{script}' completed on {layout}."
    if result.script_result is not None:
        message += f"\nScript result: {result.script_result}"
    if result.get_records():
        message += "\n\n" + format_result(result, layout)
    return message
