"""Layout, database and script discovery tools."""

import logging

from filemaker_client.errors import FileMakerError
from filemaker_client.tools.connection import get_client

logger = logging.getLogger(__name__)


def _rules(field) -> str:
    rules = [rule.name.lower() for rule in field.get_validation_rules()]
    return ", ".join(rules)


def describe_layout(layout: str, with_value_lists: bool = False) -> str:
    """Fields, portals and (optionally) value lists of a layout."""
    fm = get_client()
    try:
        meta = fm.get_layout(layout)
        if with_value_lists and not meta.extended_info_loaded:
            meta.load_extended_info()
    except FileMakerError as e:
        logger.warning("Cannot describe layout %s: %s", layout, e)
        return f"Error describing {layout}: {e}"

    lines = [f"Layout {meta.name} (table {meta.table}, database {meta.database}):", ""]
    for name, field in meta.fields.items():
        details = [field.result, field.type]
        if field.max_repeat > 1:
            details.append(f"{field.max_repeat} repetitions")
        if field.value_list:
            details.append(f"value list {field.value_list}")
        rules = _rules(field)
        if rules:
            details.append(f"rules: {rules}")
        lines.append(f"  {name}: {'; '.join(d for d in details if d)}")

    for related_name in meta.list_related_sets():
        related = meta.get_related_set(related_name)
        lines.append("")
        lines.append(f"  Portal {related_name}:")
        for name, field in related.fields.items():
            lines.append(f"    {name}: {field.result}")

    if with_value_lists:
        for name, values in meta.value_lists.items():
            lines.append("")
            lines.append(f"  Value list {name}: {', '.join(values)}")
    return "\n".join(lines)


def list_layouts() -> str:
    fm = get_client()
    try:
        names = fm.list_layouts()
    except FileMakerError as e:
        return f"Error listing layouts: {e}"
    if not names:
        return "No layouts available."
    return f"Layouts in {fm.settings.fm_database}:\n" + "\n".join(f"  {n}" for n in names)


def list_scripts() -> str:
    fm = get_client()
    try:
        names = fm.list_scripts()
    except FileMakerError as e:
        return f"Error listing scripts: {e}"
    if not names:
        return "No scripts available."
    return f"Scripts in {fm.settings.fm_database}:\n" + "\n".join(f"  {n}" for n in names)


def list_databases() -> str:
    fm = get_client()
    try:
        names = fm.list_databases()
    except FileMakerError as e:
        return f"Error listing databases: {e}"
    if not names:
        return "No hosted databases visible to this account."
    return "Databases:\n" + "\n".join(f"  {n}" for n in names)
