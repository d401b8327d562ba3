"""Grammar-neutral request parameters.

Commands describe their state as a flat, ordered ``dict`` of CWP style
parameters (``-db``, ``-lay``, ``-find``, ``Field(1)`` ...). Flag parameters
carry ``True``. The XML transport sends the dict as-is; the Data API
translator rewrites it into a REST call.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from filemaker_client.layout import Layout

Params = dict[str, Any]


def script_params(
    script: tuple[str, Any] | None = None,
    pre_find_script: tuple[str, Any] | None = None,
    pre_sort_script: tuple[str, Any] | None = None,
) -> Params:
    """Script hooks; each (name, parameter) pair is emitted only when set."""
    params: Params = {}
    for key, hook in (
        ("-script", script),
        ("-script.prefind", pre_find_script),
        ("-script.presort", pre_sort_script),
    ):
        if hook is None:
            continue
        name, parameter = hook
        params[key] = name
        if parameter is not None:
            params[f"{key}.param"] = parameter
    return params


def command_params(
    database: str,
    layout: str,
    *,
    result_layout: str | None = None,
    script: tuple[str, Any] | None = None,
    pre_find_script: tuple[str, Any] | None = None,
    pre_sort_script: tuple[str, Any] | None = None,
    global_fields: Mapping[str, Any] | None = None,
) -> Params:
    """Parameters shared by every command."""
    params: Params = {"-db": database, "-lay": layout}
    params.update(script_params(script, pre_find_script, pre_sort_script))
    if result_layout:
        params["-lay.response"] = result_layout
    for name, value in (global_fields or {}).items():
        params[f"{name}.global"] = value
    return params


def add_field_params(params: Params, fields: Mapping[str, Mapping[int, Any]], layout: Layout) -> Params:
    """Write ``field(rep+1)suffix`` keys for every repetition being set.

    A dotted name keeps its suffix verbatim (``Portal::Field.0``,
    ``Field.global``); otherwise the layout decides whether ``.global`` is
    appended.

    Raises:
        FieldNotFoundError: If a field is neither on the layout nor a portal.
    """
    for name, repetitions in fields.items():
        if "." in name:
            base, suffix = name.split(".", 1)
            suffix = f".{suffix}"
            layout.resolve_field(base)
        else:
            base = name
            suffix = ".global" if layout.resolve_field(name).global_ else ""
        for repetition in sorted(repetitions):
            params[f"{base}({repetition + 1}){suffix}"] = repetitions[repetition]
    return params


def add_find_params(
    params: Params,
    criteria: Mapping[str, Any],
    record_id: str | None = None,
    logical_operator: str | None = None,
) -> Params:
    if criteria or record_id is not None:
        params["-find"] = True
    else:
        params["-findall"] = True
    if record_id is not None:
        params["-recid"] = record_id
    if logical_operator:
        params["-lop"] = logical_operator
    params.update(criteria)
    return params


def add_sort_params(params: Params, sort_rules: Mapping[int, tuple[str, str | None]]) -> Params:
    """``-sortfield.N`` / ``-sortorder.N`` in ascending precedence."""
    for precedence in sorted(sort_rules):
        field, order = sort_rules[precedence]
        params[f"-sortfield.{precedence}"] = field
        if order is not None:
            params[f"-sortorder.{precedence}"] = order
    return params


def add_range_params(params: Params, skip: int | None, max_records: int | None) -> Params:
    if skip:
        params["-skip"] = skip
    if max_records:
        params["-max"] = max_records
    return params


def add_related_sets_filter_params(params: Params, related_sets_filter: str | None, related_sets_max: int | None) -> Params:
    if related_sets_filter:
        params["-relatedsets.filter"] = related_sets_filter
        if related_sets_max:
            params["-relatedsets.max"] = related_sets_max
    return params


def add_compound_find_params(params: Params, requests: Iterable[tuple[Mapping[str, Any], bool]]) -> Params:
    """Number every criterion ``-qK``/``-qK.value`` and build ``-query``.

    ``requests`` must already be in precedence order. Each request becomes a
    parenthesised, comma-joined group of its indices; groups are separated
    by ``;`` and omit requests are prefixed with ``!``.
    """
    groups: list[str] = []
    index = 1
    for criteria, omit in requests:
        indices: list[str] = []
        for field, value in criteria.items():
            params[f"-q{index}"] = field
            params[f"-q{index}.value"] = value
            indices.append(f"q{index}")
            index += 1
        if not indices:
            continue
        groups.append(("!" if omit else "") + "(" + ",".join(indices) + ")")
    params["-query"] = ";".join(groups)
    params["-findquery"] = True
    return params
