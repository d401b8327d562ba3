"""Layout and related-set (portal) metadata."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from filemaker_client.errors import (
    FieldNotFoundError,
    RelatedSetNotFoundError,
    SchemaError,
    ValueListNotFoundError,
)
from filemaker_client.field import Field

if TYPE_CHECKING:
    from filemaker_client.client import FileMaker

logger = logging.getLogger(__name__)


class Layout:
    """Fields, portals and value lists of one FileMaker layout.

    Basic metadata comes with every fmresultset response. Value lists and
    control styles need the FMPXMLLAYOUT grammar (or the Data API metadata
    endpoint) and are loaded on first use by ``load_extended_info``.
    """

    def __init__(self, fm: FileMaker | None = None, name: str = "") -> None:
        self.fm = fm
        self.name = name
        self.database = ""
        self.table = ""
        self.fields: dict[str, Field] = {}
        self.related_sets: dict[str, RelatedSet] = {}
        self.value_lists: dict[str, list[str]] = {}
        # value list name -> {display value: stored value}
        self.value_lists_two_fields: dict[str, dict[str, str]] = {}
        self.extended_info_loaded = False

    def __repr__(self) -> str:
        return f"Layout({self.name!r}, fields={len(self.fields)}, related_sets={len(self.related_sets)})"

    def list_fields(self) -> list[str]:
        return list(self.fields)

    def get_fields(self) -> dict[str, Field]:
        return self.fields

    def has_field(self, name: str) -> bool:
        return name in self.fields

    def get_field(self, name: str) -> Field:
        try:
            return self.fields[name]
        except KeyError:
            raise FieldNotFoundError(name, self.name) from None

    def resolve_field(self, name: str) -> Field:
        """Find a field by request key.

        Accepts plain names, ``Portal::Field`` names of a related set, and
        keys carrying a ``.suffix`` (``Field.global``, ``Portal::Field.0``).

        Raises:
            FieldNotFoundError: If no layout or portal field matches.
        """
        base = name.split(".", 1)[0] if name not in self.fields else name
        if base in self.fields:
            return self.fields[base]
        if "::" in base:
            for related_set in self.related_sets.values():
                if base in related_set.fields:
                    return related_set.fields[base]
        raise FieldNotFoundError(name, self.name)

    def list_related_sets(self) -> list[str]:
        return list(self.related_sets)

    def has_related_set(self, name: str) -> bool:
        return name in self.related_sets

    def get_related_set(self, name: str) -> RelatedSet:
        try:
            return self.related_sets[name]
        except KeyError:
            raise RelatedSetNotFoundError(name, self.name) from None

    def list_value_lists(self) -> list[str]:
        self.load_extended_info()
        return list(self.value_lists)

    def get_value_list(self, name: str, record_id: str | None = None) -> list[str]:
        """Values of the named value list.

        Raises:
            SchemaError: If the layout has no value list called ``name``.
        """
        self.load_extended_info(record_id)
        if name not in self.value_lists:
            raise ValueListNotFoundError(name, self.name)
        return self.value_lists[name]

    def get_value_list_two_fields(self, name: str, record_id: str | None = None) -> dict[str, str]:
        """Value list as {display value: stored value}."""
        self.load_extended_info(record_id)
        if name not in self.value_lists_two_fields:
            raise ValueListNotFoundError(name, self.name)
        return self.value_lists_two_fields[name]

    def get_value_lists(self, record_id: str | None = None) -> dict[str, list[str]]:
        self.load_extended_info(record_id)
        return self.value_lists

    def load_extended_info(self, record_id: str | None = None) -> None:
        """Fetch value lists and control styles once.

        A ``record_id`` forces a refetch since value lists may depend on the
        record's related data.
        """
        if self.extended_info_loaded and record_id is None:
            return
        if self.fm is None:
            raise SchemaError(f"Layout '{self.name}' is not bound to a connection.")
        logger.debug("Loading extended info for layout %s", self.name)
        self.fm.load_extended_info(self, record_id)
        self.extended_info_loaded = True


class RelatedSet:
    """A portal: a field namespace scoped to a related table occurrence."""

    def __init__(self, layout: Layout, name: str = "") -> None:
        self.layout = layout
        self.name = name
        self.fields: dict[str, Field] = {}

    def __repr__(self) -> str:
        return f"RelatedSet({self.name!r}, fields={len(self.fields)})"

    def list_fields(self) -> list[str]:
        return list(self.fields)

    def get_field(self, name: str) -> Field:
        try:
            return self.fields[name]
        except KeyError:
            raise FieldNotFoundError(name, self.name) from None

    def load_extended_info(self, record_id: str | None = None) -> None:
        raise SchemaError("Related sets do not support extended info; load it on the layout.")
