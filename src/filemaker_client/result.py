"""Result of an executed command."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from filemaker_client.errors import CommandError

if TYPE_CHECKING:
    from filemaker_client.layout import Layout


class Result:
    """Records returned by a command, with found-set counts.

    ``table_record_count`` is the table size, ``found_set_count`` the size of
    the found set and ``fetch_count`` the number of records returned after
    the skip/max range was applied.
    """

    def __init__(self, layout: Layout | None = None) -> None:
        self.layout = layout
        self.records: list[Any] = []
        self.table_record_count = 0
        self.found_set_count = 0
        self.fetch_count = 0
        self.script_result: str | None = None

    def __repr__(self) -> str:
        name = self.layout.name if self.layout is not None else None
        return f"Result(layout={name!r}, fetch_count={self.fetch_count}, found_set_count={self.found_set_count})"

    def __iter__(self):
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)

    def get_layout(self) -> Layout | None:
        return self.layout

    def get_records(self) -> list[Any]:
        return self.records

    def get_fields(self) -> list[str]:
        return self.layout.list_fields() if self.layout is not None else []

    def get_related_sets(self) -> list[str]:
        return self.layout.list_related_sets() if self.layout is not None else []

    def get_table_record_count(self) -> int:
        return self.table_record_count

    def get_found_set_count(self) -> int:
        return self.found_set_count

    def get_fetch_count(self) -> int:
        return self.fetch_count

    def get_first_record(self) -> Any:
        """First record of the result.

        Raises:
            CommandError: If the result holds no records.
        """
        if not self.records:
            raise CommandError("The result contains no records.")
        return self.records[0]

    def get_last_record(self) -> Any:
        if not self.records:
            raise CommandError("The result contains no records.")
        return self.records[-1]
