"""FileMaker CLI: browse a database from the terminal or start the MCP server.

Usage:
    fm-client serve                       # start MCP server (stdio)
    fm-client layouts                     # list layouts
    fm-client describe Contacts           # fields and portals of a layout
    fm-client find Contacts City=Paris --sort "Name asc"
    fm-client find Contacts --connection staging --data-api
"""

from __future__ import annotations

import argparse
import logging
import sys

from rich.console import Console
from rich.table import Table

from filemaker_client.client import FileMaker
from filemaker_client.config import settings
from filemaker_client.errors import FileMakerError
from filemaker_client.tools.records import parse_sort

console = Console()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fm-client",
        description="FileMaker client: query layouts and records, or run the MCP server.",
    )
    parser.add_argument(
        "--connection",
        default="",
        help="Named connection (<NAME>_FM_HOST); defaults to FM_HOST settings",
    )
    parser.add_argument("--data-api", action="store_true", help="Use the Data API instead of CWP XML")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("serve", help="Start the MCP server (stdio)")
    sub.add_parser("databases", help="List hosted databases")
    sub.add_parser("layouts", help="List layouts")
    sub.add_parser("scripts", help="List scripts")
    sub.add_parser("connections", help="List configured connections")

    describe = sub.add_parser("describe", help="Show fields and portals of a layout")
    describe.add_argument("layout")
    describe.add_argument("--value-lists", action="store_true", help="Also show value lists")

    find = sub.add_parser("find", help="Find records; without criteria returns all")
    find.add_argument("layout")
    find.add_argument("criteria", nargs="*", metavar="FIELD=VALUE")
    find.add_argument("--or", dest="use_or", action="store_true", help="Match any criterion")
    find.add_argument("--sort", default="", help='Sort rules, e.g. "Name asc, Date desc"')
    find.add_argument("--skip", type=int, default=0)
    find.add_argument("--max", dest="max_records", type=int, default=20)
    return parser


def _client(args: argparse.Namespace) -> FileMaker:
    options = {"fm_use_data_api": True} if args.data_api else {}
    if args.connection:
        from filemaker_client.credential_provider import EnvCredentialProvider

        provider = EnvCredentialProvider()
        try:
            connection = provider.get_connection(args.connection.lower())
        except KeyError as e:
            console.print(f"[red]{e.args[0]}[/red]")
            sys.exit(1)
        return FileMaker.from_connection(connection, **options)
    return FileMaker(**options)


def _parse_criteria(items: list[str]) -> dict[str, str]:
    criteria = {}
    for item in items:
        field, sep, value = item.partition("=")
        if not sep:
            console.print(f"[red]Invalid criterion '{item}', expected FIELD=VALUE[/red]")
            sys.exit(2)
        criteria[field] = value
    return criteria


def _print_names(title: str, names: list[str]) -> None:
    table = Table(title=title)
    table.add_column("Name", style="bold")
    for name in names:
        table.add_row(name)
    console.print(table)


def _describe(fm: FileMaker, layout_name: str, value_lists: bool) -> None:
    layout = fm.get_layout(layout_name)
    if value_lists:
        layout.load_extended_info()

    table = Table(title=f"{layout.name} ({layout.table})", show_lines=False)
    table.add_column("Field", style="bold")
    table.add_column("Result", style="cyan")
    table.add_column("Type")
    table.add_column("Reps", justify="right")
    table.add_column("Value list", style="green")
    table.add_column("Rules", style="yellow")
    for name, field in layout.fields.items():
        rules = ", ".join(rule.name.lower() for rule in field.get_validation_rules())
        table.add_row(name, field.result, field.type, str(field.max_repeat), field.value_list or "", rules)
    console.print(table)

    for related_name in layout.list_related_sets():
        related = layout.get_related_set(related_name)
        portal = Table(title=f"Portal {related_name}")
        portal.add_column("Field", style="bold")
        portal.add_column("Result", style="cyan")
        for name, field in related.fields.items():
            portal.add_row(name, field.result)
        console.print(portal)

    if value_lists:
        for name, values in layout.value_lists.items():
            console.print(f"[green]{name}[/green]: {', '.join(values)}")


def _find(fm: FileMaker, args: argparse.Namespace) -> None:
    criteria = _parse_criteria(args.criteria)
    command = fm.new_find_command(args.layout) if criteria else fm.new_find_all_command(args.layout)
    for field, value in criteria.items():
        command.add_find_criterion(field, value)
    if criteria and args.use_or:
        command.set_logical_operator("or")
    for precedence, (field, order) in enumerate(parse_sort(args.sort), 1):
        command.add_sort_rule(field, precedence, order)
    command.set_range(args.skip, args.max_records)
    result = command.execute()

    layout = result.get_layout()
    columns = layout.list_fields() if layout is not None else []
    table = Table(
        title=f"{args.layout}: {result.get_found_set_count()} found, "
        f"{result.get_table_record_count()} total (showing {len(result)})"
    )
    table.add_column("recid", style="dim", justify="right")
    for name in columns:
        table.add_column(name)
    for record in result:
        table.add_row(
            str(record.record_id),
            *(str(record.get_field(name, unencoded=True) or "") for name in columns),
        )
    console.print(table)


def main() -> None:
    """Entry point for the fm-client CLI."""
    args = build_parser().parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )

    if args.command == "serve":
        from filemaker_client.server import main as server_main

        server_main()
        return

    if args.command == "connections":
        from filemaker_client.tools.connection import init_connections, list_connections

        init_connections()
        console.print(list_connections())
        return

    try:
        with _client(args) as fm:
            if args.command == "databases":
                _print_names("Databases", fm.list_databases())
            elif args.command == "layouts":
                _print_names(f"Layouts in {fm.settings.fm_database}", fm.list_layouts())
            elif args.command == "scripts":
                _print_names(f"Scripts in {fm.settings.fm_database}", fm.list_scripts())
            elif args.command == "describe":
                _describe(fm, args.layout, args.value_lists)
            elif args.command == "find":
                _find(fm, args)
    except FileMakerError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
