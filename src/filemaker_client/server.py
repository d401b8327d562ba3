"""FileMaker MCP server: exposes the client as MCP tools.

Registers the record and layout tools with FastMCP and handles lifecycle.
Run via: fm-client serve
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastmcp import FastMCP

from filemaker_client.config import settings
from filemaker_client.tools import layouts, records
from filemaker_client.tools.connection import (
    close_client,
    init_connections,
    list_connections,
    use_connection,
)

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastMCP) -> AsyncIterator[None]:
    """Open the default connection; close the client on shutdown."""
    default_name = init_connections()
    if default_name:
        logger.info("Connected to default connection '%s'", default_name)
    else:
        logger.warning("No connections configured, server starting without FM connection")
    try:
        yield
    finally:
        close_client()


mcp = FastMCP(
    "FileMaker",
    lifespan=lifespan,
    instructions=(
        "You are connected to a FileMaker database through its Custom Web "
        "Publishing XML gateway or the Data API.\n\n"
        "WORKFLOW:\n"
        "1. Call fm_list_layouts to see what layouts exist\n"
        "2. Call fm_describe_layout(layout) BEFORE searching or writing, and use "
        "the exact field names it returns (portal fields are 'Table::Field')\n"
        "3. Records are addressed by their internal record id (recid)\n\n"
        "FIND SYNTAX: criteria values accept FileMaker operators, e.g. '>100', "
        "'1/1/2024...12/31/2024', '==exact', '*partial*'."
    ),
)


# --- Register Tools ---
# Each function's docstring becomes the tool description the client sees.


@mcp.tool()
def fm_find(
    layout: str,
    criteria: dict[str, str] | None = None,
    sort: str = "",
    skip: int = 0,
    max_records: int = 20,
    logical_operator: str = "and",
) -> str:
    """Find records on a FileMaker layout.

    Args:
        layout: Layout name (use fm_list_layouts).
        criteria: Field name to search value. Leave empty to return all records.
            Examples: {"City": "Springfield"}, {"Amount": ">500"}
        sort: Comma-separated sort rules, e.g. "Name asc, Date desc".
        skip: Number of records to skip (for pagination).
        max_records: Maximum records to return (default 20).
        logical_operator: "and" (all criteria match) or "or" (any matches).

    Returns:
        Formatted text with matching records and their portal rows.
    """
    return records.find_records(layout, criteria, sort, skip, max_records, logical_operator)


@mcp.tool()
def fm_get_record(layout: str, record_id: str) -> str:
    """Get a single record by its internal record id (recid).

    Args:
        layout: Layout name.
        record_id: The recid shown by fm_find.
    """
    return records.get_record(layout, record_id)


@mcp.tool()
def fm_create_record(layout: str, values: dict[str, Any]) -> str:
    """Create a new record.

    Args:
        layout: Layout name.
        values: Field name to value. Use a list for repeating fields.

    Returns:
        The stored record, including auto-entered values and its recid.
    """
    return records.create_record(layout, values)


@mcp.tool()
def fm_edit_record(layout: str, record_id: str, values: dict[str, Any], modification_id: str = "") -> str:
    """Update fields of an existing record.

    Args:
        layout: Layout name.
        record_id: The recid of the record to change.
        values: Field name to new value.
        modification_id: Optional modid; the edit fails if the record changed since.
    """
    return records.edit_record(layout, record_id, values, modification_id)


@mcp.tool()
def fm_delete_record(layout: str, record_id: str) -> str:
    """Delete a record. This cannot be undone.

    Args:
        layout: Layout name.
        record_id: The recid of the record to delete.
    """
    return records.delete_record(layout, record_id)


@mcp.tool()
def fm_perform_script(layout: str, script: str, parameter: str = "") -> str:
    """Run a FileMaker script in the context of a layout.

    Args:
        layout: Layout the script runs on.
        script: Script name (use fm_list_scripts).
        parameter: Optional script parameter.
    """
    return records.perform_script(layout, script, parameter)


@mcp.tool()
def fm_describe_layout(layout: str, with_value_lists: bool = False) -> str:
    """Describe the fields, portals and validation rules of a layout.

    Args:
        layout: Layout name.
        with_value_lists: Also fetch the layout's value lists.
    """
    return layouts.describe_layout(layout, with_value_lists)


@mcp.tool()
def fm_list_layouts() -> str:
    """List the layouts of the connected database."""
    return layouts.list_layouts()


@mcp.tool()
def fm_list_scripts() -> str:
    """List the scripts of the connected database."""
    return layouts.list_scripts()


@mcp.tool()
def fm_list_databases() -> str:
    """List the databases hosted on the server."""
    return layouts.list_databases()


@mcp.tool()
def fm_use_connection(name: str) -> str:
    """Switch to another configured FileMaker connection.

    Args:
        name: Connection name (see fm_list_connections).
    """
    return use_connection(name)


@mcp.tool()
def fm_list_connections() -> str:
    """List configured connections and show which one is active."""
    return list_connections()


def main() -> None:
    """Entry point for the MCP server."""
    logger.info("Starting FileMaker MCP Server")
    logger.info("FM Host: %s", settings.fm_host)
    logger.info("FM Database: %s", settings.fm_database)
    logger.info("Grammar: %s", "Data API" if settings.fm_use_data_api else "XML")
    mcp.run()


if __name__ == "__main__":
    main()
