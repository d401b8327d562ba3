"""Connection switching for the MCP server.

Keeps the named connections loaded from a ``CredentialProvider`` and one
active ``FileMaker`` client. All record and layout tools use the active
client.
"""

import logging
from typing import TYPE_CHECKING

from filemaker_client.client import FileMaker
from filemaker_client.config import ConnectionConfig, settings

if TYPE_CHECKING:
    from filemaker_client.credential_provider import CredentialProvider

logger = logging.getLogger(__name__)

# Module-level connection state
_connections: dict[str, ConnectionConfig] = {}
_active: dict[str, str] = {"name": ""}
_client: dict[str, FileMaker] = {}


def init_connections(provider: "CredentialProvider | None" = None) -> str:
    """Load connection configs and open the default one.

    Args:
        provider: Credential source. If None, creates EnvCredentialProvider
                  (reads .env).

    Returns:
        The default connection name, or empty string if none is configured.
    """
    if provider is None:
        from filemaker_client.credential_provider import EnvCredentialProvider

        provider = EnvCredentialProvider()

    _connections.clear()
    for name in provider.get_connection_names():
        _connections[name] = provider.get_connection(name)

    default_name = provider.get_default_connection()
    if default_name:
        _activate(default_name)
    logger.info(
        "Loaded %d connection(s): %s (default: %s)",
        len(_connections),
        ", ".join(sorted(_connections)),
        default_name or "none",
    )
    return default_name


def _activate(name: str) -> FileMaker:
    close_client()
    connection = _connections[name]
    client = FileMaker(
        settings=connection.to_settings(
            fm_use_data_api=settings.fm_use_data_api,
            fm_prevalidate=settings.fm_prevalidate,
            fm_date_format=settings.fm_date_format,
            log_level=settings.log_level,
        )
    )
    _client["active"] = client
    _active["name"] = name
    return client


def get_client() -> FileMaker:
    """Return the active client.

    Raises:
        RuntimeError: If no connection has been configured.
    """
    client = _client.get("active")
    if client is None:
        raise RuntimeError(
            "No FileMaker connection configured. Set FM_HOST, FM_DATABASE, "
            "FM_USERNAME and FM_PASSWORD (or <NAME>_FM_HOST for named connections)."
        )
    return client


def set_client(client: FileMaker, name: str = "custom") -> None:
    """Install an already built client as the active connection."""
    close_client()
    _client["active"] = client
    _active["name"] = name


def close_client() -> None:
    client = _client.pop("active", None)
    if client is not None:
        client.close()


def use_connection(name: str) -> str:
    """Switch the active connection.

    Args:
        name: Connection name (case-insensitive).

    Returns:
        Status message with connection details.
    """
    name = name.lower()
    if name not in _connections:
        available = ", ".join(sorted(_connections))
        return f"Unknown connection '{name}'. Available: {available}"

    connection = _connections[name]
    if name == _active["name"] and "active" in _client:
        return f"Already connected to '{name}' ({connection.host}/{connection.database})."

    _activate(name)
    logger.info("Switched to connection '%s' (%s/%s)", name, connection.host, connection.database)
    return f"Switched to '{name}'.\n  Host: {connection.host}\n  Database: {connection.database}"


def list_connections() -> str:
    if not _connections:
        return "No connections configured. Set *_FM_HOST env vars or FM_HOST for a single connection."

    lines = ["Configured connections:\n"]
    for name in sorted(_connections):
        connection = _connections[name]
        marker = " (active)" if name == _active["name"] else ""
        lines.append(f"  {name}{marker}: {connection.host}/{connection.database}")
    return "\n".join(lines)
