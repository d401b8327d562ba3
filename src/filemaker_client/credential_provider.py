"""Credential providers for the FileMaker client.

Decouples where connection details live from the client itself. The
built-in EnvCredentialProvider reads .env files; embedding applications
can pass any object satisfying ``CredentialProvider`` instead.
"""

import os
from typing import Protocol, runtime_checkable

from filemaker_client.config import ConnectionConfig


@runtime_checkable
class CredentialProvider(Protocol):
    """Interface for providing connection details to the client."""

    def get_connection_names(self) -> list[str]:
        """Return all available connection names."""
        ...

    def get_connection(self, name: str) -> ConnectionConfig:
        """Return connection details for ``name``.

        Raises:
            KeyError: If the connection name is not found.
        """
        ...

    def get_default_connection(self) -> str:
        """Return the default connection name, or empty string if none."""
        ...


class EnvCredentialProvider:
    """Credential provider that reads from environment variables / .env files.

    Scans for ``{PREFIX}_FM_HOST`` to discover named connections and falls
    back to ``FM_HOST`` as a single ``default`` connection.
    """

    def __init__(self, load_env: bool = True) -> None:
        if load_env:
            from dotenv import load_dotenv

            load_dotenv()
        self._connections = self._discover()

    @staticmethod
    def _read(prefix: str, name: str, host: str) -> ConnectionConfig:
        env = os.environ
        return ConnectionConfig(
            name=name,
            host=host,
            database=env.get(f"{prefix}FM_DATABASE", ""),
            username=env.get(f"{prefix}FM_USERNAME", ""),
            password=env.get(f"{prefix}FM_PASSWORD", ""),
            verify_ssl=env.get(f"{prefix}FM_VERIFY_SSL", "true").lower() == "true",
            timeout=int(env.get(f"{prefix}FM_TIMEOUT", "60")),
        )

    def _discover(self) -> dict[str, ConnectionConfig]:
        connections: dict[str, ConnectionConfig] = {}

        for key, value in os.environ.items():
            if key.endswith("_FM_HOST") and key != "FM_HOST":
                prefix = key[: -len("FM_HOST")]
                name = prefix[:-1].lower()
                connections[name] = self._read(prefix, name, value)

        if not connections:
            host = os.environ.get("FM_HOST", "")
            if host:
                connections["default"] = self._read("", "default", host)

        return connections

    def get_connection_names(self) -> list[str]:
        return sorted(self._connections)

    def get_connection(self, name: str) -> ConnectionConfig:
        if name not in self._connections:
            raise KeyError(
                f"Connection '{name}' not found. "
                f"Available: {', '.join(self.get_connection_names())}"
            )
        return self._connections[name]

    def get_default_connection(self) -> str:
        """Return FM_DEFAULT_CONNECTION if set, else 'default' or the first name."""
        default = os.environ.get("FM_DEFAULT_CONNECTION", "").lower()
        if default and default in self._connections:
            return default
        if "default" in self._connections:
            return "default"
        names = self.get_connection_names()
        return names[0] if names else ""
