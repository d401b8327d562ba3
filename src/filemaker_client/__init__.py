"""FileMaker client: CWP XML and Data API access to FileMaker Server."""

from filemaker_client.client import FileMaker
from filemaker_client.commands import (
    Add,
    CompoundFind,
    Delete,
    Duplicate,
    Edit,
    Find,
    FindAll,
    FindAny,
    FindRequest,
    PerformScript,
)
from filemaker_client.config import ConnectionConfig, Settings
from filemaker_client.constants import ValidationRule
from filemaker_client.errors import (
    CommandError,
    DateFormatError,
    FileMakerError,
    ParseError,
    SchemaError,
    ServerProtocolError,
    TransportError,
    UnsupportedOperationError,
    ValidationFailure,
    VersionMismatchError,
)
from filemaker_client.field import Field
from filemaker_client.layout import Layout, RelatedSet
from filemaker_client.record import Record
from filemaker_client.result import Result

__version__ = "0.1.0"

__all__ = [
    "Add",
    "CommandError",
    "CompoundFind",
    "ConnectionConfig",
    "DateFormatError",
    "Delete",
    "Duplicate",
    "Edit",
    "Field",
    "FileMaker",
    "FileMakerError",
    "Find",
    "FindAll",
    "FindAny",
    "FindRequest",
    "Layout",
    "ParseError",
    "PerformScript",
    "Record",
    "RelatedSet",
    "Result",
    "SchemaError",
    "ServerProtocolError",
    "Settings",
    "TransportError",
    "UnsupportedOperationError",
    "ValidationFailure",
    "ValidationRule",
    "VersionMismatchError",
]
