from filemaker_client.parsers.base import (
    FieldDefinition,
    ParsedFoundSet,
    ParsedHead,
    ParsedRecord,
    ParsedResponse,
    ResponseParser,
)
from filemaker_client.parsers.data_api import DataApiParser
from filemaker_client.parsers.fmpxmllayout import FMPXMLLayoutParser
from filemaker_client.parsers.fmresultset import FMResultSetParser

__all__ = [
    "DataApiParser",
    "FMPXMLLayoutParser",
    "FMResultSetParser",
    "FieldDefinition",
    "ParsedFoundSet",
    "ParsedHead",
    "ParsedRecord",
    "ParsedResponse",
    "ResponseParser",
]
