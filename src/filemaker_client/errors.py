"""Exception hierarchy for the FileMaker client.

Every error raised by the client derives from ``FileMakerError`` so callers
need a single ``except`` clause. The server error-code table is used to give
``ServerProtocolError`` a readable message when the response carries none.
"""

from typing import Any, NamedTuple

# Subset of the FileMaker Server error-code table (CWP and Data API share it).
ERROR_MESSAGES: dict[int, str] = {
    -1: "Unknown error",
    0: "No error",
    1: "User canceled action",
    2: "Memory error",
    3: "Command is unavailable (for example, wrong operating system or mode)",
    4: "Command is unknown",
    5: "Command is invalid",
    6: "File is read-only",
    7: "Running out of memory",
    8: "Empty result",
    9: "Insufficient privileges",
    10: "Requested data is missing",
    11: "Name is not valid",
    12: "Name already exists",
    13: "File or object is in use",
    14: "Out of range",
    15: "Can't divide by zero",
    16: "Operation failed; request retry",
    18: "Client must provide account information to proceed",
    20: "Command or operation canceled by triggered script",
    21: "Request not supported",
    100: "File is missing",
    101: "Record is missing",
    102: "Field is missing",
    103: "Relationship is missing",
    104: "Script is missing",
    105: "Layout is missing",
    106: "Table is missing",
    107: "Index is missing",
    108: "Value list is missing",
    109: "Privilege set is missing",
    110: "Related tables are missing",
    111: "Field repetition is invalid",
    112: "Window is missing",
    113: "Function is missing",
    114: "File reference is missing",
    116: "Layout object is missing",
    117: "Data source is missing",
    200: "Record access is denied",
    201: "Field cannot be modified",
    202: "Field access is denied",
    203: "No records in file to print, or password doesn't allow print access",
    212: "Invalid user account or password",
    214: "Too many login attempts",
    300: "File is locked or in use",
    301: "Record is in use by another user",
    302: "Table is in use by another user",
    303: "Database schema is in use by another user",
    304: "Layout is in use by another user",
    306: "Record modification ID does not match",
    400: "Find criteria are empty",
    401: "No records match the request",
    402: "Selected field is not a match field for a lookup",
    500: "Date value does not meet validation entry options",
    501: "Time value does not meet validation entry options",
    502: "Number value does not meet validation entry options",
    503: "Value in field is not within the range specified in validation entry options",
    504: "Value in field is not unique, as required in validation entry options",
    505: "Value in field is not an existing value in the file",
    506: "Value in field is not listed in the value list specified in validation entry option",
    507: "Value in field failed calculation test of validation entry option",
    508: "Invalid value entered in Find mode",
    509: "Field requires a valid value",
    510: "Related value is empty; unable to relate",
    511: "Value in field exceeds maximum field size",
    512: "Record was already modified by another user",
    802: "Unable to open file",
    952: "Invalid FileMaker Data API token",
    953: "Invalid FileMaker Data API session",
    954: "Unsupported XML grammar",
    956: "Maximum number of FileMaker Data API sessions exceeded",
    958: "Parameter missing",
    959: "Custom Web Publishing technology is disabled",
    960: "Parameter is invalid",
    1630: "URL format is incorrect",
    1708: "Parameter value is invalid",
}


def error_message(code: int) -> str:
    """Return the FileMaker message for a server error code."""
    return ERROR_MESSAGES.get(code, ERROR_MESSAGES[-1])


class FileMakerError(Exception):
    """Base class for every error raised by the client."""


class TransportError(FileMakerError):
    """The HTTP request could not be completed."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ServerProtocolError(FileMakerError):
    """The server answered with a non-zero FileMaker error code."""

    def __init__(self, code: int, message: str | None = None) -> None:
        self.code = code
        self.message = message or error_message(code)
        super().__init__(f"FileMaker error {code}: {self.message}")


class ParseError(FileMakerError):
    """The response body is not a well-formed XML or JSON document."""

    def __init__(self, message: str, line: int | None = None) -> None:
        super().__init__(message)
        self.line = line


class VersionMismatchError(ParseError):
    """The server is older than the minimum supported version."""


class SchemaError(FileMakerError):
    """A field, related set or value list is not part of the layout."""


class FieldNotFoundError(SchemaError):
    def __init__(self, field_name: str, layout_name: str | None = None) -> None:
        self.field_name = field_name
        self.layout_name = layout_name
        where = f" in layout '{layout_name}'" if layout_name else ""
        super().__init__(f"Field '{field_name}' not found{where}.")


class RelatedSetNotFoundError(SchemaError):
    def __init__(self, related_set: str, layout_name: str | None = None) -> None:
        self.related_set = related_set
        self.layout_name = layout_name
        where = f" in layout '{layout_name}'" if layout_name else ""
        super().__init__(f"Related set '{related_set}' not found{where}.")


class ValueListNotFoundError(SchemaError):
    def __init__(self, value_list: str, layout_name: str | None = None) -> None:
        self.value_list = value_list
        self.layout_name = layout_name
        where = f" in layout '{layout_name}'" if layout_name else ""
        super().__init__(f"Value list '{value_list}' not found{where}.")


class UnsupportedOperationError(FileMakerError):
    """The active grammar cannot express the requested operation."""


class CommandError(FileMakerError):
    """A command was executed without the state it requires."""


class DateFormatError(FileMakerError, ValueError):
    """A date or timestamp value does not match the expected format."""


class ValidationError(NamedTuple):
    """One failed pre-validation rule."""

    field: Any  # Field
    rule: Any  # ValidationRule, or None for an invalid value type
    value: Any
    message: str


class ValidationFailure(FileMakerError):
    """Aggregated pre-validation failures.

    Collects every failing (field, rule, value) so a caller can report all
    problems at once instead of fixing them one round trip at a time.
    """

    def __init__(self, errors: list[ValidationError] | None = None) -> None:
        self.errors: list[ValidationError] = list(errors or [])
        super().__init__(self._summary())

    def _summary(self) -> str:
        if not self.errors:
            return "Validation failed"
        parts = [f"{_field_name(e.field)}: {e.message}" for e in self.errors]
        return "Validation failed: " + "; ".join(parts)

    def add_error(self, field: Any, rule: Any, value: Any, message: str) -> None:
        self.errors.append(ValidationError(field, rule, value, message))
        self.args = (self._summary(),)

    def extend(self, other: "ValidationFailure") -> None:
        for error in other.errors:
            self.add_error(*error)

    def get_errors(self, field_name: str | None = None) -> list[ValidationError]:
        """Return all errors, or only those raised for ``field_name``."""
        if field_name is None:
            return list(self.errors)
        return [e for e in self.errors if _field_name(e.field) == field_name]

    def num_errors(self) -> int:
        return len(self.errors)

    def __len__(self) -> int:
        return len(self.errors)


def _field_name(field: Any) -> str:
    return str(getattr(field, "name", field))
