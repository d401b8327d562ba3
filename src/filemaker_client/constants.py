"""Protocol constants shared by both grammars."""

from enum import IntFlag

FMRESULTSET = "fmresultset"
FMPXMLLAYOUT = "FMPXMLLAYOUT"

# Oldest FileMaker Server whose fmresultset output the parser understands.
MIN_SERVER_VERSION = "18.0.0.0"

DATA_API_VERSION = "vLatest"

# Wire formats used by the CWP grammar for date and time values.
WIRE_DATE_FORMAT = "%m/%d/%Y"
WIRE_TIME_FORMAT = "%H:%M:%S"
WIRE_TIMESTAMP_FORMAT = f"{WIRE_DATE_FORMAT} {WIRE_TIME_FORMAT}"

FIND_AND = "and"
FIND_OR = "or"

SORT_ASCEND = "ascend"
SORT_DESCEND = "descend"

FIND_EQUALS = "eq"
FIND_CONTAINS = "cn"
FIND_BEGINS_WITH = "bw"
FIND_ENDS_WITH = "ew"
FIND_GREATER_THAN = "gt"
FIND_GREATER_THAN_EQUALS = "gte"
FIND_LESS_THAN = "lt"
FIND_LESS_THAN_EQUALS = "lte"
FIND_NOT_EQUALS = "neq"

# Header that marks CWP requests as coming from the PHP-compatible API.
EXTENDED_PRIVILEGE_HEADER = "X-FMI-PE-ExtendedPrivilege"
EXTENDED_PRIVILEGE_VALUE = "IrG6U+Rx0F5bLIQCUb9gOw=="


class ValidationRule(IntFlag):
    """Pre-validation rules a field may carry, combinable as a bitmask."""

    NOT_EMPTY = 1
    NUMERIC_ONLY = 2
    MAX_CHARACTERS = 4
    FOUR_DIGIT_YEAR = 8
    TIME_OF_DAY = 16
    TIMESTAMP_FIELD = 32
    DATE_FIELD = 64
    TIME_FIELD = 128
