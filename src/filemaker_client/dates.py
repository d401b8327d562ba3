"""Date conversion between a caller's format and the FileMaker wire format.

Formats are strftime patterns. FileMaker itself always speaks
``%m/%d/%Y`` for dates and ``%m/%d/%Y %H:%M:%S`` for timestamps.
"""

from __future__ import annotations

import re
from datetime import datetime

from filemaker_client.constants import (
    WIRE_DATE_FORMAT,
    WIRE_TIME_FORMAT,
    WIRE_TIMESTAMP_FORMAT,
)
from filemaker_client.errors import DateFormatError

# Directives understood by the search-criteria converter, with the pattern
# each one matches in a find string ("*" is FileMaker's wildcard).
_DIRECTIVE_PATTERNS = {
    "Y": r"\d{4}|\*",
    "y": r"\d{2}|\*",
    "m": r"\d{1,2}|\*",
    "d": r"\d{1,2}|\*",
    "H": r"\d{1,2}|\*",
    "M": r"\d{1,2}|\*",
    "S": r"\d{1,2}|\*",
}
_DIRECTIVE = re.compile(r"%([A-Za-z%])")
_OPERATOR = re.compile(r"^(<=|>=|≤|≥|<|>)")


def convert(value: str | None, input_format: str | None, output_format: str | None) -> str | None:
    """Re-format ``value`` from ``input_format`` to ``output_format``.

    Empty values and missing formats pass through unchanged.

    Raises:
        DateFormatError: If ``value`` does not match ``input_format``.
    """
    if not value or input_format is None or output_format is None:
        return value
    try:
        parsed = datetime.strptime(value, input_format)
    except ValueError as e:
        raise DateFormatError(f"Invalid date '{value}' for format '{input_format}'") from e
    return parsed.strftime(output_format)


def to_wire(value: str | None, result_type: str, date_format: str | None) -> str | None:
    """Convert a caller-formatted date or timestamp to the wire format."""
    if result_type == "date":
        return convert(value, date_format, WIRE_DATE_FORMAT)
    if result_type == "timestamp" and date_format is not None:
        return convert(value, f"{date_format} {WIRE_TIME_FORMAT}", WIRE_TIMESTAMP_FORMAT)
    return value


def from_wire(value: str | None, result_type: str, date_format: str | None) -> str | None:
    """Convert a wire-format date or timestamp to the caller's format."""
    if result_type == "date":
        return convert(value, WIRE_DATE_FORMAT, date_format)
    if result_type == "timestamp" and date_format is not None:
        return convert(value, WIRE_TIMESTAMP_FORMAT, f"{date_format} {WIRE_TIME_FORMAT}")
    return value


def sanitize_date_search_string(value: str) -> str:
    """Drop exact-match prefixes and normalise FileMaker digit wildcards to ``*``."""
    value = re.sub(r"^(==|=|~)", "", value.strip())
    return re.sub(r"[@#]+", "*", value)


def convert_search_criteria(
    value: str, input_format: str | None = None, output_format: str | None = None
) -> str:
    """Convert a date find criterion, keeping comparison operators and ranges.

    ``">=2016-02-*"`` with ``%Y-%m-%d`` -> ``%m/%d/%Y`` becomes
    ``">=02/*/2016"``; ``"a...b"`` ranges convert each side.
    """
    value = sanitize_date_search_string(value)
    if input_format is None or output_format is None:
        return value

    match = _OPERATOR.match(value)
    operator = match.group(1) if match else ""
    body = value[len(operator):]
    parts = [_convert_criterion(part.strip(), input_format, output_format) for part in body.split("...")]
    return operator + "...".join(parts)


def _format_regex(fmt: str) -> re.Pattern[str]:
    pattern = ""
    pos = 0
    for directive in _DIRECTIVE.finditer(fmt):
        pattern += re.escape(fmt[pos:directive.start()])
        letter = directive.group(1)
        if letter == "%":
            pattern += "%"
        elif letter in _DIRECTIVE_PATTERNS:
            pattern += f"(?P<{letter}>{_DIRECTIVE_PATTERNS[letter]})"
        else:
            raise DateFormatError(f"Unsupported directive %{letter} in search format '{fmt}'")
        pos = directive.end()
    pattern += re.escape(fmt[pos:])
    return re.compile(rf"^{pattern}$")


def _convert_criterion(value: str, input_format: str, output_format: str) -> str:
    components = None
    # Accept the full format, or just its date half when the time is omitted.
    candidates = [input_format]
    if " " in input_format:
        candidates.append(input_format.split(" ", 1)[0])
    for fmt in candidates:
        found = _format_regex(fmt).match(value)
        if found:
            components = found.groupdict()
            break
    if components is None:
        raise DateFormatError(f"Invalid date criterion '{value}' for format '{input_format}'")

    if "y" in components and "Y" not in components:
        year = components.pop("y")
        components["Y"] = year if year == "*" else str(2000 + int(year))

    def render(directive: re.Match[str]) -> str:
        letter = directive.group(1)
        if letter == "%":
            return "%"
        component = components.get("Y" if letter == "y" else letter, "*")
        if component == "*":
            return "*"
        if letter == "Y":
            return component.zfill(4)
        if letter == "y":
            return component[-2:]
        if letter in _DIRECTIVE_PATTERNS:
            return component.zfill(2)
        raise DateFormatError(f"Unsupported directive %{letter} in search format '{output_format}'")

    return _DIRECTIVE.sub(render, output_format)
