"""Local pre-validation of field values.

Mirrors the checks FileMaker applies on entry so a command can be rejected
before it reaches the server. Every failing rule is collected; nothing is
fail-fast except an unusable value type.
"""

from __future__ import annotations

import calendar
import re
from datetime import date
from typing import TYPE_CHECKING, Any

from filemaker_client.constants import ValidationRule
from filemaker_client.errors import ValidationFailure

if TYPE_CHECKING:
    from filemaker_client.field import Field

_SEP = r"[-/\\]"
_TIME = r"([0-9]{1,2}):([0-9]{1,2})(:[0-9]{1,2})?( *(AM|PM))?"

DATE_PATTERN = re.compile(rf"^ *([0-9]{{1,2}}){_SEP}([0-9]{{1,2}})({_SEP}([0-9]{{1,4}}))? *$")
TIME_PATTERN = re.compile(rf"^ *{_TIME} *$", re.IGNORECASE)
TIMESTAMP_PATTERN = re.compile(
    rf"^ *([0-9]{{1,2}}){_SEP}([0-9]{{1,2}})({_SEP}([0-9]{{1,4}}))? *{_TIME} *$", re.IGNORECASE
)
TIMESTAMP_FOUR_DIGIT_YEAR_PATTERN = re.compile(
    rf"^ *([0-9]{{1,2}}){_SEP}([0-9]{{1,2}}){_SEP}([0-9]{{4}}) *{_TIME} *$", re.IGNORECASE
)
NUMBER_PATTERN = re.compile(r"^\s*[+-]?([0-9]+(\.[0-9]*)?|\.[0-9]+)([eE][+-]?[0-9]+)?\s*$")

_DATE_PARTS = re.compile(rf"([0-9]{{1,2}}){_SEP}([0-9]{{1,2}})({_SEP}([0-9]{{1,4}}))?")
_TIME_PARTS = re.compile(r"([0-9]{1,2}):([0-9]{1,2}):?([0-9]{1,2})?")

RULE_MESSAGES = {
    ValidationRule.NOT_EMPTY: "Value must not be empty",
    ValidationRule.NUMERIC_ONLY: "Value must be numeric",
    ValidationRule.MAX_CHARACTERS: "Value exceeds the maximum number of characters",
    ValidationRule.FOUR_DIGIT_YEAR: "Value must be a valid date with a four-digit year",
    ValidationRule.TIME_OF_DAY: "Value must be a valid time of day",
    ValidationRule.TIMESTAMP_FIELD: "Value must be a valid timestamp",
    ValidationRule.DATE_FIELD: "Value must be a valid date",
    ValidationRule.TIME_FIELD: "Value must be a valid time",
}
INVALID_TYPE_MESSAGE = "Value must be a string, number, boolean or null"


def is_empty(value: Any) -> bool:
    return value is None or value == ""


def is_valid_type(value: Any) -> bool:
    return value is None or isinstance(value, (str, int, float, bool))


def as_text(value: Any) -> str:
    """Render a value the way it would be sent in a request."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "1" if value else "0"
    return str(value)


def is_valid_date(year: int, month: int, day: int) -> bool:
    """Calendar check: 1 <= month <= 12 and day within the month."""
    if year < 1 or not 1 <= month <= 12 or day < 1:
        return False
    return day <= calendar.monthrange(year, month)[1]


def is_valid_time(value: str, max_hour: int) -> bool:
    match = _TIME_PARTS.search(value)
    if match is None:
        return False
    hours, minutes, seconds = match.groups()
    if not 0 <= int(hours) <= max_hour:
        return False
    if not 0 <= int(minutes) <= 59:
        return False
    return seconds is None or 0 <= int(seconds) <= 59


def check_date_validity(value: str) -> bool:
    """Validate the first month/day[/year] group; 2-digit years get 2000 added."""
    match = _DATE_PARTS.search(value)
    if match is None:
        return False
    month, day, year_text = int(match.group(1)), int(match.group(2)), match.group(4)
    if year_text:
        year = int(year_text)
        if len(year_text) != 4:
            year += 2000
        if not 1 <= year <= 4000:
            return False
    else:
        year = date.today().year
    return is_valid_date(year, month, day)


def check_four_digit_year(value: str, result_type: str) -> bool:
    if result_type == "timestamp":
        match = TIMESTAMP_FOUR_DIGIT_YEAR_PATTERN.match(value)
        if match is None:
            return False
        month, day, year = int(match.group(1)), int(match.group(2)), int(match.group(3))
        if not 1 <= year <= 4000 or not is_valid_date(year, month, day):
            return False
        return is_valid_time(value, 24)

    matches = _DATE_PARTS.findall(value)
    if len(matches) != 1:
        return False
    month, day, _, year_text = matches[0]
    if len(year_text) != 4:
        return False
    year = int(year_text)
    return 1 <= year <= 4000 and is_valid_date(year, int(month), int(day))


def _rule_passes(field: Field, rule: ValidationRule, text: str) -> bool:
    if rule is ValidationRule.NUMERIC_ONLY:
        return NUMBER_PATTERN.match(text) is not None
    if rule is ValidationRule.MAX_CHARACTERS:
        limit = field.max_characters
        return limit is None or len(text) <= limit
    if rule is ValidationRule.TIME_OF_DAY:
        return TIME_PATTERN.match(text) is not None and is_valid_time(text, 12)
    if rule is ValidationRule.TIME_FIELD:
        return TIME_PATTERN.match(text) is not None and is_valid_time(text, 24)
    if rule is ValidationRule.DATE_FIELD:
        return DATE_PATTERN.match(text) is not None and check_date_validity(text)
    if rule is ValidationRule.TIMESTAMP_FIELD:
        return (
            TIMESTAMP_PATTERN.match(text) is not None
            and check_date_validity(text)
            and is_valid_time(text, 24)
        )
    if rule is ValidationRule.FOUR_DIGIT_YEAR:
        return check_four_digit_year(text, field.result)
    return True


def validate_value(field: Field, value: Any, failure: ValidationFailure | None = None) -> bool:
    """Check ``value`` against every rule on ``field``.

    Args:
        field: Field carrying the validation mask.
        value: Candidate value.
        failure: Existing aggregate to append to; a new one is created if omitted.

    Returns:
        True when every rule passes.

    Raises:
        ValidationFailure: Listing each failing (field, rule, value).
    """
    failure = failure if failure is not None else ValidationFailure()
    start = len(failure.errors)

    if not is_valid_type(value):
        failure.add_error(field, None, value, INVALID_TYPE_MESSAGE)
        raise failure

    for rule in field.get_validation_rules():
        if rule is ValidationRule.NOT_EMPTY:
            if is_empty(value):
                failure.add_error(field, rule, value, RULE_MESSAGES[rule])
            continue
        if is_empty(value):
            continue
        if not _rule_passes(field, rule, as_text(value)):
            failure.add_error(field, rule, value, RULE_MESSAGES[rule])

    if len(failure.errors) > start:
        raise failure
    return True
