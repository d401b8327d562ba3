"""Field metadata as described by a layout or a portal."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from filemaker_client.constants import ValidationRule
from filemaker_client.validation import validate_value

if TYPE_CHECKING:
    from filemaker_client.layout import Layout, RelatedSet


class Field:
    """One field on a layout, or inside a related set (portal).

    ``result`` is the value type (text, number, date, time, timestamp,
    container); ``type`` is the entry type (normal, calculation, summary).
    ``style_type`` and the value list contents are only known once the
    layout's extended info has been loaded.
    """

    def __init__(self, owner: Layout | RelatedSet, name: str = "") -> None:
        self.owner = owner
        self.name = name
        self.auto_entered = False
        self.global_ = False
        self.max_repeat = 1
        self.result = "text"
        self.type = "normal"
        self.validation_mask = ValidationRule(0)
        self.validation_rules: dict[ValidationRule, Any] = {}
        self.value_list: str | None = None
        self.style_type: str | None = None

    def __repr__(self) -> str:
        return f"Field({self.name!r}, result={self.result!r})"

    @property
    def layout(self) -> Layout:
        """The layout this field belongs to, through its related set if any."""
        return getattr(self.owner, "layout", self.owner)

    @property
    def repetition_count(self) -> int:
        return self.max_repeat

    @property
    def max_characters(self) -> int | None:
        return self.validation_rules.get(ValidationRule.MAX_CHARACTERS)

    def add_validation_rule(self, rule: ValidationRule, detail: Any = True) -> None:
        self.validation_mask |= rule
        self.validation_rules[rule] = detail

    def has_validation_rule(self, rule: ValidationRule) -> bool:
        return bool(self.validation_mask & rule)

    def get_validation_rules(self) -> list[ValidationRule]:
        """Active rules, in ascending bit order."""
        return [rule for rule in ValidationRule if self.validation_mask & rule]

    def describe_validation_rule(self, rule: ValidationRule) -> Any:
        """Extra data for ``rule`` (the bound for MAX_CHARACTERS), or None."""
        return self.validation_rules.get(rule)

    def describe_validation_rules(self) -> dict[ValidationRule, Any]:
        return dict(self.validation_rules)

    # Every rule FileMaker reports through the XML and Data API grammars is
    # enforceable locally, so the local and full rule sets coincide.
    local_validation_rules = get_validation_rules
    describe_local_validation_rules = describe_validation_rules

    def validate(self, value: Any) -> bool:
        """Pre-validate ``value`` against this field's rules.

        Raises:
            ValidationFailure: If any rule fails.
        """
        return validate_value(self, value)

    def get_value_list(self, record_id: str | None = None) -> list[str] | None:
        """Choices of the value list attached to this field, loading extended info."""
        layout = self.layout
        layout.load_extended_info(record_id)
        if self.value_list is None:
            return None
        return layout.get_value_list(self.value_list)

    def get_style_type(self) -> str | None:
        """Control style, e.g. EDITTEXT, POPUPLIST, CHECKBOX, CALENDAR."""
        self.layout.load_extended_info()
        return self.style_type
