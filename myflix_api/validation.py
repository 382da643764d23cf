"""Field-rule validation for mutating requests.

Every rule is evaluated independently and every violation is reported, so a
client can fix all invalid fields in one round-trip.
"""

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from datetime import date
from typing import Any

import pydantic
from email_validator import EmailNotValidError, validate_email

from .exceptions import ValidationError
from .types import Violation

# Values of these fields are never echoed back in a violation.
SECRET_FIELDS = frozenset({"password"})

_date_adapter = pydantic.TypeAdapter(date)


def is_min_length(minimum: int) -> Callable[[Any], bool]:
    def check(value: Any) -> bool:
        return isinstance(value, str) and len(value) >= minimum

    return check


def is_alphanumeric(value: Any) -> bool:
    # str.isalnum accepts any unicode letter; restrict to ASCII like the client does
    return isinstance(value, str) and value.isascii() and value.isalnum()


def is_not_empty(value: Any) -> bool:
    return isinstance(value, str) and value != ""


def is_email(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


def is_date(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    try:
        _date_adapter.validate_python(value)
    except pydantic.ValidationError:
        return False
    return True


@dataclass(frozen=True)
class FieldRule:
    """A single check against one payload field.

    Optional rules are skipped when the field is absent or null.
    """

    field: str
    message: str
    check: Callable[[Any], bool]
    optional: bool = False

    def evaluate(self, payload: Mapping[str, Any]) -> Violation | None:
        value = payload.get(self.field)
        if self.optional and value is None:
            return None
        if self.check(value):
            return None

        violation: Violation = {"location": "body", "param": self.field, "msg": self.message}
        if self.field not in SECRET_FIELDS:
            violation["value"] = value if value is not None else ""
        return violation


def registration_rules() -> list[FieldRule]:
    """Rules for creating an account. All fields but the birthday are required."""
    return [
        FieldRule("username", "Username is required", is_min_length(5)),
        FieldRule(
            "username",
            "Username contains non alphanumeric characters - not allowed.",
            is_alphanumeric,
        ),
        FieldRule("password", "Password is required", is_not_empty),
        FieldRule("email", "Email does not appear to be valid", is_email),
        FieldRule("birthday", "Birthday must be a valid date", is_date, optional=True),
    ]


def profile_update_rules() -> list[FieldRule]:
    """Rules for a partial profile update: each applies only to fields that are sent."""
    return [
        FieldRule(rule.field, rule.message, rule.check, optional=True)
        for rule in registration_rules()
    ]


def collect_violations(payload: Mapping[str, Any], rules: Sequence[FieldRule]) -> list[Violation]:
    """Evaluate every rule and return all violations in rule order."""
    return [violation for rule in rules if (violation := rule.evaluate(payload)) is not None]


def validate_payload(payload: Mapping[str, Any], rules: Sequence[FieldRule]) -> None:
    """Raise ``ValidationError`` carrying every violation, or return if the payload is clean."""
    violations = collect_violations(payload, rules)
    if violations:
        raise ValidationError(violations)
