"""Tests for the field-rule validation pipeline."""

import pytest

from myflix_api.exceptions import ValidationError
from myflix_api.validation import (
    FieldRule,
    collect_violations,
    is_alphanumeric,
    is_date,
    is_email,
    profile_update_rules,
    registration_rules,
    validate_payload,
)


class TestRegistrationRules:
    """Registration payloads must satisfy every rule."""

    def test_valid_payload_has_no_violations(self, registration):
        assert collect_violations(registration, registration_rules()) == []

    def test_birthday_is_optional(self, registration):
        del registration["birthday"]
        assert collect_violations(registration, registration_rules()) == []

    def test_all_violations_are_collected(self):
        """Every broken rule is reported, not only the first."""
        payload = {"username": "ab!", "password": "", "email": "not-an-email", "birthday": "yesterday"}

        violations = collect_violations(payload, registration_rules())

        assert [v["msg"] for v in violations] == [
            "Username is required",
            "Username contains non alphanumeric characters - not allowed.",
            "Password is required",
            "Email does not appear to be valid",
            "Birthday must be a valid date",
        ]
        assert {v["param"] for v in violations} == {"username", "password", "email", "birthday"}

    def test_empty_payload_reports_required_fields(self):
        violations = collect_violations({}, registration_rules())

        params = [v["param"] for v in violations]
        assert params == ["username", "username", "password", "email"]

    def test_short_alphanumeric_username(self, registration):
        registration["username"] = "abcd"

        violations = collect_violations(registration, registration_rules())

        assert len(violations) == 1
        assert violations[0]["msg"] == "Username is required"
        assert violations[0]["value"] == "abcd"

    def test_password_value_is_never_echoed(self):
        violations = collect_violations({"password": ""}, registration_rules())

        password_violation = next(v for v in violations if v["param"] == "password")
        assert "value" not in password_violation

    def test_violation_shape(self):
        violations = collect_violations({"username": "MovieFan1"}, registration_rules())

        email = next(v for v in violations if v["param"] == "email")
        assert email == {
            "location": "body",
            "param": "email",
            "msg": "Email does not appear to be valid",
            "value": "",
        }


class TestProfileUpdateRules:
    """Profile updates only check the fields that are sent."""

    def test_empty_update_is_valid(self):
        assert collect_violations({}, profile_update_rules()) == []

    def test_email_only_update(self):
        assert collect_violations({"email": "new@mail.com"}, profile_update_rules()) == []

    def test_sent_fields_are_still_checked(self):
        violations = collect_violations({"username": "x y", "password": ""}, profile_update_rules())

        assert [v["msg"] for v in violations] == [
            "Username is required",
            "Username contains non alphanumeric characters - not allowed.",
            "Password is required",
        ]


class TestValidatePayload:
    def test_raises_with_every_violation(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_payload({"username": "bad"}, registration_rules())

        assert len(exc_info.value.violations) == 3
        assert "Password is required" in str(exc_info.value)

    def test_clean_payload_returns_none(self, registration):
        assert validate_payload(registration, registration_rules()) is None

    def test_custom_rule(self):
        rule = FieldRule("title", "Title is required", lambda v: bool(v))

        assert rule.evaluate({"title": "Alien"}) is None
        assert rule.evaluate({})["msg"] == "Title is required"


@pytest.mark.parametrize(
    ("value", "expected"),
    [("MovieFan1", True), ("Movie_Fan", False), ("Movie Fan", False), ("Émile123", False), (None, False)],
)
def test_is_alphanumeric(value, expected):
    assert is_alphanumeric(value) is expected


@pytest.mark.parametrize(
    ("value", "expected"),
    [("a@b.com", True), ("user@mail.org", True), ("a@b", False), ("plainaddress", False), (42, False)],
)
def test_is_email(value, expected):
    assert is_email(value) is expected


@pytest.mark.parametrize(
    ("value", "expected"),
    [("1990-05-17", True), ("1990-13-01", False), ("someday", False), (0, False)],
)
def test_is_date(value, expected):
    assert is_date(value) is expected
