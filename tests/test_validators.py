"""
Tests for the rule validators and run_rules().
"""

import pytest

from tessera.models import (
    ChoicesValidator,
    EmailValidator,
    MaxLengthValidator,
    MaxValueValidator,
    MinLengthValidator,
    MinValueValidator,
    RangeValidator,
    RegexValidator,
    Required,
    URLValidator,
    ValidationError,
)
from tessera.models.validators import run_rules


class TestValidators:
    def test_required(self):
        validator = Required()
        for bad in (None, "", "  ", [], {}):
            with pytest.raises(ValidationError) as info:
                validator(bad)
            assert info.value.code == "required"
        validator("x")
        validator(0)

    def test_none_skipped_by_format_rules(self):
        for validator in (MinLengthValidator(2), EmailValidator(), RangeValidator(1, 2), ChoicesValidator("ab")):
            validator(None)

    def test_value_bounds(self):
        MinValueValidator(3)(3)
        MaxValueValidator(3)(3)
        with pytest.raises(ValidationError):
            MinValueValidator(3)(2)
        with pytest.raises(ValidationError) as info:
            MaxValueValidator(3)(4)
        assert info.value.message == "Ensure this value is less than or equal to 3."

    def test_range_inclusive(self):
        RangeValidator(18, 120)(18)
        RangeValidator(18, 120)(120)
        with pytest.raises(ValidationError):
            RangeValidator(18, 120)(17)

    def test_lengths(self):
        MaxLengthValidator(3)("abc")
        with pytest.raises(ValidationError):
            MaxLengthValidator(3)("abcd")
        with pytest.raises(ValidationError):
            MinLengthValidator(2)("a")

    def test_custom_message(self):
        with pytest.raises(ValidationError) as info:
            MinLengthValidator(5, message="Too short")("abc")
        assert info.value.message == "Too short"

    def test_regex(self):
        sku = RegexValidator(r"^[A-Z]{2}-\d{4}$", message="Invalid SKU")
        sku("AB-1234")
        with pytest.raises(ValidationError):
            sku("ab-1")
        RegexValidator(r"\s", inverse_match=True)("nospace")

    @pytest.mark.parametrize("value", ["a@x.com", "first.last+tag@sub.example.org"])
    def test_email_valid(self, value):
        EmailValidator()(value)

    @pytest.mark.parametrize("value", ["nope", "a@", "@x.com", "a b@x.com"])
    def test_email_invalid(self, value):
        with pytest.raises(ValidationError):
            EmailValidator()(value)

    def test_url(self):
        URLValidator()("https://example.com/path?q=1")
        with pytest.raises(ValidationError):
            URLValidator()("not a url")

    def test_choices(self):
        ChoicesValidator(["admin", "user"])("user")
        with pytest.raises(ValidationError) as info:
            ChoicesValidator(["admin", "user"])("root")
        assert info.value.code == "invalid_choice"


class TestRunRules:
    def test_collects_all_messages(self):
        data = {"name": "", "age": 5}
        errors = run_rules(
            {"name": [Required(), MinLengthValidator(2)], "age": [MinValueValidator(18)]},
            data.get,
        )
        assert list(errors) == ["name", "age"]
        assert len(errors["name"]) == 2

    def test_type_errors_become_messages(self):
        errors = run_rules({"age": [MinValueValidator(18)]}, {"age": "old"}.get)
        assert "age" in errors

    def test_valid(self):
        assert run_rules({"name": [Required()]}, {"name": "Ann"}.get) == {}
