"""
Tessera Validators — rule callables checked by ``save(validate=True)``.

Rules are declared per column on the entity's ``Meta``:

    class User(Entity):
        class Meta:
            rules = {
                "name": [Required(), MinLengthValidator(3), MaxLengthValidator(50)],
                "email": [Required(), EmailValidator()],
                "age": [RangeValidator(18, 120)],
            }

Every validator except ``Required`` passes ``None`` through, so optional
columns only need their format rules. A failed ``save()`` returns False
and leaves the messages in ``entity.errors``.
"""

from __future__ import annotations

import re
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Union

__all__ = [
    "ValidationError",
    "BaseValidator",
    "Required",
    "MinValueValidator",
    "MaxValueValidator",
    "RangeValidator",
    "MinLengthValidator",
    "MaxLengthValidator",
    "RegexValidator",
    "EmailValidator",
    "URLValidator",
    "ChoicesValidator",
    "run_rules",
]

Number = Union[int, float, Decimal]


class ValidationError(ValueError):
    """Raised by validators when a value fails validation."""

    def __init__(self, message: str, code: str = "invalid", params: Optional[dict] = None):
        self.message = message
        self.code = code
        self.params = params or {}
        super().__init__(message)


class BaseValidator:
    """Base class for all validators."""

    message: str = "Invalid value."
    code: str = "invalid"

    def __init__(self, message: Optional[str] = None):
        if message:
            self.message = message

    def __call__(self, value: Any) -> None:
        if value is None and not self.checks_none:
            return
        if not self.is_valid(value):
            raise ValidationError(self.get_message(value), code=self.code)

    checks_none = False

    def is_valid(self, value: Any) -> bool:
        """Override in subclasses. Return True if value is valid."""
        return True

    def get_message(self, value: Any) -> str:
        return self.message

    def _custom_message(self) -> bool:
        return self.message != type(self).message

    def __eq__(self, other: Any) -> bool:
        return isinstance(other, self.__class__) and self.__dict__ == other.__dict__

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}>"


class Required(BaseValidator):
    """Reject None, empty strings and empty collections."""

    message = "This field is required."
    code = "required"
    checks_none = True

    def is_valid(self, value: Any) -> bool:
        if value is None:
            return False
        if isinstance(value, str):
            return value.strip() != ""
        if isinstance(value, (list, tuple, dict, set)):
            return len(value) > 0
        return True


class MinValueValidator(BaseValidator):
    """Ensure value >= limit."""

    code = "min_value"

    def __init__(self, limit_value: Number, message: Optional[str] = None):
        super().__init__(message)
        self.limit_value = limit_value

    def is_valid(self, value: Any) -> bool:
        return value >= self.limit_value

    def get_message(self, value: Any) -> str:
        if self._custom_message():
            return self.message
        return f"Ensure this value is greater than or equal to {self.limit_value}."

    def __repr__(self) -> str:
        return f"MinValueValidator({self.limit_value})"


class MaxValueValidator(BaseValidator):
    """Ensure value <= limit."""

    code = "max_value"

    def __init__(self, limit_value: Number, message: Optional[str] = None):
        super().__init__(message)
        self.limit_value = limit_value

    def is_valid(self, value: Any) -> bool:
        return value <= self.limit_value

    def get_message(self, value: Any) -> str:
        if self._custom_message():
            return self.message
        return f"Ensure this value is less than or equal to {self.limit_value}."

    def __repr__(self) -> str:
        return f"MaxValueValidator({self.limit_value})"


class RangeValidator(BaseValidator):
    """Ensure min_value <= value <= max_value (both inclusive)."""

    code = "out_of_range"

    def __init__(self, min_value: Number, max_value: Number, message: Optional[str] = None):
        super().__init__(message)
        self.min_value = min_value
        self.max_value = max_value

    def is_valid(self, value: Any) -> bool:
        return self.min_value <= value <= self.max_value

    def get_message(self, value: Any) -> str:
        if self._custom_message():
            return self.message
        return f"Ensure this value is between {self.min_value} and {self.max_value}."

    def __repr__(self) -> str:
        return f"RangeValidator({self.min_value}, {self.max_value})"


class MinLengthValidator(BaseValidator):
    """Ensure length >= limit."""

    code = "min_length"

    def __init__(self, limit_value: int, message: Optional[str] = None):
        super().__init__(message)
        self.limit_value = limit_value

    def is_valid(self, value: Any) -> bool:
        return len(value) >= self.limit_value

    def get_message(self, value: Any) -> str:
        if self._custom_message():
            return self.message
        return (
            f"Ensure this value has at least {self.limit_value} character(s) "
            f"(it has {len(value) if value else 0})."
        )

    def __repr__(self) -> str:
        return f"MinLengthValidator({self.limit_value})"


class MaxLengthValidator(BaseValidator):
    """Ensure length <= limit."""

    code = "max_length"

    def __init__(self, limit_value: int, message: Optional[str] = None):
        super().__init__(message)
        self.limit_value = limit_value

    def is_valid(self, value: Any) -> bool:
        return len(value) <= self.limit_value

    def get_message(self, value: Any) -> str:
        if self._custom_message():
            return self.message
        return (
            f"Ensure this value has at most {self.limit_value} character(s) "
            f"(it has {len(value) if value else 0})."
        )

    def __repr__(self) -> str:
        return f"MaxLengthValidator({self.limit_value})"


class RegexValidator(BaseValidator):
    """Validate against a regex pattern."""

    message = "Enter a valid value."

    def __init__(
        self,
        regex: str,
        message: Optional[str] = None,
        code: Optional[str] = None,
        inverse_match: bool = False,
        flags: int = 0,
    ):
        super().__init__(message)
        self.regex = regex
        self._compiled = re.compile(regex, flags)
        self.inverse_match = inverse_match
        if code:
            self.code = code

    def is_valid(self, value: Any) -> bool:
        matched = bool(self._compiled.search(str(value)))
        return not matched if self.inverse_match else matched

    def __eq__(self, other: Any) -> bool:
        return (
            isinstance(other, RegexValidator)
            and self.regex == other.regex
            and self.inverse_match == other.inverse_match
        )

    def __repr__(self) -> str:
        return f"RegexValidator({self.regex!r})"


class EmailValidator(RegexValidator):
    """Basic address shape check: local@domain.tld."""

    message = "Enter a valid email address."

    def __init__(self, message: Optional[str] = None):
        super().__init__(r"^[^@\s]+@[^@\s]+\.[A-Za-z]{2,}$", message=message, code="invalid_email")


class URLValidator(RegexValidator):
    """http(s) or ftp(s) URL with a host part."""

    message = "Enter a valid URL."

    def __init__(self, message: Optional[str] = None):
        super().__init__(r"^(?:http|ftp)s?://[^\s/$.?#][^\s]*$", message=message, code="invalid_url", flags=re.IGNORECASE)


class ChoicesValidator(BaseValidator):
    """Value must be one of a fixed set."""

    code = "invalid_choice"

    def __init__(self, choices: Iterable[Any], message: Optional[str] = None):
        super().__init__(message)
        self.choices = list(choices)

    def is_valid(self, value: Any) -> bool:
        return value in self.choices

    def get_message(self, value: Any) -> str:
        if self._custom_message():
            return self.message
        return f"Value {value!r} is not a valid choice."


def run_rules(
    rules: Mapping[str, Sequence[Callable[[Any], None]]],
    getter: Callable[[str], Any],
) -> Dict[str, List[str]]:
    """
    Apply ``rules`` to the values returned by ``getter(column)``.

    Returns column -> list of messages; an empty dict means valid.
    """
    errors: Dict[str, List[str]] = {}
    for column, validators in rules.items():
        value = getter(column)
        for validator in validators:
            try:
                validator(value)
            except ValidationError as exc:
                errors.setdefault(column, []).append(exc.message)
            except (TypeError, ValueError) as exc:
                errors.setdefault(column, []).append(str(exc))
    return errors
