"""
Submission schemas for the public forms.

Each string field is trimmed and then checked against every one of its
rules, so a single field can report several problems at once (for example
a message that is both too short and has too few words). Validation never
raises: `validate_submission` converts pydantic errors into an `Invalid`
result keyed by field name.
"""

import re
from typing import Any, Dict, List, Optional, Type

from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel, ConfigDict, StrictBool, ValidationError, field_validator
from pydantic_core import PydanticCustomError

from .models import Invalid, Valid, ValidationResult

NAME_PATTERN = re.compile(r"^[a-zA-Z\s'-]+$")
PHONE_PATTERN = re.compile(
    r"^(\+?\d{1,3}[-.\s])?\(?\d{2,4}\)?[-.\s]?\d{3,4}[-.\s]?\d{3,4}$"
)

NAME_MIN, NAME_MAX = 3, 50
EMAIL_MIN, EMAIL_MAX = 6, 254
PHONE_MIN, PHONE_MAX = 9, 20
MESSAGE_MIN, MESSAGE_MAX = 15, 2000
MESSAGE_MIN_WORDS = 6

INVALID_EMAIL = "Invalid email address."

# Error type used to carry every violated rule of one field
RULE_VIOLATIONS = 'rule_violations'


def _reject(violations: List[str]) -> None:
    raise PydanticCustomError(
        RULE_VIOLATIONS,
        '{summary}',
        {'summary': ' '.join(violations), 'violations': tuple(violations)},
    )


def _check(value: str, rules) -> str:
    """Apply (failed_predicate, message) rules and reject with every failure."""
    violations = [message for failed, message in rules if failed]
    if violations:
        _reject(violations)
    return value


def _is_email(value: str) -> bool:
    try:
        # ".test" addresses pass syntax; the MX check rejects them later
        validate_email(value, check_deliverability=False, test_environment=True)
    except EmailNotValidError:
        return False
    return True


def check_email(value: str) -> str:
    """Syntax-check an address (no DNS); rejects with a single message."""
    if not EMAIL_MIN <= len(value) <= EMAIL_MAX or not _is_email(value):
        _reject([INVALID_EMAIL])
    return value


def word_count(text: str) -> int:
    """Number of non-empty whitespace-separated tokens."""
    return len(text.split())


class NewsletterSubscription(BaseModel):
    """Newsletter signup: only an email address."""

    model_config = ConfigDict(str_strip_whitespace=True, extra='ignore')

    email: str

    @field_validator('email')
    @classmethod
    def _email_rules(cls, value: str) -> str:
        return check_email(value)


class ContactFormSubmission(BaseModel):
    """Contact form submission."""

    model_config = ConfigDict(str_strip_whitespace=True, extra='ignore')

    name: Optional[str] = None
    email: str
    phone: str
    message: str
    priority: StrictBool = False

    @field_validator('name')
    @classmethod
    def _name_rules(cls, value: Optional[str]) -> Optional[str]:
        if not value:
            return None
        return _check(value, [
            (len(value) < NAME_MIN, "Name must be at least 3 characters long."),
            (len(value) > NAME_MAX, "Name must be at most 50 characters."),
            (not NAME_PATTERN.match(value),
             "Name can only contain letters, spaces, apostrophes, and hyphens."),
        ])

    @field_validator('email')
    @classmethod
    def _email_rules(cls, value: str) -> str:
        return check_email(value)

    @field_validator('phone')
    @classmethod
    def _phone_rules(cls, value: str) -> str:
        return _check(value, [
            (len(value) < PHONE_MIN, "Phone number is too short."),
            (len(value) > PHONE_MAX, "Phone number is too long."),
            (not PHONE_PATTERN.match(value), "Please enter a valid phone number."),
        ])

    @field_validator('message')
    @classmethod
    def _message_rules(cls, value: str) -> str:
        return _check(value, [
            (len(value) < MESSAGE_MIN, "Message should be at least 15 characters long."),
            (len(value) > MESSAGE_MAX, "Message is too long."),
            (word_count(value) < MESSAGE_MIN_WORDS, "Message should be at least 6 words."),
        ])


def _error_messages(error: Dict[str, Any], field: str) -> List[str]:
    if error['type'] == RULE_VIOLATIONS:
        return list(error.get('ctx', {}).get('violations', ())) or [error['msg']]
    if error['type'] == 'missing':
        return [f"{field.capitalize()} is required."]
    return [error['msg']]


def collect_errors(exc: ValidationError) -> Dict[str, List[str]]:
    """
    Convert a pydantic ValidationError into field -> messages.

    Args:
        exc: Error raised by model validation

    Returns:
        Dict keyed by field name, each value listing every violated rule
    """
    errors: Dict[str, List[str]] = {}
    for error in exc.errors():
        loc = error.get('loc') or ('body',)
        field = str(loc[0])
        errors.setdefault(field, []).extend(_error_messages(error, field))
    return errors


def validate_submission(schema: Type[BaseModel], payload: Any) -> ValidationResult:
    """
    Validate a decoded JSON payload against a submission schema.

    Args:
        schema: Pydantic model class for the endpoint
        payload: Decoded request body (any JSON value)

    Returns:
        Valid with the normalized model, or Invalid with per-field messages
    """
    if not isinstance(payload, dict):
        return Invalid({'body': ["Request body must be a JSON object."]})

    try:
        return Valid(schema.model_validate(payload))
    except ValidationError as exc:
        return Invalid(collect_errors(exc))
