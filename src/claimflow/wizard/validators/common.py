"""Built-in validators for common field types.

Every validator is a pure function ``fn(value, **params) -> str | None`` that
is safe to call on each keystroke. Format validators pass on empty values;
emptiness is the ``required`` validator's concern.
"""

from __future__ import annotations

import functools
import re
from decimal import Decimal, InvalidOperation
from typing import Any

# Registry of validator functions: name -> callable(value, **params) -> str | None
# Returns an error message string on failure, None on success.
VALIDATORS: dict[str, Any] = {}

NOT_TEXT_MESSAGE = "Please enter a text value"

_EMAIL_RE = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")
_ZIP_RE = re.compile(r"\d{5}(-\d{4})?")
_FAX_RE = re.compile(r"\d{3}-\d{3}-\d{4}")
_ICD10_RE = re.compile(r"[A-TV-Z][0-9][0-9A-Z](\.[0-9A-Z]{1,4})?")
_CPT_RE = re.compile(r"\d{4}[0-9A-Z]")


def register(name: str):
    """Decorator to register a validator function."""
    def decorator(fn):
        VALIDATORS[name] = fn
        return fn
    return decorator


def format_validator(name: str):
    """Register a validator that checks the text form of a value.

    The wrapped function receives stripped text. Blank values pass, numbers
    are checked as typed, and any other type fails before the check runs.
    """
    def decorator(fn):
        @functools.wraps(fn)
        def wrapper(value: Any, **params: Any) -> str | None:
            if is_blank(value):
                return None
            if isinstance(value, bool) or not isinstance(value, (str, int, float, Decimal)):
                return NOT_TEXT_MESSAGE
            return fn(str(value).strip(), **params)
        VALIDATORS[name] = wrapper
        return wrapper
    return decorator


def is_blank(value: Any) -> bool:
    """True for values a user has not meaningfully filled in."""
    if value is None or value is False:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, set, dict)):
        return len(value) == 0
    return False


@register("required")
def validate_required(value: Any, label: str | None = None, **_kwargs: Any) -> str | None:
    if is_blank(value):
        return f"{label} is required" if label else "This field is required"
    return None


@format_validator("regex")
def validate_regex(text: str, pattern: str = "", **_kwargs: Any) -> str | None:
    if not re.fullmatch(pattern, text):
        return f"Value does not match required pattern: {pattern}"
    return None


@format_validator("email")
def validate_email(text: str, **_kwargs: Any) -> str | None:
    if not _EMAIL_RE.fullmatch(text):
        return "Please enter a valid email address"
    return None


@format_validator("zip")
def validate_zip(text: str, **_kwargs: Any) -> str | None:
    if not _ZIP_RE.fullmatch(text):
        return "Please enter a valid ZIP code"
    return None


@format_validator("fax")
def validate_fax(text: str, **_kwargs: Any) -> str | None:
    if not _FAX_RE.fullmatch(text):
        return "Please enter fax number in format: 000-000-0000"
    return None


@format_validator("phone")
def validate_phone(text: str, **_kwargs: Any) -> str | None:
    digits = re.sub(r"[\s\-\(\)\+\.]", "", text)
    if not digits.isdigit() or len(digits) < 10:
        return "Please enter a valid phone number (at least 10 digits)"
    return None


@format_validator("date")
def validate_date(text: str, **_kwargs: Any) -> str | None:
    if not re.fullmatch(r"\d{4}-\d{2}-\d{2}", text):
        return "Please enter a valid date in YYYY-MM-DD format"
    return None


@register("numeric")
def validate_numeric(
    value: Any, min_val: float | None = None, max_val: float | None = None, **_kwargs: Any
) -> str | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if isinstance(value, bool):
        return "Please enter a valid number"
    try:
        num = float(value)
    except (TypeError, ValueError):
        return "Please enter a valid number"
    if min_val is not None and num < float(min_val):
        return f"Value must be at least {min_val}"
    if max_val is not None and num > float(max_val):
        return f"Value must be at most {max_val}"
    return None


@format_validator("diopter")
def validate_diopter(text: str, limit: float = 20, **_kwargs: Any) -> str | None:
    """Lens power in quarter-diopter steps, e.g. ``+4.25`` or ``-0.50``."""
    try:
        power = Decimal(text)
    except InvalidOperation:
        return "Please enter a lens power such as +1.25"
    if not power.is_finite():
        return "Please enter a lens power such as +1.25"
    if abs(power) > Decimal(str(limit)):
        return f"Lens power must be between -{limit} and +{limit}"
    if power % Decimal("0.25") != 0:
        return "Lens power must be in 0.25 steps"
    return None


@format_validator("icd10")
def validate_icd10(text: str, **_kwargs: Any) -> str | None:
    if not _ICD10_RE.fullmatch(text.upper()):
        return "Please enter a valid ICD-10 code (e.g. E11.319)"
    return None


@format_validator("cpt")
def validate_cpt(text: str, **_kwargs: Any) -> str | None:
    if not _CPT_RE.fullmatch(text.upper()):
        return "Please enter a valid 5-character CPT/HCPCS code"
    return None
