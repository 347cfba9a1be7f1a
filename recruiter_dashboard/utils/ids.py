"""
Identifier helpers.

The backend identifies applicants by phone-number-derived integers
(10-12 digits) while everything inside this service works with strings.
All conversions between the two forms go through this module.
"""

import re
from collections.abc import Iterable

from recruiter_dashboard.config import settings

_NON_DIGITS = re.compile(r"\D")

LOCAL_NUMBER_LENGTH = 10
FULL_NUMBER_LENGTH = 12


def normalize_id(value: object) -> str:
    """
    Canonical internal form of an entity ID.

    42, 42.0, "42" and " 042 " all normalize to "42". Non-numeric strings
    are only stripped, so UUID-style list IDs pass through unchanged.

    Raises:
        ValueError: for None, booleans, non-integral floats or empty strings
    """
    if value is None or isinstance(value, bool):
        raise ValueError(f"Invalid entity id: {value!r}")

    if isinstance(value, int):
        return str(value)

    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f"Invalid entity id: {value!r}")
        return str(int(value))

    text = str(value).strip()
    if not text:
        raise ValueError("Invalid entity id: empty string")

    if text.isdigit():
        return str(int(text))
    return text


def normalize_ids(values: Iterable[object]) -> list[str]:
    """Normalize a sequence of IDs, dropping invalid entries and duplicates."""
    seen: set[str] = set()
    result: list[str] = []
    for value in values:
        try:
            canonical = normalize_id(value)
        except ValueError:
            continue
        if canonical not in seen:
            seen.add(canonical)
            result.append(canonical)
    return result


def to_backend_id(value: object, country_code: str | None = None) -> int | None:
    """
    Convert an ID to the numeric form the backend expects.

    10-digit values are treated as local phone numbers and prefixed with the
    country code. Returns None for anything that is not purely numeric.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        text = str(value)
    else:
        text = str(value).strip()

    if not text.isdigit():
        return None

    if len(text) == LOCAL_NUMBER_LENGTH:
        text = f"{country_code or settings.DEFAULT_COUNTRY_CODE}{text}"
    return int(text)


def to_backend_ids(
    values: Iterable[object], country_code: str | None = None
) -> tuple[list[int], list[str]]:
    """
    Convert IDs for a mutator call.

    Returns:
        (backend_ids, rejected) where rejected holds the malformed inputs
        that must not be sent upstream.
    """
    backend_ids: list[int] = []
    rejected: list[str] = []
    seen: set[int] = set()
    for value in values:
        backend_id = to_backend_id(value, country_code)
        if backend_id is None:
            rejected.append(str(value))
            continue
        if backend_id not in seen:
            seen.add(backend_id)
            backend_ids.append(backend_id)
    return backend_ids, rejected


def parse_phone_numbers(
    raw: str | Iterable[str], country_code: str | None = None
) -> tuple[list[int], list[str]]:
    """
    Parse phone numbers entered by a recruiter into applicant IDs.

    Accepts a comma separated string or an iterable of strings. Formatting
    characters are ignored; 12-digit numbers are used as-is and 10-digit
    numbers get the country code prefix. Everything else is invalid.

    Returns:
        (applicant_ids, invalid_entries)
    """
    entries = raw.split(",") if isinstance(raw, str) else list(raw)

    valid: list[int] = []
    invalid: list[str] = []
    for entry in entries:
        entry = str(entry).strip()
        if not entry:
            continue

        digits = _NON_DIGITS.sub("", entry)
        if len(digits) == FULL_NUMBER_LENGTH:
            valid.append(int(digits))
        elif len(digits) == LOCAL_NUMBER_LENGTH:
            valid.append(int(f"{country_code or settings.DEFAULT_COUNTRY_CODE}{digits}"))
        else:
            invalid.append(entry)

    return valid, invalid
