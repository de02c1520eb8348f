"""
Input Validation
================

Identifier checks run before any signal source is invoked.
"""

from __future__ import annotations

import re

from product_trust.domain.errors import InvalidInputError

PRODUCT_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._:-]{0,127}$")
SERIAL_NUMBER_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9-]{0,63}$")
BATCH_CODE_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._/-]{0,63}$")


def _check(field: str, value: object, pattern: re.Pattern[str]) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidInputError(field, "must be a non-empty string")
    if not pattern.fullmatch(value):
        raise InvalidInputError(field, f"malformed value {value!r}")
    return value


def validate_product_id(product_id: object) -> str:
    return _check("product_id", product_id, PRODUCT_ID_PATTERN)


def validate_serial_number(serial_number: object) -> str:
    return _check("serial_number", serial_number, SERIAL_NUMBER_PATTERN)


def validate_batch_code(batch_code: object) -> str | None:
    if batch_code is None:
        return None
    return _check("batch_code", batch_code, BATCH_CODE_PATTERN)
