"""Request audit trail: one [INPUT] and one [OUTPUT] line per API request."""

from __future__ import annotations

import logging
from itertools import count

audit_logger = logging.getLogger("trust.audit")
_request_counter = count(1000)


def next_request_id() -> int:
    return next(_request_counter)


def audit_input(request_id: int, operation: str, **fields: object) -> None:
    details = " - ".join(f'{key}: "{value}"' for key, value in fields.items())
    audit_logger.info(f"[INPUT] ID: {request_id} - OP: {operation} - {details}")


def audit_output(request_id: int, result: str, elapsed_ms: float) -> None:
    audit_logger.info(f"[OUTPUT] ID: {request_id} - RESULT: {result} - TIME: {elapsed_ms:.1f}ms")


def audit_error(request_id: int, error: BaseException) -> None:
    audit_logger.warning(f"[OUTPUT] ID: {request_id} - RESULT: ERROR ({type(error).__name__})")
