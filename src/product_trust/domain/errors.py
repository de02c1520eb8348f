"""
Domain Errors
=============

Exception taxonomy for the trust engine.

Source-level failures (``SourceUnavailableError``, ``SignalTimeoutError``) are
absorbed into absent signals and never reach the caller. Only aggregate-level
impossibility and input validation failures propagate.
"""

from __future__ import annotations


class TrustEngineError(Exception):
    """Base class for all trust engine errors."""


class SourceUnavailableError(TrustEngineError):
    """A single signal source could not be reached or returned garbage."""

    def __init__(self, source: str, message: str = "source unavailable") -> None:
        self.source = source
        super().__init__(f"{source}: {message}")


class SignalTimeoutError(SourceUnavailableError):
    """A signal source exceeded its latency budget."""

    def __init__(self, source: str, budget_seconds: float) -> None:
        self.budget_seconds = budget_seconds
        super().__init__(source, f"timed out after {budget_seconds:.3f}s")


class InsufficientSignalsError(TrustEngineError):
    """No signal was present, so no trust score can be computed."""

    def __init__(self, product_id: str, reasons: dict[str, str] | None = None) -> None:
        self.product_id = product_id
        self.reasons = reasons or {}
        super().__init__(f"No trust signals available for product {product_id!r}")


class ConfigurationError(TrustEngineError):
    """Configuration is invalid. Raised at load time, never per request."""


class InvalidInputError(TrustEngineError):
    """Malformed request input. Raised before any signal source is invoked."""

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        super().__init__(f"{field}: {message}")
