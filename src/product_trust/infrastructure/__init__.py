"""
Infrastructure Layer
====================

Cross-cutting concerns: configuration, dependency injection,
logging, and entrypoint.
"""

from product_trust.infrastructure.config import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
