"""
Application Layer
=================

Use-case orchestration. This layer coordinates domain logic and ports
to fulfill business requirements. No infrastructure details leak here.
"""

from product_trust.application.alert_dispatcher import AlertDispatcher
from product_trust.application.trust_service import ProductTrustService

__all__ = [
    "AlertDispatcher",
    "ProductTrustService",
]
