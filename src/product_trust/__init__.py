"""
Product Trust Engine
====================

A hexagonal-architecture service that turns partially-unreliable signals
(manufacturer registry, distributed ledger, visual comparison, packaging
tamper detectors, expiry OCR, scan history) into one explainable trust
judgment per scanned product, and detects fraud patterns across scans.

Layers:
- domain: Value objects (SignalResult, TrustScore, FraudAlert) and services
  (authenticity cascade, tampering classifier, fraud detectors, aggregator)
- ports: Abstract interfaces to signal sources, stores and sinks
- application: Use-case orchestration (ProductTrustService, AlertDispatcher)
- adapters: Concrete implementations for external services
- infrastructure: Config, DI wiring, entrypoint
- api: FastAPI routes and request/response schemas
"""

__version__ = "0.1.0"
