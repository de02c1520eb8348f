"""
Adapters Layer
==============

Concrete implementations of the ports for specific technologies.

Inbound Adapters:
- FastAPI routes (in api/ layer)

Outbound Adapters:
- Redis score cache, scan history and feedback stores
- HTTP collaborators (registry, ledger, vision, social proof, custody, reviews)
- Fraud alert sinks (webhook, log)
- In-memory stores for Redis-less deployments
"""
