"""
snapdump Test Suite.

This package contains:
- unit/: Unit tests (encoder, batcher, table rendering, configuration)
- integration/: Full dump sessions against a scripted DB-API connection
"""
