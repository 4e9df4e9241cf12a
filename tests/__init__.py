"""
Geovision Test Suite.

This package contains:
- unit/: Unit tests (no external dependencies)
- integration/: Integration tests (in-memory store, local gRPC/HTTP)
- e2e/: End-to-end tests (real ArangoDB, GEOVISION_E2E_TESTS=1)
"""
