"""
CouchDB SDK Test Suite.

This package contains:
- unit/: Unit tests (no external dependencies)
- integration/: Integration tests (in-memory CouchDB server)
- e2e/: End-to-end tests (real CouchDB server)
"""
