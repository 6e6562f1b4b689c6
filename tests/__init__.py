"""
dbvault Test Suite.

This package contains:
- unit/: Unit tests (no network, temporary SQLite files)
- integration/: Service and restore tests over the in-memory store
"""
