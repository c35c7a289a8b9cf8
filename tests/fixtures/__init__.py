"""Shared test doubles and helpers for post cache tests.

This package provides:
- FakeCache / FakePostStore in-memory doubles
- asyncpg pool mocks
"""

__all__ = [
    "fakes",
    "test_helpers",
]
