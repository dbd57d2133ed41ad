"""
Test Fixtures Package

Shared test doubles and helpers for consistent testing across all modules.
"""

from .api_factory import ApiTestFactory
from .doubles import FakeSocket, InMemoryRedis

__all__ = ["ApiTestFactory", "FakeSocket", "InMemoryRedis"]
