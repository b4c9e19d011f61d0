"""
Shared fixtures for unit tests.

This module provides common fixtures used across multiple test modules:
- Request codec
- Fernet encryption key
"""

import pytest
from cryptography.fernet import Fernet

from chainsync.services.chain.codec import RequestCodec


@pytest.fixture
def codec():
    """
    Create a RequestCodec with the default operation table.

    Returns:
        RequestCodec: Codec instance for testing
    """
    return RequestCodec()


@pytest.fixture
def encryption_key():
    """Fresh Fernet key."""
    return Fernet.generate_key().decode()
