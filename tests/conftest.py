# tests/conftest.py
import pytest

from restbridge.auth import ClientCredentialsAuth


@pytest.fixture
def authentication() -> ClientCredentialsAuth:
    return ClientCredentialsAuth("not under test", "not under test")
