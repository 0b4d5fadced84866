"""Global pytest fixtures."""
from typing import Generator

import pytest
from pyroomlock import XapiController
import responses

from .common import DEVICE_URL, LockData, new_lock


@pytest.fixture(name="lock_data")
def fixture_lock_data() -> LockData:
    """Get a configurable lock with an in-memory store."""
    return new_lock()


@pytest.fixture(name="fixed_lock_data")
def fixture_fixed_lock_data() -> LockData:
    """Get a lock with the fixed default PIN."""
    return new_lock(configurable=False)


@pytest.fixture(name="rsps")
def fixture_rsps() -> Generator[responses.RequestsMock, None, None]:
    """Get a mock for HTTP calls."""
    with responses.RequestsMock() as rsps:
        yield rsps


@pytest.fixture(name="xapi")
def fixture_xapi() -> XapiController:
    """Get a client for the fake device."""
    return XapiController(DEVICE_URL, "admin", "secret")
