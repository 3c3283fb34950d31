"""Shared fixtures for Vlibe Storage tests."""

import pytest_asyncio

from vlibestorage import VlibeStorage


@pytest_asyncio.fixture
async def storage():
    """Client pointed at the default production origin."""
    client = VlibeStorage(app_id="app_123", app_secret="secret_456")
    try:
        yield client
    finally:
        await client.close()
