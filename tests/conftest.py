"""Shared fixtures for gateway tests."""

from types import SimpleNamespace

import pytest
import pytest_asyncio

from gateway.api.context import build_context
from gateway.api.models import ModelRegistry
from tests.helpers import SECRET, FakeRequest, FakeUserStore


@pytest.fixture
def user_rows():
    return [
        SimpleNamespace(id=1, username="testuser1", role="DIRECTOR"),
        SimpleNamespace(id=2, username="testuser2", role="MANAGER"),
        SimpleNamespace(id=3, username="testuser3", role="TEACHER"),
    ]


@pytest.fixture
def fake_models(user_rows):
    return SimpleNamespace(users=FakeUserStore(user_rows))



@pytest_asyncio.fixture
async def models():
    registry = ModelRegistry("sqlite+aiosqlite://")
    await registry.connect()
    try:
        yield registry
    finally:
        await registry.close()


@pytest.fixture
def context_for(models):
    """Build a request context for ``token`` the way the HTTP entry point does."""

    def factory(token=None, pubsub=None):
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        return build_context(FakeRequest(headers), models=models, secret=SECRET, pubsub=pubsub)

    return factory
