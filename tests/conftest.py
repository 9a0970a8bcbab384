import pytest

from app.config import settings
from tests.helpers import FakeClock, FakeRedis, build_harness


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def api_keys(monkeypatch):
    monkeypatch.setattr(settings, "OPENAI_API_KEY", "sk-test")
    monkeypatch.setattr(settings, "BRAVE_API_KEY", "brave-test")


@pytest.fixture
def make_harness():
    return build_harness
