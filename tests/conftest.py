"""
Pytest configuration and fixtures
"""

from collections.abc import Generator

import pytest
import redis
from fastapi.testclient import TestClient

from qaboard.auth import sign_token
from qaboard.config import Settings
from qaboard.models import Role


@pytest.fixture(scope="session")
def redis_server() -> Generator[str, None, None]:
    """
    Fixture that provides a Redis server URL for testing.
    Tests depending on it are skipped when no local Redis is reachable.
    """
    redis_url = "redis://localhost:6379/1"  # Use database 1 for tests
    probe = redis.from_url(redis_url, socket_connect_timeout=0.5)
    try:
        probe.ping()
    except redis.ConnectionError:
        pytest.skip("Redis server not available")
    finally:
        probe.close()
    yield redis_url


@pytest.fixture(scope="function")
def redis_client(redis_server: str) -> Generator[redis.Redis, None, None]:
    """
    Fixture that provides a Redis client connected to the test database.
    Flushes the database before and after each test.
    """
    client = redis.from_url(redis_server, decode_responses=True)

    # Flush test database before test
    client.flushdb()

    yield client

    # Flush test database after test
    client.flushdb()
    client.close()


@pytest.fixture(scope="function")
def test_settings() -> Settings:
    """
    Fixture that provides test settings.
    """
    return Settings(
        redis_url="redis://localhost:6379/1",
        secret_key="test-secret-key-for-hmac",
        stream_retry=0.01,
    )


@pytest.fixture(scope="function")
def use_settings(test_settings: Settings) -> Generator[Settings, None, None]:
    """
    Fixture that swaps the global settings for the test settings.
    """
    import qaboard.config

    original_settings = qaboard.config.settings
    qaboard.config.settings = test_settings

    yield test_settings

    # Restore original settings
    qaboard.config.settings = original_settings


@pytest.fixture(scope="function")
def client(use_settings: Settings, redis_client: redis.Redis) -> Generator[TestClient, None, None]:
    """
    Fixture that provides a FastAPI test client with test settings.
    """
    from qaboard.main import app as fastapi_app

    yield TestClient(fastapi_app)


@pytest.fixture(scope="function")
def student_token(test_settings: Settings) -> str:
    return sign_token(Role.STUDENT, "Ada", test_settings.secret_key)


@pytest.fixture(scope="function")
def ta_token(test_settings: Settings) -> str:
    return sign_token(Role.TA, "Grace", test_settings.secret_key)
