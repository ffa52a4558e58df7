"""Tests for the shared redis connection."""

from unittest.mock import MagicMock

import pytest
import redis

from clinicbook import redis_client


@pytest.fixture(autouse=True)
def fresh_client(monkeypatch):
    monkeypatch.setattr(redis_client, "redis_client", None)


class TestGetRedisClient:
    def test_url_takes_precedence(self, monkeypatch):
        connection = MagicMock()
        from_url = MagicMock(return_value=connection)
        direct = MagicMock()
        monkeypatch.setattr(redis_client, "REDIS_URL", "redis://:secret@cache:6379/2")
        monkeypatch.setattr(redis, "from_url", from_url)
        monkeypatch.setattr(redis, "Redis", direct)

        assert redis_client.get_redis_client() is connection

        from_url.assert_called_once_with(
            "redis://:secret@cache:6379/2", decode_responses=True, socket_connect_timeout=5
        )
        direct.assert_not_called()
        connection.ping.assert_called_once()

    def test_host_settings_come_from_config(self, monkeypatch):
        connection = MagicMock()
        direct = MagicMock(return_value=connection)
        monkeypatch.setattr(redis_client, "REDIS_URL", None)
        monkeypatch.setattr(redis_client, "REDIS_HOST", "cache.internal")
        monkeypatch.setattr(redis_client, "REDIS_PORT", 6380)
        monkeypatch.setattr(redis_client, "REDIS_PASSWORD", "secret")
        monkeypatch.setattr(redis_client, "REDIS_DB", 3)
        monkeypatch.setattr(redis_client, "REDIS_SSL", True)
        monkeypatch.setattr(redis, "Redis", direct)

        assert redis_client.get_redis_client() is connection

        direct.assert_called_once_with(
            host="cache.internal",
            port=6380,
            password="secret",
            db=3,
            ssl=True,
            decode_responses=True,
            socket_connect_timeout=5,
        )

    def test_client_is_created_once(self, monkeypatch):
        from_url = MagicMock(return_value=MagicMock())
        monkeypatch.setattr(redis_client, "REDIS_URL", "redis://cache:6379/0")
        monkeypatch.setattr(redis, "from_url", from_url)

        first = redis_client.get_redis_client()
        second = redis_client.get_redis_client()

        assert first is second
        from_url.assert_called_once()

    def test_unreachable_server_raises_and_is_not_cached(self, monkeypatch):
        connection = MagicMock()
        connection.ping.side_effect = redis.ConnectionError("connection refused")
        monkeypatch.setattr(redis_client, "REDIS_URL", "redis://cache:6379/0")
        monkeypatch.setattr(redis, "from_url", MagicMock(return_value=connection))

        with pytest.raises(redis.ConnectionError):
            redis_client.get_redis_client()

        assert redis_client.redis_client is None
