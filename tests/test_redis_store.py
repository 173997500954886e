"""Unit tests for the Redis counter store, with the asyncio client mocked."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import ResponseError
from redis.exceptions import TimeoutError as RedisTimeoutError

from windowgate.adapters.rate_limit.fixed_window import FixedWindowRateLimiter
from windowgate.adapters.store.redis_store import RedisCounterStore
from windowgate.core.config import RedisSettings
from windowgate.core.errors import StoreOperationError, StoreUnavailableError


@pytest.fixture
def client() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def redis_store(client: AsyncMock) -> RedisCounterStore:
    return RedisCounterStore(client, ready=True)


def _pipeline(results: list) -> MagicMock:
    pipe = MagicMock()
    pipe.get.return_value = pipe
    pipe.ttl.return_value = pipe
    pipe.execute = AsyncMock(return_value=results)
    pipe.__aenter__.return_value = pipe
    pipe.__aexit__.return_value = False
    return pipe


class TestPrimitives:
    @pytest.mark.asyncio
    async def test_set_if_absent_uses_nx_and_ex(self, redis_store, client) -> None:
        client.set.return_value = True

        assert await redis_store.set_if_absent_with_ttl("test:k", 0, 60) is True
        client.set.assert_awaited_once_with("test:k", 0, ex=60, nx=True)

    @pytest.mark.asyncio
    async def test_set_if_absent_existing_key(self, redis_store, client) -> None:
        client.set.return_value = None

        assert await redis_store.set_if_absent_with_ttl("test:k", 0, 60) is False

    @pytest.mark.asyncio
    async def test_increment_returns_post_increment_value(self, redis_store, client) -> None:
        client.incr.return_value = 7

        assert await redis_store.increment("test:k") == 7
        client.incr.assert_awaited_once_with("test:k")

    @pytest.mark.asyncio
    async def test_get_ttl_passes_sentinels_through(self, redis_store, client) -> None:
        client.ttl.return_value = -2

        assert await redis_store.get_ttl("test:k") == -2

    @pytest.mark.asyncio
    async def test_delete_returns_removed_count(self, redis_store, client) -> None:
        client.delete.return_value = 1

        assert await redis_store.delete("test:k") == 1
        client.delete.assert_awaited_once_with("test:k")

    @pytest.mark.asyncio
    async def test_get_with_ttl_uses_transactional_pipeline(self, redis_store, client) -> None:
        pipe = _pipeline(["3", 42])
        client.pipeline = MagicMock(return_value=pipe)

        assert await redis_store.get_with_ttl("test:k") == (3, 42)
        client.pipeline.assert_called_once_with(transaction=True)
        pipe.get.assert_called_once_with("test:k")
        pipe.ttl.assert_called_once_with("test:k")

    @pytest.mark.asyncio
    async def test_get_with_ttl_absent_key(self, redis_store, client) -> None:
        client.pipeline = MagicMock(return_value=_pipeline([None, -2]))

        assert await redis_store.get_with_ttl("test:k") == (None, -2)


class TestFailures:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [RedisConnectionError("refused"), RedisTimeoutError("timed out"), ResponseError("WRONGTYPE")],
    )
    async def test_errors_wrapped_uniformly(self, redis_store, client, error) -> None:
        client.incr.side_effect = error

        with pytest.raises(StoreOperationError) as exc_info:
            await redis_store.increment("test:k")

        assert exc_info.value.code == "store_operation_failed"
        assert exc_info.value.details["operation"] == "increment"
        assert exc_info.value.__cause__ is error
        assert "test:k" not in str(exc_info.value.details)

    @pytest.mark.asyncio
    async def test_pipeline_error_wrapped(self, redis_store, client) -> None:
        pipe = _pipeline([])
        pipe.execute.side_effect = RedisTimeoutError("timed out")
        client.pipeline = MagicMock(return_value=pipe)

        with pytest.raises(StoreOperationError):
            await redis_store.get_with_ttl("test:k")

    @pytest.mark.asyncio
    async def test_non_counter_value_wrapped(self, redis_store, client) -> None:
        client.pipeline = MagicMock(return_value=_pipeline(["abc", 30]))

        with pytest.raises(StoreOperationError) as exc_info:
            await redis_store.get_with_ttl("test:k")

        assert exc_info.value.details["operation"] == "get_with_ttl"
        assert isinstance(exc_info.value.__cause__, ValueError)
        assert redis_store.is_available() is True

    @pytest.mark.asyncio
    async def test_set_error_wrapped(self, redis_store, client) -> None:
        client.set.side_effect = RedisConnectionError("refused")

        with pytest.raises(StoreOperationError):
            await redis_store.set_if_absent_with_ttl("test:k", 0, 60)


class TestLifecycle:
    def test_not_ready_until_connected(self, client) -> None:
        assert RedisCounterStore(client).is_available() is False

    @pytest.mark.asyncio
    async def test_connect_marks_ready(self, client) -> None:
        store = RedisCounterStore(client)

        await store.connect()

        client.ping.assert_awaited_once()
        assert store.is_available() is True

    @pytest.mark.asyncio
    async def test_connect_failure_raises_unavailable(self, client) -> None:
        client.ping.side_effect = RedisConnectionError("refused")
        store = RedisCounterStore(client)

        with pytest.raises(StoreUnavailableError):
            await store.connect()
        assert store.is_available() is False

    @pytest.mark.asyncio
    async def test_ping_failure_clears_then_success_restores(self, redis_store, client) -> None:
        client.ping.side_effect = RedisConnectionError("refused")
        assert await redis_store.ping() is False
        assert redis_store.is_available() is False

        client.ping.side_effect = None
        assert await redis_store.ping() is True
        assert redis_store.is_available() is True

    @pytest.mark.asyncio
    async def test_close(self, redis_store, client) -> None:
        await redis_store.close()

        client.aclose.assert_awaited_once()
        assert redis_store.is_available() is False

    def test_from_settings_does_not_connect(self) -> None:
        store = RedisCounterStore.from_settings(RedisSettings(url="redis://example.invalid:6379/0"))

        assert store.is_available() is False
        assert store.client is not None


class TestRecovery:
    @pytest.fixture
    def down_store(self, client, clock) -> RedisCounterStore:
        client.ping.side_effect = RedisConnectionError("refused")
        return RedisCounterStore(client, retry_interval_seconds=5.0, clock=clock)

    @pytest.mark.asyncio
    async def test_limiter_resumes_after_startup_outage(self, down_store, client, clock) -> None:
        limiter = FixedWindowRateLimiter.create(
            quota=10, window_seconds=60, namespace="test", store=down_store
        )
        with pytest.raises(StoreUnavailableError):
            await down_store.connect()
        with pytest.raises(StoreUnavailableError):
            await limiter.check("u")

        client.ping.side_effect = None
        client.set.return_value = True
        client.incr.return_value = 1
        client.ttl.return_value = 60
        clock.advance(5.0)

        result = await limiter.check("u")

        assert result.allowed is True
        assert result.current_count == 1
        assert down_store.is_available() is True
        client.ping.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_stays_down_within_retry_interval(self, down_store, clock) -> None:
        assert await down_store.ping() is False

        clock.advance(4.9)

        assert down_store.is_available() is False

    @pytest.mark.asyncio
    async def test_failed_probe_restarts_cool_down(self, down_store, client, clock) -> None:
        await down_store.ping()
        clock.advance(5.0)
        assert down_store.is_available() is True

        client.incr.side_effect = RedisTimeoutError("timed out")
        with pytest.raises(StoreOperationError):
            await down_store.increment("test:k")

        assert down_store.is_available() is False
        clock.advance(5.0)
        assert down_store.is_available() is True

    @pytest.mark.asyncio
    async def test_connection_error_on_command_marks_down(self, redis_store, client) -> None:
        client.incr.side_effect = RedisConnectionError("reset by peer")

        with pytest.raises(StoreOperationError):
            await redis_store.increment("test:k")

        assert redis_store.is_available() is False

    @pytest.mark.asyncio
    async def test_command_error_keeps_store_ready(self, redis_store, client) -> None:
        client.incr.side_effect = ResponseError("WRONGTYPE")

        with pytest.raises(StoreOperationError):
            await redis_store.increment("test:k")

        assert redis_store.is_available() is True

    @pytest.mark.asyncio
    async def test_closed_store_never_reopens(self, down_store, clock) -> None:
        await down_store.ping()
        await down_store.close()

        clock.advance(60.0)

        assert down_store.is_available() is False
