# tests/unit/infrastructure/resilience/test_circuit_breaker.py
import pytest
import asyncio
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

from infrastructure.resilience import circuit_breaker as circuit_breaker_module
from infrastructure.resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerRegistry,
    CircuitBreakerConfig,
    CircuitState,
    CircuitOpenError
)

@pytest.fixture
def mock_db_pool():
    """Mock asyncpg pool whose connection has no stored breaker state"""
    pool = MagicMock()
    conn = AsyncMock()
    pool.acquire.return_value.__aenter__.return_value = conn
    pool.acquire.return_value.__aexit__.return_value = None
    conn.fetchrow.return_value = None
    conn.execute.return_value = None
    return pool

@pytest.fixture
def circuit_config():
    return CircuitBreakerConfig(
        failure_threshold=3,
        recovery_timeout=timedelta(seconds=5),
        success_threshold=2,
        timeout_seconds=1.0
    )

@pytest.fixture
def events(monkeypatch):
    """Transition events logged by breakers, as (name, event_type)"""
    recorded = []

    def record(name, event_type, state, failure_count):
        recorded.append((name, event_type))

    monkeypatch.setattr(circuit_breaker_module, "log_circuit_breaker_event", record)
    return recorded

async def backend_down():
    raise ConnectionError("backend down")

async def backend_ok():
    return "ok"

def expire_recovery(breaker: CircuitBreaker):
    breaker.last_failure_time = datetime.utcnow() - breaker.config.recovery_timeout - timedelta(seconds=1)

class TestStateMachine:
    """Test closed, open and half-open transitions of a backend operation breaker"""

    @pytest.mark.asyncio
    async def test_opens_at_threshold_and_stops_calling(self, circuit_config, events):
        breaker = CircuitBreaker("openai_chat", circuit_config)
        for _ in range(circuit_config.failure_threshold):
            with pytest.raises(ConnectionError):
                await breaker.call(backend_down)

        guarded = AsyncMock(return_value="never")
        with pytest.raises(CircuitOpenError, match="openai_chat"):
            await breaker.call(guarded)

        guarded.assert_not_called()
        assert breaker.state == CircuitState.OPEN
        assert events == [("openai_chat", "closed_to_open")]

    @pytest.mark.asyncio
    async def test_success_clears_earlier_failures(self, circuit_config):
        breaker = CircuitBreaker("openai_chat", circuit_config)
        for _ in range(circuit_config.failure_threshold - 1):
            with pytest.raises(ConnectionError):
                await breaker.call(backend_down)

        assert await breaker.call(backend_ok) == "ok"
        with pytest.raises(ConnectionError):
            await breaker.call(backend_down)

        assert breaker.failure_count == 1
        assert breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_recovery_goes_through_half_open(self, circuit_config, events):
        breaker = CircuitBreaker("openai_speech", circuit_config)
        await breaker.force_open()
        breaker.success_count = 7
        expire_recovery(breaker)

        await breaker.call(backend_ok)

        assert breaker.state == CircuitState.HALF_OPEN
        assert breaker.success_count == 1

        await breaker.call(backend_ok)

        assert breaker.state == CircuitState.CLOSED
        assert breaker.failure_count == 0
        assert [event for _, event in events] == ["closed_to_open", "open_to_half_open", "half_open_to_closed"]

    @pytest.mark.asyncio
    async def test_half_open_failure_reopens_immediately(self, circuit_config, events):
        breaker = CircuitBreaker("openai_image", circuit_config)
        await breaker.force_open()
        expire_recovery(breaker)
        stale_failure_time = breaker.last_failure_time

        with pytest.raises(ConnectionError):
            await breaker.call(backend_down)

        assert breaker.state == CircuitState.OPEN
        assert breaker.last_failure_time > stale_failure_time
        assert [event for _, event in events][-2:] == ["open_to_half_open", "half_open_to_open"]
        # The refreshed failure time restarts the recovery window
        with pytest.raises(CircuitOpenError):
            await breaker.call(backend_ok)

    @pytest.mark.asyncio
    async def test_open_without_failure_time_stays_open(self, circuit_config):
        breaker = CircuitBreaker("openai_chat", circuit_config)
        breaker.state = CircuitState.OPEN

        with pytest.raises(CircuitOpenError):
            await breaker.call(backend_ok)

    @pytest.mark.asyncio
    async def test_timeout_counts_as_failure(self):
        breaker = CircuitBreaker("openai_chat", CircuitBreakerConfig(failure_threshold=1, timeout_seconds=0.05))

        async def slow_backend():
            await asyncio.sleep(0.5)

        with pytest.raises(asyncio.TimeoutError):
            await breaker.call(slow_backend)

        assert breaker.state == CircuitState.OPEN

    @pytest.mark.asyncio
    async def test_same_state_transition_is_not_logged(self, circuit_config, events):
        breaker = CircuitBreaker("openai_chat", circuit_config)

        await breaker.force_close()

        assert events == []

    @pytest.mark.asyncio
    async def test_status(self, circuit_config):
        breaker = CircuitBreaker("openai_chat", circuit_config)
        with pytest.raises(ConnectionError):
            await breaker.call(backend_down)

        status = await breaker.get_status()

        assert status["state"] == "closed"
        assert status["failure_count"] == 1
        assert datetime.fromisoformat(status["last_failure_time"]) == breaker.last_failure_time

class TestCircuitBreakerPersistence:
    """State persistence is optional and never breaks a call"""

    @pytest.mark.asyncio
    async def test_every_transition_is_persisted(self, mock_db_pool, circuit_config):
        conn = mock_db_pool.acquire.return_value.__aenter__.return_value
        breaker = CircuitBreaker("openai_chat", circuit_config, mock_db_pool)
        await breaker.initialize()

        await breaker.force_open()

        query, name, state, failure_count, last_failure_time, success_count = conn.execute.call_args.args
        assert "ON CONFLICT (breaker_name)" in query
        assert (name, state) == ("openai_chat", "open")
        assert last_failure_time == breaker.last_failure_time

    @pytest.mark.asyncio
    async def test_failures_below_threshold_are_persisted(self, mock_db_pool, circuit_config):
        conn = mock_db_pool.acquire.return_value.__aenter__.return_value
        breaker = CircuitBreaker("openai_chat", circuit_config, mock_db_pool)

        with pytest.raises(ConnectionError):
            await breaker.call(backend_down)

        assert conn.execute.call_args.args[2:4] == ("closed", 1)

    @pytest.mark.asyncio
    async def test_state_loaded_from_database(self, mock_db_pool, circuit_config):
        conn = mock_db_pool.acquire.return_value.__aenter__.return_value
        conn.fetchrow.return_value = {
            "state": "open",
            "failure_count": 3,
            "last_failure_time": datetime.utcnow(),
            "success_count": 0
        }

        breaker = CircuitBreaker("openai_chat", circuit_config, mock_db_pool)
        await breaker.initialize()

        assert breaker.state == CircuitState.OPEN
        assert breaker.failure_count == 3
        assert conn.fetchrow.call_args.args[1] == "openai_chat"

    @pytest.mark.asyncio
    async def test_unreachable_database_keeps_defaults(self, mock_db_pool, circuit_config):
        conn = mock_db_pool.acquire.return_value.__aenter__.return_value
        conn.fetchrow.side_effect = OSError("connection refused")

        breaker = CircuitBreaker("openai_chat", circuit_config, mock_db_pool)
        await breaker.initialize()

        assert breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_persist_failure_is_logged_not_raised(self, mock_db_pool, circuit_config):
        conn = mock_db_pool.acquire.return_value.__aenter__.return_value
        conn.execute.side_effect = OSError("connection refused")

        breaker = CircuitBreaker("openai_chat", circuit_config, mock_db_pool)
        await breaker.force_open()

        assert breaker.state == CircuitState.OPEN

    @pytest.mark.asyncio
    async def test_breaker_without_database(self, circuit_config):
        breaker = CircuitBreaker("openai_image", circuit_config)
        await breaker.initialize()

        await breaker.force_open()

        assert breaker.state == CircuitState.OPEN

class TestCircuitBreakerRegistry:
    """Test the per-operation breaker registry used by the backend and /health"""

    @pytest.mark.asyncio
    async def test_one_breaker_per_operation(self, mock_db_pool, circuit_config):
        registry = CircuitBreakerRegistry(mock_db_pool)

        chat = await registry.get_breaker("openai_chat", circuit_config)
        again = await registry.get_breaker("openai_chat", CircuitBreakerConfig(failure_threshold=99))
        speech = await registry.get_breaker("openai_speech")

        assert chat is again
        assert chat.config.failure_threshold == 3
        assert speech is not chat
        assert speech.config == CircuitBreakerConfig()
        assert speech.db_pool is mock_db_pool

    @pytest.mark.asyncio
    async def test_status_of_all_operations(self, circuit_config):
        registry = CircuitBreakerRegistry()
        chat = await registry.get_breaker("openai_chat", circuit_config)
        await registry.get_breaker("openai_speech", circuit_config)

        await chat.force_open()
        status = await registry.get_all_status()

        assert set(status) == {"openai_chat", "openai_speech"}
        assert status["openai_chat"]["state"] == "open"
        assert status["openai_speech"]["state"] == "closed"
