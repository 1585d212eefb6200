import fakeredis
import pytest
import pytest_asyncio

from swstarter.config import Settings
from swstarter.features.query_analytics.domain import QueryEvent, epoch_millis
from swstarter.infrastructure.redis_client import RedisClient


class FakeClock:
    """Settable epoch-millis clock."""

    def __init__(self, now_ms: int):
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, seconds: float) -> None:
        self.now_ms += int(seconds * 1000)


@pytest.fixture
def clock():
    # Anchored to real time: fakeredis expires keys on the wall clock
    return FakeClock(epoch_millis())


@pytest_asyncio.fixture
async def redis_client():
    client = fakeredis.FakeAsyncRedis(decode_responses=True)
    await client.flushall()
    yield RedisClient.from_client(client)
    await client.flushall()
    await client.aclose()


@pytest.fixture
def make_settings():
    def _make(**overrides):
        values = {
            "JOB_LOCK_TTL_SECONDS": 2,
            "JOB_POLL_INTERVAL_SECONDS": 0.01,
            "JOB_BLOCKING_CLAIMS": False,
            "ANALYTICS_WORKERS_ENABLED": False,
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return _make


@pytest.fixture
def make_event(clock):
    def _make(query="luke", ago_s=60, response_time_ms=100.0, result_count=1, category=None):
        return QueryEvent(
            query=query,
            timestamp=clock() - int(ago_s * 1000),
            response_time_ms=response_time_ms,
            result_count=result_count,
            category=category,
        )

    return _make
