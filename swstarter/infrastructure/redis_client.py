# swstarter/infrastructure/redis_client.py
import redis.asyncio as redis
from redis.asyncio.connection import BlockingConnectionPool

from swstarter.errors import StoreUnavailableError
from swstarter.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class RedisClient:
    """Owned Redis connection pool shared by the analytics store and queue lanes"""

    def __init__(self, url: str, max_connections: int = 20, pool_timeout_s: float = 5.0):
        self.url = url
        self.max_connections = max_connections
        self.pool_timeout_s = pool_timeout_s
        self.pool = None
        self._client = None
        self._initialized = False

    @classmethod
    def from_client(cls, client: redis.Redis) -> "RedisClient":
        """Wrap an already connected client (tests, embedded use)"""
        instance = cls(
            url="injected://",
            max_connections=getattr(client.connection_pool, "max_connections", 0),
        )
        instance._client = client
        instance._initialized = True
        return instance

    async def initialize(self):
        """Initialize connection pool on startup; failure is fatal"""
        if self._initialized:
            return

        try:
            logger.info("Attempting Redis connection", url_preview=self._redacted_url())

            # Callers queue for a connection instead of failing when the pool is busy
            self.pool = BlockingConnectionPool.from_url(
                self.url,
                max_connections=self.max_connections,
                timeout=self.pool_timeout_s,
                retry_on_timeout=True,
                retry_on_error=[redis.ConnectionError, redis.TimeoutError],
                socket_connect_timeout=10,
                socket_timeout=None,  # blocking pops hold the socket open
                health_check_interval=30,
                decode_responses=True,
            )

            self._client = redis.Redis(connection_pool=self.pool)

            result = await self._client.ping()
            logger.info("Redis ping successful", result=result)

            self._initialized = True
            logger.info("Redis client initialized", max_connections=self.max_connections)

        except Exception as e:
            logger.error("Failed to initialize Redis client", error=str(e))
            self._initialized = False
            raise StoreUnavailableError("Redis initialization failed") from e

    def _redacted_url(self) -> str:
        # Keep credentials out of logs
        if "@" in self.url:
            scheme, _, rest = self.url.partition("://")
            return f"{scheme}://***@{rest.split('@', 1)[1]}"
        return self.url

    @property
    def client(self) -> redis.Redis:
        if not self._initialized or self._client is None:
            raise StoreUnavailableError("Redis client not initialized")
        return self._client

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    async def close(self):
        """Clean shutdown"""
        try:
            if self._client is not None:
                await self._client.aclose()
            if self.pool:
                await self.pool.disconnect()
            self._initialized = False
            logger.info("Redis client closed")
        except Exception as e:
            logger.error("Error closing Redis client", error=str(e))

    async def ping(self) -> bool:
        """Test Redis connection"""
        try:
            result = await self.client.ping()
            return bool(result)
        except Exception as e:
            logger.error("Redis ping failed", error=str(e))
            return False
