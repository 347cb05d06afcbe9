# impactlens/services/redis_client.py
import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool

from impactlens.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

POOL_MAX_CONNECTIONS = 20
SOCKET_TIMEOUT_SECONDS = 10


class FastRedisClient:
    """Pooled async Redis connection backing the persistent project store."""

    def __init__(self, url: str, max_connections: int = POOL_MAX_CONNECTIONS):
        self.url = url
        self.max_connections = max_connections
        self.pool: ConnectionPool | None = None
        self.client: redis.Redis | None = None

    @property
    def initialized(self) -> bool:
        return self.client is not None

    def _build_pool(self) -> ConnectionPool:
        return ConnectionPool.from_url(
            self.url,
            max_connections=self.max_connections,
            retry_on_timeout=True,
            retry_on_error=[redis.ConnectionError, redis.TimeoutError],
            socket_connect_timeout=SOCKET_TIMEOUT_SECONDS,
            socket_timeout=SOCKET_TIMEOUT_SECONDS,
            health_check_interval=30,
            # Project documents are JSON text
            decode_responses=True,
        )

    async def initialize(self):
        """
        Open the pool and verify the server answers PING.

        Raises:
            RuntimeError: Redis is unreachable or rejected the connection
        """
        if self.initialized:
            return

        self.pool = self._build_pool()
        client = redis.Redis(connection_pool=self.pool)
        try:
            await client.ping()
        except Exception as e:
            logger.error("Redis connection check failed", error=str(e), error_type=type(e).__name__)
            await client.aclose()
            await self.pool.disconnect()
            self.pool = None
            raise RuntimeError("Redis initialization failed") from e

        self.client = client
        logger.info("Redis connection pool ready", max_connections=self.max_connections)

    async def close(self):
        """Release pooled connections. Safe to call more than once."""
        client, pool = self.client, self.pool
        self.client = None
        self.pool = None
        try:
            if client:
                await client.aclose()
            if pool:
                await pool.disconnect()
        except Exception as e:
            logger.error("Error closing Redis pool", error=str(e))
            return
        logger.info("Redis connection pool closed")
