import redis

from campus_orders.utils.retry import redis_retry
from campus_orders.utils.settings import REDIS_URL, REDIS_SOCKET_TIMEOUT_SECONDS
from campus_orders.utils.logging import get_logger

logger = get_logger(__name__)

#compare-and-delete in Lua, redis runs the script atomically
#so nothing can slip in between GET and DEL
_RELEASE_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
else
    return 0
end
"""


class LockService:
    """
    -named lock with an owner token and a TTL
    -release only by the owner (lua compare-and-delete)
    """

    def __init__(self, url: str | None = None, client: redis.Redis | None = None):
        self.redis = client or redis.Redis.from_url(
            url or REDIS_URL,
            decode_responses=True,
            socket_timeout=REDIS_SOCKET_TIMEOUT_SECONDS,
            socket_connect_timeout=REDIS_SOCKET_TIMEOUT_SECONDS,
        )

    @redis_retry()
    def acquire(self, name: str, owner: str, ttl: int) -> bool:
        key = f"lock:{name}"
        logger.info(f"Acquire lock {key} for {owner}")
        #SET lock:name owner NX EX ttl, expires on its own if the holder dies
        return bool(self.redis.set(name=key, value=owner, nx=True, ex=ttl))

    @redis_retry()
    def release(self, name: str, owner: str) -> bool:
        key = f"lock:{name}"
        logger.info(f"Release lock {key} for {owner}")
        res = self.redis.eval(_RELEASE_LUA, 1, key, owner)
        return bool(res)
