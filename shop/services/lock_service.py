import redis

from shop.utils.retry import redis_retry
from shop.utils.settings import REDIS_URL
from shop.utils.logging import get_logger

logger = get_logger(__name__)

#LUA compare-and-delete: only the owner token may release the lock
#redis runs the script atomically, nothing can slip in between GET and DEL
_RELEASE_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
else
    return 0
end
"""


class LockService:
    """
    -checkout lock per cart (one order per cart at a time)
    -release only by the holder
    -atomicity through lua
    """

    def __init__(self, url: str | None = None):
        self.redis = redis.Redis.from_url(
            url or REDIS_URL,
            decode_responses=True,
        )

    @staticmethod
    def checkout_key(cart_id: int) -> str:
        return f"cart:{cart_id}:checkout"

    @redis_retry()
    def acquire(self, key: str, token: str, ttl: int) -> bool:
        logger.info(f"Acquire lock {key} ({token})")
        #SET cart:1:checkout "<token>" NX EX 30
        return bool(self.redis.set(name=key, value=token, nx=True, ex=ttl))

    @redis_retry()
    def release(self, key: str, token: str) -> bool:
        logger.info(f"Release lock {key} ({token})")
        res = self.redis.eval(_RELEASE_LUA, 1, key, token)
        return bool(res)
