import redis

from app.utils.retry import redis_retry
from app.utils.settings import REDIS_URL
from app.utils.logging import get_logger

logger = get_logger(__name__)

#LUA porownaj i usun, atomicity
_RELEASE_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
else
    return 0
end
"""

#redis wykonuje skrypt lua atomowo, nie mozna wcisnac sie miedzy GET a DEL
#wiec lock zwalnia tylko ten kto go zalozyl


class LockService:
    """
    -krotkie locki (merge koszyka goscia, rekonsyliacja platnosci, zwroty)
    -zwalnianie locka tylko przez wlasciciela
    -atomowosc przy pomocy lua
    """

    def __init__(self, url: str | None = None):
        self.redis = redis.Redis.from_url(
            url or REDIS_URL,
            decode_responses=True,
        )

    @redis_retry()
    def acquire(self, key: str, holder: str, ttl: int) -> bool:
        logger.info(f"Acquire lock {key} for {holder}")
        #SET payment:PAY_x:lock "holder" NX EX 30
        return bool(
            self.redis.set(
                name=key,
                value=holder,
                nx=True, #jesli klucz istnieje to nic nie rob i zwroc None
                ex=ttl, #lock wygasa sam jesli proces padnie
            )
        )

    @redis_retry()
    def release(self, key: str, holder: str) -> bool:
        logger.info(f"Release lock {key} for {holder}")
        res = self.redis.eval(_RELEASE_LUA, 1, key, holder)
        return bool(res)
