from functools import lru_cache
import redis
from quizengine.core.config import settings

@lru_cache()
def get_redis(decode_responses: bool = True) -> redis.Redis:
    # rq needs a connection that returns bytes
    return redis.Redis.from_url(settings.REDIS_URL, decode_responses=decode_responses)
