from functools import lru_cache
from rq import Queue
from quizengine.core.cache import get_redis
from quizengine.core.config import settings

@lru_cache()
def get_queue() -> Queue:
    return Queue(settings.RQ_QUEUE, connection=get_redis(decode_responses=False))
