import logging
from rq import Worker
from quizengine.core.config import settings
from quizengine.jobs.queue import get_queue

if __name__ == "__main__":
    logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL), format='%(asctime)s - %(name)s - %(levelname)s - %(message)s', filename=settings.LOG_FILE)
    queue = get_queue()
    w = Worker([queue], connection=queue.connection)
    w.work(with_scheduler=True)
