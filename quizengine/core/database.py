from functools import lru_cache
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from quizengine.core.config import settings

@lru_cache()
def get_engine() -> Engine:
    return create_engine(settings.DATABASE_URL, future=True, pool_pre_ping=True, echo=settings.DATABASE_ECHO)

def get_sessionmaker(engine: Engine | None = None) -> sessionmaker:
    return sessionmaker(bind=engine or get_engine(), autocommit=False, autoflush=False, expire_on_commit=False, future=True)

def init_db(engine: Engine | None = None) -> None:
    """Create the store tables if they don't exist."""
    from quizengine.models.orm import Base
    Base.metadata.create_all(engine or get_engine())
