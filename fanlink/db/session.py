import logging

from fastapi import HTTPException
from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from fanlink.core.config import settings

logger = logging.getLogger(__name__)


def _connect_args(database_url: str) -> dict:
    if database_url.startswith("sqlite"):
        # sessions are handed across the FastAPI threadpool
        return {"check_same_thread": False}
    return {"connect_timeout": 30}


# Create the SQLAlchemy engine
engine = create_engine(settings.DATABASE_URL,
                       connect_args=_connect_args(settings.DATABASE_URL),
                       pool_pre_ping=True,
                       pool_recycle=3600,
)

# Create a configured "Session" class
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# do not change the order of the code below
# Dependency that can be used in routes to get the session
def get_db() -> Session:
    db = SessionLocal()  # generate a new SessionLocal
    try:
        yield db
    except SQLAlchemyError as e:
        logger.exception("database error: %s", e)
        db.rollback()
        raise HTTPException(status_code=500, detail="Query data error")
    finally:
        db.close()
