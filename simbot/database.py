from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from simbot.config import settings

engine = create_engine(settings.database_url, echo=settings.debug, pool_pre_ping=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """Create tables for all registered models."""
    import simbot.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
