from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from visitgate.core.config import get_settings

settings = get_settings()


def build_engine(database_url: str, timeout_seconds: float):
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            future=True,
            connect_args={"check_same_thread": False, "timeout": timeout_seconds},
        )
    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_timeout=timeout_seconds,
        future=True,
    )


engine = build_engine(settings.DATABASE_URL, settings.STORE_TIMEOUT_SECONDS)

SessionLocal = sessionmaker(bind=engine, class_=Session, autoflush=False, autocommit=False)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
