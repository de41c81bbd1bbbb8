from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from paygate.core.config import settings


def engine_kwargs(database_url: str) -> dict:
    """Pool tuning applies to server databases only; sqlite gets its dialect defaults."""
    if database_url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_pre_ping": True,
        "pool_size": 10,
        "max_overflow": 20,
        "pool_recycle": 1800,  # recycle connections every 30 min (avoid stale)
        "connect_args": {"connect_timeout": 5},
    }


engine = create_engine(settings.database_url, **engine_kwargs(settings.database_url))
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


def init_db() -> None:
    """Create paygate tables if missing."""
    # Models must be imported so they register on Base.metadata.
    from paygate.db.base import Base
    from paygate.models import paywall_event, token_ledger  # noqa: F401

    Base.metadata.create_all(bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
