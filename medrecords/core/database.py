from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from medrecords.core.config import get_settings


def make_engine(database_url: str) -> Engine:
    """
    Build an engine for the remote row store.

    sqlite URLs need check_same_thread disabled because FastAPI runs sync
    handlers in a threadpool.
    """
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    return create_engine(
        database_url,
        future=True,
        pool_pre_ping=True,
        connect_args=connect_args,
    )


settings = get_settings()

# Main SQLAlchemy engine
engine = make_engine(str(settings.database_url))

# Session factory
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    future=True,
)
