from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from planner_micro.config import config

# Global variable to hold the engine (will be created lazily)
engine = None

Base = declarative_base()


def get_engine() -> Engine:
    """Create engine lazily only when needed"""
    global engine
    if engine is None:
        if not config.DATABASE_URL:
            raise ValueError("DATABASE_URL environment variable is not set")

        db_url = config.DATABASE_URL
        connect_args = {}
        if db_url.startswith("postgresql"):
            # Hosted Postgres (Supabase) requires SSL
            if "sslmode=" not in db_url:
                separator = "&" if "?" in db_url else "?"
                db_url = f"{db_url}{separator}sslmode=require"
            connect_args = {
                "options": "-c timezone=utc",
                "connect_timeout": 10,
                "application_name": "Planner-Backend",
            }
            engine = create_engine(
                db_url,
                pool_size=config.DB_POOL_SIZE,
                max_overflow=config.DB_MAX_OVERFLOW,
                pool_timeout=config.DB_POOL_TIMEOUT,
                pool_recycle=config.DB_POOL_RECYCLE,
                pool_pre_ping=True,
                connect_args=connect_args,
            )
        else:
            engine = create_engine(db_url, pool_pre_ping=True)
    return engine


def get_session_local(bind: Engine = None):
    """Create a session factory for the given engine (defaults to the lazy global engine)"""
    return sessionmaker(autocommit=False, autoflush=False, bind=bind or get_engine())
