"""Database connection and initialization."""
from pathlib import Path
from typing import Optional
from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from ..config import DATABASE_URL
from .models import Base


def make_engine(db_url: str = DATABASE_URL) -> Engine:
    url = make_url(db_url)
    if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(db_url, echo=False)


def make_session_factory(db_url: str = DATABASE_URL, engine: Optional[Engine] = None) -> sessionmaker:
    """Create the tables if needed and return a session factory bound to them."""
    engine = engine or make_engine(db_url)
    init_db(engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(engine: Engine) -> None:
    """Initialize database tables."""
    Base.metadata.create_all(bind=engine)
