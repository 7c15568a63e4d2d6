"""Database helpers: engine, session factory and schema lifecycle.

A `Database` is constructed explicitly by the application factory and kept
on ``app.state``; its `init` and `dispose` calls bracket the app lifespan.
"""

from pathlib import Path
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, sessionmaker

from core.logger import get_logger
from .models import Base

logger = get_logger("database")


class Database:
    """Owns one SQLAlchemy engine and the session factory bound to it."""

    def __init__(self, url: str):
        self.url = url
        connect_args = {}
        if url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine = create_engine(url, connect_args=connect_args)
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)

    def init(self) -> None:
        """Create the schema if it does not exist yet."""
        parsed = make_url(self.url)
        if parsed.get_backend_name() == "sqlite" and parsed.database and parsed.database != ":memory:":
            Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)
        Base.metadata.create_all(bind=self.engine)
        logger.info("Database initialized at %s", parsed.render_as_string(hide_password=True))

    def dispose(self) -> None:
        """Release pooled connections."""
        self.engine.dispose()

    def session(self) -> Session:
        return self.SessionLocal()

    def session_scope(self) -> Iterator[Session]:
        """Yield a session for one request scope and close it afterwards.

        Use this generator as a FastAPI dependency to ensure the session is
        properly closed after the request completes.
        """
        db = self.SessionLocal()
        try:
            yield db
        finally:
            db.close()
