import logging
import os
from pathlib import Path
from typing import Any, Generator, Optional

from dotenv import load_dotenv
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///./doubles_scheduler.db"
DATABASE_URL = os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)
SQL_ECHO = os.getenv("SQL_ECHO", "false").lower() in ("true", "1", "yes")


def build_engine(url: str, echo: bool = False, **kwargs: Any) -> Engine:
    """Create an engine; SQLite files get their parent directory created first."""
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
        if ":memory:" not in url:
            Path(url.replace("sqlite:///", "", 1)).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(url, echo=echo, **kwargs)


engine: Engine = build_engine(DATABASE_URL, echo=SQL_ECHO)


def get_session() -> Generator[Session, None, None]:
    """Get database session"""
    with Session(engine) as session:
        yield session


def init_db(bind: Optional[Engine] = None) -> None:
    """Create all tables on bind (the application engine by default)"""
    # Models must be imported so they register with SQLModel metadata
    from doubles_scheduler import models  # noqa: F401

    target = bind if bind is not None else engine
    SQLModel.metadata.create_all(target)
    logger.info("Database ready: %d tables on %s", len(SQLModel.metadata.tables), target.url)
