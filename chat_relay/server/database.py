"""SQLAlchemy engine and session setup for snapshot files."""
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()


def snapshot_url(path: Path) -> str:
    return f"sqlite:///{path}"


def create_snapshot_engine(path: Path) -> Engine:
    # snapshots are written from a worker thread
    return create_engine(snapshot_url(path), connect_args={"check_same_thread": False})


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False)
