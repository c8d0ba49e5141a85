from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker


def _engine_options():
    return {
        "pool_pre_ping": True,
    }


class Base(DeclarativeBase):
    pass


def create_session_factory(dsn: str, *, create_schema: bool = False):
    """The media tables belong to the web app; only tests ask for ``create_schema``."""
    engine = create_engine(dsn, **_engine_options())
    if create_schema:
        Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)
