from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker


def create_database_engine(database_url: str) -> Engine:
    """
    Create an engine for the given database URL.

    SQLite connections are shared with the worker thread that serves
    streamed downloads, so the same-thread check is turned off for them.
    """
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    return create_engine(database_url, connect_args=connect_args)


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    # Commits are always explicit; every atomic step of the engine is its own transaction
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


class Base(DeclarativeBase):
    pass
