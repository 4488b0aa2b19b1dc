"""Engine construction and schema creation for the run journal"""

from sqlmodel import SQLModel, create_engine

from docsync.crud import models  # noqa: F401  (registers the tables)


def make_engine(db_url: str):
    # Runs execute on a worker thread; SQLite must accept connections from it.
    connect_args = {"check_same_thread": False} if db_url.startswith("sqlite") else {}
    return create_engine(db_url, echo=False, connect_args=connect_args)


def init_db(engine) -> None:
    SQLModel.metadata.create_all(engine)
