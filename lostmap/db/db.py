from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

# imported so their tables are registered on SQLModel.metadata
from lostmap.models.lost_item import LostItem  # noqa: F401
from lostmap.models.user import User  # noqa: F401


def make_engine(database_url: str):
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url or database_url == "sqlite://":
            # one shared connection, otherwise every thread sees an empty db
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, **kwargs)

    return create_engine(database_url, pool_pre_ping=True)


def create_db_and_tables(engine) -> None:
    SQLModel.metadata.create_all(engine)
