from typing import Generator

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel

from pulse.database import create_db_engine
from pulse.models import log_models, metric_models  # noqa: F401
from pulse.store.memory_store import InMemoryMetricStore
from pulse.store.sql_store import SqlMetricStore


@pytest.fixture
def engine():
    engine = create_db_engine("sqlite://", poolclass=StaticPool)
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session(engine) -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session


@pytest.fixture
def seed(session):
    """Persist rows and metric definitions, returning a SQL-backed store."""

    def _seed(rows=(), metrics=()) -> SqlMetricStore:
        session.add_all(list(rows) + list(metrics))
        session.commit()
        return SqlMetricStore(session)

    return _seed


@pytest.fixture(params=["sql", "memory"])
def build_store(request, seed):
    """Same data behind either store implementation."""

    def _build(rows=(), metrics=()):
        if request.param == "memory":
            return InMemoryMetricStore(rows, metrics)
        return seed(rows, metrics)

    return _build
