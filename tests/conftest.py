import os
import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATA_DIR", str(ROOT / "data"))

from equiptrack.crud.equipment import create_equipment
from equiptrack.db.session import Base

# Ensure models are registered so metadata tables are created
from equiptrack.models import equipment as equipment_model  # noqa: F401
from equiptrack.models import history as history_model  # noqa: F401
from equiptrack.models import system as system_model  # noqa: F401


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture()
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def make_item(db_session):
    """Create an equipment row with sensible defaults."""

    def _make(item_id, category="Transducer", system_color=None, **fields):
        payload = {"id": item_id, "name": fields.pop("name", f"{category} {item_id}"), "category": category}
        if system_color:
            payload["system_color"] = system_color
        payload.update(fields)
        return create_equipment(db_session, payload)

    return _make
