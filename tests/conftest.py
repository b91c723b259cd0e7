import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from medrecords.core.cache import MemoryCache
from medrecords.core.config import Settings
from medrecords.models import Base
from medrecords.models.user import Profession
from medrecords.services.patient_service import PatientReconciliationService
from medrecords.stores.base import USERS
from medrecords.stores.factory import build_stores
from medrecords.stores.sql_store import SqlRowStore


@pytest.fixture
def settings():
    """No sleeping between retries in tests."""
    return Settings(
        use_remote_profiles=True,
        backend_retry_attempts=3,
        backend_retry_delay_seconds=0,
        _env_file=None,
    )


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)


@pytest.fixture
def sql_store(session_factory):
    return SqlRowStore(session_factory)


@pytest.fixture
def cache():
    return MemoryCache()


@pytest.fixture
def stores(settings, sql_store, cache):
    return build_stores(settings, records=sql_store, cache=cache)


@pytest.fixture
def service(stores, settings):
    return PatientReconciliationService(stores, settings)


@pytest.fixture
def make_user(stores):
    """Insert a row in ``users`` through the profile store."""

    def _make(user_id, profession=Profession.PATIENT, **fields):
        row = {
            "id": user_id,
            "profession": profession.value,
            "email": fields.pop("email", f"{user_id}@example.com"),
            **fields,
        }
        return stores.profiles.insert(USERS, row)

    return _make


@pytest.fixture
def patient_form():
    return {
        "name": "Ana Souza",
        "age": 34,
        "city": "Recife",
        "state": "PE",
        "weight": 62.5,
        "notes": "Allergic to penicillin",
    }
