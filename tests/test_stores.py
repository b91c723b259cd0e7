from datetime import datetime, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError, ProgrammingError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from medrecords.core.cache import MemoryCache
from medrecords.core.config import Settings
from medrecords.core.errors import BackendError, BackendUnavailable, NotFound, SchemaMismatch
from medrecords.models import Base
from medrecords.stores.base import DIAGNOSES, PATIENTS, SHARING, RowStore
from medrecords.stores.cache_store import CacheRowStore
from medrecords.stores.factory import build_stores
from medrecords.stores.fallback_store import FallbackRowStore
from medrecords.stores.sql_store import SqlRowStore, translate_error


def _patient(pid, doctor="d1", name="Ana", **extra):
    return {"id": pid, "doctor_id": doctor, "name": name, **extra}


@pytest.fixture(params=["sql", "cache"])
def store(request, sql_store):
    if request.param == "sql":
        return sql_store
    return CacheRowStore(MemoryCache())


class TestRowStoreContract:
    def test_insert_assigns_id(self, store):
        row = store.insert(PATIENTS, {"doctor_id": "d1", "name": "Ana"})
        assert row["id"]
        assert store.query_one(PATIENTS, {"id": row["id"]})["name"] == "Ana"

    def test_membership_filter(self, store):
        for pid in ("a", "b", "c"):
            store.insert(PATIENTS, _patient(pid))
        found = {r["id"] for r in store.query(PATIENTS, {"id": ["a", "c", "zzz"]})}
        assert found == {"a", "c"}
        assert store.query(PATIENTS, {"id": []}) == []

    def test_order_by_descending(self, store):
        store.insert(PATIENTS, _patient("a", name="Bruno"))
        store.insert(PATIENTS, _patient("b", name="Ana"))
        store.insert(PATIENTS, _patient("c", name="Carla"))
        names = [r["name"] for r in store.query(PATIENTS, {"doctor_id": "d1"}, order_by="-name")]
        assert names == ["Carla", "Bruno", "Ana"]

    def test_update_returns_rows_touched(self, store):
        store.insert(PATIENTS, _patient("a"))
        store.insert(PATIENTS, _patient("b"))
        assert store.update(PATIENTS, {"doctor_id": "d1"}, {"notes": "x"}) == 2
        assert store.update(PATIENTS, {"doctor_id": "nobody"}, {"notes": "x"}) == 0
        assert {r["notes"] for r in store.query(PATIENTS)} == {"x"}

    def test_delete(self, store):
        store.insert(PATIENTS, _patient("a"))
        store.insert(PATIENTS, _patient("b"))
        assert store.delete(PATIENTS, {"id": ["a"]}) == 1
        assert [r["id"] for r in store.query(PATIENTS)] == ["b"]

    def test_query_one_not_found(self, store):
        with pytest.raises(NotFound):
            store.query_one(PATIENTS, {"id": "missing"})


class TestSqlRowStore:
    def test_unknown_table_is_schema_mismatch(self, sql_store):
        with pytest.raises(SchemaMismatch):
            sql_store.query("no_such_table")

    def test_unknown_column_is_schema_mismatch(self, sql_store):
        with pytest.raises(SchemaMismatch):
            sql_store.query(PATIENTS, {"favourite_color": "blue"})

    def test_unmigrated_table_is_schema_mismatch(self):
        engine = create_engine("sqlite://", poolclass=StaticPool, connect_args={"check_same_thread": False})
        tables = [t for name, t in Base.metadata.tables.items() if name != DIAGNOSES]
        Base.metadata.create_all(engine, tables=tables)
        store = SqlRowStore(sessionmaker(bind=engine))

        with pytest.raises(SchemaMismatch) as excinfo:
            store.query(DIAGNOSES, {"patient_id": "p1"})
        assert excinfo.value.table == DIAGNOSES
        assert "alembic upgrade head" in excinfo.value.message

    def test_translate_connectivity_error(self):
        exc = OperationalError("SELECT 1", {}, Exception("could not connect to server"))
        assert isinstance(translate_error(exc, PATIENTS), BackendUnavailable)

    def test_translate_other_error(self):
        exc = ProgrammingError("SELECT 1", {}, Exception("syntax error at or near"))
        error = translate_error(exc, PATIENTS)
        assert type(error) is BackendError

    @pytest.mark.parametrize(
        "message",
        [
            'relation "patient_diagnoses" does not exist',
            'column "code" of relation "patient_diagnoses" does not exist',
            "no such table: patient_diagnoses",
        ],
    )
    def test_translate_missing_relation(self, message):
        exc = ProgrammingError("SELECT 1", {}, Exception(message))
        assert isinstance(translate_error(exc, DIAGNOSES), SchemaMismatch)

    def test_missing_database_is_connectivity(self):
        exc = OperationalError("SELECT 1", {}, Exception('FATAL:  database "medrecords" does not exist'))
        error = translate_error(exc, PATIENTS)
        assert isinstance(error, BackendUnavailable)
        assert not isinstance(error, SchemaMismatch)

    def test_pgcode_decides_when_present(self):
        class _PgError(Exception):
            pgcode = "42P01"

        exc = ProgrammingError("SELECT 1", {}, _PgError("whatever the server says"))
        assert isinstance(translate_error(exc, PATIENTS), SchemaMismatch)


class TestCacheRowStore:
    def test_dates_are_stored_as_iso_strings(self):
        cache = MemoryCache()
        store = CacheRowStore(cache)
        shared_at = datetime(2024, 3, 1, 12, tzinfo=timezone.utc)
        store.insert(SHARING, {"id": "g1", "doctor_id": "d", "patient_id": "p", "shared_at": shared_at, "is_active": True})

        assert store.query(SHARING, {"is_active": True})[0]["shared_at"] == "2024-03-01T12:00:00+00:00"
        assert cache.get("medrecords:doctor_patient_sharing") is not None

    def test_unreadable_entry_reads_as_empty(self):
        cache = MemoryCache()
        cache.set("medrecords:patients", b"{not json")
        assert CacheRowStore(cache).query(PATIENTS) == []

    def test_missing_sort_column_sorts_last(self):
        store = CacheRowStore(MemoryCache())
        store.insert(PATIENTS, _patient("a", notes=None))
        store.insert(PATIENTS, _patient("b", notes="z"))
        store.insert(PATIENTS, _patient("c", notes="m"))
        assert [r["id"] for r in store.query(PATIENTS, order_by="notes")] == ["c", "b", "a"]
        assert [r["id"] for r in store.query(PATIENTS, order_by="-notes")] == ["b", "c", "a"]


class _DownStore(RowStore):
    def __init__(self, error):
        self.error = error
        self.calls = 0

    def query(self, table, filters=None, order_by=None):
        self.calls += 1
        raise self.error

    def insert(self, table, row):
        self.calls += 1
        raise self.error

    def update(self, table, filters, patch):
        self.calls += 1
        raise self.error

    def delete(self, table, filters):
        self.calls += 1
        raise self.error


class TestFallbackRowStore:
    def test_unmigrated_table_falls_back_to_local_cache(self):
        local = CacheRowStore(MemoryCache())
        store = FallbackRowStore(_DownStore(SchemaMismatch(table=PATIENTS)), local)

        store.insert(PATIENTS, _patient("a"))
        assert store.update(PATIENTS, {"id": "a"}, {"name": "Bia"}) == 1
        assert store.query(PATIENTS)[0]["name"] == "Bia"
        assert local.query(PATIENTS)[0]["name"] == "Bia"
        assert store.delete(PATIENTS, {"id": "a"}) == 1

    def test_outage_is_not_absorbed(self):
        local = CacheRowStore(MemoryCache())
        primary = _DownStore(BackendUnavailable("down"))
        store = FallbackRowStore(primary, local)

        with pytest.raises(BackendUnavailable):
            store.query(PATIENTS)
        with pytest.raises(BackendUnavailable):
            store.insert(PATIENTS, _patient("a"))
        assert local.query(PATIENTS) == []
        assert primary.calls == 2

    def test_other_errors_propagate(self):
        store = FallbackRowStore(_DownStore(BackendError("rejected")), CacheRowStore(MemoryCache()))
        with pytest.raises(BackendError):
            store.query(PATIENTS)

    def test_primary_used_when_healthy(self, sql_store):
        local = CacheRowStore(MemoryCache())
        store = FallbackRowStore(sql_store, local)
        store.insert(PATIENTS, _patient("a"))
        assert sql_store.query(PATIENTS)[0]["id"] == "a"
        assert local.query(PATIENTS) == []


def test_build_stores_picks_strategy_from_settings(sql_store):
    remote = build_stores(Settings(use_remote_profiles=True, _env_file=None), records=sql_store, cache=MemoryCache())
    local = build_stores(Settings(use_remote_profiles=False, _env_file=None), records=sql_store, cache=MemoryCache())

    assert remote.records is sql_store
    assert isinstance(remote.profiles, FallbackRowStore)
    assert isinstance(local.profiles, CacheRowStore)
    # grants never straddle two backends
    assert remote.sharing is sql_store
    assert local.sharing is local.profiles
