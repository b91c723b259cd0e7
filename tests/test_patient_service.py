"""
Reconciliation of owned and shared patients.

Scenario used throughout: doctor d1 owns patients, d2 receives grants,
p-user is a patient with their own account.
"""

from datetime import date

import pytest

from medrecords.core.errors import NotFound, Unauthorized, ValidationError
from medrecords.models.patient import PatientStatus
from medrecords.models.user import Profession
from medrecords.services.patient_service import approximate_birth_date
from medrecords.stores.base import MEDICAL_DATA, OBSERVATIONS, PERSONAL_DATA, PATIENTS
from medrecords.stores.sql_store import SqlRowStore


def test_approximate_birth_date():
    assert approximate_birth_date(30, today=date(2024, 8, 20)) == date(1994, 1, 1)


class TestCreatePatient:
    def test_create_returns_full_view(self, service, patient_form):
        view = service.create_patient("d1", patient_form)

        assert view.name == "Ana Souza"
        assert view.age == 34
        assert view.city == "Recife"
        assert view.state == "PE"
        assert view.weight == pytest.approx(62.5)
        assert view.notes == "Allergic to penicillin"
        assert view.doctor_id == "d1"
        assert view.is_shared is False
        assert view.status == PatientStatus.ACTIVE
        assert view.created_at is not None

    def test_create_persists_subrecords(self, service, stores, patient_form):
        view = service.create_patient("d1", patient_form)

        personal = stores.profiles.query(PERSONAL_DATA, {"user_id": view.id})
        medical = stores.profiles.query(MEDICAL_DATA, {"user_id": view.id})
        assert personal[0]["city"] == "Recife"
        assert medical[0]["weight"] == "62.5"

    @pytest.mark.parametrize(
        "field, value, message",
        [
            ("name", "  ", "Name is required"),
            ("age", 0, "Age must be greater than 0"),
            ("weight", -1, "Weight must be greater than 0"),
            ("weight", float("nan"), "Weight must be a finite number"),
            ("weight", float("inf"), "Weight must be a finite number"),
            ("city", "", "City is required"),
        ],
    )
    def test_invalid_input(self, service, stores, patient_form, field, value, message):
        patient_form[field] = value

        with pytest.raises(ValidationError) as excinfo:
            service.create_patient("d1", patient_form)

        assert message in excinfo.value.errors[field]
        assert stores.records.query(PATIENTS) == []

    def test_view_reflects_only_what_was_stored(self, service, stores, patient_form, monkeypatch):
        def refuse(table, row):
            from medrecords.core.errors import BackendError

            raise BackendError("rejected", table=table)

        monkeypatch.setattr(stores.profiles, "insert", refuse)
        view = service.create_patient("d1", patient_form)

        assert view.name == "Ana Souza"
        assert view.city == "N/A"
        assert view.age is None
        assert view.weight is None
        assert len(stores.records.query(PATIENTS)) == 1


class TestListPatients:
    def test_owned_then_shared_without_duplicates(self, service, make_user, patient_form):
        make_user("p-user", full_name="Carlos Lima")
        first = service.create_patient("d1", patient_form)
        second = service.create_patient("d1", {**patient_form, "name": "Bruno"})
        service.share_patient("p-user", "p-user", "d1")
        # a grant on an owned patient must not produce a second entry
        service.sharing.grant(first.id, "d1")

        patients = service.list_patients("d1")

        assert [p.id for p in patients] == [first.id, second.id, "p-user"]
        assert [p.is_shared for p in patients] == [False, False, True]
        assert patients[2].name == "Carlos Lima"
        assert patients[2].doctor_id is None
        assert patients[2].status == PatientStatus.SHARED

    def test_doctor_owned_patient_shared_with_colleague(self, service, patient_form):
        ana = service.create_patient("d1", {**patient_form, "name": "Ana"})
        grant = service.share_patient("d1", ana.id, "d2")

        [view] = service.list_patients("d2")

        assert view.id == ana.id
        assert view.name == "Ana"
        assert view.is_shared is True
        assert view.doctor_id is None
        assert view.shared_id == grant.id
        assert view.city == "Recife"

    def test_revoked_patient_disappears(self, service, patient_form):
        ana = service.create_patient("d1", patient_form)
        service.share_patient("d1", ana.id, "d2")
        service.unshare_patient("d1", ana.id, "d2")

        assert service.list_patients("d2") == []

    def test_grants_on_doctor_accounts_are_ignored(self, service, make_user):
        make_user("d9", profession=Profession.DOCTOR, full_name="Dr. Nine")
        service.sharing.grant("d9", "d2")

        assert service.list_patients("d2") == []

    def test_unknown_grant_target_still_listed(self, service):
        service.sharing.grant("ghost-patient-id", "d2")

        [view] = service.list_patients("d2")
        assert view.name == "Patient ghost-pa"
        assert view.city == "N/A"

    def test_empty(self, service):
        assert service.list_patients("d1") == []

    def test_pagination(self, service, patient_form):
        for i in range(3):
            service.create_patient("d1", {**patient_form, "name": f"P{i}"})

        page = service.list_patients_page("d1", page=2, per_page=2)

        assert [p.name for p in page.patients] == ["P2"]
        assert page.pagination.total_items == 3
        assert page.pagination.total_pages == 2
        assert page.pagination.current_page == 2
        assert page.pagination.items_per_page == 2

    def test_pagination_of_nothing(self, service):
        page = service.list_patients_page("d1")
        assert page.patients == []
        assert page.pagination.total_pages == 1
        assert page.pagination.items_per_page == 10

    def test_invalid_page(self, service):
        with pytest.raises(ValidationError):
            service.list_patients_page("d1", page=0)


class _CountingStore(SqlRowStore):
    def __init__(self, session_factory):
        super().__init__(session_factory)
        self.queries = 0

    def query(self, table, filters=None, order_by=None):
        self.queries += 1
        return super().query(table, filters, order_by)


class TestListingRoundTrips:
    @pytest.fixture
    def sql_store(self, session_factory):
        return _CountingStore(session_factory)

    def _queries_for(self, service, sql_store, doctor_id):
        sql_store.queries = 0
        patients = service.list_patients(doctor_id)
        return len(patients), sql_store.queries

    def test_query_count_does_not_grow_with_patients(self, service, sql_store, make_user, patient_form):
        for doctor_id, count in (("d2", 1), ("d3", 6)):
            for i in range(count):
                owned = service.create_patient(doctor_id, {**patient_form, "name": f"Own {i}"})
                service.update_patient(doctor_id, owned.id, {"notes": "seen"})
                other = service.create_patient("d1", {**patient_form, "name": f"Shared {i}"})
                service.share_patient("d1", other.id, doctor_id)
                make_user(f"{doctor_id}-p{i}", full_name=f"User {i}")
                service.share_patient(f"{doctor_id}-p{i}", f"{doctor_id}-p{i}", doctor_id)

        small = self._queries_for(service, sql_store, "d2")
        large = self._queries_for(service, sql_store, "d3")

        assert small[0] == 3
        assert large[0] == 18
        assert small[1] == large[1]
        # owned, grants, users, patients, personal, medical, observations
        assert large[1] == 7


class TestGetPatient:
    def test_owned(self, service, patient_form):
        created = service.create_patient("d1", patient_form)
        assert service.get_patient("d1", created.id) == created

    def test_not_visible_is_not_found(self, service, patient_form):
        created = service.create_patient("d1", patient_form)

        with pytest.raises(NotFound):
            service.get_patient("d2", created.id)
        with pytest.raises(NotFound):
            service.get_patient("d1", "does-not-exist")

    def test_shared(self, service, make_user):
        make_user("p-user", email="carla@x.com")
        service.share_patient("p-user", "p-user", "d2")

        view = service.get_patient("d2", "p-user")
        assert view.name == "Patient carla"
        assert view.is_shared is True


class TestUpdatePatient:
    def test_merge_leaves_other_fields(self, service, patient_form):
        created = service.create_patient("d1", patient_form)

        updated = service.update_patient("d1", created.id, {"city": "Olinda", "weight": 60})

        assert updated.city == "Olinda"
        assert updated.weight == pytest.approx(60.0)
        assert updated.state == "PE"
        assert updated.name == "Ana Souza"
        assert updated.age == 34

    def test_null_fields_are_ignored(self, service, patient_form):
        created = service.create_patient("d1", patient_form)
        updated = service.update_patient("d1", created.id, {"name": None, "state": "PB"})

        assert updated.name == "Ana Souza"
        assert updated.state == "PB"

    def test_rename_and_status(self, service, stores, patient_form):
        created = service.create_patient("d1", patient_form)
        updated = service.update_patient("d1", created.id, {"name": "Ana S.", "status": "archived"})

        assert updated.name == "Ana S."
        assert updated.status == PatientStatus.ARCHIVED
        assert stores.records.query_one(PATIENTS, {"id": created.id})["name"] == "Ana S."

    def test_notes_become_doctor_observation(self, service, stores, patient_form):
        created = service.create_patient("d1", patient_form)
        service.share_patient("d1", created.id, "d2")

        service.update_patient("d2", created.id, {"notes": "Seen by cardiology"})
        service.update_patient("d2", created.id, {"notes": "Second visit"})

        rows = stores.records.query(OBSERVATIONS, {"patient_id": created.id})
        assert [(r["doctor_id"], r["text"]) for r in rows] == [("d2", "Second visit")]
        assert service.get_patient("d2", created.id).notes == "Second visit"
        # d1 keeps the notes on its own record
        assert service.get_patient("d1", created.id).notes == "Allergic to penicillin"

    def test_requires_access(self, service, patient_form):
        created = service.create_patient("d1", patient_form)
        with pytest.raises(Unauthorized):
            service.update_patient("d2", created.id, {"city": "Olinda"})

    def test_invalid_update(self, service, patient_form):
        created = service.create_patient("d1", patient_form)
        with pytest.raises(ValidationError) as excinfo:
            service.update_patient("d1", created.id, {"age": -2})
        assert "age" in excinfo.value.errors

    def test_non_finite_weight_rejected(self, service, stores, patient_form):
        created = service.create_patient("d1", patient_form)
        with pytest.raises(ValidationError) as excinfo:
            service.update_patient("d1", created.id, {"weight": float("nan")})
        assert "weight" in excinfo.value.errors
        assert stores.profiles.query(MEDICAL_DATA, {"user_id": created.id})[0]["weight"] == "62.5"

    def test_access_checked_before_input(self, service, patient_form):
        created = service.create_patient("d1", patient_form)
        with pytest.raises(Unauthorized):
            service.update_patient("d2", created.id, {"age": -2})


class TestDeletePatients:
    def test_only_owned_are_deleted(self, service, stores, patient_form):
        mine = service.create_patient("d1", patient_form)
        theirs = service.create_patient("d2", patient_form)
        service.update_patient("d1", mine.id, {"notes": "bye"})

        deleted = service.delete_patients("d1", [mine.id, theirs.id, "unknown"])

        assert deleted == [mine.id]
        assert [r["id"] for r in stores.records.query(PATIENTS)] == [theirs.id]
        assert stores.records.query(OBSERVATIONS, {"patient_id": mine.id}) == []

    def test_nothing_to_delete(self, service):
        assert service.delete_patients("d1", []) == []
        assert service.delete_patients("d1", ["unknown"]) == []

    def test_grants_survive_deletion(self, service, patient_form):
        mine = service.create_patient("d1", patient_form)
        service.share_patient("d1", mine.id, "d2")

        service.delete_patients("d1", [mine.id])

        assert service.sharing.find_active(mine.id, "d2") is not None


class TestSharingRules:
    def test_only_patient_or_owner_can_share(self, service, patient_form):
        created = service.create_patient("d1", patient_form)
        with pytest.raises(Unauthorized):
            service.share_patient("d3", created.id, "d2")

    def test_owner_cannot_share_with_self(self, service, patient_form):
        created = service.create_patient("d1", patient_form)
        with pytest.raises(ValidationError):
            service.share_patient("d1", created.id, "d1")

    def test_grantee_can_revoke_own_access(self, service, patient_form):
        created = service.create_patient("d1", patient_form)
        service.share_patient("d1", created.id, "d2")

        assert service.unshare_patient("d2", created.id, "d2") == 1

    def test_stranger_cannot_revoke(self, service, patient_form):
        created = service.create_patient("d1", patient_form)
        service.share_patient("d1", created.id, "d2")
        with pytest.raises(Unauthorized):
            service.unshare_patient("d3", created.id, "d2")


class TestLocalOnlyProfiles:
    @pytest.fixture
    def settings(self):
        from medrecords.core.config import Settings

        return Settings(use_remote_profiles=False, backend_retry_delay_seconds=0, _env_file=None)

    def test_profiles_live_in_local_cache(self, service, stores, cache, patient_form):
        created = service.create_patient("d1", patient_form)
        service.share_patient("d1", created.id, "d2")

        assert stores.records.query(PERSONAL_DATA) == []
        assert cache.get("medrecords:patient_personal_data") is not None
        [view] = service.list_patients("d2")
        assert view.name == "Ana Souza"
        assert view.city == "Recife"
