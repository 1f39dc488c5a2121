import logging
from datetime import datetime, timedelta

import pytest
from sqlalchemy import DateTime, event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine, select

from nursing.database import _enable_sqlite_foreign_keys, init_db
from nursing.exceptions import AlreadyExists, InvalidArgument, NotFound
from nursing.factories import make_observation, make_patient
from nursing.models import (
    ClinicalHistory,
    ClinicalHistoryBase,
    NursingObservation,
    NursingObservationUpdate,
    Patient,
)
from nursing.registry import IdentityRegistry
from nursing.services import RelationshipManager
from nursing.store import Store


def _observations_of(session, history_id):
    return session.exec(
        select(NursingObservation).where(NursingObservation.history_id == history_id)
    ).all()


def _record_observations(manager, history_id, count):
    start = datetime(2024, 1, 1, 8, 0)
    return [
        manager.create_observation(make_observation(start + timedelta(hours=i)), history_id)
        for i in range(count)
    ]


# Identity registry


def test_registry_sees_admitted_id_numbers(store, patient):
    registry = IdentityRegistry(store)
    assert registry.is_registered("12345678")
    assert not registry.is_registered("87654321")
    assert not registry.is_registered_elsewhere("12345678", patient.id)


@pytest.mark.parametrize("id_number", ["", "   "])
def test_registry_rejects_blank_id_number(store, id_number):
    with pytest.raises(InvalidArgument):
        IdentityRegistry(store).is_registered(id_number)


# Patients


def test_readmitting_same_id_number_fails_and_keeps_first(manager, store, patient):
    with pytest.raises(AlreadyExists):
        manager.admit_patient(make_patient(id_number="12345678", first_name="Otro"))

    patients = store.find_all(Patient)
    assert len(patients) == 1
    assert patients[0].id == patient.id
    assert patients[0].first_name == "Ana"


def test_admission_does_not_open_a_history(manager, store, patient):
    assert store.find_by_field(ClinicalHistory, "patient_id", patient.id) == []


def test_update_patient_replaces_fields_and_keeps_history(manager, store, patient, history):
    updates = make_patient(first_name="Ana María", service="Cardiología")
    updates.id = patient.id
    updates.room = 7

    updated = manager.update_patient(updates)

    assert updated.id == patient.id
    assert updated.first_name == "Ana María"
    assert updated.service == "Cardiología"
    assert updated.room == 7
    assert store.get(ClinicalHistory, history.id).patient_id == patient.id


def test_update_missing_patient_fails(manager):
    updates = make_patient()
    updates.id = 999
    with pytest.raises(NotFound):
        manager.update_patient(updates)


def test_update_patient_to_taken_id_number_fails(manager, patient):
    other = manager.admit_patient(make_patient(id_number="99999999", first_name="Luis"))
    updates = make_patient(id_number="12345678", first_name="Luis")
    updates.id = other.id
    with pytest.raises(AlreadyExists):
        manager.update_patient(updates)


# Clinical histories


def test_second_history_fails_and_first_is_unchanged(manager, store, patient, history):
    with pytest.raises(AlreadyExists):
        manager.create_history(ClinicalHistory(sex="M", blood_type="0-"), patient.id)

    histories = store.find_by_field(ClinicalHistory, "patient_id", patient.id)
    assert [h.id for h in histories] == [history.id]
    assert histories[0].blood_type == "A+"


def test_history_for_missing_patient_fails(manager):
    with pytest.raises(NotFound):
        manager.create_history(ClinicalHistory(sex="F"), 404)


def test_update_history_is_a_full_replace(manager, patient, history):
    updated = manager.update_history(ClinicalHistoryBase(sex="F", weight=58.0), patient.id)

    assert updated.id == history.id
    assert updated.patient_id == patient.id
    assert updated.weight == 58.0
    # fields left out of the replacement are cleared
    assert updated.height is None
    assert updated.blood_type is None


def test_update_history_requires_patient_and_history(manager, patient):
    with pytest.raises(NotFound):
        manager.update_history(ClinicalHistoryBase(sex="F"), patient.id)
    with pytest.raises(NotFound):
        manager.update_history(ClinicalHistoryBase(sex="F"), 404)


@pytest.mark.parametrize("count", [0, 1, 5])
def test_delete_history_cascades_to_observations(manager, session, store, history, count):
    _record_observations(manager, history.id, count)

    result = manager.delete_history(history.id)

    assert result.observations == count
    assert store.get(ClinicalHistory, history.id) is None
    assert _observations_of(session, history.id) == []


def test_delete_history_twice_fails(manager, history):
    manager.delete_history(history.id)
    with pytest.raises(NotFound):
        manager.delete_history(history.id)


def test_delete_patient_cascades_through_history(manager, session, store, patient, history):
    observations = _record_observations(manager, history.id, 3)
    ids = [o.id for o in observations]
    patient_id, history_id = patient.id, history.id

    result = manager.delete_patient(patient_id)

    assert (result.patients, result.histories, result.observations) == (1, 1, 3)
    assert store.get(Patient, patient_id) is None
    assert store.get(ClinicalHistory, history_id) is None
    assert all(store.get(NursingObservation, i) is None for i in ids)


def test_delete_patient_without_history(manager, store, patient):
    result = manager.delete_patient(patient.id)
    assert (result.histories, result.observations) == (0, 0)
    assert store.find_all(Patient) == []


def test_delete_patient_twice_fails(manager, patient):
    patient_id = patient.id
    manager.delete_patient(patient_id)
    with pytest.raises(NotFound):
        manager.delete_patient(patient_id)


def test_deleted_patient_id_number_can_be_readmitted(manager, patient, history):
    manager.delete_patient(patient.id)
    again = manager.admit_patient(make_patient())
    assert again.id is not None


# Nursing observations


def test_observation_is_bound_to_history(manager, history):
    observation = manager.create_observation(make_observation(datetime(2024, 1, 1, 8, 0)), history.id)
    assert observation.id is not None
    assert observation.history_id == history.id


def test_observation_for_missing_history_fails(manager, store):
    with pytest.raises(NotFound):
        manager.create_observation(make_observation(datetime(2024, 1, 1, 8, 0)), 404)
    assert store.find_all(NursingObservation) == []


def test_update_observation_replaces_fields(manager, history):
    observation = manager.create_observation(make_observation(datetime(2024, 1, 1, 8, 0)), history.id)

    updates = NursingObservationUpdate(
        id=observation.id, temperature=38.2, taken_at=datetime(2024, 1, 1, 9, 0)
    )
    updated = manager.update_observation(updates, history.id)

    assert updated.id == observation.id
    assert updated.temperature == 38.2
    assert updated.taken_at == datetime(2024, 1, 1, 9, 0)
    assert updated.blood_pressure is None
    assert updated.history_id == history.id


def test_update_observation_requires_history_and_observation(manager, history):
    observation = manager.create_observation(make_observation(datetime(2024, 1, 1, 8, 0)), history.id)
    with pytest.raises(NotFound):
        manager.update_observation(
            NursingObservationUpdate(id=observation.id, taken_at=datetime(2024, 1, 1)), 404
        )
    with pytest.raises(NotFound):
        manager.update_observation(
            NursingObservationUpdate(id=404, taken_at=datetime(2024, 1, 1)), history.id
        )


def test_delete_observation_twice_fails(manager, store, history):
    observation = manager.create_observation(make_observation(datetime(2024, 1, 1, 8, 0)), history.id)
    observation_id = observation.id

    manager.delete_observation(observation_id)
    assert store.get(NursingObservation, observation_id) is None
    with pytest.raises(NotFound):
        manager.delete_observation(observation_id)


def test_update_observation_through_another_history_fails(manager, store, patient, history):
    other_patient = manager.admit_patient(make_patient(id_number="99999999"))
    other_history = manager.create_history(ClinicalHistory(sex="M"), other_patient.id)
    observation = manager.create_observation(make_observation(datetime(2024, 1, 1, 8, 0)), history.id)
    observation_id, history_id = observation.id, history.id

    with pytest.raises(NotFound):
        manager.update_observation(
            NursingObservationUpdate(id=observation_id, taken_at=datetime(2024, 1, 1, 9, 0)),
            other_history.id,
        )

    stored = store.get(NursingObservation, observation_id)
    assert stored.history_id == history_id
    assert stored.taken_at == datetime(2024, 1, 1, 8, 0)


def test_observation_timestamp_column_is_naive():
    column_type = NursingObservation.__table__.c.taken_at.type
    assert isinstance(column_type, DateTime)
    assert column_type.timezone is False


# Cascade without the schema's ON DELETE CASCADE


@pytest.fixture
def unenforced_store():
    """A store whose SQLite connection leaves foreign keys off."""
    event.remove(Engine, "connect", _enable_sqlite_foreign_keys)
    try:
        engine = create_engine(
            "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
        )
        with engine.connect() as connection:
            assert connection.exec_driver_sql("PRAGMA foreign_keys").scalar() == 0
    finally:
        event.listen(Engine, "connect", _enable_sqlite_foreign_keys)
    init_db(engine)
    with Session(engine) as session:
        yield Store(session)
    SQLModel.metadata.drop_all(engine)


def test_history_delete_cascades_without_foreign_keys(unenforced_store):
    manager = RelationshipManager(unenforced_store)
    patient = manager.admit_patient(make_patient())
    history = manager.create_history(ClinicalHistory(sex="F"), patient.id)
    _record_observations(manager, history.id, 3)
    history_id = history.id

    manager.delete_history(history_id)

    assert _observations_of(unenforced_store.session, history_id) == []
    assert unenforced_store.session.exec(select(NursingObservation)).all() == []


def test_patient_delete_cascades_without_foreign_keys(unenforced_store):
    manager = RelationshipManager(unenforced_store)
    patient = manager.admit_patient(make_patient())
    history = manager.create_history(ClinicalHistory(sex="F"), patient.id)
    _record_observations(manager, history.id, 2)
    patient_id, history_id = patient.id, history.id

    manager.delete_patient(patient_id)

    session = unenforced_store.session
    assert session.exec(
        select(ClinicalHistory).where(ClinicalHistory.patient_id == patient_id)
    ).all() == []
    assert _observations_of(session, history_id) == []
    assert session.exec(select(Patient)).all() == []


# Logging of rejected operations


def test_rejected_second_history_is_logged(manager, patient, history, caplog):
    patient_id = patient.id
    with caplog.at_level(logging.WARNING, logger="nursing.services"):
        with pytest.raises(AlreadyExists):
            manager.create_history(ClinicalHistory(sex="M"), patient_id)

    assert any(
        r.levelno == logging.WARNING and f"patient {patient_id}" in r.getMessage()
        for r in caplog.records
    )


def test_rejected_id_number_change_is_logged(manager, patient, caplog):
    other = manager.admit_patient(make_patient(id_number="99999999", first_name="Luis"))
    updates = make_patient(id_number="12345678", first_name="Luis")
    updates.id = other.id

    with caplog.at_level(logging.WARNING, logger="nursing.services"):
        with pytest.raises(AlreadyExists):
            manager.update_patient(updates)

    assert any(
        r.levelno == logging.WARNING and "12345678" in r.getMessage() for r in caplog.records
    )
