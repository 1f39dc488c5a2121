"""
Create, replace and delete patients, clinical histories and nursing observations.

Every operation checks both ends of the parent/child link right before it
writes, so callers get a typed NotFound/AlreadyExists instead of a constraint
violation. Each operation is one unit of work on the store; cascades run
inside the same unit as the delete that triggers them.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import SQLModel

from nursing.exceptions import AlreadyExists, NotFound
from nursing.models import (
    ClinicalHistory,
    ClinicalHistoryBase,
    NursingObservation,
    NursingObservationBase,
    Patient,
    local_naive,
)
from nursing.registry import IdentityRegistry
from nursing.store import Store

logger = logging.getLogger(__name__)


@dataclass
class CascadeResult:
    """What a cascading delete removed."""

    patients: int = 0
    histories: int = 0
    observations: int = 0


def _replace(target: SQLModel, source: SQLModel, fields) -> None:
    values = source.model_dump(include=set(fields))
    for name in fields:
        setattr(target, name, values.get(name))


PATIENT_FIELDS = [name for name in Patient.model_fields if name != "id"]
HISTORY_FIELDS = list(ClinicalHistoryBase.model_fields)
OBSERVATION_FIELDS = list(NursingObservationBase.model_fields)


class RelationshipManager:
    def __init__(self, store: Store, registry: Optional[IdentityRegistry] = None):
        self.store = store
        self.registry = registry or IdentityRegistry(store)

    # Patients

    def admit_patient(self, patient: Patient) -> Patient:
        id_number = patient.id_number
        if self.registry.is_registered(id_number):
            logger.warning(f"Rejected admission, id number {id_number} is taken")
            raise AlreadyExists(f"A patient with id number {id_number} is already registered")
        try:
            with self.store.transaction():
                patient.id = None
                patient = self.store.save(patient)
        except IntegrityError:
            # lost a race against another admission with the same id number
            logger.warning(f"Rejected admission, id number {id_number} is taken")
            raise AlreadyExists(f"A patient with id number {id_number} is already registered")
        logger.info(f"Admitted patient {patient.id}")
        return patient

    def update_patient(self, updates: Patient) -> Patient:
        with self.store.transaction():
            patient = self._require_patient(updates.id)
            if updates.id_number != patient.id_number and self.registry.is_registered_elsewhere(
                updates.id_number, patient.id
            ):
                logger.warning(
                    f"Rejected update of patient {patient.id}, id number {updates.id_number} is taken"
                )
                raise AlreadyExists(
                    f"A patient with id number {updates.id_number} is already registered"
                )
            _replace(patient, updates, PATIENT_FIELDS)
            patient = self.store.save(patient)
        logger.info(f"Replaced patient {patient.id}")
        return patient

    def delete_patient(self, patient_id: int) -> CascadeResult:
        with self.store.transaction():
            patient = self._require_patient(patient_id)
            result = CascadeResult()
            history = self._history_of(patient_id)
            if history is not None:
                result = self._delete_history_tree(history)
            self.store.delete(patient)
            result.patients = 1
        logger.info(
            f"Deleted patient {patient_id} with {result.histories} history "
            f"and {result.observations} observations"
        )
        return result

    # Clinical histories

    def create_history(self, history: ClinicalHistory, patient_id: int) -> ClinicalHistory:
        try:
            with self.store.transaction():
                self._require_patient(patient_id)
                if self._history_of(patient_id) is not None:
                    logger.warning(f"Rejected second clinical history for patient {patient_id}")
                    raise AlreadyExists(
                        f"Patient {patient_id} already has a clinical history, update it instead"
                    )
                history.id = None
                history.patient_id = patient_id
                history = self.store.save(history)
        except IntegrityError:
            logger.warning(f"Rejected second clinical history for patient {patient_id}")
            raise AlreadyExists(
                f"Patient {patient_id} already has a clinical history, update it instead"
            )
        logger.info(f"Created clinical history {history.id} for patient {patient_id}")
        return history

    def update_history(self, updates: SQLModel, patient_id: int) -> ClinicalHistory:
        with self.store.transaction():
            self._require_patient(patient_id)
            history = self._history_of(patient_id)
            if history is None:
                logger.warning(f"Patient {patient_id} has no clinical history to replace")
                raise NotFound(f"Patient {patient_id} has no clinical history")
            _replace(history, updates, HISTORY_FIELDS)
            history.patient_id = patient_id
            history = self.store.save(history)
        logger.info(f"Replaced clinical history {history.id} of patient {patient_id}")
        return history

    def delete_history(self, history_id: int) -> CascadeResult:
        with self.store.transaction():
            history = self.store.get(ClinicalHistory, history_id)
            if history is None:
                logger.warning(f"No clinical history {history_id} to delete")
                raise NotFound(f"No clinical history with id {history_id}")
            result = self._delete_history_tree(history)
        logger.info(
            f"Deleted clinical history {history_id} and {result.observations} observations"
        )
        return result

    # Nursing observations

    def create_observation(
        self, observation: NursingObservation, history_id: int
    ) -> NursingObservation:
        with self.store.transaction():
            self._require_history(history_id)
            observation.id = None
            observation.history_id = history_id
            observation.taken_at = local_naive(observation.taken_at)
            observation = self.store.save(observation)
        logger.info(f"Recorded observation {observation.id} on history {history_id}")
        return observation

    def update_observation(self, updates: SQLModel, history_id: int) -> NursingObservation:
        with self.store.transaction():
            self._require_history(history_id)
            observation = self.store.get(NursingObservation, updates.id)
            if observation is None or observation.history_id != history_id:
                logger.warning(f"No nursing observation {updates.id} on history {history_id}")
                raise NotFound(
                    f"No nursing observation with id {updates.id} on history {history_id}"
                )
            _replace(observation, updates, OBSERVATION_FIELDS)
            observation.taken_at = local_naive(observation.taken_at)
            observation = self.store.save(observation)
        logger.info(f"Replaced observation {observation.id} on history {history_id}")
        return observation

    def delete_observation(self, observation_id: int) -> None:
        with self.store.transaction():
            if not self.store.delete_by_id(NursingObservation, observation_id):
                logger.warning(f"No nursing observation {observation_id} to delete")
                raise NotFound(f"No nursing observation with id {observation_id}")
        logger.info(f"Deleted observation {observation_id}")

    # Helpers

    def _require_patient(self, patient_id: Optional[int]) -> Patient:
        patient = self.store.get(Patient, patient_id) if patient_id is not None else None
        if patient is None:
            logger.warning(f"No patient with id {patient_id}")
            raise NotFound(f"No patient with id {patient_id}")
        return patient

    def _require_history(self, history_id: int) -> ClinicalHistory:
        history = self.store.get(ClinicalHistory, history_id)
        if history is None:
            logger.warning(f"No clinical history with id {history_id}")
            raise NotFound(
                f"No clinical history with id {history_id} to record observations against"
            )
        return history

    def _history_of(self, patient_id: int) -> Optional[ClinicalHistory]:
        histories = self.store.find_by_field(ClinicalHistory, "patient_id", patient_id)
        return histories[0] if histories else None

    def _delete_history_tree(self, history: ClinicalHistory) -> CascadeResult:
        # children first, so no observation ever points at a missing history
        removed = self.store.delete_by_field(NursingObservation, "history_id", history.id)
        self.store.delete(history)
        return CascadeResult(histories=1, observations=removed)
