"""
Read side: lookups, paging, keyword search and time-window review.
"""

import logging
from datetime import datetime
from typing import Callable, List, Optional

from sqlmodel import col, or_

from nursing.exceptions import InvalidArgument, NotFound
from nursing.models import ClinicalHistory, NursingObservation, Patient, local_naive
from nursing.store import Page, Store

logger = logging.getLogger(__name__)


class QueryEngine:
    def __init__(self, store: Store, clock: Callable[[], datetime] = datetime.now):
        self.store = store
        self.clock = clock

    # Patients

    def find_patient(self, patient_id: int) -> Patient:
        patient = self.store.get(Patient, patient_id)
        if patient is None:
            raise NotFound(f"No patient with id {patient_id}")
        return patient

    def list_patients(self) -> List[Patient]:
        return self.store.find_all(Patient, order_by=[col(Patient.id)])

    def page_patients(self, page: int, size: int) -> Page[Patient]:
        return self.store.page(Patient, order_by=[col(Patient.id)], page_number=page, page_size=size)

    def search_patients(self, keyword: str, page: int, size: int) -> Page[Patient]:
        """
        Patients whose first name, last name or service contains `keyword`,
        ignoring case.
        """
        matches = or_(
            col(Patient.first_name).icontains(keyword, autoescape=True),
            col(Patient.last_name).icontains(keyword, autoescape=True),
            col(Patient.service).icontains(keyword, autoescape=True),
        )
        result = self.store.page(
            Patient, where=matches, order_by=[col(Patient.id)], page_number=page, page_size=size
        )
        logger.info(f"Search '{keyword}' matched {result.total_elements} patients")
        return result

    # Clinical histories

    def find_history(self, history_id: int) -> Optional[ClinicalHistory]:
        return self.store.get(ClinicalHistory, history_id)

    def find_history_by_patient(self, patient_id: int) -> ClinicalHistory:
        histories = self.store.find_by_field(ClinicalHistory, "patient_id", patient_id)
        if not histories:
            raise NotFound(f"Patient {patient_id} has no clinical history")
        return histories[0]

    # Nursing observations

    def find_observation(self, observation_id: int) -> NursingObservation:
        observation = self.store.get(NursingObservation, observation_id)
        if observation is None:
            raise NotFound(f"No nursing observation with id {observation_id}")
        return observation

    def list_observations(self, patient_id: int) -> List[NursingObservation]:
        """
        Every observation on the patient's history, oldest first.

        Raises NotFound when the patient or its history is missing. A history
        without observations gives an empty list, the same as an empty page.
        """
        self.find_patient(patient_id)
        history = self.find_history_by_patient(patient_id)
        return self.store.find_by_field(
            NursingObservation, "history_id", history.id, order_by=self._chronological()
        )

    def page_observations(self, history_id: int, page: int, size: int) -> Page[NursingObservation]:
        return self.store.page(
            NursingObservation,
            where=col(NursingObservation.history_id) == history_id,
            order_by=self._chronological(),
            page_number=page,
            page_size=size,
        )

    def page_observations_in_range(
        self,
        history_id: int,
        start: datetime,
        end: datetime,
        page: int,
        size: int,
    ) -> Page[NursingObservation]:
        """
        Observations of one history taken between `start` and `end`, both inclusive.

        Neither bound may lie in the future.
        """
        start, end = local_naive(start), local_naive(end)
        now = self.clock()
        if start > now or end > now:
            raise InvalidArgument("Search dates must be before the current date and time")
        if start > end:
            raise InvalidArgument("Start date must not be after end date")

        taken_at = col(NursingObservation.taken_at)
        return self.store.page(
            NursingObservation,
            where=(col(NursingObservation.history_id) == history_id)
            & (taken_at >= start)
            & (taken_at <= end),
            order_by=self._chronological(),
            page_number=page,
            page_size=size,
        )

    @staticmethod
    def _chronological():
        return [col(NursingObservation.taken_at).asc(), col(NursingObservation.id).asc()]
