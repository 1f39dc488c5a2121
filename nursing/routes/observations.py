from typing import List

from fastapi import APIRouter, Depends, status

from nursing.dependencies import date_range_request, get_manager, get_queries, page_request
from nursing.models import (
    DateRangeRequest,
    NursingObservation,
    NursingObservationBase,
    NursingObservationOut,
    NursingObservationUpdate,
    PageRequest,
)
from nursing.queries import QueryEngine
from nursing.services import RelationshipManager
from nursing.store import Page

router = APIRouter(prefix="/observations", tags=["observations"])


@router.get("/patient/{patient_id}", response_model=List[NursingObservationOut])
def list_patient_observations(patient_id: int, queries: QueryEngine = Depends(get_queries)):
    return [NursingObservationOut.model_validate(o) for o in queries.list_observations(patient_id)]


@router.get("/history/{history_id}", response_model=Page[NursingObservationOut])
def page_history_observations(
    history_id: int,
    paging: PageRequest = Depends(page_request),
    queries: QueryEngine = Depends(get_queries),
):
    page = queries.page_observations(history_id, paging.page, paging.size)
    return page.map(NursingObservationOut.model_validate)


@router.get("/history/{history_id}/range", response_model=Page[NursingObservationOut])
def page_history_observations_in_range(
    history_id: int,
    dates: DateRangeRequest = Depends(date_range_request),
    paging: PageRequest = Depends(page_request),
    queries: QueryEngine = Depends(get_queries),
):
    """
    Observations taken between `start_date` and `end_date`, oldest first.
    Both dates must be in the past.
    """
    page = queries.page_observations_in_range(
        history_id, dates.start_date, dates.end_date, paging.page, paging.size
    )
    return page.map(NursingObservationOut.model_validate)


@router.get("/{observation_id}", response_model=NursingObservationOut)
def get_observation(observation_id: int, queries: QueryEngine = Depends(get_queries)):
    return NursingObservationOut.model_validate(queries.find_observation(observation_id))


@router.post(
    "/history/{history_id}",
    response_model=NursingObservationOut,
    status_code=status.HTTP_201_CREATED,
)
def create_observation(
    history_id: int,
    data: NursingObservationBase,
    manager: RelationshipManager = Depends(get_manager),
):
    observation = manager.create_observation(NursingObservation.model_validate(data), history_id)
    return NursingObservationOut.model_validate(observation)


@router.put("/history/{history_id}", response_model=NursingObservationOut)
def update_observation(
    history_id: int,
    data: NursingObservationUpdate,
    manager: RelationshipManager = Depends(get_manager),
):
    return NursingObservationOut.model_validate(manager.update_observation(data, history_id))


@router.delete("/{observation_id}", response_model=dict)
def delete_observation(observation_id: int, manager: RelationshipManager = Depends(get_manager)):
    manager.delete_observation(observation_id)
    return {"message": f"Nursing observation {observation_id} deleted."}
