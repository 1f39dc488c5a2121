from typing import List

from fastapi import APIRouter, Depends, status

from nursing.dependencies import get_manager, get_queries, page_request
from nursing.models import PageRequest, PatientIn, PatientOut
from nursing.queries import QueryEngine
from nursing.services import RelationshipManager
from nursing.store import Page

router = APIRouter(prefix="/patients", tags=["patients"])


@router.get("", response_model=List[PatientOut])
def list_patients(queries: QueryEngine = Depends(get_queries)):
    return [PatientOut.from_patient(p) for p in queries.list_patients()]


@router.get("/paged", response_model=Page[PatientOut])
def page_patients(
    paging: PageRequest = Depends(page_request),
    queries: QueryEngine = Depends(get_queries),
):
    return queries.page_patients(paging.page, paging.size).map(PatientOut.from_patient)


@router.get("/search/{keyword}", response_model=Page[PatientOut])
def search_patients(
    keyword: str,
    paging: PageRequest = Depends(page_request),
    queries: QueryEngine = Depends(get_queries),
):
    """
    Match `keyword` against first name, last name and service.
    """
    return queries.search_patients(keyword, paging.page, paging.size).map(PatientOut.from_patient)


@router.get("/{patient_id}", response_model=PatientOut)
def get_patient(patient_id: int, queries: QueryEngine = Depends(get_queries)):
    return PatientOut.from_patient(queries.find_patient(patient_id))


@router.post("", response_model=PatientOut, status_code=status.HTTP_201_CREATED)
def admit_patient(data: PatientIn, manager: RelationshipManager = Depends(get_manager)):
    return PatientOut.from_patient(manager.admit_patient(data.to_patient()))


@router.put("/{patient_id}", response_model=PatientOut)
def update_patient(
    patient_id: int,
    data: PatientIn,
    manager: RelationshipManager = Depends(get_manager),
):
    """
    Replace every field of the patient. The clinical history is left as is.
    """
    return PatientOut.from_patient(manager.update_patient(data.to_patient(patient_id)))


@router.delete("/{patient_id}", response_model=dict)
def delete_patient(patient_id: int, manager: RelationshipManager = Depends(get_manager)):
    result = manager.delete_patient(patient_id)
    return {
        "message": f"Patient {patient_id} deleted.",
        "histories_deleted": result.histories,
        "observations_deleted": result.observations,
    }
