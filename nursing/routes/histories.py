from fastapi import APIRouter, Depends, status

from nursing.dependencies import get_manager, get_queries
from nursing.exceptions import NotFound
from nursing.models import ClinicalHistory, ClinicalHistoryBase, ClinicalHistoryOut
from nursing.queries import QueryEngine
from nursing.services import RelationshipManager

router = APIRouter(prefix="/histories", tags=["histories"])


@router.get("/{history_id}", response_model=ClinicalHistoryOut)
def get_history(history_id: int, queries: QueryEngine = Depends(get_queries)):
    history = queries.find_history(history_id)
    if history is None:
        raise NotFound(f"No clinical history with id {history_id}")
    return ClinicalHistoryOut.model_validate(history)


@router.get("/patient/{patient_id}", response_model=ClinicalHistoryOut)
def get_patient_history(patient_id: int, queries: QueryEngine = Depends(get_queries)):
    return ClinicalHistoryOut.model_validate(queries.find_history_by_patient(patient_id))


@router.post(
    "/patient/{patient_id}",
    response_model=ClinicalHistoryOut,
    status_code=status.HTTP_201_CREATED,
)
def create_history(
    patient_id: int,
    data: ClinicalHistoryBase,
    manager: RelationshipManager = Depends(get_manager),
):
    """
    Open the patient's clinical history. A patient has at most one.
    """
    history = manager.create_history(ClinicalHistory.model_validate(data), patient_id)
    return ClinicalHistoryOut.model_validate(history)


@router.put("/patient/{patient_id}", response_model=ClinicalHistoryOut)
def update_history(
    patient_id: int,
    data: ClinicalHistoryBase,
    manager: RelationshipManager = Depends(get_manager),
):
    return ClinicalHistoryOut.model_validate(manager.update_history(data, patient_id))


@router.delete("/{history_id}", response_model=dict)
def delete_history(history_id: int, manager: RelationshipManager = Depends(get_manager)):
    result = manager.delete_history(history_id)
    return {
        "message": f"Clinical history {history_id} deleted.",
        "observations_deleted": result.observations,
    }
