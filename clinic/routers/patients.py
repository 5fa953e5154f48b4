# clinic/routers/patients.py
from fastapi import APIRouter, Depends, HTTPException, Response, status
from typing import List, Optional

from .. import schemas, security
from ..dependencies import get_repositories, unwrap
from ..storage.base import Repositories

router = APIRouter(
    tags=["Patients"],
    dependencies=[Depends(security.require_session)],
    responses={404: {"description": "Not found"}},
)

@router.post("/patients", response_model=schemas.Patient, status_code=status.HTTP_201_CREATED)
async def create_new_patient(patient: schemas.PatientCreate, repos: Repositories = Depends(get_repositories)):
    """
    Register a new patient.
    """
    return unwrap(await repos.patients.create(patient))

@router.get("/patients", response_model=List[schemas.Patient])
async def read_all_patients(search: Optional[str] = None, repos: Repositories = Depends(get_repositories)):
    """
    All patients by name; ``search`` matches name or mobile.
    """
    return await repos.patients.list(search=search)

@router.get("/patients/{patient_id}", response_model=schemas.Patient)
async def read_patient_details(patient_id: str, repos: Repositories = Depends(get_repositories)):
    patient = await repos.patients.get(patient_id)
    if patient is None:
        raise HTTPException(status_code=404, detail="The patient with the specified ID could not be found.")
    return patient

@router.put("/patients/{patient_id}", response_model=schemas.Patient)
async def update_patient_details(patient_id: str, payload: schemas.PatientUpdate,
                                 repos: Repositories = Depends(get_repositories)):
    """Only the fields present in the body are changed."""
    return unwrap(await repos.patients.update(patient_id, payload))

@router.delete("/patients/{patient_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_patient(patient_id: str, repos: Repositories = Depends(get_repositories)):
    """Deletes the patient together with their visit history."""
    unwrap(await repos.patients.delete(patient_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
