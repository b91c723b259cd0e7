# medrecords/api/v1/endpoints/patients.py
from fastapi import APIRouter, Depends, Query, status

from medrecords.api.deps import get_current_user_id, get_patient_service
from medrecords.schemas.diagnosis import Diagnosis, DiagnosisCreate
from medrecords.schemas.patient import (
    PatientBulkDelete,
    PatientCreate,
    PatientPage,
    PatientUpdate,
    PatientView,
)
from medrecords.services.patient_service import PatientReconciliationService

router = APIRouter()


@router.get("", response_model=list[PatientView])
def list_patients(
    doctor_id: str = Depends(get_current_user_id),
    service: PatientReconciliationService = Depends(get_patient_service),
) -> list[PatientView]:
    """
    Owned patients first, then patients shared with the caller.
    """
    return service.list_patients(doctor_id)


@router.get("/page", response_model=PatientPage)
def list_patients_page(
    page: int = Query(1, ge=1),
    per_page: int = Query(10, ge=1, le=100),
    doctor_id: str = Depends(get_current_user_id),
    service: PatientReconciliationService = Depends(get_patient_service),
) -> PatientPage:
    return service.list_patients_page(doctor_id, page=page, per_page=per_page)


@router.post("", response_model=PatientView, status_code=status.HTTP_201_CREATED)
def create_patient(
    payload: PatientCreate,
    doctor_id: str = Depends(get_current_user_id),
    service: PatientReconciliationService = Depends(get_patient_service),
) -> PatientView:
    return service.create_patient(doctor_id, payload)


@router.post("/bulk-delete")
def delete_patients(
    payload: PatientBulkDelete,
    doctor_id: str = Depends(get_current_user_id),
    service: PatientReconciliationService = Depends(get_patient_service),
) -> dict:
    """
    Delete the listed patients the caller owns. Ids the caller does not own
    are skipped without error.
    """
    deleted = service.delete_patients(doctor_id, payload.patient_ids)
    return {"deleted": deleted}


@router.get("/{patient_id}", response_model=PatientView)
def get_patient(
    patient_id: str,
    doctor_id: str = Depends(get_current_user_id),
    service: PatientReconciliationService = Depends(get_patient_service),
) -> PatientView:
    return service.get_patient(doctor_id, patient_id)


@router.patch("/{patient_id}", response_model=PatientView)
def update_patient(
    patient_id: str,
    payload: PatientUpdate,
    doctor_id: str = Depends(get_current_user_id),
    service: PatientReconciliationService = Depends(get_patient_service),
) -> PatientView:
    return service.update_patient(doctor_id, patient_id, payload)


@router.get("/{patient_id}/diagnoses", response_model=list[Diagnosis])
def list_diagnoses(
    patient_id: str,
    doctor_id: str = Depends(get_current_user_id),
    service: PatientReconciliationService = Depends(get_patient_service),
) -> list[Diagnosis]:
    return service.list_diagnoses(doctor_id, patient_id)


@router.post(
    "/{patient_id}/diagnoses",
    response_model=Diagnosis,
    status_code=status.HTTP_201_CREATED,
)
def add_diagnosis(
    patient_id: str,
    payload: DiagnosisCreate,
    doctor_id: str = Depends(get_current_user_id),
    service: PatientReconciliationService = Depends(get_patient_service),
) -> Diagnosis:
    """
    Append-only: there is no update or delete for diagnoses.
    """
    return service.add_diagnosis(doctor_id, patient_id, payload)


@router.patch("/{patient_id}/diagnoses/{diagnosis_id}", response_model=Diagnosis)
def update_diagnosis(
    patient_id: str,
    diagnosis_id: str,
    payload: DiagnosisCreate,
    doctor_id: str = Depends(get_current_user_id),
    service: PatientReconciliationService = Depends(get_patient_service),
) -> Diagnosis:
    return service.update_diagnosis(doctor_id, diagnosis_id, payload)


@router.delete("/{patient_id}/diagnoses/{diagnosis_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_diagnosis(
    patient_id: str,
    diagnosis_id: str,
    doctor_id: str = Depends(get_current_user_id),
    service: PatientReconciliationService = Depends(get_patient_service),
) -> None:
    service.delete_diagnosis(doctor_id, diagnosis_id)
