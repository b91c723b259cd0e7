# medrecords/api/v1/endpoints/profiles.py
from fastapi import APIRouter, Depends, HTTPException, Query, status

from medrecords.api.deps import ensure_can_view, get_current_user_id, get_patient_service
from medrecords.schemas.profile import (
    DoctorSummary,
    MedicalData,
    MedicalDataForm,
    PersonalData,
    PersonalDataForm,
)
from medrecords.services import profile_service
from medrecords.services.patient_service import PatientReconciliationService

router = APIRouter()


@router.get("/doctors", response_model=list[DoctorSummary])
def search_doctors(
    q: str = Query("", description="Name, CRM, CRM-state, specialty, state or city"),
    _: str = Depends(get_current_user_id),
    service: PatientReconciliationService = Depends(get_patient_service),
) -> list[DoctorSummary]:
    return profile_service.search_doctors(service.profiles, q)


@router.get("/{user_id}/personal", response_model=PersonalData)
def get_personal_data(
    user_id: str,
    actor_id: str = Depends(get_current_user_id),
    service: PatientReconciliationService = Depends(get_patient_service),
) -> PersonalData:
    ensure_can_view(service, actor_id, user_id)
    data = profile_service.get_personal_data(service.profiles, user_id)
    if data is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Personal data not found")
    return data


@router.put("/{user_id}/personal", response_model=PersonalData)
def save_personal_data(
    user_id: str,
    payload: PersonalDataForm,
    actor_id: str = Depends(get_current_user_id),
    service: PatientReconciliationService = Depends(get_patient_service),
) -> PersonalData:
    ensure_can_view(service, actor_id, user_id)
    return profile_service.save_personal_data(service.profiles, user_id, payload)


@router.get("/{user_id}/medical", response_model=MedicalData)
def get_medical_data(
    user_id: str,
    actor_id: str = Depends(get_current_user_id),
    service: PatientReconciliationService = Depends(get_patient_service),
) -> MedicalData:
    ensure_can_view(service, actor_id, user_id)
    data = profile_service.get_medical_data(service.profiles, user_id)
    if data is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Medical data not found")
    return data


@router.put("/{user_id}/medical", response_model=MedicalData)
def save_medical_data(
    user_id: str,
    payload: MedicalDataForm,
    actor_id: str = Depends(get_current_user_id),
    service: PatientReconciliationService = Depends(get_patient_service),
) -> MedicalData:
    ensure_can_view(service, actor_id, user_id)
    return profile_service.save_medical_data(service.profiles, user_id, payload)
