# medrecords/api/v1/endpoints/sharing.py
from fastapi import APIRouter, Depends, status

from medrecords.api.deps import ensure_can_view, get_current_user_id, get_patient_service
from medrecords.schemas.profile import DoctorSummary
from medrecords.schemas.sharing import SharingGrant, SharingGrantCreate
from medrecords.services.patient_service import PatientReconciliationService
from medrecords.services.profile_service import list_shared_doctors

router = APIRouter()


@router.post("", response_model=SharingGrant, status_code=status.HTTP_201_CREATED)
def share_patient(
    payload: SharingGrantCreate,
    actor_id: str = Depends(get_current_user_id),
    service: PatientReconciliationService = Depends(get_patient_service),
) -> SharingGrant:
    """
    Grant a doctor access to a patient. Sharing an already shared pair
    returns the existing grant.
    """
    return service.share_patient(actor_id, payload.patient_id, payload.doctor_id)


@router.delete("/patients/{patient_id}/doctors/{doctor_id}")
def unshare_patient(
    patient_id: str,
    doctor_id: str,
    actor_id: str = Depends(get_current_user_id),
    service: PatientReconciliationService = Depends(get_patient_service),
) -> dict:
    revoked = service.unshare_patient(actor_id, patient_id, doctor_id)
    return {"revoked": revoked}


@router.get("/patients/{patient_id}/doctors", response_model=list[DoctorSummary])
def list_patient_doctors(
    patient_id: str,
    actor_id: str = Depends(get_current_user_id),
    service: PatientReconciliationService = Depends(get_patient_service),
) -> list[DoctorSummary]:
    """
    Doctors that can currently see this patient.
    """
    ensure_can_view(service, actor_id, patient_id)
    return list_shared_doctors(service.profiles, service.sharing, patient_id)


@router.get("/patients/{patient_id}/doctors/{doctor_id}/history", response_model=list[SharingGrant])
def grant_history(
    patient_id: str,
    doctor_id: str,
    actor_id: str = Depends(get_current_user_id),
    service: PatientReconciliationService = Depends(get_patient_service),
) -> list[SharingGrant]:
    """
    Every grant row for the pair, including revoked ones.
    """
    if actor_id not in (patient_id, doctor_id):
        ensure_can_view(service, actor_id, patient_id)
    return service.sharing.list_history(patient_id, doctor_id)
