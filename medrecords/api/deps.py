# medrecords/api/deps.py
from fastapi import Depends, Header, HTTPException, status

from medrecords.services.patient_service import PatientReconciliationService
from medrecords.stores.factory import Stores, get_stores


def get_current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """
    Caller identity, resolved upstream by the auth gateway and forwarded as
    the X-User-Id header.
    """
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header.",
        )
    return x_user_id.strip()


def get_patient_service(stores: Stores = Depends(get_stores)) -> PatientReconciliationService:
    return PatientReconciliationService(stores)


def ensure_can_view(
    service: PatientReconciliationService,
    actor_id: str,
    patient_id: str,
) -> None:
    """The patient themself, or a doctor with ownership or an active grant."""
    if actor_id != patient_id:
        service.authorize(actor_id, patient_id)
