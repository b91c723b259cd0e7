# medrecords/api/v1/router.py
from fastapi import APIRouter

from medrecords.api.v1.endpoints import patients, profiles, sharing

api_router = APIRouter()

api_router.include_router(patients.router, prefix="/patients", tags=["patients"])
api_router.include_router(sharing.router, prefix="/sharing", tags=["sharing"])
api_router.include_router(profiles.router, prefix="/profiles", tags=["profiles"])
