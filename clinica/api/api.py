from fastapi import APIRouter, Depends

from clinica.api.deps import get_current_user
from clinica.api.v1 import appointments, auth, exports, notifications, patients

api_router = APIRouter()

protected = [Depends(get_current_user)]

api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(patients.router, prefix="/patients", tags=["patients"], dependencies=protected)
api_router.include_router(appointments.router, prefix="/appointments", tags=["appointments"], dependencies=protected)
api_router.include_router(exports.router, prefix="/exports", tags=["exports"], dependencies=protected)
api_router.include_router(notifications.router, prefix="/notifications", tags=["notifications"], dependencies=protected)
