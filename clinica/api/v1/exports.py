from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.ext.asyncio import AsyncSession

from clinica.core.errors import NothingToExportError
from clinica.db.session import get_session
from clinica.exports.patients import ExportFile, export_patients_csv, export_patients_json
from clinica.exports.pdf import build_daily_sheet
from clinica.services.appointment_service import AppointmentService
from clinica.services.patient_service import PatientService

router = APIRouter()


def as_download(export: ExportFile) -> Response:
    return Response(
        content=export.content,
        media_type=export.media_type,
        headers={"Content-Disposition": f'attachment; filename="{export.filename}"'},
    )


@router.get("/patients/csv")
async def patients_csv(session: AsyncSession = Depends(get_session)):
    patients = await PatientService(session).all_patients()
    try:
        return as_download(export_patients_csv(patients))
    except NothingToExportError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/patients/json")
async def patients_json(session: AsyncSession = Depends(get_session)):
    patients = await PatientService(session).all_patients()
    try:
        return as_download(export_patients_json(patients))
    except NothingToExportError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/daily-sheet/{fecha}")
async def daily_sheet(fecha: date, session: AsyncSession = Depends(get_session)):
    appointments = await AppointmentService(session).get_day_appointments(fecha, include_cancelled=False)
    return as_download(build_daily_sheet(appointments, fecha))
