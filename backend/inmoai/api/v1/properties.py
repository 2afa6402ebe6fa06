"""
Saved records endpoints (the dashboard and report views).

Endpoints:
- GET /api/v1/properties - Reload and list the stored records
- GET /api/v1/properties/current - The record shown in the report view
- GET /api/v1/properties/{record_id} - Select a record and return it
"""

from fastapi import APIRouter, Depends, HTTPException

from inmoai.api.dependencies import get_session
from inmoai.models.property import PropertyRecord
from inmoai.services.session import AnalysisSession

router = APIRouter(prefix="/properties", tags=["properties"])


@router.get("", response_model=list[PropertyRecord])
async def list_properties(session: AnalysisSession = Depends(get_session)) -> list[PropertyRecord]:
    """Reload the records reachable for the caller and return them."""
    return await session.load()


@router.get("/current", response_model=PropertyRecord)
async def current_property(session: AnalysisSession = Depends(get_session)) -> PropertyRecord:
    """Return the caller's record from the last submission or the last selection."""
    if session.current is None:
        raise HTTPException(status_code=404, detail="No hay reporte seleccionado")
    return session.current


@router.get("/{record_id}", response_model=PropertyRecord)
async def get_property(
    record_id: str,
    session: AnalysisSession = Depends(get_session),
) -> PropertyRecord:
    """Select a record (dashboard click) and return it with its report."""
    record = session.select(record_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Inmueble no encontrado")
    return record
