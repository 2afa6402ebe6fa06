"""Location autocomplete endpoint used by the submission form."""

from fastapi import APIRouter, Depends, Query

from inmoai.api.dependencies import get_geocoding_service
from inmoai.services.geocoding import GeocodingService, LocationSuggestion

router = APIRouter(prefix="/locations", tags=["locations"])


@router.get("/suggest", response_model=list[LocationSuggestion])
async def suggest_locations(
    q: str = Query(default="", description="Text typed in the location field"),
    geocoding: GeocodingService = Depends(get_geocoding_service),
) -> list[LocationSuggestion]:
    """Ranked address suggestions; empty for short queries or failed lookups."""
    return await geocoding.suggest(q)
