from __future__ import annotations

from fastapi import APIRouter, Depends

from ...geocoding import NominatimGeocoder, Place, get_geocoder
from ..types import GeocodeLimit, GeocodeQuery

router = APIRouter(tags=["maps"])


@router.get("/geocode", response_model=list[Place])
async def geocode(
    query: GeocodeQuery,
    limit: GeocodeLimit = 5,
    geocoder: NominatimGeocoder = Depends(get_geocoder),
) -> list[Place]:
    """Address candidates for the destination search box."""
    return await geocoder.search(query, limit=limit)


__all__ = ["router"]
