# weather_alerts/api/weather.py
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from weather_alerts.dependencies import Services, get_services
from weather_alerts.exceptions import UpstreamError
from weather_alerts.log_setup import get_logger

router = APIRouter(prefix="/api/weather", tags=["weather"])

logger = get_logger("api.weather")


@router.get("/search/{query}")
async def search_locations(query: str, services: Services = Depends(get_services)):
    """Sugerencias de ubicación (autocompletado del frontend)."""
    try:
        return await services.gateway.search(query)
    except UpstreamError as e:
        logger.error("[api] búsqueda '%s' fallida: %s", query, e)
        return JSONResponse(status_code=500, content={"error": "Failed to fetch location suggestions"})


@router.get("/city")
async def weather_by_city(
    name: Optional[str] = None,
    region: Optional[str] = None,
    country: Optional[str] = None,
    services: Services = Depends(get_services),
):
    """Pronóstico de 3 días por nombre (ciudad, región, país)."""
    try:
        return await services.gateway.forecast_by_name(name, region, country)
    except UpstreamError as e:
        logger.error("[api] city fetch error: %s", e)
        return JSONResponse(status_code=500, content={"error": "City weather fetch failed"})


def _coordinate(value: Optional[str]) -> Optional[float]:
    return float(value) if value not in (None, "") else None


@router.get("/coords")
async def weather_by_coords(
    lat: Optional[str] = None,
    lon: Optional[str] = None,
    services: Services = Depends(get_services),
):
    """Pronóstico de 3 días por coordenadas; cualquier fallo (incluidas coordenadas que faltan o no son números) es un 500."""
    try:
        return await services.gateway.forecast_by_coords(_coordinate(lat), _coordinate(lon))
    except (UpstreamError, ValueError) as e:
        logger.error("[api] coords fetch error: %s", e)
        return JSONResponse(status_code=500, content={"error": "Coordinates weather fetch failed"})
