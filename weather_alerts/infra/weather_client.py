# weather_alerts/infra/weather_client.py
from typing import Any, Dict, List, Optional

import httpx

from weather_alerts.exceptions import UpstreamError, UpstreamTimeout
from weather_alerts.log_setup import get_logger
from weather_alerts.models.forecast import ForecastSample
from weather_alerts.models.location import split_location

FORECAST_DAYS = 3

logger = get_logger("weather")


def hour_sample(samples: List[ForecastSample], index: int) -> ForecastSample:
    """Si falta la hora pedida es un fallo del proveedor, no un resultado vacío."""
    if index < 0 or index >= len(samples):
        raise UpstreamError(f"Missing hourly data (hour index {index})")
    return samples[index]


class WeatherGateway:
    """
    Cliente de WeatherAPI.com. Lo usan tanto las rutas /api/weather (proxy)
    como el pipeline de notificaciones (fetch).
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.weatherapi.com/v1",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._api_key = api_key
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    # ----- proxy -----

    async def search(self, query: str) -> Any:
        return await self._get_json("/search.json", {"q": query}, context="location search")

    async def forecast_by_name(
        self,
        name: Optional[str],
        region: Optional[str] = None,
        country: Optional[str] = None,
    ) -> Dict[str, Any]:
        # cuanto más completa la consulta, mejor acierta el proveedor
        query = ", ".join(part for part in (name, region, country) if part)
        if not query:
            raise UpstreamError("Empty location query")
        return await self._forecast(query)

    async def forecast_by_coords(self, lat: Optional[float], lon: Optional[float]) -> Dict[str, Any]:
        if lat is None or lon is None:
            raise UpstreamError("Missing coordinates: provide both lat and lon")
        return await self._forecast(f"{lat},{lon}")

    # ----- pipeline -----

    async def fetch(self, location: str) -> List[ForecastSample]:
        """
        Devuelve las horas del pronóstico en orden: los índices 0-23 son las
        horas de hoy (por hora del día) y los siguientes continúan en los
        días posteriores.
        """
        city, region, country = split_location(location)
        payload = await self.forecast_by_name(city, region, country)

        try:
            days = payload["forecast"]["forecastday"]
            samples = [ForecastSample.from_hour(hour) for day in days for hour in day["hour"]]
        except (KeyError, TypeError, ValueError) as e:
            raise UpstreamError(f"Malformed forecast payload for {location}: {e}") from e

        if not samples:
            raise UpstreamError(f"Empty forecast for {location}")
        return samples

    async def _forecast(self, query: str) -> Dict[str, Any]:
        return await self._get_json(
            "/forecast.json",
            {"q": query, "days": FORECAST_DAYS, "aqi": "yes", "alerts": "yes"},
            context="forecast",
        )

    async def _get_json(self, path: str, params: Dict[str, Any], context: str) -> Any:
        try:
            response = await self._client.get(path, params={"key": self._api_key, **params})
            response.raise_for_status()
            return response.json()
        except httpx.TimeoutException as e:
            raise UpstreamTimeout(f"WeatherAPI {context} timed out") from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.warning("[weather] %s devolvió HTTP %d: %s", context, status, e.response.text[:300])
            raise UpstreamError(f"WeatherAPI {context} failed with status {status}") from e
        except httpx.HTTPError as e:
            raise UpstreamError(f"WeatherAPI {context} request failed: {e}") from e
        except ValueError as e:
            raise UpstreamError(f"WeatherAPI {context} returned invalid JSON") from e
