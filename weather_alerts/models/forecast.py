# weather_alerts/models/forecast.py
from typing import Any, Dict, Optional

from pydantic import BaseModel


class ForecastSample(BaseModel):
    """Una hora de pronóstico tal como la usan las notificaciones."""
    time: str                      # hora local del proveedor, "YYYY-MM-DD HH:MM"
    temp_c: float
    condition_text: str
    condition_icon: Optional[str] = None
    cloud: float
    chance_of_rain: float
    wind_kph: float
    wind_dir: str
    uv: float

    @classmethod
    def from_hour(cls, hour: Dict[str, Any]) -> "ForecastSample":
        """Construye la muestra desde un elemento de forecastday[].hour[]."""
        condition = hour.get("condition") or {}
        return cls(
            time=hour["time"],
            temp_c=hour["temp_c"],
            condition_text=condition.get("text", ""),
            condition_icon=condition.get("icon"),
            cloud=hour.get("cloud", 0),
            chance_of_rain=hour.get("chance_of_rain", 0),
            wind_kph=hour.get("wind_kph", 0),
            wind_dir=hour.get("wind_dir", ""),
            uv=hour.get("uv", 0),
        )
