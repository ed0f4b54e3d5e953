# weather_alerts/services/composer.py
"""
Textos de las notificaciones. Funciones puras: sin I/O, sin estado.
"""
from datetime import datetime
from typing import Tuple

from weather_alerts.models.forecast import ForecastSample
from weather_alerts.models.location import location_label
from weather_alerts.models.notification import NotificationPayload

ERROR_ICON = "/icons/error.png"


def format_hour(sample_time: str) -> str:
    """'2024-06-01 14:00' -> '02:00 PM'. Si no se puede parsear, se deja igual."""
    try:
        return datetime.strptime(sample_time, "%Y-%m-%d %H:%M").strftime("%I:%M %p")
    except ValueError:
        return sample_time


def _number(value: float) -> str:
    # 20.0 -> "20", 20.5 -> "20.5"
    return f"{value:g}"


def _details(sample: ForecastSample) -> str:
    return (
        f"\n☁️ Cloud Cover: {_number(sample.cloud)}%"
        f"\n☔ Rain chance: {_number(sample.chance_of_rain)}%"
        f"\n🌬️ Wind: {_number(sample.wind_kph)} kph {sample.wind_dir}"
        f"\n☀️ UV Index: {_number(sample.uv)}"
    )


def compose_current_and_next(
    location: str,
    current: ForecastSample,
    upcoming: ForecastSample,
    interval_hours: int,
) -> Tuple[NotificationPayload, NotificationPayload]:
    """
    Devuelve (clima actual, pronóstico a +interval_hours).
    El título usa sólo la ciudad; data.location lleva la ubicación completa.
    """
    label = location_label(location)

    current_payload = NotificationPayload(
        title=f"⏱️ {format_hour(current.time)} Weather ({label})",
        body=f"{_number(current.temp_c)}°C, {current.condition_text}" + _details(current),
        icon=current.condition_icon,
        data={"type": "current_weather", "location": location, "time": current.time},
    )
    forecast_payload = NotificationPayload(
        title=f"🔮 {format_hour(upcoming.time)} Forecast ({label})",
        body=(
            f"Expected in {interval_hours}h: {_number(upcoming.temp_c)}°C, {upcoming.condition_text}"
            + _details(upcoming)
        ),
        icon=upcoming.condition_icon,
        data={"type": "forecast", "location": location, "time": upcoming.time},
    )
    return current_payload, forecast_payload


def compose_failure(location: str) -> NotificationPayload:
    return NotificationPayload(
        title="Weather Update Failed",
        body=f"We couldn't get the latest weather for {location_label(location)}",
        icon=ERROR_ICON,
        data={"type": "update_failed", "location": location},
    )
