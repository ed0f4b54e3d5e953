# weather_alerts/config.py
import os
from typing import Mapping, Optional

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError

from weather_alerts.exceptions import ConfigError

REQUIRED_VARS = (
    "WEATHER_API_KEY",
    "VAPID_PUBLIC_KEY",
    "VAPID_PRIVATE_KEY",
    "AZURE_STORAGE_CONNECTION_STRING",
)


class Settings(BaseModel):
    """
    Configuración del servicio. Se construye desde variables de entorno
    (ver load_settings); los secretos no salen en el repr.
    """
    weather_api_key: str = Field(repr=False)
    weather_api_base_url: str = "https://api.weatherapi.com/v1"
    weather_timeout_seconds: float = Field(default=10.0, gt=0)

    vapid_public_key: str
    vapid_private_key: str = Field(repr=False)
    vapid_subject: str = "mailto:weather@example.com"
    push_timeout_seconds: float = Field(default=10.0, gt=0)
    push_max_workers: int = Field(default=8, ge=1, le=64)

    storage_connection_string: str = Field(repr=False)
    table_name: str = "subscriptions"

    frontend_url: str = "http://localhost:5173"
    port: int = 5000

    notify_interval_hours: int = Field(default=2, ge=1, le=24)
    subscribe_forecast_offset_hours: int = Field(default=1, ge=0, le=24)
    scheduler_enabled: bool = True
    log_level: str = "INFO"


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Lee la configuración del entorno (load_dotenv ya se llamó en main).
    Lanza ConfigError si falta algo obligatorio: sin claves VAPID,
    API key o Table Storage el proceso no arranca.
    """
    env = os.environ if environ is None else environ

    missing = [name for name in REQUIRED_VARS if not env.get(name)]
    if missing:
        raise ConfigError(f"Missing required environment variables: {', '.join(missing)}")

    raw = {
        "weather_api_key": env["WEATHER_API_KEY"],
        "vapid_public_key": env["VAPID_PUBLIC_KEY"],
        "vapid_private_key": env["VAPID_PRIVATE_KEY"],
        "storage_connection_string": env["AZURE_STORAGE_CONNECTION_STRING"],
    }
    optional = {
        "weather_api_base_url": "WEATHER_API_BASE_URL",
        "weather_timeout_seconds": "WEATHER_TIMEOUT_SECONDS",
        "vapid_subject": "VAPID_SUBJECT",
        "push_timeout_seconds": "PUSH_TIMEOUT_SECONDS",
        "push_max_workers": "PUSH_MAX_WORKERS",
        "table_name": "TABLE_NAME",
        "frontend_url": "FRONTEND_URL",
        "port": "PORT",
        "notify_interval_hours": "NOTIFY_INTERVAL_HOURS",
        "subscribe_forecast_offset_hours": "SUBSCRIBE_FORECAST_OFFSET_HOURS",
        "scheduler_enabled": "SCHEDULER_ENABLED",
        "log_level": "LOG_LEVEL",
    }
    for field, var in optional.items():
        value = env.get(var)
        if value:
            raw[field] = value

    try:
        return Settings(**raw)
    except PydanticValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
