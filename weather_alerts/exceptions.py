# weather_alerts/exceptions.py
"""Excepciones de la aplicación."""
from typing import Optional


class WeatherAlertsError(Exception):
    """Base de todos los errores del servicio."""


class ConfigError(WeatherAlertsError):
    """Configuración inválida o incompleta (el proceso no debe arrancar)."""


class ValidationError(WeatherAlertsError):
    """Petición de suscripción mal formada -> 400."""


class StoreError(WeatherAlertsError):
    """Table Storage no disponible o fallo transitorio de persistencia."""


class UpstreamError(WeatherAlertsError):
    """El proveedor del clima no responde, responde mal o faltan horas."""


class UpstreamTimeout(UpstreamError):
    """La petición al proveedor del clima superó el timeout."""


class DeliveryError(WeatherAlertsError):
    """Fallo al entregar una notificación push."""

    def __init__(self, endpoint: str, message: str = "", status_code: Optional[int] = None):
        super().__init__(message or endpoint)
        self.endpoint = endpoint
        self.status_code = status_code


class DeliveryInvalid(DeliveryError):
    """El endpoint ya no existe (404/410): hay que borrar la suscripción."""


class DeliveryTransient(DeliveryError):
    """Fallo temporal; se reintenta sólo en el siguiente ciclo."""
