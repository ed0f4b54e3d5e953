# weather_alerts/models/location.py
"""
Helpers de ubicación. La ubicación normalizada ("Paris,Ile-de-France,France")
es la clave con la que se agrupan las suscripciones en cada ciclo.
"""
import re
from typing import Dict, Iterable, List, Optional, Tuple

from weather_alerts.models.subscription import Subscription

_COMMA_SPACES = re.compile(r"\s*,\s*")


def normalize_location(location: str) -> str:
    return _COMMA_SPACES.sub(",", location.strip())


def location_label(location: str) -> str:
    """Primer segmento (nombre de la ciudad), para títulos y mensajes."""
    return location.split(",")[0].strip()


def split_location(location: str) -> Tuple[Optional[str], Optional[str], Optional[str]]:
    """(ciudad, región, país); las partes que faltan vienen como None."""
    parts = [p.strip() for p in location.split(",")][:3]
    parts += [""] * (3 - len(parts))
    city, region, country = (p or None for p in parts)
    return city, region, country


def group_by_location(subscriptions: Iterable[Subscription]) -> Dict[str, List[Subscription]]:
    """
    Agrupa por ubicación normalizada para hacer una sola llamada al
    proveedor por ubicación. Cada suscripción cae en exactamente un grupo.
    """
    groups: Dict[str, List[Subscription]] = {}
    for sub in subscriptions:
        groups.setdefault(normalize_location(sub.location), []).append(sub)
    return groups
