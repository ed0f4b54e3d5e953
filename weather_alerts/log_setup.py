# weather_alerts/log_setup.py
"""Logging estructurado (JSON por consola) para todo el servicio."""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Union

LOGGER_NAME = "weather_alerts"


class JsonConsoleFormatter(logging.Formatter):
    """Formatea cada registro como una línea JSON."""

    def format(self, record: logging.LogRecord) -> str:
        event: Dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            event["exception"] = self.formatException(record.exc_info)
        return json.dumps(event, default=str, ensure_ascii=False)


def setup_logger(level: Union[str, int] = logging.INFO) -> logging.Logger:
    """Configura el logger raíz del paquete (una sola vez por proceso)."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False
    if logger.handlers:
        return logger

    handler = logging.StreamHandler()
    handler.setFormatter(JsonConsoleFormatter())
    logger.addHandler(handler)
    return logger


def get_logger(name: str) -> logging.Logger:
    # los módulos cuelgan de "weather_alerts.*" y heredan el handler
    return logging.getLogger(f"{LOGGER_NAME}.{name}")


def mask_endpoint(endpoint: str, keep: int = 30) -> str:
    """No escribir endpoints push completos en los logs."""
    if len(endpoint) <= keep:
        return endpoint
    return endpoint[:keep] + "..."
