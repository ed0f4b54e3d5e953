# weather_alerts/models/notification.py
import json
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel


class NotificationPayload(BaseModel):
    title: str
    body: str
    icon: Optional[str] = None
    data: Optional[Dict[str, Any]] = None   # type / location / time

    def to_json(self) -> str:
        # el service worker lee title/body/icon/data tal cual
        return json.dumps(self.model_dump(exclude_none=True), ensure_ascii=False)


class DeliveryOutcome(str, Enum):
    DELIVERED = "delivered"
    INVALID = "invalid"        # 404/410 -> suscripción borrada
    TRANSIENT = "transient"
    TIMEOUT = "timeout"


class DeliveryResult(BaseModel):
    endpoint: str
    outcome: DeliveryOutcome
    detail: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.outcome is DeliveryOutcome.DELIVERED
