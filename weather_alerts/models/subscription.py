# weather_alerts/models/subscription.py
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel


class Subscription(BaseModel):
    endpoint: str                  # clave única (la da el navegador)
    keys: Dict[str, Any]           # p256dh/auth, opaco para nosotros
    location: str                  # normalizada, "Ciudad,Región,País"
    created_at: datetime
    last_notified: Optional[datetime] = None
    next_notification_time: datetime

    def subscription_info(self) -> Dict[str, Any]:
        """Formato que espera el transporte push."""
        return {"endpoint": self.endpoint, "keys": self.keys}


# ----- cuerpos de las peticiones HTTP -----

class PushSubscriptionIn(BaseModel):
    endpoint: Optional[str] = None
    keys: Optional[Dict[str, Any]] = None


class SubscribeIn(BaseModel):
    subscription: Optional[PushSubscriptionIn] = None
    location: Optional[str] = None


class EndpointIn(BaseModel):
    endpoint: Optional[str] = None
