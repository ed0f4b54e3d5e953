# weather_alerts/dependencies.py
from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from weather_alerts.config import Settings
from weather_alerts.infra.push_client import PushDispatcher
from weather_alerts.infra.table_client import SubscriptionStore
from weather_alerts.infra.weather_client import WeatherGateway
from weather_alerts.services.notification_handler import LocationNotifier
from weather_alerts.services.scheduler import UpdateScheduler


@dataclass
class Services:
    """Todo lo que las rutas y el scheduler necesitan, construido una vez."""
    settings: Settings
    store: SubscriptionStore
    gateway: WeatherGateway
    dispatcher: PushDispatcher
    notifier: LocationNotifier
    scheduler: UpdateScheduler


def build_services(
    settings: Settings,
    store: Optional[SubscriptionStore] = None,
    gateway: Optional[WeatherGateway] = None,
) -> Services:
    store = store or SubscriptionStore(
        conn_str=settings.storage_connection_string,
        table_name=settings.table_name,
    )
    gateway = gateway or WeatherGateway(
        api_key=settings.weather_api_key,
        base_url=settings.weather_api_base_url,
        timeout=settings.weather_timeout_seconds,
    )
    dispatcher = PushDispatcher(
        store,
        vapid_private_key=settings.vapid_private_key,
        vapid_subject=settings.vapid_subject,
        timeout=settings.push_timeout_seconds,
        max_workers=settings.push_max_workers,
    )
    notifier = LocationNotifier(
        store, gateway, dispatcher, cadence_hours=settings.notify_interval_hours
    )
    scheduler = UpdateScheduler(store, notifier, interval_hours=settings.notify_interval_hours)
    return Services(
        settings=settings,
        store=store,
        gateway=gateway,
        dispatcher=dispatcher,
        notifier=notifier,
        scheduler=scheduler,
    )


def get_services(request: Request) -> Services:
    return request.app.state.services
