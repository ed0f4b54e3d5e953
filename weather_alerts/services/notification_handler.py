# weather_alerts/services/notification_handler.py
import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List

from weather_alerts.exceptions import StoreError, UpstreamError
from weather_alerts.infra.push_client import PushDispatcher
from weather_alerts.infra.table_client import SubscriptionStore
from weather_alerts.infra.weather_client import WeatherGateway, hour_sample
from weather_alerts.log_setup import get_logger
from weather_alerts.models.notification import DeliveryOutcome, DeliveryResult
from weather_alerts.models.subscription import Subscription
from weather_alerts.services.cadence import next_notification_time
from weather_alerts.services.composer import compose_current_and_next, compose_failure

logger = get_logger("notifier")


def local_now() -> datetime:
    return datetime.now().astimezone()


@dataclass
class LocationReport:
    location: str
    ok: bool
    results: List[DeliveryResult] = field(default_factory=list)
    error: str = ""


class LocationNotifier:
    """
    Pipeline de UNA ubicación: proveedor del clima -> textos -> push ->
    timestamps en el store. Lo usan el scheduler (grupo completo, +2h)
    y el alta de suscripción (un solo suscriptor, +1h).
    """

    def __init__(
        self,
        store: SubscriptionStore,
        gateway: WeatherGateway,
        dispatcher: PushDispatcher,
        cadence_hours: int = 2,
        clock: Callable[[], datetime] = local_now,
    ):
        self.store = store
        self.gateway = gateway
        self.dispatcher = dispatcher
        self.cadence_hours = cadence_hours
        self.clock = clock

    async def notify_location(
        self,
        location: str,
        subscribers: List[Subscription],
        forecast_offset_hours: int,
        only_given: bool = False,
    ) -> LocationReport:
        """
        Si el proveedor falla (o faltan horas), cada suscriptor recibe UNA
        notificación genérica de error y se devuelve ok=False; nunca lanza
        UpstreamError hacia arriba.

        only_given=True: sólo se actualizan los timestamps de `subscribers`
        y no los del resto de la ubicación.
        """
        now = self.clock()
        try:
            samples = await self.gateway.fetch(location)
            current = hour_sample(samples, now.hour)
            upcoming = hour_sample(samples, now.hour + forecast_offset_hours)
        except UpstreamError as e:
            logger.error("[notifier] no se pudo obtener el clima de %s: %s", location, e)
            results = await self.dispatcher.deliver_all(subscribers, compose_failure(location))
            return LocationReport(location=location, ok=False, results=results, error=str(e))

        current_payload, forecast_payload = compose_current_and_next(
            location, current, upcoming, forecast_offset_hours
        )

        results = await self.dispatcher.deliver_all(subscribers, current_payload)
        gone = {r.endpoint for r in results if r.outcome is DeliveryOutcome.INVALID}
        remaining = [s for s in subscribers if s.endpoint not in gone]
        results += await self.dispatcher.deliver_all(remaining, forecast_payload)

        notified_at = self.clock()
        try:
            await asyncio.to_thread(
                self.store.update_many,
                location,
                notified_at,
                next_notification_time(notified_at, self.cadence_hours),
                endpoints=[s.endpoint for s in remaining] if only_given else None,
            )
        except StoreError:
            logger.exception("[notifier] no se pudieron guardar los timestamps de %s", location)

        return LocationReport(location=location, ok=True, results=results)
