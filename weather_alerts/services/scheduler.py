# weather_alerts/services/scheduler.py
import asyncio
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable, Optional

from weather_alerts.exceptions import StoreError
from weather_alerts.infra.table_client import SubscriptionStore
from weather_alerts.log_setup import get_logger
from weather_alerts.models.location import group_by_location
from weather_alerts.services.cadence import fire_time, next_notification_time
from weather_alerts.services.notification_handler import LocationNotifier, local_now

logger = get_logger("scheduler")


class SchedulerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


@dataclass
class CycleReport:
    locations: int = 0
    succeeded: int = 0
    failed: int = 0
    subscribers: int = 0


class UpdateScheduler:
    """
    Envía el clima a todos los suscriptores cada `interval_hours` horas,
    en los cortes de reloj (con 2h: 00:00, 02:00, 04:00...).

    Las horas de disparo se calculan siempre desde el ancla inicial
    (ancla + n * intervalo), así un ciclo lento no desplaza los siguientes.
    Un ciclo termina antes de mirar el siguiente disparo: nunca se solapan.
    """

    def __init__(
        self,
        store: SubscriptionStore,
        notifier: LocationNotifier,
        interval_hours: int = 2,
        clock: Callable[[], datetime] = local_now,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.store = store
        self.notifier = notifier
        self.interval_hours = interval_hours
        self.clock = clock
        self._sleep = sleep
        self.state = SchedulerState.IDLE
        self.anchor: Optional[datetime] = None

    async def run_forever(self, max_cycles: Optional[int] = None) -> None:
        """Bucle principal (tarea en background). max_cycles es para tests."""
        self.anchor = next_notification_time(self.clock(), self.interval_hours)
        logger.info("[scheduler] primer envío a las %s", self.anchor.isoformat())

        cycle = 0
        done = 0
        while max_cycles is None or done < max_cycles:
            target = fire_time(self.anchor, cycle, self.interval_hours)
            delay = (target - self.clock()).total_seconds()
            if delay > 0:
                await self._sleep(delay)

            await self.run_cycle()
            done += 1
            cycle += 1

            # si el ciclo tardó más que el intervalo, saltamos los disparos perdidos
            now = self.clock()
            skipped = 0
            while fire_time(self.anchor, cycle, self.interval_hours) <= now:
                cycle += 1
                skipped += 1
            if skipped:
                logger.warning("[scheduler] ciclo lento: se saltan %d disparos", skipped)

    async def run_cycle(self) -> Optional[CycleReport]:
        """
        Una pasada completa sobre todas las ubicaciones.
        Ningún error sale de aquí: se registran y el proceso sigue vivo.
        """
        if self.state is SchedulerState.RUNNING:
            logger.warning("[scheduler] ya hay un ciclo en curso, se ignora el disparo")
            return None

        self.state = SchedulerState.RUNNING
        report = CycleReport()
        try:
            try:
                subscriptions = await asyncio.to_thread(self.store.find_all)
            except StoreError:
                logger.exception("[scheduler] no se pudieron cargar las suscripciones")
                return report

            if not subscriptions:
                logger.info("[scheduler] sin suscriptores, nada que enviar")
                return report

            groups = group_by_location(subscriptions)
            report.locations = len(groups)
            report.subscribers = len(subscriptions)
            logger.info(
                "[scheduler] ciclo: %d suscriptores en %d ubicaciones",
                len(subscriptions), len(groups),
            )

            for location, members in groups.items():
                try:
                    result = await self.notifier.notify_location(
                        location, members, forecast_offset_hours=self.interval_hours
                    )
                except Exception:
                    logger.exception("[scheduler] fallo procesando %s", location)
                    report.failed += 1
                    continue
                if result.ok:
                    report.succeeded += 1
                else:
                    report.failed += 1
        except Exception:
            logger.exception("[scheduler] error crítico en el ciclo")
        finally:
            self.state = SchedulerState.IDLE

        return report
