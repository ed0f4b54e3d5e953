# weather_alerts/infra/push_client.py
import asyncio
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pywebpush import WebPushException, webpush

from weather_alerts.exceptions import DeliveryInvalid, DeliveryTransient, StoreError
from weather_alerts.infra.table_client import SubscriptionStore
from weather_alerts.log_setup import get_logger, mask_endpoint
from weather_alerts.models.notification import DeliveryOutcome, DeliveryResult, NotificationPayload
from weather_alerts.models.subscription import Subscription

GONE_STATUSES = (404, 410)
PUSH_TTL_SECONDS = 60 * 60 * 2
DEFAULT_WORKERS = 8

logger = get_logger("push")


class PushDispatcher:
    """
    Envía notificaciones Web Push (VAPID).
    Igual que con los sockets muertos: si el servicio push dice que el
    endpoint ya no existe (404/410), la suscripción se borra del store.

    Los envíos corren en un pool propio de `max_workers` hilos. Un envío
    sólo arranca su timeout cuando tiene un hilo libre: esperar turno en
    la cola no cuenta como timeout.
    """

    def __init__(
        self,
        store: SubscriptionStore,
        vapid_private_key: str,
        vapid_subject: str,
        timeout: float = 10.0,
        max_workers: int = DEFAULT_WORKERS,
    ):
        self._store = store
        self._vapid_private_key = vapid_private_key
        self._vapid_claims: Dict[str, Any] = {"sub": vapid_subject}
        self._timeout = timeout
        self._max_workers = max_workers
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="webpush")
        self._slots: Optional[Tuple[asyncio.AbstractEventLoop, asyncio.Semaphore]] = None

    def close(self) -> None:
        self._executor.shutdown(wait=False)

    def _slots_for(self, loop: asyncio.AbstractEventLoop) -> asyncio.Semaphore:
        # un semáforo por event loop, con tantas plazas como hilos tiene el pool
        if self._slots is None or self._slots[0] is not loop:
            self._slots = (loop, asyncio.Semaphore(self._max_workers))
        return self._slots[1]

    async def _run_send(self, sub: Subscription, data: str) -> None:
        loop = asyncio.get_running_loop()
        slots = self._slots_for(loop)
        await slots.acquire()
        try:
            future = loop.run_in_executor(self._executor, self._send, sub, data)
        except RuntimeError as e:
            # pool ya cerrado (apagando)
            slots.release()
            raise DeliveryTransient(sub.endpoint, str(e)) from e

        def _finished(f: "asyncio.Future[None]") -> None:
            # la plaza se libera cuando el hilo termina de verdad, no al vencer el timeout
            slots.release()
            if not f.cancelled():
                f.exception()

        future.add_done_callback(_finished)
        await asyncio.wait_for(asyncio.shield(future), timeout=self._timeout)

    async def deliver(self, sub: Subscription, payload: NotificationPayload) -> DeliveryResult:
        """
        Entrega a UN endpoint y clasifica el resultado.
        Nunca lanza: el resultado dice qué pasó.
        """
        try:
            await self._run_send(sub, payload.to_json())
        except DeliveryInvalid as e:
            logger.info(
                "[push] endpoint %s ya no existe (HTTP %s), se borra la suscripción",
                mask_endpoint(sub.endpoint), e.status_code,
            )
            await asyncio.to_thread(self._prune, sub.endpoint)
            return DeliveryResult(endpoint=sub.endpoint, outcome=DeliveryOutcome.INVALID, detail=str(e))
        except DeliveryTransient as e:
            logger.warning("[push] fallo al enviar a %s: %s", mask_endpoint(sub.endpoint), e)
            return DeliveryResult(endpoint=sub.endpoint, outcome=DeliveryOutcome.TRANSIENT, detail=str(e))
        except asyncio.TimeoutError:
            logger.warning("[push] timeout (%ss) enviando a %s", self._timeout, mask_endpoint(sub.endpoint))
            return DeliveryResult(
                endpoint=sub.endpoint,
                outcome=DeliveryOutcome.TIMEOUT,
                detail=f"timed out after {self._timeout}s",
            )
        return DeliveryResult(endpoint=sub.endpoint, outcome=DeliveryOutcome.DELIVERED)

    async def deliver_all(
        self, subscriptions: Iterable[Subscription], payload: NotificationPayload
    ) -> List[DeliveryResult]:
        """
        Fan-out concurrente. Espera a todos aunque alguno falle:
        un suscriptor roto no bloquea al resto.
        """
        subs = list(subscriptions)
        if not subs:
            return []
        results = await asyncio.gather(*(self.deliver(sub, payload) for sub in subs))
        sent = sum(1 for r in results if r.ok)
        logger.info("[push] \"%s\": %d/%d enviadas", payload.title, sent, len(subs))
        return list(results)

    def _send(self, sub: Subscription, data: str) -> None:
        # corre en un hilo: pywebpush es bloqueante (requests)
        try:
            webpush(
                subscription_info=sub.subscription_info(),
                data=data,
                vapid_private_key=self._vapid_private_key,
                vapid_claims=dict(self._vapid_claims),
                timeout=self._timeout,
                ttl=PUSH_TTL_SECONDS,
            )
        except WebPushException as e:
            status = e.response.status_code if e.response is not None else None
            if status in GONE_STATUSES:
                raise DeliveryInvalid(sub.endpoint, str(e), status_code=status) from e
            raise DeliveryTransient(sub.endpoint, str(e), status_code=status) from e
        except Exception as e:
            raise DeliveryTransient(sub.endpoint, str(e)) from e

    def _prune(self, endpoint: str) -> None:
        try:
            self._store.delete(endpoint)
        except StoreError:
            logger.exception("[push] no se pudo borrar la suscripción %s", mask_endpoint(endpoint))
