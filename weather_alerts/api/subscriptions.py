# weather_alerts/api/subscriptions.py
import asyncio
from typing import Optional, Type, TypeVar

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError as PydanticValidationError

from weather_alerts.dependencies import Services, get_services
from weather_alerts.exceptions import StoreError, ValidationError
from weather_alerts.log_setup import get_logger, mask_endpoint
from weather_alerts.models.location import normalize_location
from weather_alerts.models.subscription import EndpointIn, SubscribeIn, Subscription
from weather_alerts.services.cadence import next_notification_time

router = APIRouter(prefix="/api/subscribe", tags=["subscriptions"])

logger = get_logger("api.subscriptions")

BodyT = TypeVar("BodyT", bound=BaseModel)


async def _read_body(request: Request, model: Type[BodyT]) -> Optional[BodyT]:
    """
    Lee el JSON a mano en lugar de dejar que FastAPI conteste 422:
    un cuerpo vacío, no-JSON o con tipos incorrectos devuelve None.
    """
    try:
        raw = await request.json()
    except ValueError:
        return None
    if not isinstance(raw, dict):
        return None
    try:
        return model.model_validate(raw)
    except PydanticValidationError:
        return None


def _validate(body: Optional[SubscribeIn]) -> SubscribeIn:
    if body is None:
        raise ValidationError("Invalid subscription format")
    sub = body.subscription
    if sub is None or not sub.endpoint or not sub.keys:
        raise ValidationError("Invalid subscription format")
    if not body.location or not body.location.strip():
        raise ValidationError("Missing location")
    return body


@router.post("")
async def subscribe(request: Request, services: Services = Depends(get_services)):
    """
    Alta (o re-alta) de una suscripción push para una ubicación.
    Tras guardarla se envía enseguida el clima actual y el de +1h sólo a
    este suscriptor; si ese envío falla la respuesta sigue siendo 201.
    """
    try:
        body = _validate(await _read_body(request, SubscribeIn))
    except ValidationError as e:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": str(e)})

    location = normalize_location(body.location)
    now = services.notifier.clock()
    subscription = Subscription(
        endpoint=body.subscription.endpoint,
        keys=body.subscription.keys,
        location=location,
        created_at=now,
        last_notified=None,
        next_notification_time=next_notification_time(now, services.settings.notify_interval_hours),
    )

    try:
        await asyncio.to_thread(services.store.upsert, subscription)
    except StoreError:
        logger.exception("[api] error guardando la suscripción")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error"},
        )

    try:
        await services.notifier.notify_location(
            location,
            [subscription],
            forecast_offset_hours=services.settings.subscribe_forecast_offset_hours,
            only_given=True,
        )
    except Exception:
        logger.exception("[api] envío inicial fallido para %s", mask_endpoint(subscription.endpoint))

    return JSONResponse(status_code=status.HTTP_201_CREATED, content={"success": True})


@router.delete("")
async def unsubscribe(request: Request, services: Services = Depends(get_services)):
    body = await _read_body(request, EndpointIn)
    if body is None or not body.endpoint:
        return JSONResponse(status_code=404, content={"error": "Subscription not found"})
    try:
        deleted = await asyncio.to_thread(services.store.delete, body.endpoint)
    except StoreError as e:
        logger.exception("[api] error borrando la suscripción")
        return JSONResponse(status_code=500, content={"error": str(e)})

    if deleted:
        return {"success": True}
    return JSONResponse(status_code=404, content={"error": "Subscription not found"})


@router.post("/check")
async def check_subscription(request: Request, services: Services = Depends(get_services)):
    """200 con la ubicación si el endpoint está suscrito; si no, 404 vacío."""
    body = await _read_body(request, EndpointIn)
    if body is None or not body.endpoint:
        return Response(status_code=404)
    try:
        existing = await asyncio.to_thread(services.store.find_by_endpoint, body.endpoint)
    except StoreError:
        logger.exception("[api] error consultando la suscripción")
        return Response(status_code=500)

    if existing is None:
        return Response(status_code=404)
    return {"subscribed": True, "location": existing.location}
