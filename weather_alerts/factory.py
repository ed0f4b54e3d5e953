# weather_alerts/factory.py
import asyncio
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from weather_alerts.api.subscriptions import router as subscriptions_router
from weather_alerts.api.weather import router as weather_router
from weather_alerts.config import Settings
from weather_alerts.dependencies import Services, build_services
from weather_alerts.log_setup import get_logger

logger = get_logger("app")

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
    "Cross-Origin-Opener-Policy": "same-origin",
}


def create_app(settings: Settings, services: Optional[Services] = None) -> FastAPI:
    """
    Construye la app. Las dependencias (store, gateway, push, scheduler)
    se crean aquí o se inyectan (tests) y quedan en app.state.services.
    """
    services = services or build_services(settings)

    app = FastAPI(title="Weather Alert Service")
    app.state.services = services
    app.state.scheduler_task = None

    # 1) CORS: sólo el frontend
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["*"],
    )

    # 2) cabeceras de seguridad en todas las respuestas
    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        for header, value in SECURITY_HEADERS.items():
            response.headers.setdefault(header, value)
        return response

    # 3) rutas REST
    app.include_router(subscriptions_router)
    app.include_router(weather_router)

    @app.get("/health", tags=["health"])
    async def health():
        return {"ok": True, "scheduler": services.scheduler.state.value}

    # 4) cualquier error no controlado -> 500 genérico
    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        logger.error("[app] error no controlado en %s %s", request.method, request.url.path, exc_info=exc)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    @app.on_event("startup")
    async def startup_event():
        # sin store no se sirve tráfico: StoreError aborta el arranque
        services.store.connect()
        if settings.scheduler_enabled:
            # 5) lanzar el scheduler en background
            app.state.scheduler_task = asyncio.create_task(services.scheduler.run_forever())

    @app.on_event("shutdown")
    async def shutdown_event():
        task = app.state.scheduler_task
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        await services.gateway.aclose()
        services.dispatcher.close()
        services.store.close()

    return app
