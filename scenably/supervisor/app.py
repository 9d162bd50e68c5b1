from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import asyncio
import logging
from typing import Optional

from scenably.errors import ScenablyError
from .api_recording import router as recording_router
from .api_scenarios import router as scenario_router
from .api_schedules import router as schedule_router
from .services import Services, build_services
from .settings import resolve_settings

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler()],
)
logger = logging.getLogger("scenably.supervisor")

VERSION = "0.1.0"


def status_for_error(error: ScenablyError) -> int:
    if error.error_class == "validation":
        return 400
    if error.error_class == "not_found":
        return 404
    return 500


def create_app(services: Optional[Services] = None, *, start_driver: bool = True) -> FastAPI:
    """Build the HTTP service; services are created from settings on startup when omitted."""
    app = FastAPI(title="Scenably Service", version=VERSION)
    app.state.services = services
    app.state.driver_task = None
    app.include_router(recording_router)
    app.include_router(scenario_router)
    app.include_router(schedule_router)

    @app.exception_handler(ScenablyError)
    async def scenably_error_handler(request: Request, exc: ScenablyError):
        status_code = status_for_error(exc)
        if status_code == 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(
            status_code=status_code,
            content={"error": exc.message, "error_code": exc.error_code},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"error": "invalid request", "error_code": "INVALID_REQUEST", "details": exc.errors()},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": str(exc.detail), "error_code": f"HTTP_{exc.status_code}"},
        )

    @app.on_event("startup")
    async def startup_event():
        if app.state.services is None:
            app.state.services = build_services(resolve_settings())
        services = app.state.services
        logger.info("Initializing database...")
        await services.store.init()
        await services.store.reconcile_interrupted()
        if start_driver:
            interval = services.settings["tick_interval_seconds"]
            app.state.driver_task = asyncio.create_task(
                services.scheduler.run_forever(interval, registry=services.registry)
            )
            logger.info("Scheduler driver started (interval=%ss)", interval)

    @app.on_event("shutdown")
    async def shutdown_event():
        driver_task = app.state.driver_task
        if driver_task:
            driver_task.cancel()
            try:
                await driver_task
            except asyncio.CancelledError:
                pass
            app.state.driver_task = None
        logger.info("Stopping recorders and browsers...")
        await app.state.services.close()
        logger.info("Service stopped.")

    @app.get("/health")
    async def health_check():
        return {"status": "ok", "version": VERSION}

    return app


app = create_app()
