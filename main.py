from contextlib import asynccontextmanager
from typing import Optional
import json
import logging

from fastapi import FastAPI, Query, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from broadcast.connection_manager import ConnectionManager
from broadcast.hub import BroadcastHub
from config.settings import Settings, get_settings, validate_startup
from errors.exceptions import invalid_coordinates, invalid_field, invalid_payload
from errors.handlers import register_exception_handlers
from health.service import HealthCheckService
from ingestion.service import Failed, IngestionService, Rejected
from ingestion.validator import RejectionReason
from middleware.rate_limiter import create_rate_limiter, get_rate_limit_string, setup_rate_limiting
from middleware.request_id import RequestIDMiddleware
from query.service import QueryService
from storage.base import ReadingStore
from storage.factory import create_reading_store
from telemetry.service import initialize_telemetry

logger = logging.getLogger(__name__)

SERVICE_NAME = "SafeButton Tracker API"
SERVICE_VERSION = "1.0.0"


def _rejection_error(result: Rejected):
    details = {"reason": result.reason.value}
    if result.field:
        details["field"] = result.field
    if result.reason == RejectionReason.INVALID_COORDINATES:
        return invalid_coordinates(result.message, details=details)
    if result.reason == RejectionReason.INVALID_FIELD:
        return invalid_field(result.message, details=details)
    return invalid_payload(result.message, details=details)


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[ReadingStore] = None,
) -> FastAPI:
    """
    Build the tracker application.

    Args:
        settings: Application settings, loaded from the environment if omitted
        store: Reading store, built from settings if omitted
    """
    settings = settings if settings is not None else get_settings()
    validate_startup(settings)
    telemetry = initialize_telemetry(settings)

    store = store if store is not None else create_reading_store(settings)
    hub = BroadcastHub(queue_size=settings.viewer_queue_size)
    ingestion_service = IngestionService(store, hub, telemetry=telemetry)
    query_service = QueryService(store)
    connection_manager = ConnectionManager(hub)
    health_check_service = HealthCheckService(store, check_timeout=5.0)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting {SERVICE_NAME}", extra={"extra_data": {
            "environment": settings.environment.value,
            "store_backend": settings.store_backend.value,
        }})
        setup = getattr(store, "setup", None)
        if setup is not None:
            try:
                await setup()
            except Exception as e:
                # Requests will report the store as unavailable until it comes back
                logger.error(f"Failed to set up reading store: {e}")

        yield

        logger.info(f"Shutting down {SERVICE_NAME}")
        await hub.close()
        await store.close()

    app = FastAPI(title=SERVICE_NAME, version=SERVICE_VERSION, lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    app.state.hub = hub
    app.state.ingestion_service = ingestion_service
    app.state.query_service = query_service

    register_exception_handlers(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Accept", "Content-Type", "X-Request-ID", "X-Requested-With"],
        expose_headers=["X-Request-ID", "Retry-After"],
        max_age=600,
    )
    app.add_middleware(RequestIDMiddleware)

    limiter = create_rate_limiter(enabled=settings.rate_limit_enabled)
    setup_rate_limiting(app, limiter)

    @app.post("/api/location")
    @limiter.limit(get_rate_limit_string(settings.rate_limit_ingest_per_minute))
    async def ingest_location(request: Request):
        """
        Location report from the reporting device.

        Body: ``{"deviceId"?: str, "latitude": number, "longitude": number, "timestamp"?: str}``

        Returns the stored record. Responds 400 when the coordinates (or
        another field) are invalid and 503 when the reading could not be
        persisted; in both cases nothing is broadcast.
        """
        try:
            payload = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            raise invalid_payload("Request body must be valid JSON")

        result = await ingestion_service.ingest(payload)

        if isinstance(result, Rejected):
            raise _rejection_error(result)
        if isinstance(result, Failed):
            raise result.error

        return {"message": "Location saved!", "data": result.reading.to_record()}

    @app.get("/api/locations/recent")
    async def recent_locations(limit: Optional[int] = Query(default=None)):
        """
        Most recently stored readings, newest first.

        ``limit`` defaults to 10 and is capped at 100.
        """
        readings = await query_service.list_recent(limit)
        return [reading.to_record() for reading in readings]

    @app.websocket("/api/locations/live")
    async def live_locations(websocket: WebSocket):
        """
        Live-update channel.

        Messages sent to clients:
        - ``{"type": "connection", "status": "connected", ...}`` once, on connect
        - ``{"type": "newLocation", "data": <record>}`` per stored reading
        - ``{"type": "pong", ...}`` in answer to ``{"type": "ping"}``
        """
        handle = await connection_manager.connect(websocket)
        try:
            while not handle.closed:
                data = await websocket.receive_text()
                await connection_manager.handle_client_message(handle, websocket, data)
        except WebSocketDisconnect:
            pass
        finally:
            await connection_manager.disconnect(handle)

    @app.get("/health")
    async def health_basic():
        """Returns 200 while the service is accepting requests."""
        result = await health_check_service.check_health()
        return {
            "status": result["status"],
            "service": SERVICE_NAME,
            "version": SERVICE_VERSION,
            "timestamp": result["timestamp"],
        }

    @app.get("/health/live")
    async def health_live():
        """Returns 200 if the process is running, regardless of the store."""
        result = await health_check_service.check_liveness()
        return {
            "status": result["status"],
            "service": SERVICE_NAME,
            "version": SERVICE_VERSION,
            "timestamp": result["timestamp"],
        }

    @app.get("/health/ready")
    async def health_ready():
        """Returns 200 when the reading store is reachable, 503 otherwise."""
        health_status = await health_check_service.check_readiness()
        response_data = {
            "service": SERVICE_NAME,
            "version": SERVICE_VERSION,
            **health_status.to_dict(),
        }

        if health_status.status == "unhealthy":
            response_data["failure_reasons"] = [
                {"dependency": dep.name, "error": dep.error}
                for dep in health_status.dependencies if not dep.healthy
            ]
            return JSONResponse(status_code=503, content=response_data)

        return response_data

    return app


app = create_app()


if __name__ == "__main__":
    import os
    import uvicorn
    port = int(os.environ.get("PORT", 5000))
    uvicorn.run(app, host="0.0.0.0", port=port, log_level="info")
