"""
Broadcast Relay main application.

Signaling relay for one live broadcaster and many viewers: clients connect
over a single WebSocket path, register a role, and the relay forwards the
session negotiation messages between the broadcaster and each viewer.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from shared.config.settings import settings
from shared.config.logging import setup_logging, relay_logger as logger
from broadcast_relay.connection_manager import ConnectionManager
from broadcast_relay.components.endpoints.base import SignalingEndpoint
from broadcast_relay.components.metrics.prometheus import generate_prometheus_metrics


# Global connection manager
manager = ConnectionManager()


# =============================================================================
# Lifespan
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Starts the liveness monitor; on shutdown stops it and closes every
    open connection.
    """
    setup_logging()
    logger.info(
        "Starting Broadcast Relay",
        port=settings.port,
        path=settings.ws_path,
        env=settings.environment,
    )
    for problem in settings.validate_production_settings():
        logger.warning("Configuration problem", problem=problem)

    manager.start()

    yield

    logger.info("Shutting down Broadcast Relay")
    await manager.shutdown()


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="Broadcast Relay",
    description="WebRTC signaling relay for one broadcaster and many viewers",
    version="1.0.0",
    lifespan=lifespan,
)

allowed_origins = settings.origins

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=allowed_origins != ["*"],
    allow_methods=["GET", "OPTIONS"],
    allow_headers=["Content-Type"],
)


# =============================================================================
# Health Checks
# =============================================================================


@app.get("/healthz")
def healthz():
    """Liveness probe with the current broadcast status."""
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        "broadcasterActive": manager.registry.broadcast_active,
        "viewerCount": manager.registry.viewer_count,
    }


@app.get("/ws/health")
def health_check():
    """Health check with connection statistics."""
    try:
        stats = manager.get_stats()
    except Exception as e:
        logger.warning("Failed to get stats in health check", error=str(e))
        stats = {"error": "stats_unavailable"}
    return {
        "status": "healthy",
        "service": "broadcast-relay",
        "version": app.version,
        "environment": settings.environment,
        **stats,
    }


# =============================================================================
# Prometheus Metrics Endpoint
# =============================================================================


@app.get("/ws/metrics")
def prometheus_metrics():
    """
    Prometheus-compatible metrics endpoint.

    Configure Prometheus scrape:
        scrape_configs:
          - job_name: 'broadcast-relay'
            static_configs:
              - targets: ['localhost:3000']
            metrics_path: '/ws/metrics'
    """
    return PlainTextResponse(
        content=generate_prometheus_metrics(manager),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )


# =============================================================================
# WebSocket Endpoint
# =============================================================================


@app.websocket(settings.ws_path)
async def signaling_websocket(websocket: WebSocket):
    """Signaling endpoint shared by the broadcaster and all viewers."""
    endpoint = SignalingEndpoint(websocket, manager, settings.ws_path)
    await endpoint.run()


# =============================================================================
# Entry point
# =============================================================================


def run() -> None:
    """Run the relay with uvicorn (console script entry point)."""
    import uvicorn

    uvicorn.run(
        "broadcast_relay.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug and settings.environment == "development",
        ws="websockets",
        ws_ping_interval=settings.ws_ping_interval,
        ws_ping_timeout=settings.ws_ping_timeout,
    )


if __name__ == "__main__":
    run()
