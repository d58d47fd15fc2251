"""
FastAPI Application - CryptoPulse Live Ticker Relay

Relays Binance 24h ticker updates to any number of WebSocket subscribers.

Features:
    - One upstream Binance connection shared by every subscriber
    - Compact priceUpdate messages ({"type": "priceUpdate", "data": {...}})
    - Latest snapshot per symbol over REST
    - Static presentation bundle in production mode

Usage:
    uvicorn app.main:app --reload --host 0.0.0.0 --port 5000

Docs:
    - Swagger: http://localhost:5000/docs
    - ReDoc: http://localhost:5000/redoc
"""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Request, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse

from core.config import Settings, settings, validate_configuration
from core.logging import logger
from core.schemas import HealthStatus, TickerSnapshot
from core.utils.time import to_iso, utc_now
from services.relay import RelayServer


def create_app(
    config: Optional[Settings] = None,
    relay: Optional[RelayServer] = None,
    start_upstream: bool = True
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        config: Settings to use (defaults to the global settings)
        relay: Pre-built relay (defaults to one built from config at startup)
        start_upstream: Connect to Binance during startup

    Returns:
        FastAPI: Configured application; the relay lives on app.state.relay
    """
    config = config or settings

    # ============================================
    # Lifespan Management
    # ============================================

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Handle application startup and shutdown."""
        logger.info("=== CryptoPulse Relay Starting ===")
        try:
            validate_configuration(config)
            app.state.relay = relay or RelayServer.from_settings(config)
            if start_upstream:
                await app.state.relay.start()
            logger.info("=== Started Successfully ===")
        except Exception as e:
            logger.error(f"Startup failed: {e}")
            raise

        yield

        logger.info("=== Shutting Down ===")
        try:
            await app.state.relay.stop()
            logger.info("=== Shutdown Complete ===")
        except Exception as e:
            logger.error(f"Shutdown error: {e}")

    # ============================================
    # FastAPI Application
    # ============================================

    app = FastAPI(
        title="CryptoPulse Live Ticker Relay",
        description=(
            "Relays Binance 24h ticker updates to WebSocket subscribers.\n\n"
            "## REST Endpoints\n"
            "- `GET /api/health` - Liveness probe\n"
            "- `GET /api/status` - Relay counters (upstream state, subscribers)\n"
            "- `GET /api/tickers` - Latest snapshot per symbol\n\n"
            "## WebSocket Stream\n"
            "- `ws://{host}/` or `ws://{host}/ws`\n"
            "- Messages: `{\"type\": \"priceUpdate\", \"data\": {\"s\", \"c\", \"P\", \"p\", \"v\", \"h\", \"l\", \"o\", \"n\"}}`\n\n"
            "Clients should handle reconnects on disconnect."
        ),
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"]
    )

    # ============================================
    # System Endpoints
    # ============================================

    @app.get("/api/health", response_model=HealthStatus, tags=["System"])
    async def health_check():
        """Liveness probe. Succeeds whenever the process is up."""
        return HealthStatus(timestamp=to_iso(utc_now()))

    @app.get("/api/status", tags=["System"])
    async def relay_status(request: Request):
        """Upstream connection state and fan-out counters."""
        return request.app.state.relay.status()

    # ============================================
    # Market Data Endpoints
    # ============================================

    @app.get("/api/tickers", response_model=List[TickerSnapshot], tags=["Market Data"])
    async def get_tickers(request: Request):
        """Latest snapshot for every symbol received since startup."""
        return request.app.state.relay.cache.all()

    @app.get("/api/tickers/{symbol}", response_model=TickerSnapshot, tags=["Market Data"])
    async def get_ticker(symbol: str, request: Request):
        """Latest snapshot for one base asset (e.g., BTC)."""
        snapshot = request.app.state.relay.cache.get(symbol)
        if snapshot is None:
            raise HTTPException(status_code=404, detail=f"No data for {symbol.upper()} yet")
        return snapshot

    # ============================================
    # WebSocket Endpoints
    # ============================================

    @app.websocket("/")
    @app.websocket("/ws")
    async def websocket_stream(websocket: WebSocket):
        """
        Live priceUpdate stream.

        Every subscriber receives every update broadcast after its
        connection was accepted. Nothing is replayed on connect.
        """
        await websocket.app.state.relay.serve(websocket)

    # ============================================
    # Static Presentation Bundle (production)
    # ============================================

    static_dir = Path(config.static_dir)
    if config.is_production:
        if static_dir.is_dir():
            _mount_presentation_bundle(app, static_dir)
        else:
            logger.warning(f"Static bundle not found at {static_dir}; serving API only")

    # ============================================
    # Error Handlers
    # ============================================

    @app.exception_handler(500)
    async def internal_error_handler(request, exc):
        """Handle 500 errors."""
        logger.error(f"Internal error: {exc}")
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    return app


def _mount_presentation_bundle(app: FastAPI, static_dir: Path) -> None:
    """Serve built files, falling back to index.html for client-side routes."""
    root = static_dir.resolve()
    index = root / "index.html"

    @app.get("/{full_path:path}", include_in_schema=False)
    async def serve_presentation(full_path: str):
        candidate = (root / full_path).resolve()
        if full_path and candidate.is_file() and root in candidate.parents:
            return FileResponse(candidate)
        if index.is_file():
            return FileResponse(index)
        raise HTTPException(status_code=404, detail="Not found")

    logger.info(f"Serving presentation bundle from {root}")


app = create_app()
