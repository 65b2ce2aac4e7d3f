from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from backend import RedisBackend
from constants import REDIS_URL, SERVER_ID, CORS_ORIGIN, LOG_LEVEL, LOG_FILE
from errors import ChatError
from gateway import ChatGateway
from routers.health import health_router
from routers.rooms import rooms_router
from logging_config import get_logger, setup_logging

# Setup logging
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)
logger = get_logger(__name__)


def create_app(backend: Optional[RedisBackend] = None, server_id: str = SERVER_ID) -> FastAPI:
    """Build the application. ``backend`` defaults to a client for REDIS_URL."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        gateway = ChatGateway(backend or RedisBackend.from_url(REDIS_URL), server_id=server_id)
        try:
            await gateway.start()
        except ChatError as e:
            # Without Redis no room can be served; let the process exit
            logger.critical(f"Cannot start server {server_id}: {e.message}")
            await gateway.backend.close()
            raise
        app.state.gateway = gateway
        logger.info(f"Server {server_id} ready")
        try:
            yield
        finally:
            logger.info("Shutting down gracefully...")
            await gateway.stop()

    app = FastAPI(lifespan=lifespan)
    app.state.server_id = server_id

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[CORS_ORIGIN],
        allow_methods=["GET", "POST"],
    )

    app.include_router(rooms_router)
    app.include_router(health_router)

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        """Chat socket. Every frame is a JSON object with a ``type`` field."""
        gateway: ChatGateway = websocket.app.state.gateway
        await websocket.accept()
        connection_id = gateway.connect(websocket)
        try:
            while True:
                data = await websocket.receive_text()
                await gateway.dispatch(connection_id, data)
        except WebSocketDisconnect:
            logger.info(f"WebSocket disconnected for connection {connection_id}")
        finally:
            await gateway.disconnect(connection_id)

    logger.info("FastAPI application initialized")
    return app


app = create_app()
