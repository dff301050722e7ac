import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from edmcp.api.mcp_routes import router as mcp_router
from edmcp.common.system_logger import get_logger
from edmcp.config import APP_NAME, APP_VERSION, Settings, get_settings
from edmcp.generation.client import GenerationClient
from edmcp.rpc.dispatcher import RequestDispatcher
from edmcp.websocket_manager import WebSocketManager

# Initialize logger
logger = get_logger()


def create_app(
    settings: Settings | None = None,
    generation_client: GenerationClient | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    logger.configure_logging(settings)

    client = generation_client or GenerationClient(settings)
    dispatcher = RequestDispatcher(settings, client)

    # Create the FastAPI app instance
    app = FastAPI(title=APP_NAME, version=APP_VERSION)
    app.state.settings = settings
    app.state.generation_client = client
    app.state.dispatcher = dispatcher
    app.state.websocket_manager = WebSocketManager(dispatcher)

    # Add MCP routes
    app.include_router(mcp_router)

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origin_list,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Middleware to log all requests and responses
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """
        Middleware to log all incoming requests and responses.
        """
        start = time.monotonic()
        logger.info(
            f"Request: {request.method} {request.url.path} {request.url.query} | "
            f"Content-Type: {request.headers.get('content-type')} | "
            f"Accept: {request.headers.get('accept')}"
        )
        response = await call_next(request)
        duration_ms = (time.monotonic() - start) * 1000
        logger.info(
            f"Response: {response.status_code} for {request.method} {request.url.path} "
            f"in {duration_ms:.1f}ms"
        )
        return response

    logger.info(f"{APP_NAME} configured for Easy Diffusion at {settings.EASY_DIFFUSION_ADDRESS}")
    return app
