"""EDMCP: Entry point.

Starts the FastAPI server exposing the `generate_image` MCP tool.

Port selection:
  1. PORT env var / .env (fails hard if taken)
  2. Default port 5000
"""

from __future__ import annotations

import logging
import socket

import uvicorn

from edmcp.config import get_settings
from edmcp.main import create_app

logger = logging.getLogger("edmcp.run")


def _is_port_available(host: str, port: int) -> bool:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.settimeout(0.1)
        try:
            s.bind((host, port))
            return True
        except OSError:
            return False


def main() -> None:
    settings = get_settings()
    app = create_app(settings)

    if not _is_port_available(settings.HOST, settings.PORT):
        logger.error("Port %d is already in use", settings.PORT)
        raise SystemExit(f"Port {settings.PORT} is already in use. Set PORT to a free port.")

    logger.info("Starting EDMCP on %s:%d", settings.HOST, settings.PORT)
    uvicorn.run(
        app,
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
