"""Standalone script to run the relay on its TCP port.

    python backend/run_server.py

Abrupt client loss is detected by uvicorn's WebSocket ping/pong; the
interval and timeout come from settings.
"""

import logging
import sys
from pathlib import Path

import uvicorn

# Add backend directory to path
backend_dir = Path(__file__).resolve().parent
sys.path.insert(0, str(backend_dir))

from relay.config import settings

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


def main() -> None:
    """Serve the relay until interrupted."""
    logger.info("WebSocket server starting on %s:%d", settings.host, settings.port)
    uvicorn.run(
        "relay.main:app",
        host=settings.host,
        port=settings.port,
        ws_ping_interval=settings.ws_ping_interval,
        ws_ping_timeout=settings.ws_ping_timeout,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
