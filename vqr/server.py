"""Local UI/API server entry point (`vqr-server`)."""
from __future__ import annotations

import logging

import uvicorn

from .api import create_app
from .config import get_settings

logger = logging.getLogger(__name__)

app = create_app()


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    settings = get_settings()
    logger.info("Local UI server running at http://localhost:%d", settings.ui_port)
    uvicorn.run(app, host="127.0.0.1", port=settings.ui_port)


if __name__ == "__main__":
    main()
