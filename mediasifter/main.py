"""Entry point for the Media Sifter web service."""

from __future__ import annotations

import logging
import os
import sys

import uvicorn

from .web.server import create_app


def configure_logging(level: str | None = None) -> None:
    name = (level or os.environ.get("MEDIASIFTER_LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(
        level=getattr(logging, name, logging.INFO),
        format="[%(levelname)s] %(name)s: %(message)s",
    )


def run() -> int:
    """Serve the API with uvicorn."""

    configure_logging()
    host = os.environ.get("MEDIASIFTER_HOST", "0.0.0.0")
    port = int(os.environ.get("MEDIASIFTER_PORT", "8000"))
    uvicorn.run(create_app(), host=host, port=port)
    return 0


if __name__ == "__main__":
    sys.exit(run())
