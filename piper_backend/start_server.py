#!/usr/bin/env python3
"""Start the Piper backend with uvicorn."""

import logging

import uvicorn

from piper_backend.config import get_settings


def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    settings = get_settings()
    logging.getLogger(__name__).info("[Piper] Backend corriendo en puerto %s", settings.port)
    uvicorn.run("piper_backend.main:app", host="0.0.0.0", port=settings.port, reload=False)


if __name__ == "__main__":
    main()
