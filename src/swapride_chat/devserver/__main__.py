"""Entrypoint: python -m swapride_chat.devserver"""
from __future__ import annotations

import logging

import uvicorn

from swapride_chat.config import settings


def main() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        "swapride_chat.devserver.app:create_app",
        factory=True,
        host=settings.DEVSERVER_HOST,
        port=settings.DEVSERVER_PORT,
        log_level=settings.LOG_LEVEL,
    )


if __name__ == "__main__":
    main()
