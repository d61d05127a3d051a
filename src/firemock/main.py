from __future__ import annotations

import argparse
import asyncio
import logging

from fastapi import FastAPI
import uvicorn

from firemock.api.app import create_app, create_auth_app
from firemock.settings import AppSettings, load_settings

LOGGER = logging.getLogger(__name__)


async def serve(
    settings: AppSettings,
    *,
    firestore_app: FastAPI | None = None,
    auth_app: FastAPI | None = None,
) -> None:
    """Run the Firestore and Auth emulators side by side until interrupted."""

    servers = [
        uvicorn.Server(
            uvicorn.Config(
                firestore_app or create_app(settings=settings),
                host=settings.host,
                port=settings.port,
                log_level=logging.getLevelName(settings.log_level),
            )
        ),
        uvicorn.Server(
            uvicorn.Config(
                auth_app or create_auth_app(settings=settings),
                host=settings.host,
                port=settings.auth_port,
                log_level=logging.getLevelName(settings.log_level),
            )
        ),
    ]
    await asyncio.gather(*(server.serve() for server in servers))


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Run the local Firestore and Firebase Auth emulators.")
    parser.add_argument("--dotenv", default=".env", help="Path to a .env file with emulator settings.")
    args = parser.parse_args(argv)

    settings = load_settings(dotenv_path=args.dotenv)
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    LOGGER.info(
        "firemock started: env=%s firestore=http://%s:%s auth=http://%s:%s project=%s database=%s",
        settings.app_env,
        settings.host,
        settings.port,
        settings.host,
        settings.auth_port,
        settings.project_id,
        settings.database_id,
    )
    asyncio.run(serve(settings))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
