"""Run the FastAPI backend using Uvicorn."""

import asyncio
import logging

import uvicorn

from chatrelay.core.config import get_settings

logger = logging.getLogger("chatrelay")


def build_server() -> uvicorn.Server:
    settings = get_settings()
    config = uvicorn.Config(
        "chatrelay.backend.main:app",
        host=settings.BACKEND_HOST,
        port=settings.BACKEND_PORT,
        log_level=settings.LOG_LEVEL.lower(),
        timeout_graceful_shutdown=settings.SHUTDOWN_GRACE_SECONDS,
        reload=False,
    )
    return uvicorn.Server(config)


def install_shutdown_on_uncaught(loop: asyncio.AbstractEventLoop, server: uvicorn.Server) -> None:
    """Turn an exception nobody awaited into a graceful shutdown."""

    def _handler(loop: asyncio.AbstractEventLoop, context: dict) -> None:
        logger.error(
            "Uncaught exception: %s",
            context.get("message", "unknown error"),
            exc_info=context.get("exception"),
        )
        server.should_exit = True

    loop.set_exception_handler(_handler)


async def serve(server: uvicorn.Server) -> None:
    install_shutdown_on_uncaught(asyncio.get_running_loop(), server)
    await server.serve()


def main() -> None:
    settings = get_settings()
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    server = build_server()
    logger.info("Server starting on port %s", settings.BACKEND_PORT)
    asyncio.run(serve(server))
    logger.info("Server closed")


if __name__ == "__main__":
    main()
