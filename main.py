import asyncio
import sys

from core.config import settings
from core.logger import setup_logging, logger


async def start_api():
    import uvicorn
    from api.main import app
    config = uvicorn.Config(app, host=settings.API_HOST, port=settings.API_PORT, log_level="info")
    server = uvicorn.Server(config)
    await server.serve()


async def main():
    # Parse mode from CLI args first
    mode = "api"
    if len(sys.argv) > 1 and "initdb" in sys.argv:
        mode = "initdb"

    # Setup structured logging
    setup_logging()

    if mode == "initdb":
        # Development shortcut; production schemas come from `alembic upgrade head`
        from db.session import init_models, engine
        logger.info("Creating database tables...", env=settings.ENV)
        try:
            await init_models()
        finally:
            await engine.dispose()
        return

    logger.info("Starting API...", env=settings.ENV, port=settings.API_PORT)
    await start_api()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except (KeyboardInterrupt, SystemExit):
        logger.info("Application stopped.")
