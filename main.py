import logging

import uvicorn

from api.fastapi_server import app
from config.settings import HubSettings
from monitoring.logging_utils import setup_logging


logger = logging.getLogger(__name__)


def main():
    settings: HubSettings = app.state.settings
    setup_logging(settings.log_level)
    try:
        uvicorn.run(
            app,
            host=settings.host,
            port=settings.port,
            log_level=settings.log_level.lower(),
        )
    except KeyboardInterrupt:
        logger.info("Hub shutting down on interrupt")


if __name__ == "__main__":
    main()
