import sys

import uvicorn

from finassist.config import Settings
from finassist.log import setup_logging
from finassist.main import SERVICE_NAME


def main():
    try:
        settings = Settings.from_env()
    except ValueError as e:
        setup_logging(SERVICE_NAME).error(str(e))
        sys.exit(1)

    logger = setup_logging(SERVICE_NAME, settings.log_level)
    logger.info(
        "Starting Financial Assistant Server",
        extra={"_extra": {"port": settings.port, "environment": settings.environment}},
    )
    # uvicorn traps SIGINT/SIGTERM and drains in-flight requests before exiting
    uvicorn.run(
        "finassist.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=settings.port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
