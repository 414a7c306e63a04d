"""EntregaHub API service entry point.

This module provides the application instance for ASGI servers (uvicorn)
and a run() function for direct execution.
"""

import logging

from entregahub.api import create_app

logger = logging.getLogger(__name__)

# What uvicorn references: entregahub.api.main:app
app = create_app()


def run() -> None:
    """Run the API server using uvicorn.

    This function is called by the entregahub-api console script
    defined in pyproject.toml.
    """
    import uvicorn

    from entregahub.core.logs import configure_logging
    from entregahub.core.settings import get_settings

    settings = get_settings()
    configure_logging(settings.log_level)

    logger.info("Starting EntregaHub API on %s:%d", settings.api_host, settings.api_port)

    uvicorn.run(
        "entregahub.api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=False,
    )


if __name__ == "__main__":
    run()
