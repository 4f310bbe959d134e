"""
Main entry point for the flight escrow API server.
"""

import logging

from .api import create_app
from .utils.config import get_config, setup_logging

logger = logging.getLogger(__name__)


def main() -> int:
    """Load configuration and serve the API."""
    try:
        config = get_config()
        setup_logging(config.log_level)
        app = create_app(config)
    except Exception:
        logger.exception("Failed to start flight escrow API")
        return 1

    app.run(host=config.host, port=config.port, debug=config.debug)
    return 0


if __name__ == "__main__":
    exit(main())
