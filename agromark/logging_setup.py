# =============================================================================
# Logging Setup — Console Handler for the API Process
# =============================================================================
# Modules log through `logging.getLogger(__name__)`; this configures the
# root logger once at startup. Level comes from settings.log_level.
# =============================================================================

import logging
import sys

LOG_FORMAT = (
    "[%(asctime)s] [%(levelname)s] [%(name)s:%(funcName)s:%(lineno)d] %(message)s"
)


def setup_logging(level: str = "INFO") -> None:
    """Install a single stdout handler on the root logger."""
    level = level.upper()

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Clear existing handlers to avoid duplicate logs on reload
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(handler)

    # SDK clients log every HTTP request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)

    root_logger.info("Logging setup complete (level=%s)", level)
