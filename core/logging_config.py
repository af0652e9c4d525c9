# core/logging_config.py
import logging
from flask import Flask

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(app: Flask) -> None:
    """Configure root logging from LOG_LEVEL and keep HTTP client chatter at WARNING."""
    log_level_name = app.config.get("LOG_LEVEL", "INFO")
    log_level = getattr(logging, str(log_level_name).upper(), logging.INFO)

    logging.basicConfig(level=log_level, format=LOG_FORMAT)
    logging.getLogger("urllib3").setLevel(max(log_level, logging.WARNING))

    app.logger.setLevel(log_level)
    app.logger.info("Logging configured, level=%s", log_level_name)
