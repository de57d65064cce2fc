"""Logging configuration with optional CloudWatch support."""

import logging
import os

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _level_from_env(default: int = logging.INFO) -> int:
    name = os.environ.get("LOG_LEVEL", "").strip().upper()
    if not name:
        return default
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else default


def setup_cloudwatch_logging(service_name: str) -> None:
    """Configure logging with CloudWatch handler in production.

    Args:
        service_name: Name of the service (e.g., "presence-relay")

    Environment variables:
        LOG_LEVEL: Root log level name (default: "INFO")
        ENABLE_CLOUDWATCH: Set to "true" to enable CloudWatch logging
        CLOUDWATCH_LOG_GROUP: Log group name (default: "presence-relay")
    """
    log_group = os.environ.get("CLOUDWATCH_LOG_GROUP", "presence-relay")

    # Configure root logger
    logger = logging.getLogger()
    logger.setLevel(_level_from_env())

    # Clear any existing handlers
    logger.handlers.clear()

    # Console handler (always enabled)
    console = logging.StreamHandler()
    console.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(console)

    # Keep per-request access lines out of INFO
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    # CloudWatch handler (if enabled)
    if os.environ.get("ENABLE_CLOUDWATCH", "").lower() == "true":
        try:
            import watchtower

            cw_handler = watchtower.CloudWatchLogHandler(
                log_group_name=log_group,
                log_stream_name=service_name,
                use_queues=True,
                create_log_group=True,
            )
            cw_handler.setFormatter(logging.Formatter(LOG_FORMAT))
            logger.addHandler(cw_handler)
            logger.info(
                "CloudWatch logging enabled: group=%s, stream=%s",
                log_group,
                service_name,
            )
        except ImportError:
            logger.warning("watchtower not installed, CloudWatch logging disabled")
        except Exception as e:
            logger.warning("Failed to initialize CloudWatch logging: %s", e)
