import logging.config

from bloglite.config import settings


def configure_logging(level: str | None = None) -> None:
    """
    Install a console handler with a timestamped format on the root logger.

    Called once from the application lifespan and from ``scripts/seed.py``.
    SQLAlchemy's engine logger is left to ``echo`` (``settings.DEBUG``).
    """
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "format": "%(asctime)s.%(msecs)03d %(levelname)-7s %(name)s: %(message)s",
                    "datefmt": "%Y-%m-%d %H:%M:%S",
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                },
            },
            "root": {
                "handlers": ["console"],
                "level": (level or settings.LOG_LEVEL).upper(),
            },
        }
    )
