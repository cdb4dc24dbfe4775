"""Root logger setup with a Rich console handler"""

import logging

from rich.console import Console
from rich.logging import RichHandler

from followdeck.core.config import Settings

# Chatty third-party loggers kept at WARNING
QUIET_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "asyncpg")


def setup_logging(settings: Settings) -> None:
    level = getattr(logging, settings.log_level, logging.INFO)

    handler = RichHandler(
        console=Console(stderr=True, width=120),
        show_path=settings.is_development,
        markup=False,
        rich_tracebacks=True,
        tracebacks_show_locals=False,
    )
    handler.setFormatter(logging.Formatter(fmt="%(name)s: %(message)s", datefmt="[%X]"))

    # uvicorn installs its own root handlers before the app factory runs
    logging.basicConfig(level=level, handlers=[handler], force=True)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).debug(
        f"Logging at {settings.log_level} for {settings.environment}"
    )
