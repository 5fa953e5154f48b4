import logging
import sys
import structlog
from pythonjsonlogger import jsonlogger

def setup_logging(level: str = "INFO", json_output: bool = False):
    """Structured logging setup"""

    json_formatter = jsonlogger.JsonFormatter(
        fmt="%(asctime)s %(name)s %(levelname)s %(message)s"
    )
    renderer = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logger = logging.getLogger()
    # Re-running setup (reload, tests) must not stack handlers
    if not any(getattr(h, "_clinic_handler", False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stdout)
        if json_output:
            handler.setFormatter(json_formatter)
        else:
            handler.setFormatter(logging.Formatter('%(levelname)-8s %(name)s: %(message)s'))
        handler._clinic_handler = True
        logger.addHandler(handler)
    logger.setLevel(level.upper())

    # Optional: quieten noisy libraries
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    return structlog.get_logger()
