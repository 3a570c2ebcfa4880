import sys
import logging
from typing import Any

from loguru import logger

from survivor_pool.config.settings import settings

SENSITIVE_KEYS = ["key", "token", "password", "secret", "authorization"]


def _mask(value: str) -> str:
    if len(value) > 8:
        return value[:4] + "****" + value[-4:]
    return "********"


def sensitive_data_filter(record: dict[str, Any]) -> bool:
    """Filter function to mask sensitive data in log records."""

    def mask_value(name: str, value: Any) -> Any:
        if isinstance(value, str):
            if any(sk in name.lower() for sk in SENSITIVE_KEYS):
                return _mask(value)
            return value
        elif isinstance(value, dict):
            return {k: mask_value(str(k), v) for k, v in value.items()}
        elif isinstance(value, list):
            return [mask_value(name, item) for item in value]
        return value

    # Apply masking to the 'extra' dictionary
    if "extra" in record and isinstance(record["extra"], dict):
        record["extra"] = {
            k: mask_value(k, v) for k, v in record["extra"].items()
        }

    # Known secrets may still be interpolated into the message itself
    for secret in (settings.supabase_key, settings.supabase_service_key):
        if secret and secret in record["message"]:
            record["message"] = record["message"].replace(secret, "********")

    return True  # Keep the record after filtering/masking


class InterceptHandler(logging.Handler):
    """Routes stdlib logging records (httpx, postgrest) into loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        # Get corresponding Loguru level if it exists
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller from where originated the logged message
        frame, depth = logging.currentframe(), 2
        while frame is not None and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def setup_logging() -> None:
    """Configures Loguru logger based on application settings."""
    logger.remove()  # Remove default handler

    logger.add(
        sys.stderr,
        level=settings.log_level.upper(),
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
            "<level>{message}</level>"
        ),
        colorize=True,
        backtrace=True,
        diagnose=False,  # Locals may hold service keys
        filter=sensitive_data_filter,
    )

    logger.info(f"Logging initialized with level: {settings.log_level}")

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    logger.debug("Standard logging intercepted.")
