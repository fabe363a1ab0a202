import logging
import sys
import os
from pathlib import Path

from config import settings


def setup_logging(log_level: str = "INFO") -> logging.Logger:
    """
    Set up application logging configuration
    """
    # Check if running in a serverless environment (like App Runner or Lambda)
    is_serverless = os.getenv("AWS_LAMBDA_FUNCTION_NAME") or os.getenv("AWS_APP_RUNNER") or os.getenv("VERCEL")

    handlers = [logging.StreamHandler(sys.stdout)]

    # Only add file handler outside serverless and test environments
    if not is_serverless and settings.NODE_ENV != "test":
        try:
            log_dir = Path("logs")
            log_dir.mkdir(exist_ok=True)
            handlers.append(logging.FileHandler(log_dir / "app.log"))
        except (OSError, PermissionError):
            # If we can't create the logs directory, just use stdout
            pass

    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )

    logger = logging.getLogger("vocal_studio")
    return logger


# Create a global logger instance
logger = setup_logging(settings.LOG_LEVEL)
