import os
import logging
from logging.handlers import TimedRotatingFileHandler

from healthdash.config import settings

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

def get_logger(name: str = "healthdash"):
    logger = logging.getLogger(name)
    logger.setLevel(settings.LOG_LEVEL.upper())

    # If no handlers are attached, add console (+ optional rotating file) handler
    if not logger.handlers:
        formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)

        console = logging.StreamHandler()
        console.setFormatter(formatter)
        logger.addHandler(console)

        # Rotates at midnight and keeps 7 days of logs
        if settings.LOG_DIR:
            os.makedirs(settings.LOG_DIR, exist_ok=True)
            log_path = os.path.join(settings.LOG_DIR, f"{name}.log")
            file_handler = TimedRotatingFileHandler(
                filename=log_path,
                when="midnight",
                interval=1,
                backupCount=7,
                encoding="utf-8",
            )
            file_handler.suffix = "%Y-%m-%d"
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

    return logger
