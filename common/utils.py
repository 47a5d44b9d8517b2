from loguru import logger
import os
import sys


def setup_logger(level: str = "INFO", log_file: str = "logs/discovery.log"):
    logger.remove()
    logger.add(
        sys.stdout,
        format="<green>{time}</green> | <level>{level}</level> | <cyan>{message}</cyan>",
        level=os.getenv("DISCOVERY_LOG_LEVEL", level),
    )
    if log_file:
        logger.add(
            log_file,
            rotation="10 MB",
            level="DEBUG"
        )
    return logger
